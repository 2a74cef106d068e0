"""
Écritures non critiques : une erreur de stockage est annulée et journalisée,
jamais propagée dans le flux principal (journal d'audit, nettoyage après acceptation).
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class SideEffectResult:
    """Indique si l'écriture non critique a abouti."""

    def __init__(self) -> None:
        self.ok = True
        self.error = None


@contextmanager
def non_critical(db: Session, action: str):
    """
    Exécute le bloc comme effet de bord non critique.

    En cas d'erreur SQLAlchemy : rollback de la transaction en cours, log avec la trace,
    et le résultat passe à ok=False. Les autres exceptions (bugs) sont propagées.
    """
    result = SideEffectResult()
    try:
        yield result
    except SQLAlchemyError as exc:
        db.rollback()
        result.ok = False
        result.error = exc
        logger.error("Écriture non critique échouée (%s) : %s", action, exc, exc_info=True)
