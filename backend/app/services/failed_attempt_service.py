"""
Service d'enregistrement des tentatives d'inscription refusées.

Chaque refus qui correspond à un vrai événement de présence (doublon, appareil déjà
utilisé, course perdue à l'insertion) laisse une ligne d'audit. L'écriture est
synchrone mais non critique : un échec est journalisé et n'interrompt jamais
l'inscription qui l'a déclenché.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.database import utcnow
from app.models.failed_attempt import FailedAttempt
from app.schemas.attendance import FailureReason, StudentFields
from app.services.side_effects import non_critical

logger = logging.getLogger(__name__)


def record_failed_attempt(
    db: Session,
    lecture_id: int,
    student_id: str,
    fields: Optional[StudentFields],
    reason: FailureReason,
    now: Optional[datetime] = None,
) -> Optional[FailedAttempt]:
    """
    Ajoute une tentative refusée pour le cours. Retourne la ligne créée,
    ou None si l'écriture a échoué (déjà journalisé).
    """
    attempt = FailedAttempt(
        lecture_id=lecture_id,
        student_id=student_id,
        student_name=fields.student_name if fields else None,
        group_number=fields.group_number if fields else None,
        section_number=fields.section_number if fields else None,
        reason=reason.value,
        timestamp=now or utcnow(),
    )
    with non_critical(db, f"tentative refusée {reason.value} cours={lecture_id}") as result:
        db.add(attempt)
        db.commit()

    if not result.ok:
        return None

    logger.warning(
        "Tentative refusée — cours %s, étudiant %s : %s",
        lecture_id, student_id, reason.value,
    )
    return attempt


def list_by_lecture(db: Session, lecture_id: int) -> List[FailedAttempt]:
    """Tentatives refusées d'un cours, de la plus ancienne à la plus récente."""
    return db.execute(
        select(FailedAttempt)
        .where(FailedAttempt.lecture_id == lecture_id)
        .order_by(FailedAttempt.timestamp, FailedAttempt.id)
    ).scalars().all()


def get_failed_attempt(
    db: Session,
    failed_attempt_id: int,
    lecture_id: int,
    student_id: str,
) -> Optional[FailedAttempt]:
    """Retourne la tentative si elle appartient bien à ce cours et à cet étudiant."""
    return db.execute(
        select(FailedAttempt).where(
            FailedAttempt.id == failed_attempt_id,
            FailedAttempt.lecture_id == lecture_id,
            FailedAttempt.student_id == student_id,
        )
    ).scalar()


def delete_failed_attempt(db: Session, failed_attempt_id: int) -> None:
    db.execute(delete(FailedAttempt).where(FailedAttempt.id == failed_attempt_id))
    db.commit()


def purge_lecture(db: Session, lecture_id: int) -> int:
    """Supprime toutes les tentatives d'un cours (suppression en cascade). Ne commite pas."""
    result = db.execute(delete(FailedAttempt).where(FailedAttempt.lecture_id == lecture_id))
    return result.rowcount or 0
