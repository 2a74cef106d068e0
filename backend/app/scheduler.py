"""
Planificateur APScheduler pour la rotation automatique des QR codes expirés.

Le job renouvelle le token des cours ouverts dont le QR code a dépassé son expiration.
Il est indicatif : la validité d'un token est toujours décidée côté serveur par
comparaison avec qr_expires_at, que la rotation ait eu lieu ou non.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import settings
from app.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _rotate_expired_qr_codes() -> None:
    """
    Tâche planifiée : ouvre sa propre session et renouvelle les QR expirés.
    Import local pour éviter les imports circulaires.
    """
    from app.services.qr_service import rotate_expired_qr_codes

    db = SessionLocal()
    try:
        rotate_expired_qr_codes(db)
    except Exception as exc:
        db.rollback()
        logger.error("Erreur lors de la rotation automatique des QR codes : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    if not settings.QR_AUTO_ROTATE:
        logger.info("Rotation automatique des QR codes désactivée.")
        return
    scheduler.add_job(
        _rotate_expired_qr_codes,
        trigger="interval",
        seconds=settings.QR_ROTATION_CHECK_SECONDS,
        id="qr_rotation_check",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré — vérification des QR expirés toutes les %ds.",
        settings.QR_ROTATION_CHECK_SECONDS,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
