"""
Service métier pour le registre des cours.
Création (avec premier QR code), changements d'état et suppression en cascade.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.database import utcnow
from app.models.lecture import Lecture
from app.models.subject import Subject
from app.schemas.lecture import LectureCreate
from app.services import attendance_ledger, failed_attempt_service, qr_service

logger = logging.getLogger(__name__)


def default_end_time(start_time: time) -> time:
    """Heure de début + durée par défaut (2h), en repassant à 00:00 après minuit."""
    start = datetime.combine(date.min, start_time)
    end = start + timedelta(minutes=settings.LECTURE_DEFAULT_DURATION_MINUTES)
    return end.time().replace(second=0, microsecond=0)


def create_lecture(
    db: Session,
    data: LectureCreate,
    created_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Lecture:
    """
    Crée un cours et émet son premier QR code.

    Lève ValueError si la matière est introuvable.
    """
    subject = db.get(Subject, data.subject_id)
    if subject is None:
        raise ValueError(f"Matière {data.subject_id} introuvable.")

    lecture = Lecture(
        subject_id=data.subject_id,
        title=data.title,
        date=data.date,
        start_time=data.start_time,
        end_time=data.end_time or default_end_time(data.start_time),
        lecture_type=data.lecture_type,
        group_number=data.group_number,
        section_number=data.section_number,
        qr_refresh_interval=data.qr_refresh_interval,
        is_active=True,
        attendance_finished=False,
        lecture_finished=False,
        created_by=created_by,
        created_at=now or utcnow(),
    )
    qr_service.issue_qr_code(db, lecture, now)
    db.add(lecture)
    db.commit()
    db.refresh(lecture)

    logger.info(
        "Cours créé : %s (%s) — matière %s, rafraîchissement QR %ss",
        lecture.title, lecture.id, lecture.subject_id, lecture.qr_refresh_interval,
    )
    return lecture


def get_lecture(db: Session, lecture_id: int) -> Lecture:
    """Retourne le cours ou lève ValueError s'il n'existe pas."""
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        raise ValueError(f"Cours {lecture_id} introuvable.")
    return lecture


def set_finished_flags(
    db: Session,
    lecture_id: int,
    attendance_finished: Optional[bool] = None,
    lecture_finished: Optional[bool] = None,
) -> Lecture:
    """
    Clôture ou rouvre l'inscription et/ou le cours.
    Lève ValueError si aucun indicateur n'est fourni.
    """
    lecture = get_lecture(db, lecture_id)
    if attendance_finished is None and lecture_finished is None:
        raise ValueError("Aucune modification fournie.")

    if attendance_finished is not None:
        lecture.attendance_finished = attendance_finished
    if lecture_finished is not None:
        lecture.lecture_finished = lecture_finished
    db.commit()
    db.refresh(lecture)

    logger.info(
        "Cours %s : inscription %s, cours %s",
        lecture_id,
        "clôturée" if lecture.attendance_finished else "ouverte",
        "terminé" if lecture.lecture_finished else "en cours",
    )
    return lecture


def set_active(db: Session, lecture_id: int, is_active: bool) -> Lecture:
    """Active ou désactive un cours : un cours inactif ne se résout plus par QR code."""
    lecture = get_lecture(db, lecture_id)
    lecture.is_active = is_active
    db.commit()
    db.refresh(lecture)
    return lecture


def set_refresh_interval(
    db: Session,
    lecture_id: int,
    seconds: int,
    now: Optional[datetime] = None,
) -> Lecture:
    """
    Change l'intervalle de rafraîchissement du QR code et réémet immédiatement le token.

    Le nouveau token suit le nouvel intervalle : sans expiration pour 0,
    expiration à now + seconds sinon. L'ancien token est retiré.
    """
    if seconds < 0:
        raise ValueError("L'intervalle de rafraîchissement doit être positif ou nul.")
    lecture = get_lecture(db, lecture_id)
    lecture.qr_refresh_interval = seconds
    qr_service.issue_qr_code(db, lecture, now or utcnow())
    db.commit()
    db.refresh(lecture)

    logger.info("Cours %s : rafraîchissement QR réglé à %ss, token réémis", lecture_id, seconds)
    return lecture


def delete_lecture(db: Session, lecture_id: int) -> None:
    """
    Supprime un cours avec ses présences, ses tentatives refusées et son historique QR.
    Lève ValueError si le cours est introuvable.
    """
    lecture = get_lecture(db, lecture_id)
    attendance_count = attendance_ledger.purge_lecture(db, lecture_id)
    failed_count = failed_attempt_service.purge_lecture(db, lecture_id)
    db.delete(lecture)
    db.commit()

    logger.info(
        "Cours %s supprimé — %d présence(s), %d tentative(s) refusée(s)",
        lecture_id, attendance_count, failed_count,
    )
