"""
Registre des présences (append-only).

L'unicité (cours, étudiant) et la liaison session/appareil en libre-service sont
garanties par les contraintes de la table attendance. Les fonctions find_* sont des
pré-vérifications : elles interrogent toujours la base, sans cache.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.attendance import ENTRY_SELF_SERVICE, AttendanceRecord

logger = logging.getLogger(__name__)


class DuplicateAttendanceError(Exception):
    """La base a refusé l'insertion (contrainte d'unicité violée)."""


def insert_attendance(db: Session, record: AttendanceRecord) -> AttendanceRecord:
    """
    Insère et commite une présence.

    Lève DuplicateAttendanceError (après rollback) si la base rejette la ligne :
    un autre enregistrement a gagné la course pour ce (cours, étudiant) ou cette session.
    """
    db.add(record)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateAttendanceError(
            f"Présence déjà enregistrée pour l'étudiant {record.student_id} (cours {record.lecture_id})."
        ) from exc
    db.refresh(record)
    return record


def find_by_student(db: Session, lecture_id: int, student_id: str) -> Optional[AttendanceRecord]:
    return db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.lecture_id == lecture_id,
            AttendanceRecord.student_id == student_id,
        )
    ).scalar()


def find_by_session(db: Session, lecture_id: int, session_id: str) -> Optional[AttendanceRecord]:
    """Présence en libre-service déjà enregistrée depuis cette session navigateur."""
    return db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.lecture_id == lecture_id,
            AttendanceRecord.session_id == session_id,
            AttendanceRecord.entry_type == ENTRY_SELF_SERVICE,
        )
    ).scalar()


def list_by_lecture(db: Session, lecture_id: int) -> List[AttendanceRecord]:
    """Présences d'un cours par ordre chronologique."""
    return db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.lecture_id == lecture_id)
        .order_by(AttendanceRecord.timestamp, AttendanceRecord.id)
    ).scalars().all()


def count_by_lecture(db: Session, lecture_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(AttendanceRecord).where(AttendanceRecord.lecture_id == lecture_id)
    ).scalar() or 0


def purge_lecture(db: Session, lecture_id: int) -> int:
    """Supprime les présences d'un cours (suppression en cascade uniquement). Ne commite pas."""
    result = db.execute(delete(AttendanceRecord).where(AttendanceRecord.lecture_id == lecture_id))
    return result.rowcount or 0
