"""
Orchestrateur d'inscription des présences.

Flux d'une tentative en libre-service (sans état entre deux tentatives) :
  1. Résoudre le cours (et le token scanné s'il est fourni) → INVALID_OR_EXPIRED_CODE
  2. Vérifier l'état du cours → ATTENDANCE_CLOSED / LECTURE_ENDED
  3. Valider les champs (groupe toujours, section pour un cours de type section)
     → MISSING_FIELD, sans aucune écriture
  4. Étudiant déjà inscrit → tentative DuplicateRegistration + ALREADY_REGISTERED
  5. Session déjà utilisée pour un autre étudiant → tentative SessionAlreadyUsed
     + DEVICE_ALREADY_USED (libre-service uniquement)
  6. Insertion : si la base la rejette (course perdue) → tentative RegistrationFailed
     + REGISTRATION_FAILED

Les étapes 4 et 5 ne sont qu'une sortie anticipée ; les contraintes d'unicité de la
table attendance restent l'autorité finale. Les refus attendus sont des statuts
renvoyés, jamais des exceptions ; seules les erreurs de stockage inattendues remontent.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.database import utcnow
from app.models.attendance import ENTRY_ACCEPTED, ENTRY_MANUAL, ENTRY_SELF_SERVICE, AttendanceRecord
from app.models.lecture import Lecture
from app.schemas.attendance import (
    ActorRole,
    AttendanceRegister,
    AttendanceResponse,
    FailedAttemptResponse,
    FailureReason,
    LectureAttendanceReport,
    ManualAttendanceCreate,
    RegistrationOutcome,
    RegistrationStatus,
    StudentFields,
)
from app.schemas.lecture import LectureResponse
from app.services import attendance_ledger, failed_attempt_service, lecture_service, qr_service
from app.services.attendance_ledger import DuplicateAttendanceError
from app.services.side_effects import non_critical

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    RegistrationStatus.REGISTERED: "Présence enregistrée avec succès.",
    RegistrationStatus.INVALID_OR_EXPIRED_CODE: "QR code invalide ou expiré.",
    RegistrationStatus.ATTENDANCE_CLOSED: "L'inscription des présences est clôturée pour ce cours.",
    RegistrationStatus.LECTURE_ENDED: "Ce cours est terminé.",
    RegistrationStatus.MISSING_FIELD: "Un champ obligatoire est manquant.",
    RegistrationStatus.ALREADY_REGISTERED: "L'étudiant est déjà inscrit à ce cours.",
    RegistrationStatus.DEVICE_ALREADY_USED: "Cet appareil a déjà servi à inscrire un étudiant pour ce cours.",
    RegistrationStatus.REGISTRATION_FAILED: "L'enregistrement de la présence a échoué.",
    RegistrationStatus.NOT_FOUND: "Cours ou tentative introuvable.",
}


def _outcome(
    status: RegistrationStatus,
    record: Optional[AttendanceRecord] = None,
    missing_field: Optional[str] = None,
) -> RegistrationOutcome:
    return RegistrationOutcome(
        status=status,
        success=status == RegistrationStatus.REGISTERED,
        message=STATUS_MESSAGES[status],
        record=AttendanceResponse.model_validate(record) if record is not None else None,
        missing_field=missing_field,
    )


def _missing_field(lecture: Lecture, fields: StudentFields) -> Optional[str]:
    """Nom du premier champ obligatoire manquant, ou None."""
    if lecture.lecture_type == "section" and not fields.section_number:
        return "section_number"
    if not fields.group_number:
        return "group_number"
    return None


def _commit_attendance(
    db: Session,
    lecture_id: int,
    fields: StudentFields,
    session_id: str,
    entry_type: str,
    now: datetime,
) -> RegistrationOutcome:
    """Étape 6 : insertion finale, la contrainte d'unicité tranche les courses."""
    record = AttendanceRecord(
        lecture_id=lecture_id,
        student_id=fields.student_id,
        student_name=fields.student_name,
        group_number=fields.group_number,
        section_number=fields.section_number,
        timestamp=now,
        session_id=session_id,
        entry_type=entry_type,
    )
    try:
        record = attendance_ledger.insert_attendance(db, record)
    except DuplicateAttendanceError as exc:
        logger.warning("Insertion refusée par la base : %s", exc)
        failed_attempt_service.record_failed_attempt(
            db, lecture_id, fields.student_id, fields, FailureReason.REGISTRATION_FAILED, now
        )
        return _outcome(RegistrationStatus.REGISTRATION_FAILED)

    logger.info(
        "Présence enregistrée — cours %s, étudiant %s (%s)",
        lecture_id, fields.student_id, entry_type,
    )
    return _outcome(RegistrationStatus.REGISTERED, record)


def _register(
    db: Session,
    lecture: Lecture,
    fields: StudentFields,
    session_id: str,
    role: ActorRole,
    entry_type: str,
    now: datetime,
) -> RegistrationOutcome:
    """Étapes 3 à 6, communes au libre-service et à la saisie manuelle."""
    missing = _missing_field(lecture, fields)
    if missing:
        return _outcome(RegistrationStatus.MISSING_FIELD, missing_field=missing)

    if attendance_ledger.find_by_student(db, lecture.id, fields.student_id) is not None:
        failed_attempt_service.record_failed_attempt(
            db, lecture.id, fields.student_id, fields, FailureReason.DUPLICATE_REGISTRATION, now
        )
        return _outcome(RegistrationStatus.ALREADY_REGISTERED)

    if role == ActorRole.SELF_SERVICE:
        used_by = attendance_ledger.find_by_session(db, lecture.id, session_id)
        if used_by is not None and used_by.student_id != fields.student_id:
            failed_attempt_service.record_failed_attempt(
                db, lecture.id, fields.student_id, fields, FailureReason.SESSION_ALREADY_USED, now
            )
            return _outcome(RegistrationStatus.DEVICE_ALREADY_USED)

    return _commit_attendance(db, lecture.id, fields, session_id, entry_type, now)


def register_attendance(
    db: Session,
    data: AttendanceRegister,
    session_token: str,
    now: Optional[datetime] = None,
) -> RegistrationOutcome:
    """
    Inscription en libre-service après scan du QR code.

    session_token identifie la session navigateur de l'étudiant : une même session ne
    peut inscrire qu'un seul étudiant par cours. Une nouvelle session sur le même
    appareil n'est pas détectée.

    Le token scanné est toujours vérifié : connaître lecture_id ne suffit pas pour
    s'inscrire une fois le QR code expiré.
    """
    now = now or utcnow()
    lecture = db.get(Lecture, data.lecture_id)
    if lecture is None or not lecture.is_active:
        return _outcome(RegistrationStatus.INVALID_OR_EXPIRED_CODE)
    if not qr_service.token_accepted_for_lecture(db, lecture, data.qr_token, now):
        return _outcome(RegistrationStatus.INVALID_OR_EXPIRED_CODE)

    if lecture.attendance_finished:
        return _outcome(RegistrationStatus.ATTENDANCE_CLOSED)
    if lecture.lecture_finished:
        return _outcome(RegistrationStatus.LECTURE_ENDED)

    return _register(db, lecture, data, session_token, ActorRole.SELF_SERVICE, ENTRY_SELF_SERVICE, now)


def register_manual_attendance(
    db: Session,
    data: ManualAttendanceCreate,
    now: Optional[datetime] = None,
) -> RegistrationOutcome:
    """
    Saisie manuelle par un enseignant.

    Pas de vérification de session/appareil. Autorisée après clôture de l'inscription,
    refusée si le cours est terminé.
    """
    now = now or utcnow()
    lecture = db.get(Lecture, data.lecture_id)
    if lecture is None:
        return _outcome(RegistrationStatus.NOT_FOUND)
    if lecture.lecture_finished:
        return _outcome(RegistrationStatus.LECTURE_ENDED)

    return _register(
        db, lecture, data, f"manual_{data.actor_id}", ActorRole.ADMINISTRATIVE, ENTRY_MANUAL, now
    )


def accept_failed_attempt(
    db: Session,
    lecture_id: int,
    student_id: str,
    failed_attempt_id: int,
    actor_id: int,
    now: Optional[datetime] = None,
) -> RegistrationOutcome:
    """
    Convertit une tentative refusée en présence, puis supprime la tentative.

    Si la suppression échoue après l'insertion, la présence reste acquise :
    l'incohérence est journalisée, l'insertion n'est jamais annulée.

    Décision de l'enseignant : aucun contrôle des champs obligatoires. Une tentative
    sans groupe ni section devient une présence sans groupe ni section, et un nom
    absent est remplacé par settings.UNKNOWN_STUDENT_NAME.
    """
    now = now or utcnow()
    attempt = failed_attempt_service.get_failed_attempt(db, failed_attempt_id, lecture_id, student_id)
    if attempt is None:
        return _outcome(RegistrationStatus.NOT_FOUND)
    if db.get(Lecture, lecture_id) is None:
        return _outcome(RegistrationStatus.NOT_FOUND)

    if attendance_ledger.find_by_student(db, lecture_id, student_id) is not None:
        return _outcome(RegistrationStatus.ALREADY_REGISTERED)

    fields = StudentFields(
        student_id=student_id,
        student_name=attempt.student_name or settings.UNKNOWN_STUDENT_NAME,
        group_number=attempt.group_number,
        section_number=attempt.section_number,
    )
    outcome = _commit_attendance(db, lecture_id, fields, f"accepted_{actor_id}", ENTRY_ACCEPTED, now)
    if not outcome.success:
        return outcome

    with non_critical(db, f"suppression tentative {failed_attempt_id}") as cleanup:
        failed_attempt_service.delete_failed_attempt(db, failed_attempt_id)
    if not cleanup.ok:
        logger.error(
            "Incohérence : tentative %s acceptée (présence %s) mais non supprimée",
            failed_attempt_id, outcome.record.id,
        )
    return outcome


def get_attendance_and_failed_attempts(db: Session, lecture_id: int) -> LectureAttendanceReport:
    """
    Présences et tentatives refusées d'un cours, pour les statistiques et l'export.
    Lève ValueError si le cours est introuvable.
    """
    lecture = lecture_service.get_lecture(db, lecture_id)
    attendance = attendance_ledger.list_by_lecture(db, lecture_id)
    failed = failed_attempt_service.list_by_lecture(db, lecture_id)

    return LectureAttendanceReport(
        lecture=LectureResponse.model_validate(lecture),
        attendance=[AttendanceResponse.model_validate(a) for a in attendance],
        failed_attempts=[FailedAttemptResponse.model_validate(f) for f in failed],
        total_attended=len(attendance),
        total_failed_attempts=len(failed),
    )
