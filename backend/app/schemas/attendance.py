"""
Schémas Pydantic pour l'inscription des présences et les tentatives refusées.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator

from app.schemas.lecture import LectureResponse


class ActorRole(str, Enum):
    """Capacité de l'appelant, déterminée une seule fois à la frontière de l'orchestrateur."""
    SELF_SERVICE = "SELF_SERVICE"
    ADMINISTRATIVE = "ADMINISTRATIVE"


class FailureReason(str, Enum):
    DUPLICATE_REGISTRATION = "DuplicateRegistration"
    SESSION_ALREADY_USED = "SessionAlreadyUsed"
    REGISTRATION_FAILED = "RegistrationFailed"


class RegistrationStatus(str, Enum):
    REGISTERED = "REGISTERED"
    INVALID_OR_EXPIRED_CODE = "INVALID_OR_EXPIRED_CODE"
    ATTENDANCE_CLOSED = "ATTENDANCE_CLOSED"
    LECTURE_ENDED = "LECTURE_ENDED"
    MISSING_FIELD = "MISSING_FIELD"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    DEVICE_ALREADY_USED = "DEVICE_ALREADY_USED"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    NOT_FOUND = "NOT_FOUND"


def _required(v: str) -> str:
    if not v.strip():
        raise ValueError("Ce champ est obligatoire.")
    return v.strip()


def _optional(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return v.strip() or None


class StudentFields(BaseModel):
    """Identité déclarée par l'étudiant (ou saisie par l'enseignant)."""
    student_id: str
    student_name: str
    group_number: Optional[str] = None
    section_number: Optional[str] = None

    @field_validator("student_id", "student_name")
    @classmethod
    def identity_not_empty(cls, v: str) -> str:
        return _required(v)

    @field_validator("group_number", "section_number")
    @classmethod
    def strip_labels(cls, v: Optional[str]) -> Optional[str]:
        return _optional(v)


class AttendanceRegister(StudentFields):
    """Corps de requête du scan en libre-service."""
    lecture_id: int
    qr_token: str  # Token scanné, obligatoire : il doit encore être valide pour ce cours

    @field_validator("qr_token")
    @classmethod
    def qr_token_not_empty(cls, v: str) -> str:
        return _required(v)


class ManualAttendanceCreate(StudentFields):
    """Saisie manuelle d'une présence par un enseignant."""
    lecture_id: int
    actor_id: int


class AcceptFailedAttempt(BaseModel):
    """Conversion d'une tentative refusée en présence."""
    lecture_id: int
    student_id: str
    failed_attempt_id: int
    actor_id: int

    @field_validator("student_id")
    @classmethod
    def student_id_not_empty(cls, v: str) -> str:
        return _required(v)


class AttendanceResponse(BaseModel):
    id: int
    lecture_id: int
    student_id: str
    student_name: str
    group_number: Optional[str]
    section_number: Optional[str]
    timestamp: datetime
    entry_type: str

    model_config = {"from_attributes": True}


class FailedAttemptResponse(BaseModel):
    id: int
    lecture_id: int
    student_id: str
    student_name: Optional[str]
    group_number: Optional[str]
    section_number: Optional[str]
    reason: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class RegistrationOutcome(BaseModel):
    """Issue typée d'une tentative d'inscription (succès ou refus attendu)."""
    status: RegistrationStatus
    success: bool
    message: str
    record: Optional[AttendanceResponse] = None
    missing_field: Optional[str] = None


class LectureAttendanceReport(BaseModel):
    """Vue de lecture pour les statistiques et l'export d'un cours."""
    lecture: LectureResponse
    attendance: List[AttendanceResponse]
    failed_attempts: List[FailedAttemptResponse]
    total_attended: int
    total_failed_attempts: int
