"""
Schémas Pydantic pour les cours (création, changements d'état, lecture).

datetime est importé en module (dt) pour éviter le conflit
entre le champ `date` et le type `datetime.date` dans Pydantic v2.
"""

import datetime as dt
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

VALID_LECTURE_TYPES = {"lecture", "section"}


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class LectureCreate(BaseModel):
    """Données nécessaires pour créer un cours et son premier QR code."""
    subject_id: int
    title: str
    date: dt.date
    start_time: dt.time
    end_time: Optional[dt.time] = None          # Par défaut : start_time + 2h
    lecture_type: str = "lecture"
    group_number: Optional[str] = None
    section_number: Optional[str] = None
    qr_refresh_interval: int = Field(default=0, ge=0)  # Secondes, 0 = QR fixe

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre du cours ne peut pas être vide.")
        return v.strip()

    @field_validator("lecture_type")
    @classmethod
    def valid_lecture_type(cls, v: str) -> str:
        if v not in VALID_LECTURE_TYPES:
            raise ValueError(f"Type de cours invalide. Valeurs acceptées : {VALID_LECTURE_TYPES}")
        return v

    @field_validator("group_number", "section_number")
    @classmethod
    def strip_labels(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class LectureStatusUpdate(BaseModel):
    """Bascule des indicateurs de fin (au moins un des deux doit être fourni)."""
    attendance_finished: Optional[bool] = None
    lecture_finished: Optional[bool] = None


class LectureActiveUpdate(BaseModel):
    is_active: bool


class QrIntervalUpdate(BaseModel):
    qr_refresh_interval: int = Field(ge=0)


class LectureScanInfo(BaseModel):
    """Informations publiques d'un cours, renvoyées à l'étudiant après le scan."""
    id: int
    subject_id: int
    title: str
    date: dt.date
    start_time: dt.time
    end_time: Optional[dt.time]
    lecture_type: str
    group_number: Optional[str]
    section_number: Optional[str]
    attendance_finished: bool
    lecture_finished: bool
    qr_expires_at: Optional[datetime]

    model_config = {"from_attributes": True}


class LectureResponse(LectureScanInfo):
    """Vue complète d'un cours pour l'administration."""
    qr_token: str
    qr_refresh_interval: int
    is_active: bool
    created_by: Optional[int]
    created_at: Optional[datetime]
