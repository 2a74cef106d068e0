"""
Schémas Pydantic pour le cycle de vie des QR codes (émission, rotation, résolution).
Les refus attendus sont des statuts, jamais des exceptions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from app.schemas.lecture import LectureScanInfo


class QrLookupStatus(str, Enum):
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"


class QrTokenStatus(str, Enum):
    ISSUED = "ISSUED"
    ROTATED = "ROTATED"
    REFRESH_NOT_ENABLED = "REFRESH_NOT_ENABLED"
    NOT_FOUND = "NOT_FOUND"


class QrLookupResult(BaseModel):
    """Résultat de la résolution d'un QR token scanné."""
    status: QrLookupStatus
    lecture: Optional[LectureScanInfo] = None
    seconds_until_expiry: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.status == QrLookupStatus.FOUND


class QrTokenResult(BaseModel):
    """Token courant d'un cours après émission ou rotation."""
    status: QrTokenStatus
    lecture_id: int
    qr_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    refresh_interval: int = 0
    seconds_until_expiry: Optional[int] = None
