"""
Service de gestion des QR codes des cours : émission, rotation, résolution, rendu.

Règles :
- Un token est une chaîne opaque tirée de `secrets` (impossible à deviner ou énumérer).
- Chaque token émis est inscrit dans qr_tokens (unique) : il n'est jamais réutilisé.
- Rotation possible uniquement si le cours a un intervalle de rafraîchissement > 0.
  L'ancien token est invalide dès que la rotation est commitée.
- Le serveur fait foi pour l'expiration : seule la comparaison avec qr_expires_at
  décide de la validité. Le compte à rebours affiché côté client n'est qu'indicatif.
"""

import io
import logging
import math
import secrets
from datetime import datetime, timedelta
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_H
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.database import utcnow
from app.models.lecture import Lecture, QrToken
from app.schemas.lecture import LectureScanInfo
from app.schemas.qr import QrLookupResult, QrLookupStatus, QrTokenResult, QrTokenStatus

logger = logging.getLogger(__name__)


def seconds_until_expiry(now: datetime, expires_at: Optional[datetime]) -> Optional[int]:
    """
    Secondes restantes avant expiration, recalculées à chaque tic depuis l'horodatage serveur.
    Arrondi supérieur : une fraction de seconde restante compte pour 1.
    None si le token n'expire pas ; jamais négatif.
    """
    if expires_at is None:
        return None
    return max(0, math.ceil((expires_at - now).total_seconds()))


def is_expired(now: datetime, expires_at: Optional[datetime]) -> bool:
    return expires_at is not None and expires_at < now


def _generate_qr_token() -> str:
    return secrets.token_urlsafe(settings.QR_TOKEN_BYTES)


def generate_qr_image(token: str) -> bytes:
    """Génère une image PNG du QR code encodant le token tel quel (texte opaque)."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,  # Lisible même projeté sur un écran de salle
        box_size=settings.QR_IMAGE_BOX_SIZE,
        border=settings.QR_IMAGE_BORDER,
    )
    qr.add_data(token)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def issue_qr_code(db: Session, lecture: Lecture, now: Optional[datetime] = None) -> str:
    """
    Émet un nouveau token pour le cours et retire le précédent de l'historique.

    expires_at = now + qr_refresh_interval si l'intervalle est > 0, sinon pas d'expiration.
    Ne commite pas : l'appelant (création de cours, rotation) décide de la transaction.
    """
    now = now or utcnow()
    token = _generate_qr_token()
    interval = lecture.qr_refresh_interval or 0
    expires_at = now + timedelta(seconds=interval) if interval > 0 else None

    if lecture.id is not None:
        current = db.execute(
            select(QrToken).where(
                QrToken.lecture_id == lecture.id,
                QrToken.retired_at.is_(None),
            )
        ).scalars().all()
        for row in current:
            row.retired_at = now

    lecture.qr_token = token
    lecture.qr_expires_at = expires_at
    lecture.qr_history.append(QrToken(token=token, issued_at=now, expires_at=expires_at))
    return token


def _token_result(status: QrTokenStatus, lecture: Lecture, now: datetime) -> QrTokenResult:
    return QrTokenResult(
        status=status,
        lecture_id=lecture.id,
        qr_token=lecture.qr_token,
        expires_at=lecture.qr_expires_at,
        refresh_interval=lecture.qr_refresh_interval or 0,
        seconds_until_expiry=seconds_until_expiry(now, lecture.qr_expires_at),
    )


def rotate_qr_code(db: Session, lecture_id: int, now: Optional[datetime] = None) -> QrTokenResult:
    """
    Remplace le token du cours par un nouveau (rafraîchissement manuel ou planifié).
    REFRESH_NOT_ENABLED si l'intervalle du cours est nul ; NOT_FOUND si le cours n'existe pas.
    """
    now = now or utcnow()
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        return QrTokenResult(status=QrTokenStatus.NOT_FOUND, lecture_id=lecture_id)

    if not lecture.qr_refresh_interval or lecture.qr_refresh_interval <= 0:
        return QrTokenResult(status=QrTokenStatus.REFRESH_NOT_ENABLED, lecture_id=lecture_id)

    issue_qr_code(db, lecture, now)
    db.commit()
    db.refresh(lecture)

    logger.info("QR code du cours %s renouvelé (expire à %s)", lecture.id, lecture.qr_expires_at)
    return _token_result(QrTokenStatus.ROTATED, lecture, now)


def issue_or_rotate_qr(db: Session, lecture_id: int, now: Optional[datetime] = None) -> QrTokenResult:
    """
    Rotation si le rafraîchissement est activé ; sinon renvoie le token courant (fixe).
    Un token fixe déjà expiré est remplacé par un nouveau token sans expiration.
    """
    now = now or utcnow()
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        return QrTokenResult(status=QrTokenStatus.NOT_FOUND, lecture_id=lecture_id)
    if lecture.qr_refresh_interval and lecture.qr_refresh_interval > 0:
        return rotate_qr_code(db, lecture_id, now)

    if is_expired(now, lecture.qr_expires_at):
        issue_qr_code(db, lecture, now)
        db.commit()
        db.refresh(lecture)
        logger.info("QR code fixe du cours %s réémis (l'ancien avait expiré)", lecture.id)
    return _token_result(QrTokenStatus.ISSUED, lecture, now)


def resolve_lecture_by_token(db: Session, token: str, now: Optional[datetime] = None) -> QrLookupResult:
    """
    Retrouve le cours actif qui porte ce token.

    - Token courant d'un cours actif, non expiré → FOUND
    - Token courant dont qr_expires_at est dépassé → EXPIRED
    - Token retiré par une rotation → EXPIRED (définitivement)
    - Sinon → NOT_FOUND
    """
    now = now or utcnow()
    lecture = db.execute(
        select(Lecture).where(Lecture.qr_token == token, Lecture.is_active.is_(True))
    ).scalar()

    if lecture is not None:
        if is_expired(now, lecture.qr_expires_at):
            return QrLookupResult(status=QrLookupStatus.EXPIRED)
        return QrLookupResult(
            status=QrLookupStatus.FOUND,
            lecture=LectureScanInfo.model_validate(lecture),
            seconds_until_expiry=seconds_until_expiry(now, lecture.qr_expires_at),
        )

    retired = db.execute(
        select(QrToken).where(QrToken.token == token, QrToken.retired_at.is_not(None))
    ).scalar()
    if retired is not None:
        return QrLookupResult(status=QrLookupStatus.EXPIRED)

    return QrLookupResult(status=QrLookupStatus.NOT_FOUND)


def token_accepted_for_lecture(
    db: Session,
    lecture: Lecture,
    token: str,
    now: Optional[datetime] = None,
) -> bool:
    """
    Vérifie le token présenté lors de l'inscription.

    Un token capturé juste avant une rotation reste honoré tant que sa propre date
    d'expiration n'est pas dépassée : la décision repose sur l'horodatage, pas sur
    l'identité du token courant. Un token retiré sans expiration n'est plus accepté.
    """
    now = now or utcnow()
    if token == lecture.qr_token:
        return not is_expired(now, lecture.qr_expires_at)

    previous = db.execute(
        select(QrToken).where(QrToken.token == token, QrToken.lecture_id == lecture.id)
    ).scalar()
    if previous is None or previous.expires_at is None:
        return False
    return not is_expired(now, previous.expires_at)


def rotate_expired_qr_codes(db: Session, now: Optional[datetime] = None) -> int:
    """
    Tâche planifiée : renouvelle les QR expirés des cours actifs et encore ouverts.
    Retourne le nombre de cours traités.
    """
    now = now or utcnow()
    lectures = db.execute(
        select(Lecture).where(
            Lecture.is_active.is_(True),
            Lecture.attendance_finished.is_(False),
            Lecture.lecture_finished.is_(False),
            Lecture.qr_refresh_interval > 0,
            Lecture.qr_expires_at.is_not(None),
            Lecture.qr_expires_at < now,
        )
    ).scalars().all()

    for lecture in lectures:
        issue_qr_code(db, lecture, now)

    if lectures:
        db.commit()
        logger.info("%d QR code(s) expiré(s) renouvelé(s)", len(lectures))
    return len(lectures)
