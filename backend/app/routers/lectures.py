"""
Routers pour le registre des cours : création, état, QR code et lecture des présences.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.attendance import LectureAttendanceReport
from app.schemas.lecture import (
    LectureActiveUpdate,
    LectureCreate,
    LectureResponse,
    LectureStatusUpdate,
    QrIntervalUpdate,
)
from app.schemas.qr import QrTokenResult, QrTokenStatus
from app.services import lecture_service, qr_service, registration_service

router = APIRouter(prefix="/api/v1/lectures", tags=["Cours"])


def _raise_http(e: ValueError) -> None:
    msg = str(e)
    if "introuvable" in msg:
        raise HTTPException(status_code=404, detail=msg)
    raise HTTPException(status_code=400, detail=msg)


@router.post("", response_model=LectureResponse, status_code=201, summary="Créer un cours")
def create_lecture(
    data: LectureCreate,
    actor_id: Optional[int] = Header(default=None, alias="X-Actor-Id"),
    db: Session = Depends(get_db),
):
    """
    Crée un cours et son premier QR code.
    L'heure de fin vaut l'heure de début + 2h si elle n'est pas fournie.
    """
    try:
        return lecture_service.create_lecture(db, data, created_by=actor_id)
    except ValueError as e:
        _raise_http(e)


@router.get("/{lecture_id}", response_model=LectureResponse, summary="Détail d'un cours")
def get_lecture(lecture_id: int, db: Session = Depends(get_db)):
    try:
        return lecture_service.get_lecture(db, lecture_id)
    except ValueError as e:
        _raise_http(e)


@router.put("/{lecture_id}/status", response_model=LectureResponse,
            summary="Clôturer / rouvrir l'inscription ou le cours")
def update_status(lecture_id: int, data: LectureStatusUpdate, db: Session = Depends(get_db)):
    try:
        return lecture_service.set_finished_flags(
            db, lecture_id,
            attendance_finished=data.attendance_finished,
            lecture_finished=data.lecture_finished,
        )
    except ValueError as e:
        _raise_http(e)


@router.post("/{lecture_id}/toggle", response_model=LectureResponse, summary="Activer / désactiver un cours")
def toggle_lecture(lecture_id: int, data: LectureActiveUpdate, db: Session = Depends(get_db)):
    try:
        return lecture_service.set_active(db, lecture_id, data.is_active)
    except ValueError as e:
        _raise_http(e)


@router.put("/{lecture_id}/qr-interval", response_model=LectureResponse,
            summary="Modifier l'intervalle de rafraîchissement du QR code")
def update_qr_interval(lecture_id: int, data: QrIntervalUpdate, db: Session = Depends(get_db)):
    try:
        return lecture_service.set_refresh_interval(db, lecture_id, data.qr_refresh_interval)
    except ValueError as e:
        _raise_http(e)


@router.post("/{lecture_id}/refresh-qr", response_model=QrTokenResult, summary="Renouveler le QR code")
def refresh_qr(lecture_id: int, db: Session = Depends(get_db)):
    """
    Appelé par l'écran de projection quand son compte à rebours atteint zéro.
    Renvoie le nouveau token et son expiration (source de vérité : le serveur).

    Retourne 404 si le cours est introuvable, 400 si le rafraîchissement n'est pas activé.
    """
    result = qr_service.issue_or_rotate_qr(db, lecture_id)
    if result.status == QrTokenStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Cours {lecture_id} introuvable.")
    if result.status == QrTokenStatus.REFRESH_NOT_ENABLED:
        raise HTTPException(status_code=400, detail="Le rafraîchissement du QR code n'est pas activé pour ce cours.")
    return result


@router.delete("/{lecture_id}", summary="Supprimer un cours et ses présences")
def delete_lecture(lecture_id: int, db: Session = Depends(get_db)):
    try:
        lecture_service.delete_lecture(db, lecture_id)
    except ValueError as e:
        _raise_http(e)
    return {"lecture_id": lecture_id, "deleted": True}


@router.get("/{lecture_id}/attendance", response_model=LectureAttendanceReport,
            summary="Présences et tentatives refusées d'un cours")
def get_attendance(lecture_id: int, db: Session = Depends(get_db)):
    try:
        return registration_service.get_attendance_and_failed_attempts(db, lecture_id)
    except ValueError as e:
        _raise_http(e)
