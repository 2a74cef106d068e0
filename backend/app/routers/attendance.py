"""
Routers pour le scan des QR codes et l'inscription des présences.

Les issues de l'orchestrateur sont toujours renvoyées telles quelles dans le corps ;
seul le code HTTP varie selon le statut.
"""

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.attendance import (
    AcceptFailedAttempt,
    AttendanceRegister,
    ManualAttendanceCreate,
    RegistrationOutcome,
    RegistrationStatus,
)
from app.schemas.qr import QrLookupResult, QrLookupStatus
from app.services import qr_service, registration_service

router = APIRouter(prefix="/api/v1/attendance", tags=["Présences"])

qr_router = APIRouter(prefix="/api/v1/qr", tags=["QR codes"])

HTTP_STATUS_BY_OUTCOME = {
    RegistrationStatus.REGISTERED: 201,
    RegistrationStatus.ALREADY_REGISTERED: 409,
    RegistrationStatus.DEVICE_ALREADY_USED: 409,
    RegistrationStatus.REGISTRATION_FAILED: 409,
    RegistrationStatus.ATTENDANCE_CLOSED: 400,
    RegistrationStatus.LECTURE_ENDED: 400,
    RegistrationStatus.MISSING_FIELD: 400,
    RegistrationStatus.INVALID_OR_EXPIRED_CODE: 404,
    RegistrationStatus.NOT_FOUND: 404,
}


def _to_response(outcome: RegistrationOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_STATUS_BY_OUTCOME[outcome.status],
        content=outcome.model_dump(mode="json"),
    )


def _resolve_or_raise(db: Session, token: str) -> QrLookupResult:
    result = qr_service.resolve_lecture_by_token(db, token)
    if result.status == QrLookupStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="QR code invalide.")
    if result.status == QrLookupStatus.EXPIRED:
        raise HTTPException(status_code=410, detail="QR code expiré.")
    return result


@qr_router.get("/{token}", response_model=QrLookupResult, summary="Informations du cours scanné")
def lookup_qr(token: str, db: Session = Depends(get_db)):
    """
    Résout le token scanné par l'étudiant.
    Retourne 404 si aucun cours actif ne porte ce token, 410 s'il a expiré.
    """
    return _resolve_or_raise(db, token)


@qr_router.get("/{token}/image", summary="Image PNG du QR code")
def qr_image(token: str, db: Session = Depends(get_db)):
    """Rendu PNG d'un token encore valide, pour l'écran de projection."""
    _resolve_or_raise(db, token)
    return Response(content=qr_service.generate_qr_image(token), media_type="image/png")


@router.post("/register", response_model=RegistrationOutcome, summary="Inscription par scan")
def register_attendance(
    data: AttendanceRegister,
    session_id: str = Header(alias="X-Session-Id", min_length=1),
    db: Session = Depends(get_db),
):
    """
    Inscription en libre-service. L'en-tête X-Session-Id identifie la session
    navigateur : une session ne peut inscrire qu'un étudiant par cours.
    """
    return _to_response(registration_service.register_attendance(db, data, session_id))


@router.post("/manual", response_model=RegistrationOutcome, summary="Saisie manuelle d'une présence")
def register_manual_attendance(data: ManualAttendanceCreate, db: Session = Depends(get_db)):
    return _to_response(registration_service.register_manual_attendance(db, data))


@router.post("/accept-failed", response_model=RegistrationOutcome,
             summary="Accepter une tentative refusée")
def accept_failed_attempt(data: AcceptFailedAttempt, db: Session = Depends(get_db)):
    """
    Convertit une tentative refusée en présence et la retire de la liste.
    Retourne 404 si la tentative n'existe plus (déjà acceptée).
    """
    return _to_response(
        registration_service.accept_failed_attempt(
            db, data.lecture_id, data.student_id, data.failed_attempt_id, data.actor_id
        )
    )
