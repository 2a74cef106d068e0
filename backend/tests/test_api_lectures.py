"""
Tests d'intégration API pour le registre des cours.
Testent POST   /api/v1/lectures
      GET    /api/v1/lectures/{id}
      PUT    /api/v1/lectures/{id}/status
      POST   /api/v1/lectures/{id}/toggle
      PUT    /api/v1/lectures/{id}/qr-interval
      POST   /api/v1/lectures/{id}/refresh-qr
      DELETE /api/v1/lectures/{id}
      GET    /api/v1/lectures/{id}/attendance
"""

import datetime as dt
from unittest.mock import patch

from app.schemas.attendance import LectureAttendanceReport
from app.schemas.lecture import LectureResponse
from app.schemas.qr import QrTokenResult, QrTokenStatus


# --- Helpers ---

def make_lecture_response(**kwargs) -> LectureResponse:
    return LectureResponse(
        id=kwargs.get("id", 10),
        subject_id=1,
        title=kwargs.get("title", "Algorithmique"),
        date=dt.date(2026, 3, 2),
        start_time=dt.time(9, 0),
        end_time=kwargs.get("end_time", dt.time(11, 0)),
        lecture_type=kwargs.get("lecture_type", "lecture"),
        group_number=None,
        section_number=None,
        attendance_finished=kwargs.get("attendance_finished", False),
        lecture_finished=kwargs.get("lecture_finished", False),
        qr_expires_at=None,
        qr_token="tok",
        qr_refresh_interval=kwargs.get("qr_refresh_interval", 0),
        is_active=kwargs.get("is_active", True),
        created_by=None,
        created_at=dt.datetime(2026, 3, 1, 8, 0),
    )


CREATE_BODY = {"subject_id": 1, "title": "Algorithmique", "date": "2026-03-02", "start_time": "09:00"}


# ============================================================
# POST /api/v1/lectures
# ============================================================

def test_create_lecture_succes(client):
    with patch("app.routers.lectures.lecture_service.create_lecture") as mock:
        mock.return_value = make_lecture_response()
        response = client.post("/api/v1/lectures", json=CREATE_BODY, headers={"X-Actor-Id": "4"})

    assert response.status_code == 201
    assert response.json()["end_time"] == "11:00:00"
    assert mock.call_args.kwargs["created_by"] == 4


def test_create_lecture_titre_vide(client):
    response = client.post("/api/v1/lectures", json=dict(CREATE_BODY, title="  "))
    assert response.status_code == 422


def test_create_lecture_type_invalide(client):
    response = client.post("/api/v1/lectures", json=dict(CREATE_BODY, lecture_type="tp"))
    assert response.status_code == 422


def test_create_lecture_matiere_introuvable(client):
    with patch("app.routers.lectures.lecture_service.create_lecture") as mock:
        mock.side_effect = ValueError("Matière 1 introuvable.")
        response = client.post("/api/v1/lectures", json=CREATE_BODY)
    assert response.status_code == 404


# ============================================================
# GET / PUT status / toggle / qr-interval
# ============================================================

def test_get_lecture_introuvable(client):
    with patch("app.routers.lectures.lecture_service.get_lecture") as mock:
        mock.side_effect = ValueError("Cours 10 introuvable.")
        response = client.get("/api/v1/lectures/10")
    assert response.status_code == 404


def test_update_status(client):
    with patch("app.routers.lectures.lecture_service.set_finished_flags") as mock:
        mock.return_value = make_lecture_response(attendance_finished=True)
        response = client.put("/api/v1/lectures/10/status", json={"attendance_finished": True})

    assert response.status_code == 200
    assert response.json()["attendance_finished"] is True
    assert mock.call_args.kwargs == {"attendance_finished": True, "lecture_finished": None}


def test_update_status_vide(client):
    with patch("app.routers.lectures.lecture_service.set_finished_flags") as mock:
        mock.side_effect = ValueError("Aucune modification fournie.")
        response = client.put("/api/v1/lectures/10/status", json={})
    assert response.status_code == 400


def test_toggle_lecture(client):
    with patch("app.routers.lectures.lecture_service.set_active") as mock:
        mock.return_value = make_lecture_response(is_active=False)
        response = client.post("/api/v1/lectures/10/toggle", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["is_active"] is False


def test_update_qr_interval_negatif(client):
    response = client.put("/api/v1/lectures/10/qr-interval", json={"qr_refresh_interval": -1})
    assert response.status_code == 422


# ============================================================
# POST /api/v1/lectures/{id}/refresh-qr
# ============================================================

def test_refresh_qr_succes(client):
    expires = dt.datetime(2026, 3, 2, 9, 0, 30)
    with patch("app.routers.lectures.qr_service.issue_or_rotate_qr") as mock:
        mock.return_value = QrTokenResult(
            status=QrTokenStatus.ROTATED, lecture_id=10, qr_token="new",
            expires_at=expires, refresh_interval=30, seconds_until_expiry=30,
        )
        response = client.post("/api/v1/lectures/10/refresh-qr")

    assert response.status_code == 200
    data = response.json()
    assert data["qr_token"] == "new"
    assert data["seconds_until_expiry"] == 30


def test_refresh_qr_non_active(client):
    with patch("app.routers.lectures.qr_service.issue_or_rotate_qr") as mock:
        mock.return_value = QrTokenResult(status=QrTokenStatus.REFRESH_NOT_ENABLED, lecture_id=10)
        response = client.post("/api/v1/lectures/10/refresh-qr")
    assert response.status_code == 400


def test_refresh_qr_cours_introuvable(client):
    with patch("app.routers.lectures.qr_service.issue_or_rotate_qr") as mock:
        mock.return_value = QrTokenResult(status=QrTokenStatus.NOT_FOUND, lecture_id=10)
        response = client.post("/api/v1/lectures/10/refresh-qr")
    assert response.status_code == 404


# ============================================================
# DELETE / attendance
# ============================================================

def test_delete_lecture(client):
    with patch("app.routers.lectures.lecture_service.delete_lecture") as mock:
        response = client.delete("/api/v1/lectures/10")
    assert response.status_code == 200
    assert response.json() == {"lecture_id": 10, "deleted": True}
    mock.assert_called_once()


def test_delete_lecture_introuvable(client):
    with patch("app.routers.lectures.lecture_service.delete_lecture") as mock:
        mock.side_effect = ValueError("Cours 10 introuvable.")
        response = client.delete("/api/v1/lectures/10")
    assert response.status_code == 404


def test_get_attendance_report(client):
    report = LectureAttendanceReport(
        lecture=make_lecture_response(),
        attendance=[],
        failed_attempts=[],
        total_attended=0,
        total_failed_attempts=0,
    )
    with patch("app.routers.lectures.registration_service.get_attendance_and_failed_attempts") as mock:
        mock.return_value = report
        response = client.get("/api/v1/lectures/10/attendance")

    assert response.status_code == 200
    assert response.json()["total_attended"] == 0


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"
