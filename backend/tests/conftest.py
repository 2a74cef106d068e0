"""
Configuration partagée pour tous les tests.

- `client` : override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL.
- `db` : session sur une base SQLite en mémoire, pour vérifier les contraintes d'unicité
  réellement posées par le schéma.
"""

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models.subject import Subject
from app.schemas.lecture import LectureCreate
from app.services import lecture_service

NOW = dt.datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def client(monkeypatch):
    """Client HTTP de test avec la BDD mockée (scheduler désactivé)."""
    monkeypatch.setattr(settings, "QR_AUTO_ROTATE", False)
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    """Session SQLite en mémoire avec clés étrangères actives."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def subject(db):
    s = Subject(name="Algorithmique")
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


@pytest.fixture
def make_lecture(db, subject):
    """Fabrique de cours persistés (QR émis à NOW)."""

    def _make(**kwargs):
        data = LectureCreate(
            subject_id=subject.id,
            title=kwargs.pop("title", "Cours 1"),
            date=kwargs.pop("date", dt.date(2026, 3, 2)),
            start_time=kwargs.pop("start_time", dt.time(9, 0)),
            **kwargs,
        )
        return lecture_service.create_lecture(db, data, created_by=1, now=NOW)

    return _make
