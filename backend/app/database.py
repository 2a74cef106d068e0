"""
Configuration de la connexion à la base de données.
Utilise SQLAlchemy avec un moteur synchrone et une session par requête.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from app.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def utcnow() -> datetime:
    """Horodatage UTC naïf : toutes les colonnes DateTime sont stockées en UTC sans fuseau."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
