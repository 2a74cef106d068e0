"""
Modèle SQLAlchemy pour les matières.
Seule la référence des cours est utilisée ici ; la gestion des matières est hors du cœur.
"""

from sqlalchemy import Column, DateTime, Integer, String

from app.database import Base, utcnow


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
