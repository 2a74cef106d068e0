"""
Modèle SQLAlchemy pour les tentatives d'inscription refusées.
Sert de journal d'audit et de file de récupération (acceptation manuelle).
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.database import Base, utcnow


class FailedAttempt(Base):
    __tablename__ = "failed_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lecture_id = Column(Integer, ForeignKey("lectures.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(50), nullable=False)
    student_name = Column(String(255), nullable=True)
    group_number = Column(String(50), nullable=True)
    section_number = Column(String(50), nullable=True)
    reason = Column(String(50), nullable=False)  # DuplicateRegistration, SessionAlreadyUsed, RegistrationFailed
    timestamp = Column(DateTime, nullable=False, default=utcnow)
