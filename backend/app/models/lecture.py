"""
Modèles SQLAlchemy pour les cours et l'historique de leurs QR codes.

Un cours porte toujours un QR token actif (lectures.qr_token). Chaque token émis est
aussi inscrit dans qr_tokens : la contrainte unique sur qr_tokens.token garantit qu'un
token n'est jamais réutilisé, même après rotation.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship

from app.database import Base, utcnow

LECTURE_TYPES = ("lecture", "section")


class Lecture(Base):
    """Séance (cours magistral ou section) pour laquelle les étudiants scannent un QR code."""
    __tablename__ = "lectures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)
    lecture_type = Column(String(20), nullable=False, default="lecture")  # lecture, section
    group_number = Column(String(50), nullable=True)
    section_number = Column(String(50), nullable=True)

    qr_token = Column(String(128), unique=True, nullable=False)
    qr_refresh_interval = Column(Integer, nullable=False, default=0)  # Secondes, 0 = jamais
    qr_expires_at = Column(DateTime, nullable=True)                   # NULL = n'expire pas

    is_active = Column(Boolean, nullable=False, default=True)
    attendance_finished = Column(Boolean, nullable=False, default=False)
    lecture_finished = Column(Boolean, nullable=False, default=False)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    qr_history = relationship(
        "QrToken",
        back_populates="lecture",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class QrToken(Base):
    """Historique des QR tokens émis pour un cours (retired_at NULL = token courant)."""
    __tablename__ = "qr_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(128), unique=True, nullable=False)
    lecture_id = Column(Integer, ForeignKey("lectures.id", ondelete="CASCADE"), nullable=False)
    issued_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=True)
    retired_at = Column(DateTime, nullable=True)

    lecture = relationship("Lecture", back_populates="qr_history")
