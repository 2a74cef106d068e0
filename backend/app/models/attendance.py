"""
Modèle SQLAlchemy pour le registre des présences.

Les contraintes d'unicité sont posées au niveau de la base : ce sont elles, et non les
vérifications applicatives, qui garantissent une seule présence par (cours, étudiant)
et un seul étudiant par session/appareil pour les inscriptions en libre-service.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, text

from app.database import Base, utcnow

ENTRY_SELF_SERVICE = "self_service"
ENTRY_MANUAL = "manual"
ENTRY_ACCEPTED = "accepted"


class AttendanceRecord(Base):
    """Présence enregistrée. Jamais modifiée, supprimée uniquement avec son cours."""
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("lecture_id", "student_id", name="uq_attendance_lecture_student"),
        Index(
            "uq_attendance_lecture_session_self_service",
            "lecture_id",
            "session_id",
            unique=True,
            postgresql_where=text("entry_type = 'self_service'"),
            sqlite_where=text("entry_type = 'self_service'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    lecture_id = Column(Integer, ForeignKey("lectures.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(50), nullable=False)
    student_name = Column(String(255), nullable=False)
    group_number = Column(String(50), nullable=True)
    section_number = Column(String(50), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    session_id = Column(String(128), nullable=False)  # Session navigateur, ou manual_<id> / accepted_<id>
    entry_type = Column(String(20), nullable=False, default=ENTRY_SELF_SERVICE)  # self_service, manual, accepted
