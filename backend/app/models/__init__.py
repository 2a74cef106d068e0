# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from app.models.subject import Subject  # noqa: F401  (doit précéder lecture)
from app.models.lecture import Lecture, QrToken  # noqa: F401
from app.models.attendance import AttendanceRecord  # noqa: F401
from app.models.failed_attempt import FailedAttempt  # noqa: F401
