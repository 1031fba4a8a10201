from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class EnrollmentStatus(str, Enum):
    # Valeurs stockées dans la table enrollments
    ACTIVE = "ATIVO"
    CANCELED = "CANCELADO"


class Enrollment(BaseModel):
    id: Optional[str] = None
    user_id: str
    course_id: str
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    enrolled_at: Optional[datetime] = None
