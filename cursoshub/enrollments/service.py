from typing import List
import logging

from cursoshub import errors
from cursoshub.enrollments.models import Enrollment, EnrollmentStatus
from cursoshub.errors import ValidationError

logger = logging.getLogger(__name__)


# module cursoshub.enrollments.service
class EnrollmentService:
    def __init__(self, enrollment_store):
        self.enrollment_store = enrollment_store

    def list_active_course_ids(self, user_id: str) -> List[str]:
        return self.enrollment_store.get_active_course_ids(user_id)

    def grant(self, user_id: str, course_id: str) -> Enrollment:
        """Inscription administrative (hors paiement):
        - refuse un cours déjà possédé (ALREADY_ENROLLED)
        - à utiliser avec le store service-role
        """
        if not user_id or not course_id:
            raise ValidationError("user_id et course_id sont requis")
        if course_id in self.enrollment_store.get_active_course_ids(user_id):
            raise ValidationError("Cours déjà possédé", code=errors.ALREADY_ENROLLED)
        enrollment = Enrollment(user_id=user_id, course_id=course_id, status=EnrollmentStatus.ACTIVE)
        self.enrollment_store.insert([enrollment])
        logger.info("enrollments.grant user_id=%s course_id=%s", user_id, course_id)
        return enrollment
