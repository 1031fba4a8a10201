from datetime import datetime, timezone
from typing import List
import logging

from supabase import Client

from cursoshub.enrollments.models import Enrollment, EnrollmentStatus
from cursoshub.errors import StoreError
from cursoshub.infra.supabase_client import STORE_FAILURES

logger = logging.getLogger(__name__)


# module cursoshub.enrollments.repository
class SupabaseEnrollmentStore:
    def __init__(self, client: Client):
        self.client = client

    def get_active_course_ids(self, user_id: str) -> List[str]:
        """
        Cours possédés par l'utilisateur (inscriptions au statut actif uniquement).
        """
        try:
            res = (
                self.client
                .table("enrollments")
                .select("course_id")
                .eq("user_id", user_id)
                .eq("status", EnrollmentStatus.ACTIVE.value)
                .execute()
            )
        except STORE_FAILURES as e:
            logger.exception("enrollments.repository.get_active_course_ids failed user_id=%s", user_id)
            raise StoreError(str(e)) from e
        return [str(row.get("course_id")) for row in (res.data or []) if row.get("course_id")]

    def insert(self, enrollments: List[Enrollment]) -> int:
        """
        Insère les inscriptions en un seul appel. Retourne le nombre de lignes envoyées.
        """
        if not enrollments:
            return 0
        now = datetime.now(timezone.utc).isoformat()
        rows = [
            {
                "user_id": e.user_id,
                "course_id": e.course_id,
                "status": e.status.value,
                "enrolled_at": (e.enrolled_at.isoformat() if e.enrolled_at else now),
            }
            for e in enrollments
        ]
        try:
            self.client.table("enrollments").insert(rows).execute()
        except STORE_FAILURES as e:
            logger.exception("enrollments.repository.insert failed rows=%s", len(rows))
            raise StoreError(str(e)) from e
        return len(rows)
