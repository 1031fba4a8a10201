"""
Lecture du catalogue 'courses' côté serveur.
Source de vérité des prix pour le checkout: le prix envoyé par le client n'est jamais utilisé.
"""
from typing import Any, Dict, Iterable
import logging

from supabase import Client

from cursoshub.errors import StoreError
from cursoshub.infra.supabase_client import STORE_FAILURES

logger = logging.getLogger(__name__)


class SupabaseCourseCatalog:
    def __init__(self, client: Client):
        self.client = client

    def get_courses_map(self, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Retourne un dict {id: cours} ({id, title, price, instructor_id}) à partir d'une liste d'IDs.
        """
        id_list = [str(i) for i in ids if i]
        if not id_list:
            return {}
        try:
            res = (
                self.client
                .table("courses")
                .select("id, title, price, instructor_id")
                .in_("id", id_list)
                .execute()
            )
        except STORE_FAILURES as e:
            logger.exception("courses.repository.get_courses_map failed ids=%s", id_list)
            raise StoreError(str(e)) from e
        return {str(c.get("id")): c for c in (res.data or [])}
