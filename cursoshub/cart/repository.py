"""
Accès aux données 'cart_items' (table panier + jointure cours).
- L'unicité (user_id, course_id) est garantie par la base: violation -> DuplicateCartItemError.
- Les autres erreurs PostgREST sont loggées puis remontées en StoreError.
"""
from typing import List
import logging

from supabase import Client

from cursoshub.cart.models import CartItem
from cursoshub.errors import DuplicateCartItemError, StoreError
from cursoshub.infra.supabase_client import STORE_FAILURES

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
CART_SELECT = "id, course_id, created_at, course:courses(id, title, price, instructor_id)"


# module cursoshub.cart.repository
class SupabaseCartStore:
    def __init__(self, client: Client):
        self.client = client

    def get_cart_items(self, user_id: str) -> List[CartItem]:
        """
        Panier de l'utilisateur, les plus récents d'abord (order created_at desc).
        """
        try:
            res = (
                self.client
                .table("cart_items")
                .select(CART_SELECT)
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except STORE_FAILURES as e:
            logger.exception("cart.repository.get_cart_items failed user_id=%s", user_id)
            raise StoreError(str(e)) from e
        return [CartItem.from_row(row, user_id) for row in (res.data or [])]

    def add(self, user_id: str, course_id: str) -> None:
        try:
            self.client.table("cart_items").insert({"user_id": user_id, "course_id": course_id}).execute()
        except STORE_FAILURES as e:
            if str(getattr(e, "code", "")) == UNIQUE_VIOLATION:
                raise DuplicateCartItemError(f"course_id={course_id} déjà dans le panier") from e
            logger.exception("cart.repository.add failed user_id=%s course_id=%s", user_id, course_id)
            raise StoreError(str(e)) from e

    def remove(self, user_id: str, course_id: str) -> None:
        try:
            (
                self.client
                .table("cart_items")
                .delete()
                .eq("user_id", user_id)
                .eq("course_id", course_id)
                .execute()
            )
        except STORE_FAILURES as e:
            logger.exception("cart.repository.remove failed user_id=%s course_id=%s", user_id, course_id)
            raise StoreError(str(e)) from e

    def clear(self, user_id: str) -> None:
        try:
            self.client.table("cart_items").delete().eq("user_id", user_id).execute()
        except STORE_FAILURES as e:
            logger.exception("cart.repository.clear failed user_id=%s", user_id)
            raise StoreError(str(e)) from e

    def contains(self, user_id: str, course_id: str) -> bool:
        try:
            res = (
                self.client
                .table("cart_items")
                .select("id")
                .eq("user_id", user_id)
                .eq("course_id", course_id)
                .limit(1)
                .execute()
            )
        except STORE_FAILURES as e:
            logger.exception("cart.repository.contains failed user_id=%s course_id=%s", user_id, course_id)
            raise StoreError(str(e)) from e
        return bool(res.data)
