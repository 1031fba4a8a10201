"""
Cas d'usage 'panier': ajout/retrait/vidage/lecture et récapitulatif.
Règle métier: un cours déjà possédé (inscription active) ne peut pas être ajouté au panier.
"""
from decimal import Decimal
from typing import List
import logging

from cursoshub import errors
from cursoshub.cart.models import CartActionResult, CartItem, CartSummary, price_or_zero
from cursoshub.errors import DuplicateCartItemError, StoreError

logger = logging.getLogger(__name__)

MSG_ALREADY_ENROLLED = "Vous possédez déjà ce cours"
MSG_DUPLICATE = "Ce cours est déjà dans le panier"
MSG_STORE_ERROR = "Erreur lors de l'ajout au panier"


def compute_subtotal(items: List[CartItem]) -> Decimal:
    """Somme exacte des prix (Decimal), prix absent ou négatif compté 0."""
    return sum((price_or_zero(item.course.price) for item in items), Decimal("0"))


# module cursoshub.cart.service
class CartService:
    def __init__(self, cart_store, enrollment_store):
        self.cart_store = cart_store
        self.enrollment_store = enrollment_store

    def get_cart_items(self, user_id: str) -> List[CartItem]:
        return self.cart_store.get_cart_items(user_id)

    def add_to_cart(self, user_id: str, course_id: str) -> CartActionResult:
        """Ajout au panier:
        - ALREADY_ENROLLED si le cours figure dans les inscriptions actives (aucune écriture)
        - DUPLICATE si déjà présent (contrainte d'unicité du stockage)
        - STORE_ERROR pour tout autre échec (loggé)
        """
        owned = self.enrollment_store.get_active_course_ids(user_id)
        if course_id in owned:
            return CartActionResult(False, error=errors.ALREADY_ENROLLED, message=MSG_ALREADY_ENROLLED)
        try:
            self.cart_store.add(user_id, course_id)
        except DuplicateCartItemError:
            return CartActionResult(False, error=errors.DUPLICATE, message=MSG_DUPLICATE)
        except StoreError:
            logger.exception("cart.service.add_to_cart failed user_id=%s course_id=%s", user_id, course_id)
            return CartActionResult(False, error=errors.STORE_ERROR, message=MSG_STORE_ERROR)
        logger.info("cart.add user_id=%s course_id=%s", user_id, course_id)
        return CartActionResult(True)

    def remove_from_cart(self, user_id: str, course_id: str) -> None:
        # DELETE filtré: aucune erreur si la ligne est absente
        self.cart_store.remove(user_id, course_id)

    def clear_cart(self, user_id: str) -> None:
        self.cart_store.clear(user_id)

    def is_in_cart(self, user_id: str, course_id: str) -> bool:
        return self.cart_store.contains(user_id, course_id)

    def get_cart_summary(self, user_id: str) -> CartSummary:
        items = self.get_cart_items(user_id)
        return CartSummary(items=items, item_count=len(items), subtotal=float(compute_subtotal(items)))
