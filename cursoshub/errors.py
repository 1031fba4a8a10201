"""
Taxonomie d'erreurs du pipeline panier → paiement.
- CheckoutError et ses sous-classes sont converties en {"error": message} (HTTP 400 par défaut)
  par le gestionnaire d'exceptions de l'application.
- StoreError encapsule les échecs Supabase/PostgREST côté repositories.
"""
from typing import Optional

# Codes exposés
VALIDATION = "VALIDATION"
EMPTY_CART = "EMPTY_CART"
ALREADY_ENROLLED = "ALREADY_ENROLLED"
DUPLICATE = "DUPLICATE"
AUTH = "AUTH"
CHECKOUT_IN_PROGRESS = "CHECKOUT_IN_PROGRESS"
GATEWAY_REJECTED = "GATEWAY_REJECTED"
GATEWAY_TRANSPORT = "GATEWAY_TRANSPORT"
STORE_ERROR = "STORE_ERROR"
# Code de log uniquement: jamais renvoyé à l'utilisateur
POST_PAYMENT_WRITE_FAILURE = "POST_PAYMENT_WRITE_FAILURE"


class CheckoutError(Exception):
    code = VALIDATION
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(CheckoutError):
    code = VALIDATION


class AuthError(CheckoutError):
    code = AUTH


class CheckoutInProgressError(CheckoutError):
    code = CHECKOUT_IN_PROGRESS


class GatewayRejectedError(CheckoutError):
    code = GATEWAY_REJECTED

    def __init__(self, message: str, status_code: int = 0, payload: Optional[dict] = None):
        super().__init__(message)
        # Statut HTTP renvoyé par la passerelle (la réponse au client reste 400)
        self.gateway_status = status_code
        self.payload = payload or {}


class GatewayTransportError(CheckoutError):
    code = GATEWAY_TRANSPORT


class StoreError(Exception):
    """Échec d'accès au stockage (Supabase/PostgREST)."""


class DuplicateCartItemError(StoreError):
    """Violation d'unicité (user_id, course_id) dans cart_items (code 23505)."""
