import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PayloadValidationError
from starlette.concurrency import run_in_threadpool

from cursoshub.app_setup.middlewares import CHECKOUT_CORS_HEADERS
from cursoshub.container import Container, get_container
from cursoshub.errors import AuthError, CheckoutError, ValidationError
from cursoshub.payments.gateway import GENERIC_GATEWAY_ERROR
from cursoshub.utils.rate_limit import optional_rate_limit
from cursoshub.utils.security import get_bearer_user, require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])
admin_router = APIRouter(prefix="/api/v1/admin/payments", tags=["Admin"])


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cart_items: Optional[List[Dict[str, Any]]] = Field(default=None, alias="cartItems")
    card_token: Optional[str] = Field(default=None, alias="cardToken")
    installments: Optional[Any] = None
    customer_data: Optional[Dict[str, Any]] = Field(default=None, alias="customerData")


# module cursoshub.payments.views
@router.options("/checkout", include_in_schema=False)
async def checkout_preflight():
    return PlainTextResponse("ok", headers=CHECKOUT_CORS_HEADERS)


@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout(
    request: Request,
    user: Optional[Dict[str, Any]] = Depends(get_bearer_user),
    container: Container = Depends(get_container),
):
    """
    Paiement par carte (token Pagar.me) du panier de l'utilisateur authentifié.
    - Entrée JSON: { "cartItems": [ { "course": { "id", "title", "price" } } ], "cardToken": "...",
                     "installments": 1, "customerData": { "name", "document", "phone" } }
    - En-tête optionnel Idempotency-Key: rejoue la réponse d'un checkout déjà terminé
    - Sécurité: Bearer requis + rate limit (10 req / 60s)
    - 200: payload de la passerelle tel quel (paid, pending, failed...)
    - 400: {"error": message} (auth, validation, refus ou passerelle injoignable)
    """
    if not user:
        raise AuthError("Non authentifié")
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Corps de requête JSON invalide")
    if not isinstance(body, dict):
        raise ValidationError("Corps de requête JSON invalide")
    try:
        payload = CheckoutRequest.model_validate(body)
    except PayloadValidationError:
        raise ValidationError("Requête de paiement invalide")

    try:
        result = await run_in_threadpool(
            container.checkout.checkout,
            user=user,
            cart_items=payload.cart_items,
            card_token=payload.card_token,
            installments=payload.installments,
            customer_data=payload.customer_data,
            idempotency_key=(request.headers.get("Idempotency-Key") or "").strip() or None,
        )
    except CheckoutError:
        raise
    except Exception:
        logger.exception("Erreur create_checkout user_id=%s", user.get("id"))
        raise CheckoutError(GENERIC_GATEWAY_ERROR)
    return JSONResponse(result.body, status_code=result.status_code, headers=CHECKOUT_CORS_HEADERS)


@admin_router.post("/reconcile")
async def reconcile_payments(
    limit: int = 50,
    admin: Dict[str, Any] = Depends(require_admin),
    container: Container = Depends(get_container),
) -> Dict[str, Any]:
    """
    Rejoue les écritures post-paiement des événements PENDING/FAILED (outbox).
    Sans effet pour les cours déjà possédés.
    """
    reports = await run_in_threadpool(container.outbox.replay_pending, max(1, min(limit, 500)))
    logger.info("payments.reconcile admin_id=%s events=%s", admin.get("id"), len(reports))
    return {
        "processed": len(reports),
        "failed": sum(1 for r in reports if not r.ok),
        "reports": [r.to_dict() for r in reports],
    }
