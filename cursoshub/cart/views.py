import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from cursoshub import errors
from cursoshub.cart.service import CartService
from cursoshub.container import Container, get_container
from cursoshub.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])

_STATUS_BY_ERROR = {
    errors.ALREADY_ENROLLED: 409,
    errors.DUPLICATE: 409,
    errors.STORE_ERROR: 503,
}


class AddToCartRequest(BaseModel):
    course_id: str


def get_cart_service(
    user: Dict[str, Any] = Depends(require_user),
    container: Container = Depends(get_container),
) -> CartService:
    return container.cart_service_for(user.get("token") or "")


# module cursoshub.cart.views
@router.get("")
async def list_cart(user: Dict[str, Any] = Depends(require_user), service: CartService = Depends(get_cart_service)):
    items = await run_in_threadpool(service.get_cart_items, user["id"])
    return {"items": [i.model_dump(mode="json") for i in items]}


@router.get("/summary")
async def cart_summary(user: Dict[str, Any] = Depends(require_user), service: CartService = Depends(get_cart_service)):
    summary = await run_in_threadpool(service.get_cart_summary, user["id"])
    return summary.model_dump(mode="json")


@router.post("/items")
async def add_cart_item(
    payload: AddToCartRequest,
    user: Dict[str, Any] = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Ajoute un cours au panier.
    - 201 {"success": true}
    - 409 {"success": false, "error": "ALREADY_ENROLLED" | "DUPLICATE", "message": ...}
    """
    result = await run_in_threadpool(service.add_to_cart, user["id"], payload.course_id.strip())
    status = 201 if result.success else _STATUS_BY_ERROR.get(result.error, 400)
    return JSONResponse(result.to_dict(), status_code=status)


@router.delete("/items/{course_id}")
async def remove_cart_item(
    course_id: str,
    user: Dict[str, Any] = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    await run_in_threadpool(service.remove_from_cart, user["id"], course_id)
    return {"success": True}


@router.delete("")
async def clear_cart(user: Dict[str, Any] = Depends(require_user), service: CartService = Depends(get_cart_service)):
    await run_in_threadpool(service.clear_cart, user["id"])
    return {"success": True}
