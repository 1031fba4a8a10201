# module cursoshub.cart.models
from datetime import datetime
from decimal import Decimal, InvalidOperation
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class CourseSnapshot(BaseModel):
    id: str
    title: str = ""
    price: Optional[float] = None
    instructor_id: str = ""


def _price_or_none(price: Any) -> Optional[float]:
    # Prix illisible ou non fini: traité comme absent
    try:
        value = float(price)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


class CartItem(BaseModel):
    id: str
    user_id: str
    course_id: str
    created_at: Optional[datetime] = None
    course: CourseSnapshot

    @classmethod
    def from_row(cls, row: Dict[str, Any], user_id: str) -> "CartItem":
        """
        Construit un CartItem depuis une ligne cart_items + jointure courses.
        PostgREST peut renvoyer la jointure sous forme de liste ou d'objet.
        """
        course = row.get("course") or {}
        if isinstance(course, list):
            course = course[0] if course else {}
        price = course.get("price")
        return cls(
            id=str(row.get("id") or ""),
            user_id=user_id,
            course_id=str(row.get("course_id") or ""),
            created_at=row.get("created_at"),
            course=CourseSnapshot(
                id=str(course.get("id") or row.get("course_id") or ""),
                title=course.get("title") or "",
                price=_price_or_none(price),
                instructor_id=str(course.get("instructor_id") or ""),
            ),
        )


class CartSummary(BaseModel):
    items: List[CartItem]
    item_count: int
    subtotal: float


def price_or_zero(price: Any) -> Decimal:
    """Prix en Decimal, 0 si absent/illisible ou négatif."""
    if price is None:
        return Decimal("0")
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not value.is_finite() or value < 0:
        return Decimal("0")
    return value


class CartActionResult:
    def __init__(self, success: bool, error: Optional[str] = None, message: Optional[str] = None):
        self.success = success
        self.error = error
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success}
        if self.error:
            body["error"] = self.error
            body["message"] = self.message
        return body
