"""
Doubles en mémoire des stores Supabase et de la passerelle Pagar.me.
Même interface que les implémentations réelles; `fail_*` simule des pannes successives.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from cursoshub.cart.models import CartItem
from cursoshub.enrollments.models import Enrollment, EnrollmentStatus
from cursoshub.errors import DuplicateCartItemError, StoreError
from cursoshub.payments.gateway import GatewayResponse

COURSES = {
    "c1": {"id": "c1", "title": "Python para iniciantes", "price": 50.0, "instructor_id": "i1"},
    "c2": {"id": "c2", "title": "FastAPI na prática", "price": 75.5, "instructor_id": "i2"},
    "c3": {"id": "c3", "title": "Curso gratuito", "price": None, "instructor_id": "i1"},
}


class InMemoryCatalog:
    def __init__(self, courses: Optional[Dict[str, Dict[str, Any]]] = None):
        self.courses = dict(COURSES if courses is None else courses)
        self.fail = 0

    def get_courses_map(self, ids):
        if self.fail:
            self.fail -= 1
            raise StoreError("catalog down")
        return {i: dict(self.courses[i]) for i in ids if i in self.courses}


class InMemoryCartStore:
    def __init__(self, catalog: Optional[InMemoryCatalog] = None):
        self.catalog = catalog or InMemoryCatalog()
        self.rows: List[Dict[str, Any]] = []
        self.fail_add = 0
        self.fail_clear = 0
        self.calls: List[str] = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def get_cart_items(self, user_id: str) -> List[CartItem]:
        rows = [r for r in self.rows if r["user_id"] == user_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return [
            CartItem.from_row({**r, "course": self.catalog.courses.get(r["course_id"]) or {}}, user_id)
            for r in rows
        ]

    def add(self, user_id: str, course_id: str) -> None:
        self.calls.append("add")
        if self.fail_add:
            self.fail_add -= 1
            raise StoreError("insert failed")
        if self.contains(user_id, course_id):
            raise DuplicateCartItemError(course_id)
        self._clock += timedelta(seconds=1)
        self.rows.append({
            "id": f"row-{len(self.rows) + 1}",
            "user_id": user_id,
            "course_id": course_id,
            "created_at": self._clock,
        })

    def remove(self, user_id: str, course_id: str) -> None:
        self.calls.append("remove")
        self.rows = [r for r in self.rows if not (r["user_id"] == user_id and r["course_id"] == course_id)]

    def clear(self, user_id: str) -> None:
        self.calls.append("clear")
        if self.fail_clear:
            self.fail_clear -= 1
            raise StoreError("delete failed")
        self.rows = [r for r in self.rows if r["user_id"] != user_id]

    def contains(self, user_id: str, course_id: str) -> bool:
        return any(r["user_id"] == user_id and r["course_id"] == course_id for r in self.rows)


class InMemoryEnrollmentStore:
    def __init__(self):
        self.rows: List[Enrollment] = []
        self.fail_insert = 0
        self.fail_read = 0

    def get_active_course_ids(self, user_id: str) -> List[str]:
        if self.fail_read:
            self.fail_read -= 1
            raise StoreError("select failed")
        return [e.course_id for e in self.rows if e.user_id == user_id and e.status == EnrollmentStatus.ACTIVE]

    def insert(self, enrollments: List[Enrollment]) -> int:
        if self.fail_insert:
            self.fail_insert -= 1
            raise StoreError("insert failed")
        self.rows.extend(enrollments)
        return len(enrollments)


class InMemoryPaymentEventStore:
    def __init__(self):
        self.events: Dict[str, Dict[str, Any]] = {}
        self.fail_insert = 0

    def insert(self, user_id: str, gateway_order_id: str, course_ids: List[str]) -> Dict[str, Any]:
        if self.fail_insert:
            self.fail_insert -= 1
            raise StoreError("insert failed")
        event_id = f"evt-{len(self.events) + 1}"
        event = {
            "id": event_id,
            "user_id": user_id,
            "gateway_order_id": gateway_order_id,
            "course_ids": list(course_ids),
            "status": "PENDING",
            "attempts": 0,
            "last_error": None,
        }
        self.events[event_id] = event
        return dict(event)

    def mark(self, event_id: str, status: str, attempts: int, last_error: Optional[str] = None) -> None:
        self.events[event_id].update({"status": status, "attempts": attempts, "last_error": last_error})

    def list_unprocessed(self, limit: int = 50) -> List[Dict[str, Any]]:
        pending = [dict(e) for e in self.events.values() if e["status"] in ("PENDING", "FAILED")]
        return pending[:limit]


class FakeGateway:
    """Renvoie des réponses préparées; une exception dans la file est levée."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.orders = []

    def submit(self, order):
        self.orders.append(order)
        nxt = self.responses.pop(0) if self.responses else paid_response()
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def close(self):
        pass


def paid_response(order_id: str = "or_123", status: str = "paid") -> GatewayResponse:
    return GatewayResponse(ok=True, status_code=200, data={"id": order_id, "status": status})


def cart_payload(*course_ids: str, price: Any = 1.0) -> List[Dict[str, Any]]:
    """cartItems tel qu'envoyé par le client (prix volontairement faux)."""
    return [{"course": {"id": cid, "title": "client title", "price": price}} for cid in course_ids]


CUSTOMER = {"name": "Maria Silva", "document": "123.456.789-09", "phone": "(11) 98765-4321"}
