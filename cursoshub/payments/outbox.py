"""
Outbox des paiements confirmés et écritures post-paiement.
- record(): enregistre l'événement 'paiement confirmé' (table payment_events) avant toute écriture
- fulfill(): inscriptions puis vidage du panier, indépendants, chacun avec retries (tenacity)
- replay_pending(): rejoue les événements PENDING/FAILED (réconciliation)
Les échecs sont loggés sous le code POST_PAYMENT_WRITE_FAILURE et ne remontent jamais au client:
le paiement est déjà accepté par la passerelle.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from supabase import Client
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from cursoshub.enrollments.models import Enrollment, EnrollmentStatus
from cursoshub.errors import POST_PAYMENT_WRITE_FAILURE, StoreError
from cursoshub.infra.supabase_client import STORE_FAILURES

logger = logging.getLogger(__name__)

PENDING = "PENDING"
PROCESSED = "PROCESSED"
FAILED = "FAILED"


class FulfillmentReport:
    def __init__(self, user_id: str, event_id: Optional[str] = None):
        self.user_id = user_id
        self.event_id = event_id
        self.enrollments_created = 0
        self.cart_cleared = False
        self.errors: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event_id": self.event_id,
            "enrollments_created": self.enrollments_created,
            "cart_cleared": self.cart_cleared,
            "errors": self.errors,
        }


class SupabasePaymentEventStore:
    def __init__(self, client: Client):
        self.client = client

    def insert(self, user_id: str, gateway_order_id: str, course_ids: List[str]) -> Dict[str, Any]:
        try:
            res = (
                self.client
                .table("payment_events")
                .insert({
                    "user_id": user_id,
                    "gateway_order_id": gateway_order_id,
                    "course_ids": course_ids,
                    "status": PENDING,
                    "attempts": 0,
                })
                .execute()
            )
        except STORE_FAILURES as e:
            raise StoreError(str(e)) from e
        rows = res.data or []
        return rows[0] if rows else {}

    def mark(self, event_id: str, status: str, attempts: int, last_error: Optional[str] = None) -> None:
        try:
            (
                self.client
                .table("payment_events")
                .update({
                    "status": status,
                    "attempts": attempts,
                    "last_error": last_error,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                })
                .eq("id", event_id)
                .execute()
            )
        except STORE_FAILURES as e:
            raise StoreError(str(e)) from e

    def list_unprocessed(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            res = (
                self.client
                .table("payment_events")
                .select("*")
                .in_("status", [PENDING, FAILED])
                .order("created_at")
                .limit(limit)
                .execute()
            )
        except STORE_FAILURES as e:
            raise StoreError(str(e)) from e
        return res.data or []


# module cursoshub.payments.outbox
class PaymentOutbox:
    def __init__(self, event_store, enrollment_store, cart_store, max_attempts: int = 3, wait=None):
        """
        enrollment_store / cart_store doivent utiliser le client service-role:
        ces écritures se font avec des privilèges distincts de ceux de l'utilisateur.
        """
        self.event_store = event_store
        self.enrollment_store = enrollment_store
        self.cart_store = cart_store
        self.max_attempts = max(1, max_attempts)
        self.wait = wait if wait is not None else wait_exponential(multiplier=0.3, min=0.3, max=3)

    def _retrying(self) -> Retrying:
        return Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(StoreError),
        )

    def record(self, user_id: str, gateway_order_id: str, course_ids: List[str]) -> Optional[Dict[str, Any]]:
        try:
            event = self.event_store.insert(user_id, gateway_order_id, course_ids)
            logger.info("payments.outbox.record event_id=%s user_id=%s order_id=%s", event.get("id"), user_id, gateway_order_id)
            return event
        except StoreError:
            # Sans trace durable, la réconciliation se fera depuis les logs
            logger.exception(
                "%s payments.outbox.record failed user_id=%s order_id=%s course_ids=%s",
                POST_PAYMENT_WRITE_FAILURE, user_id, gateway_order_id, course_ids,
            )
            return None

    def _grant(self, user_id: str, course_ids: List[str]) -> int:
        # Jamais d'inscription pour un cours déjà possédé (rend le rejeu sans effet de bord)
        owned = set(self.enrollment_store.get_active_course_ids(user_id))
        to_create = [
            Enrollment(user_id=user_id, course_id=cid, status=EnrollmentStatus.ACTIVE)
            for cid in dict.fromkeys(course_ids)
            if cid not in owned
        ]
        return self.enrollment_store.insert(to_create)

    def _clear(self, user_id: str, course_ids: List[str], whole_cart: bool) -> None:
        if whole_cart:
            self.cart_store.clear(user_id)
            return
        for cid in course_ids:
            self.cart_store.remove(user_id, cid)

    def fulfill(
        self,
        user_id: str,
        course_ids: List[str],
        event: Optional[Dict[str, Any]] = None,
        whole_cart: bool = True,
    ) -> FulfillmentReport:
        """
        whole_cart=False (rejeu): ne retire que les cours achetés, le panier ayant pu évoluer depuis.
        """
        event_id = str((event or {}).get("id") or "") or None
        report = FulfillmentReport(user_id, event_id)

        try:
            report.enrollments_created = self._retrying()(self._grant, user_id, course_ids)
        except StoreError as e:
            report.errors.append(f"enrollments: {e}")
            logger.error(
                "%s payments.outbox enrollments failed user_id=%s course_ids=%s event_id=%s error=%s",
                POST_PAYMENT_WRITE_FAILURE, user_id, course_ids, event_id, e,
            )

        try:
            self._retrying()(self._clear, user_id, course_ids, whole_cart)
            report.cart_cleared = True
        except StoreError as e:
            report.errors.append(f"cart: {e}")
            logger.error(
                "%s payments.outbox cart clear failed user_id=%s event_id=%s error=%s",
                POST_PAYMENT_WRITE_FAILURE, user_id, event_id, e,
            )

        if event_id:
            attempts = int((event or {}).get("attempts") or 0) + 1
            try:
                if report.ok:
                    self.event_store.mark(event_id, PROCESSED, attempts)
                else:
                    self.event_store.mark(event_id, FAILED, attempts, "; ".join(report.errors))
            except StoreError:
                logger.exception("payments.outbox.mark failed event_id=%s", event_id)

        logger.info(
            "payments.outbox.fulfill user_id=%s created=%s cart_cleared=%s errors=%s",
            user_id, report.enrollments_created, report.cart_cleared, len(report.errors),
        )
        return report

    def replay_pending(self, limit: int = 50) -> List[FulfillmentReport]:
        reports: List[FulfillmentReport] = []
        for event in self.event_store.list_unprocessed(limit):
            user_id = str(event.get("user_id") or "")
            course_ids = [str(c) for c in (event.get("course_ids") or [])]
            if not user_id:
                logger.warning("payments.outbox.replay skipped event without user_id event_id=%s", event.get("id"))
                continue
            reports.append(self.fulfill(user_id, course_ids, event, whole_cart=False))
        return reports
