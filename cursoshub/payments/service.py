"""
Cas d'usage 'checkout': orchestre catalogue, passerelle, outbox, verrou et idempotence.

Étapes:
  1) Validations rapides (panier, token de carte, client, parcelles) avant tout appel externe
  2) Verrou par utilisateur + rejeu éventuel via Idempotency-Key
  3) Prix recalculés depuis le catalogue serveur (le prix client est ignoré)
  4) Commande envoyée à la passerelle; refus/transport -> CheckoutError (HTTP 400)
  5) Statut 'paid': outbox puis inscriptions + vidage du panier (service-role, best-effort)
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

from redis.exceptions import RedisError

from cursoshub import errors
from cursoshub.errors import AuthError, CheckoutError, StoreError, ValidationError
from cursoshub.payments.order import Order, Payment, build_customer, build_line_items, build_split_rules

logger = logging.getLogger(__name__)

PAID = "paid"


class CheckoutResult:
    def __init__(self, status_code: int, body: Dict[str, Any]):
        self.status_code = status_code
        self.body = body


def extract_course_ids(cart_items: Optional[Iterable[Any]]) -> List[str]:
    """
    Extrait les IDs de cours du panier client [{course: {id, title, price}}, ...].
    - EMPTY_CART si vide
    - DUPLICATE si un cours apparaît deux fois
    - Les champs title/price du client ne sont pas lus
    """
    items = list(cart_items or [])
    if not items:
        raise ValidationError("Panier vide", code=errors.EMPTY_CART)
    course_ids: List[str] = []
    for item in items:
        course = (item or {}).get("course") if isinstance(item, dict) else None
        course_id = str((course or {}).get("id") or "").strip()
        if not course_id:
            raise ValidationError("Article de panier invalide: cours manquant")
        if course_id in course_ids:
            raise ValidationError(f"Cours en double dans le panier: {course_id}", code=errors.DUPLICATE)
        course_ids.append(course_id)
    return course_ids


def normalize_installments(installments: Any, max_installments: int) -> int:
    if installments is None or installments == "":
        return 1
    if isinstance(installments, bool):
        raise ValidationError("Nombre de parcelles invalide")
    try:
        value = int(installments)
    except (TypeError, ValueError):
        raise ValidationError("Nombre de parcelles invalide")
    if value < 1 or value > max_installments:
        raise ValidationError(f"Nombre de parcelles hors limites (1..{max_installments})")
    return value


# module cursoshub.payments.service
class CheckoutService:
    def __init__(
        self,
        catalog,
        enrollment_store,
        gateway,
        outbox,
        lock=None,
        idempotency=None,
        recipient_id: str = "",
        statement_descriptor: str = "CURSOS HUB",
        phone_country_code: str = "55",
        max_installments: int = 12,
    ):
        self.catalog = catalog
        self.enrollment_store = enrollment_store
        self.gateway = gateway
        self.outbox = outbox
        self.lock = lock
        self.idempotency = idempotency
        self.recipient_id = recipient_id
        self.statement_descriptor = statement_descriptor
        self.phone_country_code = phone_country_code
        self.max_installments = max_installments

    def checkout(
        self,
        user: Dict[str, Any],
        cart_items: Optional[Iterable[Any]],
        card_token: Optional[str],
        installments: Any = None,
        customer_data: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> CheckoutResult:
        user_id = str((user or {}).get("id") or "")
        if not user_id:
            raise AuthError("Utilisateur non authentifié")

        course_ids = extract_course_ids(cart_items)
        if not (card_token or "").strip():
            raise ValidationError("Token de carte manquant")
        n_installments = normalize_installments(installments, self.max_installments)
        customer = build_customer(str(user.get("email") or ""), customer_data, self.phone_country_code)
        payment = Payment(
            card_token=card_token.strip(),
            installments=n_installments,
            statement_descriptor=self.statement_descriptor,
            split_rules=build_split_rules(self.recipient_id),
        )

        if self.lock is None:
            return self._checkout(user_id, course_ids, customer, payment, idempotency_key, None)
        try:
            with self.lock.hold(user_id) as token:
                return self._checkout(user_id, course_ids, customer, payment, idempotency_key, token)
        except RedisError:
            logger.exception("checkout.lock unavailable user_id=%s", user_id)
            raise CheckoutError("Service de paiement temporairement indisponible")

    def _checkout(self, user_id, course_ids, customer, payment, idempotency_key, lock_token) -> CheckoutResult:
        if idempotency_key and self.idempotency is not None:
            cached = self.idempotency.get(user_id, idempotency_key)
            if cached:
                logger.info("checkout.replay user_id=%s", user_id)
                return CheckoutResult(int(cached.get("status_code") or 200), cached.get("body") or {})

        try:
            owned = set(self.enrollment_store.get_active_course_ids(user_id))
            courses = self.catalog.get_courses_map(course_ids)
        except StoreError:
            logger.exception("checkout.load failed user_id=%s", user_id)
            raise CheckoutError("Impossible de charger les cours du panier", code=errors.STORE_ERROR)

        already = [cid for cid in course_ids if cid in owned]
        if already:
            raise ValidationError(f"Cours déjà possédé(s): {', '.join(already)}", code=errors.ALREADY_ENROLLED)

        order = Order(line_items=build_line_items(course_ids, courses), customer=customer, payment=payment)
        # Lève GatewayRejectedError / GatewayTransportError: aucune écriture n'a eu lieu
        response = self.gateway.submit(order)

        if response.status == PAID:
            order_id = str(response.data.get("id") or "")
            if lock_token:
                self._extend_lock(user_id, lock_token)
            event = self.outbox.record(user_id, order_id, course_ids)
            self.outbox.fulfill(user_id, course_ids, event)
        else:
            logger.info("checkout.not_paid user_id=%s status=%s", user_id, response.status or "-")

        result = CheckoutResult(200, response.data)
        if idempotency_key and self.idempotency is not None:
            try:
                self.idempotency.put(user_id, idempotency_key, result.status_code, result.body)
            except RedisError:
                logger.exception("checkout.idempotency store failed user_id=%s", user_id)
        return result

    def _extend_lock(self, user_id: str, token: str) -> None:
        # Le paiement est acquis: un échec Redis ne doit pas transformer la réponse en erreur
        try:
            if not self.lock.extend(user_id, token):
                logger.warning("checkout.lock lost before post-payment writes user_id=%s", user_id)
        except RedisError:
            logger.exception("checkout.lock extend failed user_id=%s", user_id)
