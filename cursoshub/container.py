"""
Racine de composition: construit explicitement clients, stores et services.
- build_container() est appelé par le lifespan (app.state.container)
- get_container() est la dépendance FastAPI utilisée par les routers (surchargée en tests)
"""
from typing import Any, Callable, Optional
import logging

from fastapi import HTTPException, Request

from cursoshub import config
from cursoshub.cart.repository import SupabaseCartStore
from cursoshub.cart.service import CartService
from cursoshub.courses.repository import SupabaseCourseCatalog
from cursoshub.enrollments.repository import SupabaseEnrollmentStore
from cursoshub.enrollments.service import EnrollmentService
from cursoshub.infra.supabase_client import SupabaseClients
from cursoshub.payments.gateway import PagarmeGateway
from cursoshub.payments.locks import CheckoutLock, IdempotencyStore, checkout_lock_ttl, post_payment_window
from cursoshub.payments.outbox import PaymentOutbox, SupabasePaymentEventStore
from cursoshub.payments.service import CheckoutService

logger = logging.getLogger(__name__)


class Container:
    def __init__(
        self,
        checkout: CheckoutService,
        outbox: PaymentOutbox,
        enrollments: EnrollmentService,
        cart_service_factory: Callable[[str], CartService],
        enrollment_service_factory: Callable[[str], EnrollmentService],
        auth_client: Any = None,
        gateway: Optional[PagarmeGateway] = None,
    ):
        self.checkout = checkout
        self.outbox = outbox
        # Store service-role: inscriptions administratives
        self.enrollments = enrollments
        self._cart_service_factory = cart_service_factory
        self._enrollment_service_factory = enrollment_service_factory
        # Client 'anon' pour supabase.auth.get_user(token)
        self.auth_client = auth_client
        self.gateway = gateway

    def cart_service_for(self, user_token: str) -> CartService:
        """CartService adossé à un client authentifié (RLS actif)."""
        return self._cart_service_factory(user_token)

    def enrollment_service_for(self, user_token: str) -> EnrollmentService:
        return self._enrollment_service_factory(user_token)

    def close(self) -> None:
        if self.gateway is not None:
            self.gateway.close()


def build_container(redis_client=None) -> Container:
    """
    Assemble le graphe d'objets depuis cursoshub.config.
    - redis_client (sync) active le verrou de checkout et l'idempotence; None = désactivés
    """
    clients = SupabaseClients(
        config.SUPABASE_URL,
        config.SUPABASE_ANON,
        config.SUPABASE_SERVICE_KEY,
        timeout=config.SUPABASE_TIMEOUT_SECONDS,
    )
    if not config.PAGARME_SECRET_KEY:
        logger.warning("PAGARME_SECRET_KEY manquant: la passerelle refusera les commandes")
    gateway = PagarmeGateway(
        config.PAGARME_SECRET_KEY,
        base_url=config.PAGARME_API_URL,
        timeout=config.PAGARME_TIMEOUT_SECONDS,
    )

    # Écritures post-paiement: privilèges service-role
    service_enrollments = SupabaseEnrollmentStore(clients.service)
    outbox = PaymentOutbox(
        SupabasePaymentEventStore(clients.service),
        service_enrollments,
        SupabaseCartStore(clients.service),
        max_attempts=config.POST_PAYMENT_MAX_ATTEMPTS,
    )

    lock = idempotency = None
    if redis_client is not None:
        ttl = checkout_lock_ttl(
            config.PAGARME_TIMEOUT_SECONDS,
            config.SUPABASE_TIMEOUT_SECONDS,
            config.POST_PAYMENT_MAX_ATTEMPTS,
            minimum=config.CHECKOUT_LOCK_TTL_SECONDS,
        )
        write_window = post_payment_window(config.SUPABASE_TIMEOUT_SECONDS, config.POST_PAYMENT_MAX_ATTEMPTS)
        lock = CheckoutLock(redis_client, ttl=ttl, extend_ttl=write_window)
        idempotency = IdempotencyStore(redis_client, ttl=config.IDEMPOTENCY_TTL_SECONDS)

    checkout = CheckoutService(
        catalog=SupabaseCourseCatalog(clients.anon),
        enrollment_store=service_enrollments,
        gateway=gateway,
        outbox=outbox,
        lock=lock,
        idempotency=idempotency,
        recipient_id=config.PAGARME_RECIPIENT_ID,
        statement_descriptor=config.PAGARME_STATEMENT_DESCRIPTOR,
        phone_country_code=config.PAGARME_PHONE_COUNTRY_CODE,
        max_installments=config.PAGARME_MAX_INSTALLMENTS,
    )

    def cart_service_for(user_token: str) -> CartService:
        client = clients.for_user(user_token)
        return CartService(SupabaseCartStore(client), SupabaseEnrollmentStore(client))

    def enrollment_service_for(user_token: str) -> EnrollmentService:
        return EnrollmentService(SupabaseEnrollmentStore(clients.for_user(user_token)))

    return Container(
        checkout=checkout,
        outbox=outbox,
        enrollments=EnrollmentService(service_enrollments),
        cart_service_factory=cart_service_for,
        enrollment_service_factory=enrollment_service_for,
        auth_client=clients.anon,
        gateway=gateway,
    )


def get_container(request: Request) -> Container:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service indisponible")
    return container
