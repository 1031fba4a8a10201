import os

# Pas de Redis réel pour le rate limiting pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
import fakeredis
from types import SimpleNamespace
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient
from tenacity import wait_none
from unittest.mock import MagicMock

from cursoshub.app_setup.factory import create_app
from cursoshub.cart.service import CartService
from cursoshub.container import Container
from cursoshub.enrollments.service import EnrollmentService
from cursoshub.payments.locks import CheckoutLock, IdempotencyStore
from cursoshub.payments.outbox import PaymentOutbox
from cursoshub.payments.service import CheckoutService
from cursoshub.utils.security import get_current_user, get_bearer_user

from tests.fakes import (
    FakeGateway,
    InMemoryCartStore,
    InMemoryCatalog,
    InMemoryEnrollmentStore,
    InMemoryPaymentEventStore,
)

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "role": "user",
    "metadata": {"full_name": "Test User"},
    "token": "fake-token",
}

ADMIN_USER: Dict[str, Any] = {
    "id": "admin-user-id",
    "email": "admin@example.com",
    "role": "admin",
    "metadata": {"role": "admin"},
    "token": "admin-token",
}


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def redis_client():
    # Serveur dédié: aucun état partagé entre tests
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def stores():
    catalog = InMemoryCatalog()
    return SimpleNamespace(
        catalog=catalog,
        cart=InMemoryCartStore(catalog),
        enrollments=InMemoryEnrollmentStore(),
        events=InMemoryPaymentEventStore(),
        gateway=FakeGateway(),
    )


@pytest.fixture
def outbox(stores):
    return PaymentOutbox(stores.events, stores.enrollments, stores.cart, max_attempts=3, wait=wait_none())


@pytest.fixture
def checkout_service(stores, outbox, redis_client):
    return CheckoutService(
        catalog=stores.catalog,
        enrollment_store=stores.enrollments,
        gateway=stores.gateway,
        outbox=outbox,
        lock=CheckoutLock(redis_client, ttl=90),
        idempotency=IdempotencyStore(redis_client, ttl=3600),
    )


@pytest.fixture
def container(stores, outbox, checkout_service):
    return Container(
        checkout=checkout_service,
        outbox=outbox,
        enrollments=EnrollmentService(stores.enrollments),
        cart_service_factory=lambda token: CartService(stores.cart, stores.enrollments),
        enrollment_service_factory=lambda token: EnrollmentService(stores.enrollments),
        auth_client=MagicMock(),
    )


@pytest.fixture
def app(container):
    application = create_app()
    # Conservé par le lifespan (pas de Supabase réel)
    application.state.container = container
    # Simuler un utilisateur authentifié pour les endpoints protégés
    application.dependency_overrides[get_current_user] = lambda: TEST_USER
    application.dependency_overrides[get_bearer_user] = lambda: TEST_USER
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(app, client):
    app.dependency_overrides[get_current_user] = lambda: ADMIN_USER
    yield client
