from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from cursoshub.auth.service import determine_role, get_user_from_token
from cursoshub.enrollments.service import EnrollmentService
from cursoshub.errors import ValidationError
from cursoshub.infra import supabase_client

from tests.fakes import InMemoryEnrollmentStore


def test_determine_role():
    assert determine_role({"role": "Admin"}) == "admin"
    assert determine_role({"role": "instructor"}) == "instructor"
    assert determine_role({"role": "other"}) == "user"
    assert determine_role(None) == "user"


def test_get_user_from_token_normalizes_object():
    client = MagicMock()
    client.auth.get_user.return_value = SimpleNamespace(
        user=SimpleNamespace(id="u1", email="a@b.c", user_metadata={"role": "admin"})
    )
    user = get_user_from_token(client, "jwt")
    client.auth.get_user.assert_called_once_with("jwt")
    assert user == {"id": "u1", "email": "a@b.c", "metadata": {"role": "admin"}, "role": "admin", "token": "jwt"}


def test_supabase_clients(monkeypatch):
    created = []

    def fake_create_client(url, key, options=None):
        c = MagicMock(name=key)
        created.append((url, key, c, options))
        return c

    monkeypatch.setattr(supabase_client, "create_client", fake_create_client)

    clients = supabase_client.SupabaseClients("https://x.supabase.co", "anon", timeout=7)
    with pytest.raises(RuntimeError):
        clients.service

    user_client = clients.for_user("jwt")
    user_client.postgrest.auth.assert_called_once_with("jwt")
    assert user_client is not clients.anon
    with pytest.raises(ValueError):
        clients.for_user("")
    assert all(options.postgrest_client_timeout == 7 for _, _, _, options in created)

    with_service = supabase_client.SupabaseClients("https://x.supabase.co", "anon", "service")
    assert with_service.service is created[-1][2]
    assert created[-1][3].postgrest_client_timeout == 10


def test_supabase_clients_require_url():
    with pytest.raises(RuntimeError):
        supabase_client.SupabaseClients("", "anon")


def test_enrollment_grant_refuses_owned_course():
    service = EnrollmentService(InMemoryEnrollmentStore())
    enrollment = service.grant("u1", "c1")
    assert enrollment.course_id == "c1"
    assert service.list_active_course_ids("u1") == ["c1"]
    with pytest.raises(ValidationError) as exc:
        service.grant("u1", "c1")
    assert exc.value.code == "ALREADY_ENROLLED"
