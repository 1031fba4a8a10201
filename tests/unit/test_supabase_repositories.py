from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from cursoshub.cart.repository import SupabaseCartStore
from cursoshub.cart.service import CartService
from cursoshub.courses.repository import SupabaseCourseCatalog
from cursoshub.enrollments.models import Enrollment
from cursoshub.enrollments.repository import SupabaseEnrollmentStore
from cursoshub.errors import DuplicateCartItemError, StoreError
from cursoshub.payments.outbox import SupabasePaymentEventStore


def test_get_cart_items_handles_list_join():
    client = MagicMock()
    chain = client.table.return_value.select.return_value.eq.return_value.order.return_value
    chain.execute.return_value = MagicMock(data=[
        {"id": "r1", "course_id": "c1", "created_at": "2024-01-02T10:00:00+00:00",
         "course": [{"id": "c1", "title": "Python", "price": "49.90", "instructor_id": "i1"}]},
        {"id": "r2", "course_id": "c2", "created_at": None, "course": {"id": "c2", "title": "SQL", "price": None}},
    ])

    items = SupabaseCartStore(client).get_cart_items("u1")

    client.table.assert_called_with("cart_items")
    client.table.return_value.select.return_value.eq.assert_called_with("user_id", "u1")
    client.table.return_value.select.return_value.eq.return_value.order.assert_called_with("created_at", desc=True)
    assert items[0].course.price == pytest.approx(49.9)
    assert items[0].user_id == "u1"
    assert items[1].course.price is None


def test_add_maps_unique_violation():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = APIError(
        {"code": "23505", "message": "duplicate key value violates unique constraint"}
    )
    with pytest.raises(DuplicateCartItemError):
        SupabaseCartStore(client).add("u1", "c1")


def test_add_other_errors_are_store_errors():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = APIError({"code": "42501", "message": "rls"})
    with pytest.raises(StoreError) as exc:
        SupabaseCartStore(client).add("u1", "c1")
    assert not isinstance(exc.value, DuplicateCartItemError)


def test_clear_deletes_user_rows():
    client = MagicMock()
    SupabaseCartStore(client).clear("u1")
    client.table.return_value.delete.return_value.eq.assert_called_with("user_id", "u1")


def test_active_course_ids_filters_status():
    client = MagicMock()
    chain = client.table.return_value.select.return_value.eq.return_value.eq.return_value
    chain.execute.return_value = MagicMock(data=[{"course_id": "c1"}, {"course_id": None}])

    assert SupabaseEnrollmentStore(client).get_active_course_ids("u1") == ["c1"]
    client.table.return_value.select.return_value.eq.return_value.eq.assert_called_with("status", "ATIVO")


def test_enrollment_insert_is_single_bulk_call():
    client = MagicMock()
    count = SupabaseEnrollmentStore(client).insert([
        Enrollment(user_id="u1", course_id="c1"),
        Enrollment(user_id="u1", course_id="c2"),
    ])
    assert count == 2
    [rows], _ = client.table.return_value.insert.call_args
    assert [r["course_id"] for r in rows] == ["c1", "c2"]
    assert {r["status"] for r in rows} == {"ATIVO"}
    assert all(r["enrolled_at"] for r in rows)


def test_enrollment_insert_empty_is_noop():
    client = MagicMock()
    assert SupabaseEnrollmentStore(client).insert([]) == 0
    client.table.assert_not_called()


def test_courses_map():
    client = MagicMock()
    client.table.return_value.select.return_value.in_.return_value.execute.return_value = MagicMock(
        data=[{"id": "c1", "title": "Python", "price": 50}]
    )
    catalog = SupabaseCourseCatalog(client)
    assert catalog.get_courses_map(["c1", "c2"]) == {"c1": {"id": "c1", "title": "Python", "price": 50}}
    client.table.return_value.select.return_value.in_.assert_called_with("id", ["c1", "c2"])
    assert catalog.get_courses_map([]) == {}


def test_payment_event_insert_returns_row():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[{"id": "evt-1", "status": "PENDING"}])
    event = SupabasePaymentEventStore(client).insert("u1", "or_1", ["c1"])
    assert event["id"] == "evt-1"
    [payload], _ = client.table.return_value.insert.call_args
    assert payload["status"] == "PENDING"
    assert payload["course_ids"] == ["c1"]


def test_network_errors_are_store_errors():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = httpx.ConnectError("connection refused")
    client.table.return_value.select.return_value.eq.return_value.eq.return_value.execute.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(StoreError):
        SupabaseEnrollmentStore(client).insert([Enrollment(user_id="u1", course_id="c1")])
    with pytest.raises(StoreError):
        SupabaseEnrollmentStore(client).get_active_course_ids("u1")
    with pytest.raises(StoreError):
        SupabasePaymentEventStore(client).insert("u1", "or_1", ["c1"])
    with pytest.raises(StoreError) as exc:
        SupabaseCartStore(client).add("u1", "c1")
    assert not isinstance(exc.value, DuplicateCartItemError)


def test_unreadable_course_price_counts_as_zero():
    client = MagicMock()
    chain = client.table.return_value.select.return_value.eq.return_value.order.return_value
    chain.execute.return_value = MagicMock(data=[
        {"id": "r1", "course_id": "c1", "course": {"id": "c1", "title": "Python", "price": "abc"}},
        {"id": "r2", "course_id": "c2", "course": {"id": "c2", "title": "SQL", "price": "NaN"}},
        {"id": "r3", "course_id": "c3", "course": {"id": "c3", "title": "Go", "price": {"amount": 10}}},
        {"id": "r4", "course_id": "c4", "course": {"id": "c4", "title": "Rust", "price": "20.50"}},
    ])

    items = SupabaseCartStore(client).get_cart_items("u1")

    assert [i.course.price for i in items] == [None, None, None, 20.5]
    summary = CartService(SupabaseCartStore(client), MagicMock()).get_cart_summary("u1")
    assert summary.item_count == 4
    assert summary.subtotal == pytest.approx(20.5)
