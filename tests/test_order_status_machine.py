from datetime import date
from unittest.mock import patch

import pytest

from orderflow.models.order import Order
from orderflow.services.access_validator import AccessValidator, Allowed, Capability
from orderflow.services.actor import Actor
from orderflow.services.order_status import (
    ACCESS_DENIED,
    ALLOWED_TRANSITIONS,
    CONCURRENT_UPDATE,
    INVALID_TRANSITION,
    ORDER_NOT_FOUND,
    OrderStatus,
    OrderStatusService,
    TransitionFailure,
    TransitionSuccess,
    allowed_targets,
    can_transition,
    parse_status,
)
from orderflow.services.retry_policy import RetryPolicy
from tests.fixtures_data import ACCESS_STATUS_CASHIER, KOPI_TENANT, OTHER_TENANT
from tests.helpers import StaticAccessSource, build_session_factory, seed_tenant

ADJACENT = {
    ("BELUM_BAYAR", "SUDAH_BAYAR"),
    ("SUDAH_BAYAR", "SEDANG_DISIAPKAN"),
    ("SEDANG_DISIAPKAN", "SIAP_DIAMBIL"),
    ("SIAP_DIAMBIL", "SELESAI"),
    ("BELUM_BAYAR", "DIBATALKAN"),
    ("SUDAH_BAYAR", "DIBATALKAN"),
    ("SEDANG_DISIAPKAN", "DIBATALKAN"),
    ("SIAP_DIAMBIL", "DIBATALKAN"),
}


@pytest.mark.parametrize("current", [s.value for s in OrderStatus])
@pytest.mark.parametrize("target", [s.value for s in OrderStatus])
def test_adjacency_table(current, target):
    assert can_transition(current, target) is ((current, target) in ADJACENT)


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS[OrderStatus.SELESAI] == frozenset()
    assert ALLOWED_TRANSITIONS[OrderStatus.DIBATALKAN] == frozenset()
    assert allowed_targets("BELUM_BAYAR") == [OrderStatus.SUDAH_BAYAR, OrderStatus.DIBATALKAN]


def test_parse_status_accepts_legacy_labels():
    assert parse_status("BELUM BAYAR") is OrderStatus.BELUM_BAYAR
    assert parse_status("siap diambil") is OrderStatus.SIAP_DIAMBIL
    assert parse_status("DELIVERED") is None
    assert parse_status(None) is None
    assert not can_transition("BELUM_BAYAR", "PAID")


@pytest.fixture
def session_factory():
    return build_session_factory()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_tenant(session, KOPI_TENANT)
    seed_tenant(session, OTHER_TENANT)
    for tenant_id, code, status in (
        (1, "KP-251003-AAAAAA", "BELUM_BAYAR"),
        (1, "KP-251003-BBBBBB", "SELESAI"),
        (2, "BMJ-251003-CCCCCC", "BELUM_BAYAR"),
    ):
        session.add(
            Order(
                order_code=code,
                tenant_id=tenant_id,
                customer_name="Budi",
                phone="+6281234567890",
                pickup_date=date(2025, 10, 3),
                subtotal=100_000,
                discount=0,
                service_fee=0,
                total=100_000,
                payment_method="COD",
                status=status,
                source="checkout",
            )
        )
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def source():
    return StaticAccessSource({"u-cashier": ACCESS_STATUS_CASHIER})


@pytest.fixture
def service(source):
    validator = AccessValidator(
        source=source,
        policy=RetryPolicy(max_attempts=1, base_delay_seconds=0, attempt_timeout_seconds=0),
    )
    return OrderStatusService(validator=validator)


def test_cashier_can_advance_status(db, service):
    with patch("orderflow.services.order_status.emit_order_status_changed") as emit:
        result = service.transition(db, Actor(user_id="u-cashier"), "KP-251003-AAAAAA", "SUDAH_BAYAR", tenant_id=1)

    assert isinstance(result, TransitionSuccess)
    assert result.previous_status is OrderStatus.BELUM_BAYAR
    assert db.query(Order).filter_by(order_code="KP-251003-AAAAAA").one().status == "SUDAH_BAYAR"
    emit.assert_called_once()
    assert emit.call_args.args[1] == "BELUM_BAYAR"


@pytest.mark.parametrize("target", ["SIAP_DIAMBIL", "BELUM_BAYAR", "BOGUS"])
def test_non_adjacent_transition_is_rejected_and_not_written(db, service, target):
    with patch("orderflow.services.order_status.emit_order_status_changed") as emit:
        result = service.transition(db, Actor(user_id="u-cashier"), "KP-251003-AAAAAA", target, tenant_id=1)

    assert isinstance(result, TransitionFailure)
    assert result.kind == INVALID_TRANSITION
    assert db.query(Order).filter_by(order_code="KP-251003-AAAAAA").one().status == "BELUM_BAYAR"
    emit.assert_not_called()


def test_terminal_order_cannot_be_cancelled(db, service):
    result = service.transition(db, Actor(user_id="u-cashier"), "KP-251003-BBBBBB", "DIBATALKAN", tenant_id=1)

    assert result.kind == INVALID_TRANSITION


def test_order_of_other_tenant_is_not_visible(db, service):
    result = service.transition(db, Actor(user_id="u-cashier"), "BMJ-251003-CCCCCC", "SUDAH_BAYAR", tenant_id=1)

    assert result.kind == ORDER_NOT_FOUND


def test_actor_without_membership_for_order_tenant_is_denied(db, service):
    result = service.transition(db, Actor(user_id="u-cashier"), "BMJ-251003-CCCCCC", "SUDAH_BAYAR")

    assert result.kind == ACCESS_DENIED
    assert db.query(Order).filter_by(order_code="BMJ-251003-CCCCCC").one().status == "BELUM_BAYAR"


def test_anonymous_actor_is_denied(db, service):
    result = service.transition(db, Actor.anonymous(), "KP-251003-AAAAAA", "SUDAH_BAYAR", tenant_id=1)

    assert result.kind == ACCESS_DENIED
    assert result.reason == "no_session"


def test_stale_read_cannot_reopen_cancelled_order(db, session_factory, service):
    stale = db.query(Order).filter_by(order_code="KP-251003-AAAAAA").one()
    assert stale.status == "BELUM_BAYAR"

    other = session_factory()
    try:
        with patch("orderflow.services.order_status.emit_order_status_changed"):
            cancelled = service.transition(
                other, Actor(user_id="u-cashier"), "KP-251003-AAAAAA", "DIBATALKAN", tenant_id=1
            )
    finally:
        other.close()
    assert isinstance(cancelled, TransitionSuccess)

    with patch("orderflow.services.order_status.emit_order_status_changed") as emit:
        result = service.transition(db, Actor(user_id="u-cashier"), "KP-251003-AAAAAA", "SUDAH_BAYAR", tenant_id=1)

    assert isinstance(result, TransitionFailure)
    assert result.kind == INVALID_TRANSITION
    assert result.reason == CONCURRENT_UPDATE
    assert "Dibatalkan" in result.message
    emit.assert_not_called()

    fresh = session_factory()
    try:
        assert fresh.query(Order).filter_by(order_code="KP-251003-AAAAAA").one().status == "DIBATALKAN"
    finally:
        fresh.close()


def test_granted_tenant_access_skips_second_authoritative_check(db, service, source):
    granted = Allowed(capability=Capability.TENANT_ACCESS, tenant_id=1)

    with patch("orderflow.services.order_status.emit_order_status_changed"):
        result = service.transition(
            db, Actor(user_id="u-cashier"), "KP-251003-AAAAAA", "SUDAH_BAYAR", tenant_id=1, granted=granted
        )

    assert isinstance(result, TransitionSuccess)
    assert source.calls == []


def test_grant_for_another_tenant_is_not_reused(db, service, source):
    granted = Allowed(capability=Capability.TENANT_ACCESS, tenant_id=1)

    result = service.transition(
        db, Actor(user_id="u-cashier"), "BMJ-251003-CCCCCC", "SUDAH_BAYAR", granted=granted
    )

    assert result.kind == ACCESS_DENIED
    assert source.calls == ["u-cashier"]
