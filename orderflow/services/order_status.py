from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from sqlalchemy.orm import Session

from orderflow.models.order import Order
from orderflow.services.access_validator import AccessValidator, Allowed, Capability, Denied, access_validator
from orderflow.services.actor import Actor
from orderflow.services.order_events import emit_order_status_changed

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    BELUM_BAYAR = "BELUM_BAYAR"
    SUDAH_BAYAR = "SUDAH_BAYAR"
    SEDANG_DISIAPKAN = "SEDANG_DISIAPKAN"
    SIAP_DIAMBIL = "SIAP_DIAMBIL"
    SELESAI = "SELESAI"
    DIBATALKAN = "DIBATALKAN"


INITIAL_STATUS = OrderStatus.BELUM_BAYAR
TERMINAL_STATUSES = frozenset({OrderStatus.SELESAI, OrderStatus.DIBATALKAN})

STATUS_LABELS = {
    OrderStatus.BELUM_BAYAR: "Belum Bayar",
    OrderStatus.SUDAH_BAYAR: "Sudah Bayar",
    OrderStatus.SEDANG_DISIAPKAN: "Sedang Disiapkan",
    OrderStatus.SIAP_DIAMBIL: "Siap Diambil",
    OrderStatus.SELESAI: "Selesai",
    OrderStatus.DIBATALKAN: "Dibatalkan",
}

_FORWARD = {
    OrderStatus.BELUM_BAYAR: OrderStatus.SUDAH_BAYAR,
    OrderStatus.SUDAH_BAYAR: OrderStatus.SEDANG_DISIAPKAN,
    OrderStatus.SEDANG_DISIAPKAN: OrderStatus.SIAP_DIAMBIL,
    OrderStatus.SIAP_DIAMBIL: OrderStatus.SELESAI,
}

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    status: (
        frozenset()
        if status in TERMINAL_STATUSES
        else frozenset({_FORWARD[status], OrderStatus.DIBATALKAN})
    )
    for status in OrderStatus
}

INVALID_TRANSITION = "INVALID_TRANSITION"
ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
CONCURRENT_UPDATE = "concurrent_update"
ACCESS_DENIED = "ACCESS_DENIED"


def parse_status(value: Any) -> OrderStatus | None:
    """Accepts the wire values and the legacy spaced labels ("BELUM BAYAR")."""
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    normalized = "_".join(value.strip().upper().replace("-", " ").split())
    try:
        return OrderStatus(normalized)
    except ValueError:
        return None


def allowed_targets(current: Any) -> list[OrderStatus]:
    status = parse_status(current)
    if status is None:
        return []
    return sorted(ALLOWED_TRANSITIONS[status], key=lambda s: list(OrderStatus).index(s))


def can_transition(current: Any, target: Any) -> bool:
    source = parse_status(current)
    destination = parse_status(target)
    if source is None or destination is None:
        return False
    return destination in ALLOWED_TRANSITIONS[source]


@dataclass(frozen=True)
class TransitionSuccess:
    order: Order
    previous_status: OrderStatus
    ok: bool = True


@dataclass(frozen=True)
class TransitionFailure:
    kind: str
    message: str
    reason: str | None = None
    ok: bool = False


TransitionResult = Union[TransitionSuccess, TransitionFailure]


class OrderStatusService:
    def __init__(self, validator: AccessValidator | None = None) -> None:
        self.validator = validator or access_validator

    def _authorize(self, actor: Actor, tenant_id: int, granted: Allowed | None) -> Denied | None:
        # staff routes already hold tenant_access for their own tenant
        if (
            isinstance(granted, Allowed)
            and granted.capability == Capability.TENANT_ACCESS
            and granted.tenant_id is not None
            and int(granted.tenant_id) == int(tenant_id)
        ):
            return None
        decision = self.validator.authorize(actor, Capability.TENANT_ACCESS, tenant_id=tenant_id)
        return decision if isinstance(decision, Denied) else None

    def transition(
        self,
        db: Session,
        actor: Actor,
        order_code: str,
        target: Any,
        tenant_id: int | None = None,
        *,
        granted: Allowed | None = None,
    ) -> TransitionResult:
        query = db.query(Order).filter(Order.order_code == order_code)
        if tenant_id is not None:
            query = query.filter(Order.tenant_id == tenant_id)
        order = query.first()
        if not order:
            return TransitionFailure(kind=ORDER_NOT_FOUND, message="Pesanan tidak ditemukan.")

        denied = self._authorize(actor, order.tenant_id, granted)
        if denied is not None:
            return TransitionFailure(kind=ACCESS_DENIED, reason=denied.reason, message=denied.message)

        read_status = order.status
        current = parse_status(read_status)
        destination = parse_status(target)
        if current is None or destination is None or not can_transition(current, destination):
            logger.info(
                "Rejected status transition %s -> %s",
                read_status,
                target,
                extra={"order_code": order.order_code, "failure_kind": INVALID_TRANSITION},
            )
            allowed = ", ".join(STATUS_LABELS[s] for s in allowed_targets(current)) if current else ""
            message = f"Status tidak dapat diubah dari {read_status} ke {target}."
            if allowed:
                message += f" Status berikutnya yang diizinkan: {allowed}."
            return TransitionFailure(kind=INVALID_TRANSITION, message=message)

        # compare-and-swap on the status that was checked
        updated = (
            db.query(Order)
            .filter(Order.id == order.id, Order.status == read_status)
            .update(
                {Order.status: destination.value, Order.updated_at: datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        if updated != 1:
            db.rollback()
            db.refresh(order)
            logger.warning(
                "Status transition lost a concurrent update %s -> %s (now %s)",
                read_status,
                destination.value,
                order.status,
                extra={"order_code": order.order_code, "failure_kind": INVALID_TRANSITION},
            )
            latest = parse_status(order.status)
            label = STATUS_LABELS[latest] if latest else order.status
            return TransitionFailure(
                kind=INVALID_TRANSITION,
                reason=CONCURRENT_UPDATE,
                message=f"Status pesanan sudah diubah menjadi {label}. Muat ulang lalu coba lagi.",
            )

        db.commit()
        db.refresh(order)

        try:
            emit_order_status_changed(order, current.value)
        except Exception:
            logger.exception("Failed to emit order.status.changed", extra={"order_code": order.order_code})

        return TransitionSuccess(order=order, previous_status=current)
