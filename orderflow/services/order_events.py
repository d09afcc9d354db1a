from __future__ import annotations

from orderflow.models.order import Order
from orderflow.services.event_bus import event_bus

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status.changed"


def _normalize_status(status: str | None) -> str:
    return (status or "").strip().upper()


def build_order_payload(order: Order, previous_status: str | None = None) -> dict:
    return {
        "order_id": order.id,
        "order_code": order.order_code,
        "tenant_id": order.tenant_id,
        "status": _normalize_status(order.status),
        "previous_status": _normalize_status(previous_status) if previous_status else None,
        "source": order.source,
        "customer_name": order.customer_name,
        "phone": order.phone,
        "payment_method": order.payment_method,
        "total": int(order.total or 0),
        "notes": order.notes,
        "created_at": order.created_at,
        "items": [
            {
                "name_snapshot": item.name_snapshot,
                "price_snapshot": int(item.price_snapshot or 0),
                "qty": int(item.qty or 0),
                "notes": item.notes,
            }
            for item in (order.order_items or [])
        ],
    }


def emit_order_created(order: Order) -> None:
    event_bus.emit(ORDER_CREATED, build_order_payload(order))


def emit_order_status_changed(order: Order, previous_status: str | None) -> None:
    if previous_status and _normalize_status(previous_status) == _normalize_status(order.status):
        return
    event_bus.emit(ORDER_STATUS_CHANGED, build_order_payload(order, previous_status=previous_status))
