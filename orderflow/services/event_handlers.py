from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from orderflow.core.config import TELEGRAM_BOT_TOKEN
from orderflow.core.database import SessionLocal
from orderflow.core.request_context import tenant_log_context
from orderflow.models.tenant import Tenant
from orderflow.services.event_bus import event_bus
from orderflow.services.order_events import ORDER_CREATED, ORDER_STATUS_CHANGED
from orderflow.services.order_notifications import (
    active_subscriber_chat_ids,
    dispatch_to_subscribers,
    format_order_message,
)

logger = logging.getLogger(__name__)


def _with_session(handler):
    def wrapper(payload: dict) -> None:
        db: Session = SessionLocal()
        try:
            with tenant_log_context(payload.get("tenant_id")):
                handler(db, payload)
        finally:
            db.close()

    wrapper.__name__ = handler.__name__
    wrapper.__wrapped__ = handler
    return wrapper


def _notifications_enabled(tenant: Tenant, source: str | None) -> bool:
    if source == "cashier":
        return bool(tenant.telegram_notify_cashier)
    return bool(tenant.telegram_notify_checkout)


@_with_session
def handle_order_created(db: Session, payload: dict) -> None:
    tenant = db.query(Tenant).filter(Tenant.id == payload["tenant_id"]).first()
    if not tenant:
        logger.warning("Order notification skipped: tenant %s not found", payload["tenant_id"])
        return
    if not _notifications_enabled(tenant, payload.get("source")):
        logger.info("Order notification disabled for source=%s", payload.get("source"))
        return

    bot_token = tenant.telegram_bot_token or TELEGRAM_BOT_TOKEN
    if not bot_token:
        logger.info("Order notification skipped: no bot token configured")
        return

    chat_ids = active_subscriber_chat_ids(db, tenant.id)
    if not chat_ids:
        logger.info("Order notification skipped: no active subscribers")
        return

    message = format_order_message(payload, tenant.name, payload.get("source") or "checkout")
    report = dispatch_to_subscribers(chat_ids, message, bot_token=bot_token)
    logger.info(
        "Order notification dispatched sent=%s failed=%s",
        len(report.sent),
        len(report.failed),
        extra={"order_code": payload.get("order_code")},
    )


def handle_order_status_changed(payload: dict) -> None:
    with tenant_log_context(payload.get("tenant_id")):
        logger.info(
            "Order status changed %s -> %s",
            payload.get("previous_status"),
            payload.get("status"),
            extra={"order_code": payload.get("order_code")},
        )


def register_event_handlers() -> None:
    if handle_order_created not in event_bus.handlers_for(ORDER_CREATED):
        event_bus.subscribe(ORDER_CREATED, handle_order_created)
    if handle_order_status_changed not in event_bus.handlers_for(ORDER_STATUS_CHANGED):
        event_bus.subscribe(ORDER_STATUS_CHANGED, handle_order_status_changed)
