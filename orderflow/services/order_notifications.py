from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy.orm import Session

from orderflow.core.config import STORE_TIMEZONE
from orderflow.integrations.telegram import send_message
from orderflow.models.telegram_subscriber import TelegramSubscriber
from orderflow.services.pricing import format_rupiah

logger = logging.getLogger(__name__)

_MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)

SOURCE_LABELS = {
    "checkout": "🌐 <b>Order Online</b>",
    "cashier": "🛒 <b>Order Kasir</b>",
}


@dataclass
class DispatchReport:
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.sent) + len(self.failed)


def _esc(value: Any) -> str:
    return html.escape(str(value if value is not None else ""), quote=False)


def format_order_time(created_at: datetime | None) -> str:
    moment = created_at or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(STORE_TIMEZONE)
    return f"{local.day} {_MONTHS_ID[local.month - 1]} {local.year} {local.hour:02d}.{local.minute:02d}"


def format_order_message(order: Mapping[str, Any], tenant_name: str, source: str) -> str:
    source_text = SOURCE_LABELS.get(source, SOURCE_LABELS["checkout"])
    order_time = format_order_time(order.get("created_at"))

    lines = [
        "🆕 <b>ORDER BARU</b>",
        "",
        source_text,
        f"🏪 <b>{_esc(tenant_name)}</b>",
        f"📅 {order_time}",
        "",
        "📋 <b>Detail Order:</b>",
        f"🆔 Kode: <code>{_esc(order.get('order_code'))}</code>",
        f"👤 Customer: <b>{_esc(order.get('customer_name'))}</b>",
        f"📞 Phone: <code>{_esc(order.get('phone'))}</code>",
        f"💳 Payment: <b>{_esc(order.get('payment_method'))}</b>",
        f"💰 Total: <b>{format_rupiah(int(order.get('total') or 0))}</b>",
        f"📊 Status: <b>{_esc(order.get('status'))}</b>",
        "",
    ]

    items: Sequence[Mapping[str, Any]] = order.get("items") or []
    if items:
        lines.append("🍽️ <b>Items:</b>")
        for index, item in enumerate(items, start=1):
            price = int(item.get("price_snapshot") or 0)
            qty = int(item.get("qty") or 0)
            lines.append(f"{index}. {_esc(item.get('name_snapshot'))}")
            lines.append(f"   💰 {format_rupiah(price)} × {qty} = <b>{format_rupiah(price * qty)}</b>")
            if item.get("notes"):
                lines.append(f"   📝 Note: {_esc(item['notes'])}")
            lines.append("")

    if order.get("notes"):
        lines.append(f"📝 <b>Catatan:</b> {_esc(order['notes'])}")
        lines.append("")

    lines.append(f"⏰ <i>Diterima pada {order_time}</i>")
    return "\n".join(lines)


def active_subscriber_chat_ids(db: Session, tenant_id: int) -> list[str]:
    rows = (
        db.query(TelegramSubscriber.chat_id)
        .filter(TelegramSubscriber.tenant_id == tenant_id, TelegramSubscriber.is_active.is_(True))
        .order_by(TelegramSubscriber.id.asc())
        .all()
    )
    return [str(row[0]) for row in rows]


def dispatch_to_subscribers(
    chat_ids: Sequence[str],
    message: str,
    *,
    bot_token: str | None = None,
    sender: Callable[..., Any] = send_message,
) -> DispatchReport:
    """Send one message to each chat; a failing chat never stops the others."""
    report = DispatchReport()
    for chat_id in chat_ids:
        try:
            sender(chat_id, message, bot_token=bot_token)
        except Exception as exc:
            report.failed.append(chat_id)
            logger.warning("Telegram notification failed chat_id=%s error=%s", chat_id, exc)
            continue
        report.sent.append(chat_id)
    return report
