from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Union

from sqlalchemy.orm import Session

from orderflow.models.payment_method import PaymentMethod

logger = logging.getLogger(__name__)

PAYMENT_TRANSFER = "TRANSFER"
PAYMENT_QRIS = "QRIS"
PAYMENT_COD = "COD"
KNOWN_PAYMENT_TYPES = (PAYMENT_TRANSFER, PAYMENT_QRIS, PAYMENT_COD)

REASON_EMPTY = "empty"
REASON_UNKNOWN_TYPE = "unknown_type"
REASON_UNAVAILABLE = "unavailable_for_tenant"

PAYMENT_MESSAGES = {
    REASON_EMPTY: "Silakan pilih metode pembayaran terlebih dahulu.",
    REASON_UNKNOWN_TYPE: "Metode pembayaran tidak valid.",
    REASON_UNAVAILABLE: "Metode pembayaran yang dipilih tidak tersedia.",
}


@dataclass(frozen=True)
class PaymentValid:
    method: str
    ok: bool = True


@dataclass(frozen=True)
class PaymentInvalid:
    reason: str
    message: str
    ok: bool = False


PaymentSelection = Union[PaymentValid, PaymentInvalid]


def _invalid(reason: str) -> PaymentInvalid:
    return PaymentInvalid(reason=reason, message=PAYMENT_MESSAGES[reason])


def _active_rows(db: Session, tenant_id: int) -> list[PaymentMethod]:
    return (
        db.query(PaymentMethod)
        .filter(PaymentMethod.tenant_id == tenant_id, PaymentMethod.is_active.is_(True))
        .order_by(PaymentMethod.sort_order.asc(), PaymentMethod.id.asc())
        .all()
    )


def available_methods(db: Session, tenant_id: int) -> list[str]:
    """Active payment types for the tenant, in display order, read fresh every call."""
    methods: list[str] = []
    for row in _active_rows(db, tenant_id):
        payment_type = (row.payment_type or "").strip().upper()
        if payment_type not in KNOWN_PAYMENT_TYPES:
            logger.warning(
                "Ignoring payment method with unknown type tenant_id=%s id=%s type=%s",
                tenant_id,
                row.id,
                row.payment_type,
            )
            continue
        if payment_type not in methods:
            methods.append(payment_type)
    return methods


def validate_selection(selected: Any, available: Iterable[str] | None) -> PaymentSelection:
    if not isinstance(selected, str) or not selected.strip():
        return _invalid(REASON_EMPTY)
    method = selected.strip().upper()
    if method not in KNOWN_PAYMENT_TYPES:
        return _invalid(REASON_UNKNOWN_TYPE)
    available_set = {str(item).strip().upper() for item in (available or ()) if item is not None}
    if method not in available_set:
        return _invalid(REASON_UNAVAILABLE)
    return PaymentValid(method=method)


def _option_dict(row: PaymentMethod) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "payment_type": (row.payment_type or "").upper(),
    }
    if payload["payment_type"] == PAYMENT_TRANSFER:
        payload.update(
            {
                "bank_name": row.bank_name,
                "account_number": row.account_number,
                "account_holder": row.account_holder,
            }
        )
    elif payload["payment_type"] == PAYMENT_QRIS:
        payload["qris_image_url"] = row.qris_image_url
    return payload


def list_payment_options(db: Session, tenant_id: int) -> list[dict[str, Any]]:
    return [
        _option_dict(row)
        for row in _active_rows(db, tenant_id)
        if (row.payment_type or "").strip().upper() in KNOWN_PAYMENT_TYPES
    ]
