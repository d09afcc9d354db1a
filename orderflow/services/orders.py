from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderflow.models.order import Order
from orderflow.models.order_item import OrderItem
from orderflow.models.tenant import Tenant
from orderflow.services.cart import Cart
from orderflow.services.order_codes import generate_order_code, prefix_for_tenant, store_now
from orderflow.services.order_events import emit_order_created
from orderflow.services.order_status import INITIAL_STATUS
from orderflow.services.payment_methods import PaymentInvalid, available_methods, validate_selection
from orderflow.services.pricing import PricingConfig, PricingInvalid, calculate, meets_minimum

logger = logging.getLogger(__name__)

EMPTY_CART = "EMPTY_CART"
INVALID_CUSTOMER = "INVALID_CUSTOMER"
INVALID_PAYMENT = "INVALID_PAYMENT"
BELOW_MINIMUM = "BELOW_MINIMUM"
TENANT_UNRESOLVED = "TENANT_UNRESOLVED"
PARTIAL_PERSISTENCE = "PARTIAL_PERSISTENCE"
PERSISTENCE_UNAVAILABLE = "PERSISTENCE_UNAVAILABLE"

INFRASTRUCTURE_FAILURES = frozenset({PARTIAL_PERSISTENCE, PERSISTENCE_UNAVAILABLE})

SOURCE_CHECKOUT = "checkout"
SOURCE_CASHIER = "cashier"

RETRY_MESSAGE = "Pesanan gagal disimpan. Silakan coba lagi dalam beberapa saat."
EMPTY_CART_MESSAGE = "Keranjang masih kosong. Tambahkan menu terlebih dahulu."
CASHIER_DEFAULT_NAME = "Customer"
CASHIER_NO_PHONE = "Tidak ada"

NAME_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 500


def normalize_phone(phone: str) -> str:
    """Indonesian number to +62 form: 0812... / 812... / 62812... -> +62812..."""
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        raise ValueError("Nomor telepon wajib diisi.")
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    elif not digits.startswith("62"):
        digits = "62" + digits
    if not 9 <= len(digits) <= 15:
        raise ValueError("Nomor telepon tidak valid.")
    return "+" + digits


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str | None = None
    pickup_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SubmissionSuccess:
    order: Order
    replayed: bool = False
    ok: bool = True


@dataclass(frozen=True)
class SubmissionFailure:
    kind: str
    message: str
    reason: str | None = None
    ok: bool = False

    @property
    def is_infrastructure(self) -> bool:
        return self.kind in INFRASTRUCTURE_FAILURES


SubmissionResult = Union[SubmissionSuccess, SubmissionFailure]


class _PersistenceError(Exception):
    def __init__(self, order_flushed: bool) -> None:
        super().__init__("order persistence failed")
        self.order_flushed = order_flushed


class OrderSubmissionService:
    """Checkout/cashier submission pipeline.

    Steps run strictly in order and stop at the first failure: cart,
    customer data, payment method, pricing, code generation, one-transaction
    persistence. Notification happens only after the commit and can never
    turn a persisted order into a failure.
    """

    def __init__(
        self,
        *,
        code_generator: Callable[..., str] = generate_order_code,
        clock: Callable[[], datetime] = store_now,
        on_created: Callable[[Order], None] = emit_order_created,
    ) -> None:
        self.code_generator = code_generator
        self.clock = clock
        self.on_created = on_created

    # -- validation -----------------------------------------------------

    def _validate_customer(self, customer: CustomerInfo, source: str) -> CustomerInfo | SubmissionFailure:
        today = self.clock().date()
        name = (customer.name or "").strip()
        if not name and source == SOURCE_CASHIER:
            name = CASHIER_DEFAULT_NAME
        if not name:
            return SubmissionFailure(kind=INVALID_CUSTOMER, reason="name", message="Nama wajib diisi.")
        if len(name) > NAME_MAX_LENGTH:
            return SubmissionFailure(
                kind=INVALID_CUSTOMER,
                reason="name",
                message=f"Nama maksimal {NAME_MAX_LENGTH} karakter.",
            )

        raw_phone = (customer.phone or "").strip()
        if not raw_phone and source == SOURCE_CASHIER:
            phone = CASHIER_NO_PHONE
        else:
            try:
                phone = normalize_phone(raw_phone)
            except ValueError as exc:
                return SubmissionFailure(kind=INVALID_CUSTOMER, reason="phone", message=str(exc))

        pickup_date = customer.pickup_date
        if pickup_date is None:
            if source != SOURCE_CASHIER:
                return SubmissionFailure(
                    kind=INVALID_CUSTOMER,
                    reason="pickup_date",
                    message="Silakan pilih tanggal pengambilan.",
                )
            pickup_date = today
        elif pickup_date < today:
            return SubmissionFailure(
                kind=INVALID_CUSTOMER,
                reason="pickup_date",
                message="Tanggal pengambilan tidak boleh di masa lalu.",
            )

        notes = (customer.notes or "").strip() or None
        if notes and len(notes) > NOTES_MAX_LENGTH:
            return SubmissionFailure(
                kind=INVALID_CUSTOMER,
                reason="notes",
                message=f"Catatan maksimal {NOTES_MAX_LENGTH} karakter.",
            )

        return replace(customer, name=name, phone=phone, pickup_date=pickup_date, notes=notes)

    # -- persistence ----------------------------------------------------

    @staticmethod
    def find_by_idempotency_key(db: Session, tenant_id: int, idempotency_key: str) -> Order | None:
        return (
            db.query(Order)
            .filter(Order.tenant_id == tenant_id, Order.idempotency_key == idempotency_key)
            .first()
        )

    @staticmethod
    def _build_items(order: Order, cart: Cart, tenant_id: int) -> list[OrderItem]:
        return [
            OrderItem(
                tenant_id=tenant_id,
                order_id=order.id,
                menu_item_id=str(line.item_id) if line.item_id else None,
                name_snapshot=line.name,
                price_snapshot=line.unit_price,
                qty=line.qty,
                notes=line.notes,
                line_total=line.line_total,
            )
            for line in cart
        ]

    def _persist(self, db: Session, order: Order, cart: Cart, tenant_id: int) -> None:
        order_flushed = False
        try:
            db.add(order)
            db.flush()
            order_flushed = True
            for item in self._build_items(order, cart, tenant_id):
                db.add(item)
            db.flush()
            db.commit()
        except Exception as exc:
            db.rollback()
            raise _PersistenceError(order_flushed) from exc

    @staticmethod
    def _compensate(db: Session, order_code: str) -> None:
        """Remove any row left behind under ``order_code`` after a failed write."""
        try:
            orphans = db.query(Order).filter(Order.order_code == order_code).all()
            for orphan in orphans:
                db.delete(orphan)
            if orphans:
                db.commit()
                logger.warning(
                    "Removed orphan order after failed submission",
                    extra={"order_code": order_code},
                )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Compensating delete failed", extra={"order_code": order_code})

    # -- pipeline -------------------------------------------------------

    def submit(
        self,
        db: Session,
        tenant_id: int,
        cart: Cart,
        customer: CustomerInfo,
        payment_method: str | None,
        *,
        source: str = SOURCE_CHECKOUT,
        idempotency_key: str | None = None,
    ) -> SubmissionResult:
        idempotency_key = (idempotency_key or "").strip() or None
        if idempotency_key:
            existing = self.find_by_idempotency_key(db, tenant_id, idempotency_key)
            if existing:
                logger.info("Idempotent replay of order", extra={"order_code": existing.order_code})
                return SubmissionSuccess(order=existing, replayed=True)

        if cart is None or cart.is_empty:
            return SubmissionFailure(kind=EMPTY_CART, message=EMPTY_CART_MESSAGE)

        validated = self._validate_customer(customer, source)
        if isinstance(validated, SubmissionFailure):
            return validated
        customer = validated

        selection = validate_selection(payment_method, available_methods(db, tenant_id))
        if isinstance(selection, PaymentInvalid):
            return SubmissionFailure(kind=INVALID_PAYMENT, reason=selection.reason, message=selection.message)

        # pricing is always re-read from the tenant row
        tenant = db.query(Tenant).filter(Tenant.id == tenant_id).populate_existing().first()
        if not tenant:
            return SubmissionFailure(kind=TENANT_UNRESOLVED, message="Toko tidak ditemukan.")
        config = PricingConfig.from_tenant(tenant)
        subtotal = cart.subtotal()
        minimum_check = meets_minimum(subtotal, config)
        if isinstance(minimum_check, PricingInvalid):
            return SubmissionFailure(kind=BELOW_MINIMUM, message=minimum_check.message)
        breakdown = calculate(subtotal, config)

        order_code = self.code_generator(prefix_for_tenant(tenant), self.clock())
        order = Order(
            order_code=order_code,
            tenant_id=tenant_id,
            customer_name=customer.name,
            phone=customer.phone,
            pickup_date=customer.pickup_date,
            notes=customer.notes,
            subtotal=breakdown.subtotal,
            discount=breakdown.discount,
            service_fee=breakdown.delivery_fee,
            total=breakdown.total,
            payment_method=selection.method,
            status=INITIAL_STATUS.value,
            source=source,
            idempotency_key=idempotency_key,
        )

        try:
            self._persist(db, order, cart, tenant_id)
        except _PersistenceError as exc:
            kind = PARTIAL_PERSISTENCE if exc.order_flushed else PERSISTENCE_UNAVAILABLE
            logger.error(
                "Order persistence failed tenant_id=%s source=%s items=%s total=%s",
                tenant_id,
                source,
                len(cart),
                breakdown.total,
                exc_info=exc.__cause__,
                extra={"order_code": order_code, "failure_kind": kind},
            )
            self._compensate(db, order_code)
            if idempotency_key:
                # a concurrent submission with the same key may have won the race
                existing = self.find_by_idempotency_key(db, tenant_id, idempotency_key)
                if existing:
                    return SubmissionSuccess(order=existing, replayed=True)
            return SubmissionFailure(kind=kind, message=RETRY_MESSAGE)

        db.refresh(order)
        cart.clear()
        logger.info(
            "Order created tenant_id=%s source=%s total=%s",
            tenant_id,
            source,
            order.total,
            extra={"order_code": order.order_code},
        )

        try:
            self.on_created(order)
        except Exception:
            logger.exception("Order notification handoff failed", extra={"order_code": order.order_code})

        return SubmissionSuccess(order=order)


order_submission_service = OrderSubmissionService()
