from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CartLinePayload(BaseModel):
    item_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    unit_price: int = Field(ge=0)
    qty: int = Field(ge=1, le=999)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("item_id", "name")
    @classmethod
    def strip_required(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Wajib diisi")
        return cleaned


class CustomerPayload(BaseModel):
    name: str = Field(default="", max_length=100)
    phone: str = Field(default="", max_length=32)
    pickup_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class OrderSubmitPayload(BaseModel):
    items: list[CartLinePayload] = Field(default_factory=list)
    customer: CustomerPayload
    payment_method: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=64)


class PricingQuotePayload(BaseModel):
    items: list[CartLinePayload] = Field(default_factory=list)


class PricingQuoteResponse(BaseModel):
    subtotal: int
    discount: int
    delivery_fee: int
    is_free_delivery: bool
    total: int
    meets_minimum: bool
    minimum_order_amount: int
    message: Optional[str] = None
    delivery_fee_text: str
    free_delivery_progress_text: Optional[str] = None


class OrderItemOut(BaseModel):
    menu_item_id: Optional[str]
    name_snapshot: str
    price_snapshot: int
    qty: int
    notes: Optional[str]
    line_total: int


class OrderOut(BaseModel):
    order_code: str
    tenant_id: int
    customer_name: str
    phone: str
    pickup_date: date
    notes: Optional[str]
    subtotal: int
    discount: int
    service_fee: int
    total: int
    payment_method: str
    status: str
    source: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    items: list[OrderItemOut]


class OrderSubmitResponse(BaseModel):
    order: OrderOut
    replayed: bool = False


class StatusUpdatePayload(BaseModel):
    status: str = Field(min_length=1, max_length=32)


class SessionEventPayload(BaseModel):
    event: str


def order_to_dict(order) -> dict:
    return {
        "order_code": order.order_code,
        "tenant_id": order.tenant_id,
        "customer_name": order.customer_name,
        "phone": order.phone,
        "pickup_date": order.pickup_date,
        "notes": order.notes,
        "subtotal": order.subtotal,
        "discount": order.discount,
        "service_fee": order.service_fee,
        "total": order.total,
        "payment_method": order.payment_method,
        "status": order.status,
        "source": order.source,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "items": [
            {
                "menu_item_id": item.menu_item_id,
                "name_snapshot": item.name_snapshot,
                "price_snapshot": item.price_snapshot,
                "qty": item.qty,
                "notes": item.notes,
                "line_total": item.line_total,
            }
            for item in (order.order_items or [])
        ],
    }
