from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from orderflow.core.database import get_db
from orderflow.deps import get_store_tenant, raise_for_submission_failure
from orderflow.models.order import Order
from orderflow.models.tenant import Tenant
from orderflow.schemas.orders import (
    OrderOut,
    OrderSubmitPayload,
    OrderSubmitResponse,
    PricingQuotePayload,
    PricingQuoteResponse,
    order_to_dict,
)
from orderflow.services.cart import Cart, CartLine
from orderflow.services.orders import (
    SOURCE_CHECKOUT,
    CustomerInfo,
    SubmissionFailure,
    order_submission_service,
)
from orderflow.services.payment_methods import available_methods, list_payment_options
from orderflow.services.pricing import (
    PricingConfig,
    PricingInvalid,
    calculate,
    delivery_fee_text,
    free_delivery_progress_text,
    meets_minimum,
)

router = APIRouter(prefix="/api/store", tags=["store"])


def cart_from_payload(items) -> Cart:
    return Cart.from_lines(
        CartLine(
            item_id=item.item_id,
            name=item.name,
            unit_price=item.unit_price,
            qty=item.qty,
            notes=(item.notes or "").strip() or None,
        )
        for item in items
    )


@router.get("/{slug}/payment-methods")
def get_payment_methods(
    tenant: Tenant = Depends(get_store_tenant),
    db: Session = Depends(get_db),
):
    return {
        "tenant_id": tenant.id,
        "methods": available_methods(db, tenant.id),
        "options": list_payment_options(db, tenant.id),
    }


@router.post("/{slug}/pricing/quote", response_model=PricingQuoteResponse)
def quote_pricing(
    payload: PricingQuotePayload,
    tenant: Tenant = Depends(get_store_tenant),
):
    config = PricingConfig.from_tenant(tenant)
    subtotal = cart_from_payload(payload.items).subtotal()
    breakdown = calculate(subtotal, config)
    minimum_check = meets_minimum(subtotal, config)
    return PricingQuoteResponse(
        **breakdown.to_dict(),
        meets_minimum=not isinstance(minimum_check, PricingInvalid),
        minimum_order_amount=config.minimum_order_amount,
        message=minimum_check.message if isinstance(minimum_check, PricingInvalid) else None,
        delivery_fee_text=delivery_fee_text(subtotal, config),
        free_delivery_progress_text=free_delivery_progress_text(subtotal, config),
    )


@router.post("/{slug}/orders", response_model=OrderSubmitResponse, status_code=201)
def submit_checkout_order(
    payload: OrderSubmitPayload,
    tenant: Tenant = Depends(get_store_tenant),
    db: Session = Depends(get_db),
):
    result = order_submission_service.submit(
        db,
        tenant.id,
        cart_from_payload(payload.items),
        CustomerInfo(
            name=payload.customer.name,
            phone=payload.customer.phone,
            pickup_date=payload.customer.pickup_date,
            notes=payload.customer.notes,
        ),
        payload.payment_method,
        source=SOURCE_CHECKOUT,
        idempotency_key=payload.idempotency_key,
    )
    if isinstance(result, SubmissionFailure):
        raise_for_submission_failure(result)
    return {"order": order_to_dict(result.order), "replayed": result.replayed}


@router.get("/{slug}/orders/{order_code}", response_model=OrderOut)
def get_checkout_order(
    order_code: str,
    tenant: Tenant = Depends(get_store_tenant),
    db: Session = Depends(get_db),
):
    order = (
        db.query(Order)
        .filter(Order.tenant_id == tenant.id, Order.order_code == order_code.strip().upper())
        .first()
    )
    if not order:
        raise HTTPException(status_code=404, detail="Pesanan tidak ditemukan.")
    return order_to_dict(order)
