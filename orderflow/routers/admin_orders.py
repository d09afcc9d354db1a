from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import desc
from sqlalchemy.orm import Session

from orderflow.core.database import get_db
from orderflow.deps import (
    StaffContext,
    get_access_validator,
    get_actor,
    get_staff_context,
    raise_for_denial,
    raise_for_submission_failure,
)
from orderflow.models.order import Order
from orderflow.routers.store import cart_from_payload
from orderflow.schemas.orders import (
    OrderOut,
    OrderSubmitPayload,
    OrderSubmitResponse,
    StatusUpdatePayload,
    order_to_dict,
)
from orderflow.services.access_validator import AccessValidator, Allowed, Capability
from orderflow.services.actor import Actor
from orderflow.services.order_status import (
    ACCESS_DENIED,
    INVALID_TRANSITION,
    ORDER_NOT_FOUND,
    OrderStatusService,
    TransitionFailure,
    allowed_targets,
    parse_status,
)
from orderflow.services.orders import SOURCE_CASHIER, CustomerInfo, SubmissionFailure, order_submission_service

router = APIRouter(prefix="/api/admin", tags=["admin-orders"])


@router.post("/orders", response_model=OrderSubmitResponse, status_code=201)
def submit_cashier_order(
    payload: OrderSubmitPayload,
    staff: StaffContext = Depends(get_staff_context),
    db: Session = Depends(get_db),
):
    result = order_submission_service.submit(
        db,
        staff.tenant_id,
        cart_from_payload(payload.items),
        CustomerInfo(
            name=payload.customer.name,
            phone=payload.customer.phone,
            pickup_date=payload.customer.pickup_date,
            notes=payload.customer.notes,
        ),
        payload.payment_method,
        source=SOURCE_CASHIER,
        idempotency_key=payload.idempotency_key,
    )
    if isinstance(result, SubmissionFailure):
        raise_for_submission_failure(result)
    return {"order": order_to_dict(result.order), "replayed": result.replayed}


@router.get("/orders", response_model=list[OrderOut])
def list_orders(
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    staff: StaffContext = Depends(get_staff_context),
    db: Session = Depends(get_db),
):
    query = db.query(Order).filter(Order.tenant_id == staff.tenant_id)
    if status:
        parsed = parse_status(status)
        if parsed is None:
            raise HTTPException(status_code=422, detail=f"Status tidak dikenal: {status}")
        query = query.filter(Order.status == parsed.value)
    orders = query.order_by(desc(Order.created_at), desc(Order.id)).limit(limit).all()
    return [order_to_dict(order) for order in orders]


@router.patch("/orders/{order_code}/status")
def update_order_status(
    order_code: str,
    payload: StatusUpdatePayload,
    staff: StaffContext = Depends(get_staff_context),
    validator: AccessValidator = Depends(get_access_validator),
    db: Session = Depends(get_db),
):
    service = OrderStatusService(validator=validator)
    result = service.transition(
        db,
        staff.actor,
        order_code.strip().upper(),
        payload.status,
        tenant_id=staff.tenant_id,
        granted=staff.access,
    )
    if isinstance(result, TransitionFailure):
        if result.kind == ORDER_NOT_FOUND:
            raise HTTPException(status_code=404, detail=result.message)
        if result.kind == ACCESS_DENIED:
            raise HTTPException(
                status_code=403,
                detail={"kind": ACCESS_DENIED, "reason": result.reason, "message": result.message},
            )
        raise HTTPException(
            status_code=409,
            detail={"kind": INVALID_TRANSITION, "reason": result.reason, "message": result.message},
        )

    order = result.order
    return {
        "order": order_to_dict(order),
        "previous_status": result.previous_status.value,
        "allowed_next": [s.value for s in allowed_targets(order.status)],
    }


@router.get("/access")
def check_access(
    capability: Capability = Query(default=Capability.TENANT_ACCESS),
    tenant_id: int | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    validator: AccessValidator = Depends(get_access_validator),
):
    decision = validator.authorize(actor, capability, tenant_id=tenant_id)
    if not isinstance(decision, Allowed):
        raise_for_denial(decision)
    return {
        "allowed": True,
        "capability": decision.capability.value,
        "tenant_id": decision.tenant_id,
        "is_super_admin": actor.is_super_admin,
        "memberships": [m.to_dict() for m in actor.memberships],
    }
