from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderflow.core.config import DEFAULT_TENANT_SLUG
from orderflow.core.database import get_db
from orderflow.deps import get_access_validator, get_actor
from orderflow.services.access_validator import AccessValidator
from orderflow.services.actor import Actor
from orderflow.services.tenant_context import (
    TenantUnresolved,
    load_scope_tenant,
    resolve_tenant_scope,
    scope_to_dict,
)

router = APIRouter(prefix="/api", tags=["context"])


@router.get("/context")
def get_context(
    path: str = Query(default="/"),
    actor: Actor = Depends(get_actor),
    validator: AccessValidator = Depends(get_access_validator),
    db: Session = Depends(get_db),
):
    # memberships come from the authoritative source before the first resolution
    if actor.is_authenticated and not actor.access_loaded:
        validator.revalidate(actor)

    scope = resolve_tenant_scope(actor, path)
    payload = {"scope": scope_to_dict(scope), "tenant": None, "redirect_to": None}
    try:
        tenant = load_scope_tenant(db, scope)
    except TenantUnresolved:
        payload["redirect_to"] = f"/{DEFAULT_TENANT_SLUG}"
        return payload

    payload["tenant"] = {"id": tenant.id, "slug": tenant.slug, "name": tenant.name}
    return payload
