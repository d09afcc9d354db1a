# orderflow/deps.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from orderflow.core.config import DEFAULT_TENANT_SLUG
from orderflow.core.database import get_db
from orderflow.core.request_context import set_request_context
from orderflow.models.tenant import Tenant
from orderflow.services.access_validator import (
    DENY_NO_SESSION,
    AccessValidator,
    Allowed,
    Capability,
    Denied,
    access_validator,
)
from orderflow.services.actor import Actor, actor_registry
from orderflow.services.auth import IdentityTokenError, identity_from_token
from orderflow.services.orders import SubmissionFailure
from orderflow.services.tenant_context import (
    AuthenticatedScope,
    TenantUnresolved,
    load_scope_tenant,
    resolve_tenant_scope,
)

# Bearer emitido pelo provedor de identidade; rotas públicas aceitam ausência
bearer_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)

ACCESS_DENIED = "ACCESS_DENIED"
GENERIC_RETRY_MESSAGE = "Terjadi gangguan sementara. Silakan coba lagi."


@dataclass(frozen=True)
class StaffContext:
    actor: Actor
    tenant: Tenant
    role: str
    access: Allowed | None = None

    @property
    def tenant_id(self) -> int:
        return int(self.tenant.id)


def get_access_validator() -> AccessValidator:
    return access_validator


def get_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """Actor for the bearer token; anonymous when no token is sent."""
    if credentials is None or not credentials.credentials:
        actor = Actor.anonymous()
        request.state.actor = actor
        return actor

    try:
        identity = identity_from_token(credentials.credentials)
    except IdentityTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"kind": ACCESS_DENIED, "reason": DENY_NO_SESSION, "message": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    actor = actor_registry.actor_for(identity)
    request.state.actor = actor
    set_request_context(user_id=actor.user_id)
    return actor


def raise_for_denial(decision: Denied) -> None:
    status_code = status.HTTP_401_UNAUTHORIZED if decision.reason == DENY_NO_SESSION else status.HTTP_403_FORBIDDEN
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    raise HTTPException(
        status_code=status_code,
        detail={"kind": ACCESS_DENIED, "reason": decision.reason, "message": decision.message},
        headers=headers,
    )


def raise_for_submission_failure(failure: SubmissionFailure) -> None:
    if failure.is_infrastructure:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"kind": failure.kind, "reason": None, "message": failure.message},
        )
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"kind": failure.kind, "reason": failure.reason, "message": failure.message},
    )


def redirect_to_default_landing(exc: TenantUnresolved) -> HTTPException:
    logger.info("Tenant unresolved (%s) slug=%s; redirecting to default landing", exc.reason, exc.slug)
    return HTTPException(
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Location": f"/{DEFAULT_TENANT_SLUG}"},
    )


def require_capability(capability: Capability) -> Callable[..., Actor]:
    def dependency(
        actor: Actor = Depends(get_actor),
        validator: AccessValidator = Depends(get_access_validator),
    ) -> Actor:
        decision = validator.authorize(actor, capability)
        if isinstance(decision, Denied):
            raise_for_denial(decision)
        return actor

    return dependency


def get_store_tenant(slug: str, db: Session = Depends(get_db)) -> Tenant:
    """Tenant for public storefront routes; always resolved as an anonymous visitor."""
    scope = resolve_tenant_scope(None, f"/{slug}")
    try:
        tenant = load_scope_tenant(db, scope)
    except TenantUnresolved as exc:
        raise redirect_to_default_landing(exc) from exc
    set_request_context(tenant_id=tenant.id)
    return tenant


def get_staff_context(
    request: Request,
    actor: Actor = Depends(get_actor),
    validator: AccessValidator = Depends(get_access_validator),
    db: Session = Depends(get_db),
) -> StaffContext:
    """Staff routes: tenant_access on the actor's own tenant, re-resolved per request."""
    decision = validator.authorize(actor, Capability.TENANT_ACCESS)
    if isinstance(decision, Denied):
        raise_for_denial(decision)

    scope = resolve_tenant_scope(actor, request.url.path)
    if not isinstance(scope, AuthenticatedScope):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "kind": ACCESS_DENIED,
                "reason": "insufficient_role",
                "message": "Akun ini belum terhubung ke toko mana pun.",
            },
        )
    try:
        tenant = load_scope_tenant(db, scope)
    except TenantUnresolved as exc:
        raise redirect_to_default_landing(exc) from exc

    set_request_context(tenant_id=tenant.id)
    access = decision if isinstance(decision, Allowed) and decision.tenant_id == tenant.id else None
    return StaffContext(actor=actor, tenant=tenant, role=scope.role, access=access)
