from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union
from urllib.parse import urlsplit

from sqlalchemy.orm import Session

from orderflow.core.config import DEFAULT_TENANT_SLUG
from orderflow.models.tenant import Tenant
from orderflow.services.actor import Actor, TenantMembership
from utils.slug import normalize_slug


logger = logging.getLogger(__name__)

RESERVED_SEGMENTS = frozenset(
    {"admin", "login", "checkout", "orders", "invoice", "success", "auth", "undefined", "null"}
)
# route families matched by substring (admin-dashboard, superadmin-login, ...)
RESERVED_FRAGMENTS = ("admin", "login")


@dataclass(frozen=True)
class AuthenticatedScope:
    membership: TenantMembership
    kind: str = "authenticated"

    @property
    def tenant_id(self) -> int:
        return self.membership.tenant_id

    @property
    def slug(self) -> str:
        return self.membership.tenant_slug

    @property
    def role(self) -> str:
        return self.membership.role


@dataclass(frozen=True)
class AnonymousScope:
    slug: str
    is_default: bool = False
    kind: str = "anonymous"


@dataclass(frozen=True)
class NoTenantScope:
    reason: str
    kind: str = "none"


TenantScope = Union[AuthenticatedScope, AnonymousScope, NoTenantScope]


class TenantUnresolved(Exception):
    def __init__(self, slug: str | None, reason: str = "tenant_not_found") -> None:
        super().__init__(f"Tenant unresolved ({reason}): {slug!r}")
        self.slug = slug
        self.reason = reason


class TenantResolver:
    """Resolve the active tenant scope for an actor and a navigation path."""

    @staticmethod
    def first_path_segment(current_path: str | None) -> str | None:
        path = (current_path or "").strip()
        if "://" in path:
            path = urlsplit(path).path
        path = path.split("?", 1)[0].split("#", 1)[0]
        parts = [part for part in path.split("/") if part.strip()]
        if not parts:
            return None
        return parts[0].strip()

    @staticmethod
    def is_reserved_segment(segment: str) -> bool:
        lowered = segment.lower()
        if lowered in RESERVED_SEGMENTS:
            return True
        return any(fragment in lowered for fragment in RESERVED_FRAGMENTS)

    @classmethod
    def slug_from_path(cls, current_path: str | None) -> str | None:
        segment = cls.first_path_segment(current_path)
        if not segment or cls.is_reserved_segment(segment):
            return None
        return normalize_slug(segment) or None

    @classmethod
    def resolve(
        cls,
        actor: Actor | None,
        current_path: str | None,
        *,
        default_slug: str = DEFAULT_TENANT_SLUG,
    ) -> TenantScope:
        if actor is not None and actor.is_authenticated:
            memberships = actor.memberships
            if memberships:
                return AuthenticatedScope(membership=memberships[0])
            # staff account without memberships never borrows the URL tenant
            return NoTenantScope(reason="no_membership")

        slug = cls.slug_from_path(current_path)
        if slug:
            return AnonymousScope(slug=slug)
        return AnonymousScope(slug=normalize_slug(default_slug), is_default=True)

    @staticmethod
    def load_tenant(db: Session, scope: TenantScope) -> Tenant:
        if isinstance(scope, NoTenantScope):
            raise TenantUnresolved(None, reason=scope.reason)

        if isinstance(scope, AuthenticatedScope):
            tenant = db.query(Tenant).filter(Tenant.id == scope.tenant_id).first()
            if not tenant:
                raise TenantUnresolved(scope.slug)
            return tenant

        tenant = (
            db.query(Tenant)
            .filter(Tenant.slug == scope.slug, Tenant.is_active.is_(True))
            .first()
        )
        if not tenant:
            logger.info("Tenant resolution miss slug=%s default=%s", scope.slug, scope.is_default)
            raise TenantUnresolved(scope.slug)
        return tenant


def resolve_tenant_scope(
    actor: Actor | None,
    current_path: str | None,
    *,
    default_slug: str = DEFAULT_TENANT_SLUG,
) -> TenantScope:
    return TenantResolver.resolve(actor, current_path, default_slug=default_slug)


def load_scope_tenant(db: Session, scope: TenantScope) -> Tenant:
    return TenantResolver.load_tenant(db, scope)


def scope_to_dict(scope: TenantScope) -> dict:
    if isinstance(scope, AuthenticatedScope):
        return {"kind": scope.kind, "tenant_id": scope.tenant_id, "slug": scope.slug, "role": scope.role}
    if isinstance(scope, AnonymousScope):
        return {"kind": scope.kind, "slug": scope.slug, "is_default": scope.is_default}
    return {"kind": scope.kind, "reason": scope.reason}
