from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"

# decreasing privilege inside one tenant
TENANT_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER)


def normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


@dataclass(frozen=True)
class TenantMembership:
    tenant_id: int
    tenant_slug: str
    tenant_name: str
    role: str

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "TenantMembership":
        role = normalize_role(raw.get("role"))
        if role not in TENANT_ROLES:
            raise ValueError(f"Unknown membership role: {raw.get('role')!r}")
        tenant_id = raw.get("tenant_id")
        if tenant_id is None:
            raise ValueError("Membership without tenant_id")
        return cls(
            tenant_id=int(tenant_id),
            tenant_slug=str(raw.get("tenant_slug") or ""),
            tenant_name=str(raw.get("tenant_name") or ""),
            role=role,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "tenant_slug": self.tenant_slug,
            "tenant_name": self.tenant_name,
            "role": self.role,
        }


@dataclass(frozen=True)
class AccessStatus:
    """Answer of the authoritative access-status query."""

    is_super_admin: bool = False
    memberships: tuple[TenantMembership, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AccessStatus":
        if not isinstance(payload, Mapping):
            raise ValueError("Access status payload must be an object")
        raw_memberships = payload.get("memberships") or []
        if not isinstance(raw_memberships, list):
            raise ValueError("Access status memberships must be a list")
        return cls(
            is_super_admin=bool(payload.get("is_super_admin", False)),
            memberships=tuple(TenantMembership.from_payload(item) for item in raw_memberships),
        )


NO_ACCESS = AccessStatus()


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str | None = None


class Actor:
    """Caller of the ordering engine, signed-in or anonymous.

    Holds the cached membership data used by the fast authorization tier.
    Access data is only ever swapped as a whole, under the actor lock.
    """

    def __init__(
        self,
        user_id: str | None = None,
        email: str | None = None,
        memberships: Iterable[TenantMembership] = (),
        is_super_admin: bool = False,
    ) -> None:
        self.user_id = user_id
        self.email = email
        self._lock = Lock()
        self._access = AccessStatus(is_super_admin=bool(is_super_admin), memberships=tuple(memberships))
        self.access_loaded = False
        self.access_checked_at: float | None = None

    @classmethod
    def anonymous(cls) -> "Actor":
        return cls()

    @classmethod
    def from_identity(cls, identity: Identity) -> "Actor":
        return cls(user_id=identity.user_id, email=identity.email)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def memberships(self) -> tuple[TenantMembership, ...]:
        return self.access_snapshot().memberships

    @property
    def is_super_admin(self) -> bool:
        return self.access_snapshot().is_super_admin

    def access_snapshot(self) -> AccessStatus:
        with self._lock:
            return self._access

    def membership_for(self, tenant_id: int | None) -> TenantMembership | None:
        if tenant_id is None:
            return None
        for membership in self.memberships:
            if int(membership.tenant_id) == int(tenant_id):
                return membership
        return None

    def replace_access(self, status: AccessStatus) -> None:
        with self._lock:
            self._access = status
            self.access_loaded = True
            self.access_checked_at = time.monotonic()

    def revoke_access(self) -> None:
        # not an authoritative answer: the next check goes back to the source
        with self._lock:
            self._access = NO_ACCESS
            self.access_loaded = False

    def invalidate_access(self) -> None:
        with self._lock:
            self.access_loaded = False


class SessionEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


@dataclass
class ActorRegistry:
    """Per-identity actor cache, driven by identity-provider session events."""

    _actors: dict[str, Actor] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock)

    def get(self, user_id: str) -> Actor | None:
        with self._lock:
            return self._actors.get(user_id)

    def actor_for(self, identity: Identity) -> Actor:
        with self._lock:
            actor = self._actors.get(identity.user_id)
            if actor is None:
                actor = Actor.from_identity(identity)
                self._actors[identity.user_id] = actor
            elif identity.email and actor.email != identity.email:
                actor.email = identity.email
            return actor

    def handle_session_event(self, event: SessionEvent, identity: Identity) -> Actor | None:
        if event == SessionEvent.SIGNED_OUT:
            with self._lock:
                actor = self._actors.pop(identity.user_id, None)
            if actor is not None:
                actor.revoke_access()
            logger.info("Session signed out user_id=%s", identity.user_id)
            return None

        actor = self.actor_for(identity)
        actor.invalidate_access()
        logger.info("Session event %s user_id=%s", event.value, identity.user_id)
        return actor

    def clear(self) -> None:
        with self._lock:
            self._actors.clear()


actor_registry = ActorRegistry()
