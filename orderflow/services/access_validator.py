from __future__ import annotations

import logging
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Union

from orderflow.services.access_status import AccessStatusSource, build_access_status_source
from orderflow.services.actor import ROLE_ADMIN, ROLE_SUPER_ADMIN, AccessStatus, Actor
from orderflow.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    NONE = "none"
    TENANT_ACCESS = "tenant_access"
    TENANT_ADMIN = "tenant_admin"
    SUPER_ADMIN = "super_admin"


DENY_NO_SESSION = "no_session"
DENY_INSUFFICIENT_ROLE = "insufficient_role"
DENY_VALIDATION_UNREACHABLE = "validation_unreachable"

DENIAL_MESSAGES = {
    DENY_NO_SESSION: "Silakan login terlebih dahulu.",
    DENY_INSUFFICIENT_ROLE: "Anda tidak memiliki izin untuk mengakses halaman ini.",
    DENY_VALIDATION_UNREACHABLE: "Gagal memverifikasi akses. Silakan coba lagi.",
}

TENANT_ADMIN_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN})


@dataclass(frozen=True)
class Allowed:
    capability: Capability
    tenant_id: int | None = None

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    reason: str
    capability: Capability
    tenant_id: int | None = None

    @property
    def allowed(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return DENIAL_MESSAGES.get(self.reason, DENIAL_MESSAGES[DENY_INSUFFICIENT_ROLE])


AccessDecision = Union[Allowed, Denied]


def _target_tenant_id(access: AccessStatus, tenant_id: int | None) -> int | None:
    if tenant_id is not None:
        return int(tenant_id)
    if access.memberships:
        return int(access.memberships[0].tenant_id)
    return None


def evaluate_capability(access: AccessStatus, capability: Capability, tenant_id: int | None = None) -> bool:
    if capability == Capability.NONE:
        return True
    if capability == Capability.SUPER_ADMIN:
        return bool(access.is_super_admin)

    target = _target_tenant_id(access, tenant_id)
    if target is None:
        return False
    membership = next((m for m in access.memberships if int(m.tenant_id) == target), None)
    if membership is None:
        return False
    if capability == Capability.TENANT_ACCESS:
        return True
    if capability == Capability.TENANT_ADMIN:
        return membership.role in TENANT_ADMIN_ROLES
    return False


class AccessValidator:
    """Two-tier capability check: cached actor data, then the authoritative source.

    Cached data may deny on its own once it came from the authoritative
    source; a grant always goes through a fresh authoritative check. Failure
    to reach the source fails closed.
    """

    def __init__(self, source: AccessStatusSource | None = None, policy: RetryPolicy | None = None) -> None:
        self._source = source
        self.policy = policy or RetryPolicy()
        self._inflight: dict[str, Future] = {}
        self._lock = Lock()

    @property
    def source(self) -> AccessStatusSource:
        if self._source is None:
            self._source = build_access_status_source()
        return self._source

    def _wait_budget_seconds(self) -> float:
        per_attempt = (self.policy.attempt_timeout_seconds or 0) + self.policy.delay_for(self.policy.max_attempts)
        return max(1.0, per_attempt * max(1, self.policy.max_attempts) + 1.0)

    def check_cached(self, actor: Actor, capability: Capability, tenant_id: int | None = None) -> bool:
        if not actor.is_authenticated:
            return capability == Capability.NONE
        return evaluate_capability(actor.access_snapshot(), capability, tenant_id)

    def revalidate(self, actor: Actor) -> bool:
        """Refresh the actor's access from the authoritative source.

        Only one refresh per actor runs at a time; concurrent callers wait for
        and share its result.
        """
        key = str(actor.user_id)
        with self._lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future

        if not owner:
            try:
                return bool(future.result(timeout=self._wait_budget_seconds()))
            except FutureTimeoutError:
                logger.error("Access validation wait timed out user_id=%s", actor.user_id)
                return False

        ok = False
        try:
            outcome = self.policy.run(self.source.fetch, actor.user_id, label="access_status")
            if outcome.ok and outcome.value is not None:
                actor.replace_access(outcome.value)
                ok = True
            else:
                actor.revoke_access()
                logger.error(
                    "Access validation unreachable user_id=%s attempts=%s error=%s",
                    actor.user_id,
                    outcome.attempts,
                    outcome.last_error,
                )
        except Exception:
            actor.revoke_access()
            logger.exception("Access validation crashed user_id=%s", actor.user_id)
        finally:
            future.set_result(ok)
            with self._lock:
                self._inflight.pop(key, None)
        return ok

    @staticmethod
    def log_access_denied(*, decision: Denied, actor: Actor) -> None:
        logger.warning(
            "Access denied (%s): user_id=%s capability=%s tenant_id=%s memberships=%s",
            decision.reason,
            actor.user_id,
            decision.capability.value,
            decision.tenant_id,
            [f"{m.tenant_id}:{m.role}" for m in actor.memberships],
            extra={"capability": decision.capability.value},
        )

    def _deny(self, actor: Actor, reason: str, capability: Capability, tenant_id: int | None) -> Denied:
        decision = Denied(reason=reason, capability=capability, tenant_id=tenant_id)
        self.log_access_denied(decision=decision, actor=actor)
        return decision

    def authorize(
        self,
        actor: Actor | None,
        capability: Capability | str,
        tenant_id: int | None = None,
    ) -> AccessDecision:
        capability = Capability(capability)
        if capability == Capability.NONE:
            return Allowed(capability=capability, tenant_id=tenant_id)

        if actor is None or not actor.is_authenticated:
            return Denied(reason=DENY_NO_SESSION, capability=capability, tenant_id=tenant_id)

        if actor.access_loaded and not self.check_cached(actor, capability, tenant_id):
            return self._deny(actor, DENY_INSUFFICIENT_ROLE, capability, tenant_id)

        if not self.revalidate(actor):
            return self._deny(actor, DENY_VALIDATION_UNREACHABLE, capability, tenant_id)

        access = actor.access_snapshot()
        resolved_tenant_id = _target_tenant_id(access, tenant_id) if capability != Capability.SUPER_ADMIN else tenant_id
        if evaluate_capability(access, capability, tenant_id):
            return Allowed(capability=capability, tenant_id=resolved_tenant_id)
        return self._deny(actor, DENY_INSUFFICIENT_ROLE, capability, resolved_tenant_id)


access_validator = AccessValidator()
