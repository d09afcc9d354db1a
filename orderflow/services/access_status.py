from __future__ import annotations

import logging
from typing import Callable, Protocol

import httpx
from sqlalchemy.orm import Session

from orderflow.core.config import ACCESS_CHECK_TIMEOUT_SECONDS, ACCESS_STATUS_API_KEY, ACCESS_STATUS_URL
from orderflow.core.database import SessionLocal
from orderflow.models.platform_admin import PlatformAdmin
from orderflow.models.tenant import Tenant
from orderflow.models.tenant_user import TenantUser
from orderflow.services.actor import TENANT_ROLES, AccessStatus, TenantMembership, normalize_role

logger = logging.getLogger(__name__)


class AccessStatusSource(Protocol):
    def fetch(self, user_id: str) -> AccessStatus:
        ...


class DatabaseAccessStatusSource:
    """Reads platform admin flag and active tenant memberships from the store."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.session_factory = session_factory

    def fetch(self, user_id: str) -> AccessStatus:
        db = self.session_factory()
        try:
            admin_row = (
                db.query(PlatformAdmin.id)
                .filter(PlatformAdmin.user_id == user_id, PlatformAdmin.is_active.is_(True))
                .first()
            )
            rows = (
                db.query(TenantUser, Tenant)
                .join(Tenant, Tenant.id == TenantUser.tenant_id)
                .filter(TenantUser.user_id == user_id, TenantUser.is_active.is_(True))
                .order_by(TenantUser.id.asc())
                .all()
            )
        finally:
            db.close()

        memberships: list[TenantMembership] = []
        for tenant_user, tenant in rows:
            role = normalize_role(tenant_user.role)
            if role not in TENANT_ROLES:
                logger.warning(
                    "Ignoring membership with unknown role user_id=%s tenant_id=%s role=%s",
                    user_id,
                    tenant.id,
                    tenant_user.role,
                )
                continue
            memberships.append(
                TenantMembership(
                    tenant_id=int(tenant.id),
                    tenant_slug=tenant.slug,
                    tenant_name=tenant.name,
                    role=role,
                )
            )

        return AccessStatus(is_super_admin=admin_row is not None, memberships=tuple(memberships))


class HttpAccessStatusSource:
    """Calls a remote access-status endpoint returning {is_super_admin, memberships}."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str = "",
        timeout: float = ACCESS_CHECK_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    def fetch(self, user_id: str) -> AccessStatus:
        payload = {"user_id": user_id}
        if self._client is not None:
            response = self._client.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload, headers=self._headers())
        response.raise_for_status()
        return AccessStatus.from_payload(response.json())


def build_access_status_source() -> AccessStatusSource:
    if ACCESS_STATUS_URL:
        logger.info("Access status source: http")
        return HttpAccessStatusSource(ACCESS_STATUS_URL, api_key=ACCESS_STATUS_API_KEY)
    return DatabaseAccessStatusSource()
