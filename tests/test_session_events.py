import pytest

from orderflow.services import auth
from orderflow.services.actor import (
    AccessStatus,
    ActorRegistry,
    Identity,
    SessionEvent,
    TenantMembership,
)
from tests.fixtures_data import ADMIN_MEMBERSHIP


def _loaded_registry():
    registry = ActorRegistry()
    actor = registry.actor_for(Identity(user_id="u-1", email="staff@example.com"))
    actor.replace_access(AccessStatus(memberships=(TenantMembership.from_payload(ADMIN_MEMBERSHIP),)))
    return registry, actor


def test_registry_returns_same_actor_per_identity():
    registry = ActorRegistry()

    first = registry.actor_for(Identity(user_id="u-1"))
    second = registry.actor_for(Identity(user_id="u-1", email="new@example.com"))

    assert first is second
    assert second.email == "new@example.com"


def test_sign_out_drops_cached_access():
    registry, actor = _loaded_registry()

    result = registry.handle_session_event(SessionEvent.SIGNED_OUT, Identity(user_id="u-1"))

    assert result is None
    assert registry.get("u-1") is None
    assert actor.memberships == ()


def test_token_refresh_invalidates_cache_flag():
    registry, actor = _loaded_registry()

    refreshed = registry.handle_session_event(SessionEvent.TOKEN_REFRESHED, Identity(user_id="u-1"))

    assert refreshed is actor
    assert actor.access_loaded is False


def test_membership_payload_rejects_unknown_role():
    with pytest.raises(ValueError):
        TenantMembership.from_payload({"tenant_id": 1, "role": "owner"})
    with pytest.raises(ValueError):
        AccessStatus.from_payload({"memberships": "nope"})


def test_identity_token_round_trip():
    token = auth.create_access_token("abc-123", email="staff@example.com", secret="s3cret")

    identity = auth.identity_from_token(token, secret="s3cret")

    assert identity == Identity(user_id="abc-123", email="staff@example.com")


def test_identity_token_rejects_wrong_secret_and_missing_secret(monkeypatch):
    token = auth.create_access_token("abc-123", secret="s3cret")

    with pytest.raises(auth.IdentityTokenError):
        auth.identity_from_token(token, secret="other")

    monkeypatch.setattr(auth, "IDENTITY_JWT_SECRET", "")
    with pytest.raises(auth.IdentityTokenError):
        auth.decode_access_token(token)
