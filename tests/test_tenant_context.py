import pytest

from orderflow.services.actor import Actor, TenantMembership
from orderflow.services.tenant_context import (
    AnonymousScope,
    AuthenticatedScope,
    NoTenantScope,
    TenantResolver,
    TenantUnresolved,
    load_scope_tenant,
    resolve_tenant_scope,
    scope_to_dict,
)
from tests.fixtures_data import KOPI_TENANT, OTHER_TENANT
from tests.helpers import build_session_factory, seed_tenant


def _staff(*memberships: TenantMembership) -> Actor:
    return Actor(user_id="user-1", email="staff@example.com", memberships=memberships)


def test_first_membership_wins_over_url():
    first = TenantMembership(tenant_id=2, tenant_slug="bakso-mas-joko", tenant_name="Bakso", role="cashier")
    second = TenantMembership(tenant_id=1, tenant_slug="kopipendekar", tenant_name="Kopi", role="admin")

    scope = resolve_tenant_scope(_staff(first, second), "/kopipendekar/checkout")

    assert isinstance(scope, AuthenticatedScope)
    assert scope.tenant_id == 2
    assert scope.role == "cashier"


def test_authenticated_without_membership_never_uses_url():
    scope = resolve_tenant_scope(_staff(), "/kopipendekar")

    assert isinstance(scope, NoTenantScope)
    assert scope.reason == "no_membership"


@pytest.mark.parametrize(
    "path,expected_slug,is_default",
    [
        ("/bakso-mas-joko", "bakso-mas-joko", False),
        ("/Bakso-Mas-Joko/menu?x=1", "bakso-mas-joko", False),
        ("https://shop.example.com/warung-sari/checkout", "warung-sari", False),
        ("/", "kopipendekar", True),
        ("", "kopipendekar", True),
        (None, "kopipendekar", True),
        ("/checkout", "kopipendekar", True),
        ("/orders/KP-251003-7W2B9I", "kopipendekar", True),
        ("/undefined", "kopipendekar", True),
        ("/superadmin-dashboard", "kopipendekar", True),
        ("/staff-login", "kopipendekar", True),
        ("/!!!", "kopipendekar", True),
    ],
)
def test_anonymous_resolution_from_path(path, expected_slug, is_default):
    scope = resolve_tenant_scope(Actor.anonymous(), path, default_slug="kopipendekar")

    assert isinstance(scope, AnonymousScope)
    assert scope.slug == expected_slug
    assert scope.is_default is is_default


def test_resolution_is_pure_per_call():
    actor = Actor.anonymous()

    first = resolve_tenant_scope(actor, "/bakso-mas-joko")
    second = resolve_tenant_scope(actor, "/warung-sari")

    assert first.slug == "bakso-mas-joko"
    assert second.slug == "warung-sari"


def test_reserved_segment_detection():
    assert TenantResolver.is_reserved_segment("ADMIN")
    assert TenantResolver.is_reserved_segment("invoice")
    assert not TenantResolver.is_reserved_segment("kopipendekar")


def test_load_scope_tenant_only_active_for_anonymous():
    SessionLocal = build_session_factory()
    db = SessionLocal()
    seed_tenant(db, KOPI_TENANT)
    seed_tenant(db, {**OTHER_TENANT, "is_active": False})

    tenant = load_scope_tenant(db, AnonymousScope(slug="kopipendekar"))
    assert tenant.id == 1

    with pytest.raises(TenantUnresolved):
        load_scope_tenant(db, AnonymousScope(slug="bakso-mas-joko"))

    with pytest.raises(TenantUnresolved) as exc:
        load_scope_tenant(db, NoTenantScope(reason="no_membership"))
    assert exc.value.reason == "no_membership"


def test_scope_to_dict_shapes():
    membership = TenantMembership(tenant_id=1, tenant_slug="kopipendekar", tenant_name="Kopi", role="admin")

    assert scope_to_dict(AuthenticatedScope(membership=membership)) == {
        "kind": "authenticated",
        "tenant_id": 1,
        "slug": "kopipendekar",
        "role": "admin",
    }
    assert scope_to_dict(AnonymousScope(slug="x", is_default=True))["is_default"] is True
    assert scope_to_dict(NoTenantScope(reason="no_membership")) == {"kind": "none", "reason": "no_membership"}
