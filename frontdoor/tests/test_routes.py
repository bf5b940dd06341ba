"""
HTTP Tests for the Front Door Routes
====================================

Tests for frontdoor/auth/routes.py and the application factory in
frontdoor/main.py, driven through FastAPI's TestClient with the identity
authority mocked out.

Run tests:
----------
    pytest frontdoor/tests/test_routes.py -v
"""

import asyncio

import jwt
import pytest
from fastapi.testclient import TestClient

from frontdoor.auth.cookies import issue_browser_cookie
from frontdoor.main import create_app

from conftest import (
    BROWSER_ID,
    make_discovered,
    make_member,
    make_org,
    ok,
    rejected,
    seed,
    unavailable,
)


@pytest.fixture
def client(mock_settings, authority, store):
    app = create_app(mock_settings, authority=authority, store=store)
    return TestClient(app)


@pytest.fixture
def signed_in_client(mock_settings, authority, store):
    """Client whose cookie points at BROWSER_ID"""
    app = create_app(mock_settings, authority=authority, store=store)
    cookie = issue_browser_cookie(BROWSER_ID, mock_settings.SESSION_COOKIE_SECRET, 60)
    return TestClient(app, cookies={mock_settings.SESSION_COOKIE_NAME: cookie})


def _session_ok(token: str = "S1"):
    return ok(session_token=token, member=make_member(), organization=make_org())


# ============================================================================
# System
# ============================================================================

def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "frontdoor"


# ============================================================================
# Landing
# ============================================================================

def test_anonymous_landing_issues_cookie(client, authority, mock_settings):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["authenticated"] is False
    assert mock_settings.SESSION_COOKIE_NAME in response.cookies
    authority.authenticate_session.assert_not_called()


def test_cookie_never_contains_session_token(signed_in_client, authority, store, mock_settings):
    asyncio.run(seed(store, session_credential="S1"))
    authority.authenticate_session.return_value = _session_ok("S1")

    response = signed_in_client.get("/")

    cookie = response.cookies[mock_settings.SESSION_COOKIE_NAME]
    claims = jwt.decode(cookie, mock_settings.SESSION_COOKIE_SECRET, algorithms=["HS256"], issuer="frontdoor")
    assert claims["sid"] == BROWSER_ID
    assert "S1" not in claims.values()
    assert response.json()["authenticated"] is True
    assert response.json()["organization"]["organization_slug"] == "acme-slug"


def test_tampered_cookie_starts_anonymous(mock_settings, authority, store):
    asyncio.run(seed(store, session_credential="S1"))
    app = create_app(mock_settings, authority=authority, store=store)
    forged = issue_browser_cookie(BROWSER_ID, "some-other-secret-0123456789abcdefgh", 60)
    client = TestClient(app, cookies={mock_settings.SESSION_COOKIE_NAME: forged})

    response = client.get("/")

    assert response.json()["authenticated"] is False
    authority.authenticate_session.assert_not_called()


# ============================================================================
# Login
# ============================================================================

def test_login_sends_discovery_link(client, authority):
    authority.send_discovery_link.return_value = ok()

    response = client.post("/magic-links/login-signup", json={"email": "a@x.com"})

    assert response.status_code == 200
    assert response.json()["status"] == "email_sent"
    authority.send_discovery_link.assert_awaited_once_with("a@x.com")


def test_login_with_organization_sends_organization_link(client, authority):
    authority.send_organization_link.return_value = ok()

    response = client.post(
        "/magic-links/login-signup",
        json={"email": "a@x.com", "organizationId": "org1"},
    )

    assert response.json()["status"] == "email_sent"
    authority.send_organization_link.assert_awaited_once_with("a@x.com", "org1")
    authority.send_discovery_link.assert_not_called()


def test_login_without_email_is_rejected(client, authority):
    response = client.post("/magic-links/login-signup", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    authority.send_discovery_link.assert_not_called()


def test_login_when_already_signed_in(signed_in_client, authority, store):
    asyncio.run(seed(store, session_credential="S1"))
    authority.authenticate_session.return_value = _session_ok("S1")

    response = signed_in_client.post("/magic-links/login-signup", json={"email": "a@x.com"})

    assert response.json() == {"status": "already_logged_in", "redirectTo": "/"}
    authority.send_discovery_link.assert_not_called()


def test_login_rejected_by_authority_is_delivery_error(client, authority, mock_settings):
    authority.send_discovery_link.return_value = rejected("invalid_email", 400)

    response = client.post("/magic-links/login-signup", json={"email": "not-an-email"})

    assert response.status_code == 400
    assert response.json()["error"] == "delivery_failed"
    assert mock_settings.SESSION_COOKIE_NAME in response.cookies


def test_login_authority_outage_is_502(client, authority):
    authority.send_discovery_link.return_value = unavailable()

    response = client.post("/magic-links/login-signup", json={"email": "a@x.com"})

    assert response.status_code == 502
    assert response.json()["error"] == "service_unavailable"


# ============================================================================
# Authenticate
# ============================================================================

def test_discovery_select_then_landing(client, authority):
    authority.authenticate_discovery_token.return_value = ok(
        intermediate_session_token="IST1",
        email="a@x.com",
        discovered_organizations=[make_discovered(make_org())],
    )
    authority.exchange_intermediate_session.return_value = ok(session_token="S1", organization=make_org())
    authority.authenticate_session.return_value = _session_ok("S1")

    response = client.get("/authenticate", params={"stytch_token_type": "discovery", "token": "T1"})
    assert response.status_code == 200
    body = response.json()
    assert body["method"] == "Discovery"
    assert body["email"] == "a@x.com"
    assert body["discoveredOrganizations"][0]["organizationId"] == "org1"
    assert body["discoveredOrganizations"][0]["organizationName"] == "Acme"

    response = client.get("/organizations/select/org1")
    assert response.json() == {"status": "organization_selected", "redirectTo": "/"}
    authority.exchange_intermediate_session.assert_awaited_once_with("IST1", "org1")

    response = client.get("/")
    assert response.json()["authenticated"] is True
    authority.authenticate_session.assert_awaited_once_with("S1")


def test_organization_magic_link(client, authority):
    authority.authenticate_organization_token.return_value = _session_ok("S1")

    response = client.get(
        "/authenticate",
        params={"stytch_token_type": "multi_tenant_magic_links", "token": "T1"},
    )

    assert response.json()["method"] == "Organization"
    assert response.json()["member"]["email_address"] == "a@x.com"


def test_unknown_token_type(client, authority):
    response = client.get("/authenticate", params={"stytch_token_type": "sms", "token": "T1"})

    assert response.status_code == 400
    assert response.json()["error"] == "unrecognized_token_type"
    assert authority.mock_calls == []


def test_missing_token(client, authority):
    response = client.get("/authenticate", params={"stytch_token_type": "discovery"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    authority.authenticate_discovery_token.assert_not_called()


def test_rejected_token_has_opaque_message(client, authority):
    authority.authenticate_discovery_token.return_value = rejected("magic_link_not_found", 404)

    response = client.get("/authenticate", params={"stytch_token_type": "discovery", "token": "T1"})

    assert response.status_code == 401
    assert response.json()["error"] == "authentication_failed"
    assert response.json()["message"] == "Authentication failed"
    assert "magic_link_not_found" not in response.text


# ============================================================================
# Organizations
# ============================================================================

def test_create_organization_without_intermediate_session(client, authority):
    response = client.post("/organizations/create", json={"orgName": "Acme", "orgSlug": "acme"})

    assert response.status_code == 400
    assert response.json()["error"] == "precondition_failed"
    authority.create_organization.assert_not_called()


def test_create_organization(signed_in_client, authority, store):
    asyncio.run(seed(store, intermediate_credential="IST1"))
    authority.create_organization.return_value = ok(session_token="S9", organization=make_org())

    response = signed_in_client.post(
        "/organizations/create",
        json={"orgName": " Acme ", "orgSlug": "ac me"},
    )

    assert response.json() == {"status": "organization_created", "redirectTo": "/"}
    authority.create_organization.assert_awaited_once_with("IST1", "Acme", "acme")
    record = asyncio.run(store.get(BROWSER_ID))
    assert record.session_credential == "S9"
    assert record.intermediate_credential is None


def test_failed_create_keeps_cookie_and_intermediate_session(signed_in_client, authority, store, mock_settings):
    asyncio.run(seed(store, intermediate_credential="IST1"))
    authority.create_organization.return_value = rejected("organization_slug_already_used", 400)

    response = signed_in_client.post("/organizations/create", json={"orgName": "Acme", "orgSlug": "acme"})

    assert response.status_code == 401
    cookie = response.cookies[mock_settings.SESSION_COOKIE_NAME]
    claims = jwt.decode(cookie, mock_settings.SESSION_COOKIE_SECRET, algorithms=["HS256"], issuer="frontdoor")
    assert claims["sid"] == BROWSER_ID
    assert asyncio.run(store.get(BROWSER_ID)).intermediate_credential == "IST1"


def test_switch_lists_organizations(signed_in_client, authority, store):
    asyncio.run(seed(store, session_credential="S1"))
    authority.list_discovered_organizations.return_value = ok(
        email="a@x.com",
        discovered_organizations=[
            make_discovered(make_org()),
            make_discovered(make_org("org2", "Beta", "beta")),
        ],
    )

    response = signed_in_client.get("/organizations/switch")

    body = response.json()
    assert body["email"] == "a@x.com"
    assert [o["organizationSlug"] for o in body["discoveredOrganizations"]] == ["acme-slug", "beta"]


def test_slug_for_current_organization(signed_in_client, authority, store):
    asyncio.run(seed(store, session_credential="S1"))
    authority.authenticate_session.return_value = _session_ok("S1")

    response = signed_in_client.get("/orgs/acme-slug")

    assert response.json() == {"status": "already_current", "redirectTo": "/"}
    authority.list_discovered_organizations.assert_not_called()


def test_unknown_slug_is_404(signed_in_client, authority, store):
    asyncio.run(seed(store, session_credential="S1"))
    authority.authenticate_session.return_value = _session_ok("S1")
    authority.list_discovered_organizations.return_value = ok(
        email="a@x.com",
        discovered_organizations=[make_discovered(make_org())],
    )

    response = signed_in_client.get("/orgs/unknown")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    authority.exchange_session.assert_not_called()


def test_jit_without_session(client, authority):
    response = client.get("/organizations/jit")

    assert response.status_code == 400
    assert response.json()["error"] == "precondition_failed"
    assert authority.mock_calls == []


def test_jit_update(signed_in_client, authority, store):
    asyncio.run(seed(store, session_credential="S1"))
    authority.authenticate_session.return_value = _session_ok("S2")
    authority.update_organization_settings.return_value = ok(organization=make_org())

    response = signed_in_client.get("/organizations/jit")

    assert response.json() == {"status": "jit_policy_updated", "redirectTo": "/"}
    args = authority.update_organization_settings.await_args.args
    assert args[0] == "org1"
    assert args[2] == ["x.com"]
    assert args[3] == "S2"


# ============================================================================
# Logout
# ============================================================================

def test_logout_clears_session(signed_in_client, authority, store):
    asyncio.run(seed(store, session_credential="S1"))

    response = signed_in_client.get("/logout")

    assert response.json() == {"status": "logged_out", "redirectTo": "/"}
    assert asyncio.run(store.get(BROWSER_ID)) is None
    assert authority.mock_calls == []
