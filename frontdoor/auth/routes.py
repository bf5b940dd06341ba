"""
Authentication routes for magic link, discovery and organization flows.

This module maps the front door's HTTP surface onto AuthFlowController.
Each request opens its browser's session (cookie -> browser id -> locked
record) once through the ``browser_session`` dependency; the lock is held
until the handler returns, so requests from one browser run one at a time.

Responses are JSON output models; rendering them is left to the client.
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..config import Settings
from ..models import (
    AuthenticationView,
    CreateOrganizationRequest,
    DiscoveredOrganizationView,
    DiscoveryView,
    IdentityView,
    LoginRequest,
    StatusView,
)
from .cookies import issue_browser_cookie, new_browser_id, read_browser_cookie
from .flow import AuthFlowController
from .store import SessionHandle

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    tags=["authentication"],
)


# =============================================================================
# Dependencies
# =============================================================================

def set_browser_cookie(response: Response, browser_id: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=issue_browser_cookie(
            browser_id,
            settings.SESSION_COOKIE_SECRET,
            settings.SESSION_INACTIVITY_SECONDS,
        ),
        max_age=settings.SESSION_INACTIVITY_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def get_controller(request: Request) -> AuthFlowController:
    return request.app.state.app_state.controller


async def browser_session(request: Request, response: Response) -> AsyncIterator[SessionHandle]:
    """
    Open the requesting browser's session for the duration of the request.

    A missing, expired or tampered cookie starts a new anonymous browser.
    The cookie is re-issued on every request so its expiry follows the
    store's inactivity window.
    """
    app_state = request.app.state.app_state
    settings = app_state.settings

    browser_id = read_browser_cookie(
        request.cookies.get(settings.SESSION_COOKIE_NAME),
        settings.SESSION_COOKIE_SECRET,
    )
    if browser_id is None:
        browser_id = new_browser_id()

    # Read back by the FrontDoorError handler to re-issue the cookie on errors.
    request.state.browser_id = browser_id
    set_browser_cookie(response, browser_id, settings)

    async with app_state.store.open(browser_id) as session:
        yield session


def _discovered_views(organizations) -> list:
    return [DiscoveredOrganizationView.from_discovered(d) for d in organizations]


# =============================================================================
# Landing
# =============================================================================

@auth_router.get("/", response_model=IdentityView)
async def landing(
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    """Report whether the browser holds a valid organization session."""
    identity = await controller.resolve_current_identity(session)
    if identity is None:
        return IdentityView(authenticated=False)
    return IdentityView(
        authenticated=True,
        member=identity.member,
        organization=identity.organization,
    )


# =============================================================================
# Magic Links
# =============================================================================

@auth_router.post("/magic-links/login-signup", response_model=StatusView)
async def login_signup(
    body: LoginRequest,
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    """
    Send a login magic link.

    With an organizationId an Organization Magic Link is sent, otherwise a
    Discovery Magic Link. A browser that already has a valid session is
    told so and no email is sent.
    """
    identity = await controller.resolve_current_identity(session)
    if identity is not None:
        return StatusView(status="already_logged_in", redirectTo="/")

    await controller.initiate_login(body.email, body.organizationId)
    return StatusView(status="email_sent")


@auth_router.get("/authenticate", response_model=AuthenticationView)
async def authenticate(
    stytch_token_type: Optional[str] = Query(None, description="discovery, discovery_oauth or multi_tenant_magic_links"),
    token: Optional[str] = Query(None, description="Single-use token from the link or redirect"),
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    """
    Complete a magic link or OAuth redirect.

    The redirect URL configured at the authority points here.
    """
    outcome = await controller.complete_authentication(session, stytch_token_type, token)
    methods = {
        "discovery": "Discovery",
        "discovery_oauth": "Discovery OAuth",
        "multi_tenant_magic_links": "Organization",
    }
    return AuthenticationView(
        method=methods[outcome.token_type.value],
        email=outcome.email,
        discoveredOrganizations=_discovered_views(outcome.organizations),
        member=outcome.member,
        organization=outcome.organization,
    )


# =============================================================================
# Organizations
# =============================================================================

@auth_router.post("/organizations/create", response_model=StatusView)
async def create_organization(
    body: CreateOrganizationRequest,
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    await controller.create_organization(session, body.orgName, body.orgSlug)
    return StatusView(status="organization_created", redirectTo="/")


@auth_router.get("/organizations/select/{organization_id}", response_model=StatusView)
async def select_organization(
    organization_id: str,
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    await controller.select_organization(session, organization_id)
    return StatusView(status="organization_selected", redirectTo="/")


@auth_router.get("/organizations/switch", response_model=DiscoveryView)
async def list_switchable_organizations(
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    discovery = await controller.list_switchable_organizations(session)
    return DiscoveryView(
        email=discovery.email,
        discoveredOrganizations=_discovered_views(discovery.organizations),
    )


@auth_router.get("/orgs/{slug}", response_model=StatusView)
async def organization_by_slug(
    slug: str,
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    """Switch to the organization with this slug, if the member belongs to it."""
    identity = await controller.resolve_current_identity(session)
    resolution = await controller.resolve_organization_by_slug(session, identity, slug)
    status = "organization_switched" if resolution.switched else "already_current"
    return StatusView(status=status, redirectTo="/")


@auth_router.get("/organizations/jit", response_model=StatusView)
async def update_jit_policy(
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    """Restrict JIT provisioning of the current organization to the member's domain."""
    identity = await controller.resolve_current_identity(session)
    await controller.update_organization_jit_policy(session, identity)
    return StatusView(status="jit_policy_updated", redirectTo="/")


# =============================================================================
# Logout
# =============================================================================

@auth_router.get("/logout", response_model=StatusView)
async def logout(
    session: SessionHandle = Depends(browser_session),
    controller: AuthFlowController = Depends(get_controller),
):
    await controller.logout(session)
    return StatusView(status="logged_out", redirectTo="/")
