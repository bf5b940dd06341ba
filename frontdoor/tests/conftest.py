"""
Shared fixtures for front door tests.

The identity authority is replaced by an AsyncMock constrained to the
AuthorityClient interface; each test configures the calls it expects.
"""

from unittest.mock import AsyncMock

import pytest

from frontdoor.auth.flow import AuthFlowController
from frontdoor.auth.state import BrowserSession
from frontdoor.auth.store import InMemorySessionStore
from frontdoor.authority import AuthorityClient, AuthorityResult, ErrorKind
from frontdoor.config import Settings
from frontdoor.models import DiscoveredOrganization, Member, Organization


BROWSER_ID = "browser-1"


# ============================================================================
# Builders
# ============================================================================

def make_org(org_id: str = "org1", name: str = "Acme", slug: str = "acme-slug") -> Organization:
    return Organization(
        organization_id=org_id,
        organization_name=name,
        organization_slug=slug,
    )


def make_member(email: str = "a@x.com", org_id: str = "org1") -> Member:
    return Member(
        member_id="member-test-1",
        email_address=email,
        name="Test User",
        organization_id=org_id,
        status="active",
    )


def make_discovered(org: Organization, membership_type: str = "active_member") -> DiscoveredOrganization:
    return DiscoveredOrganization(
        organization=org,
        membership_type=membership_type,
        member_authenticated=False,
    )


def ok(**kwargs) -> AuthorityResult:
    return AuthorityResult(ok=True, status_code=200, **kwargs)


def rejected(error_type: str = "unauthorized_credentials", status_code: int = 401) -> AuthorityResult:
    return AuthorityResult.failure(ErrorKind.REJECTED, error_type, status_code)


def unavailable() -> AuthorityResult:
    return AuthorityResult.failure(ErrorKind.UNAVAILABLE, "network_error")


async def seed(store: InMemorySessionStore, **fields) -> None:
    await store.put(BROWSER_ID, BrowserSession(**fields))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def mock_settings():
    """Create settings for testing without reading .env"""
    return Settings(
        STYTCH_PROJECT_ID="project-test-00000000-0000-0000-0000-000000000000",
        STYTCH_SECRET="secret-test-1234567890",
        SESSION_COOKIE_SECRET="test-cookie-secret-1234567890123456",
        SESSION_INACTIVITY_SECONDS=60,
        _env_file=None,
    )


@pytest.fixture
def authority():
    """Identity authority double"""
    return AsyncMock(spec=AuthorityClient)


@pytest.fixture
def store():
    return InMemorySessionStore(inactivity_seconds=60)


@pytest.fixture
def controller(authority):
    return AuthFlowController(authority)
