"""
Identity Authority Client
=========================

Async request/response facade over the Stytch B2B API.

The authority performs every cryptographic check; this client only forwards
tokens and reports the verdict. Each operation returns an AuthorityResult.
Nothing here raises for an authority-side rejection or for a transport
failure: both come back as a failed result whose ``error_kind`` tells them
apart.

Failure classification:
    - REJECTED:    the authority answered with a 4xx status
    - UNAVAILABLE: timeout, network error, or 5xx status
    - MALFORMED:   a success status whose body is not the expected shape

No operation retries. Magic link and discovery tokens are single-use, so a
second attempt with the same value could only fail.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import Settings
from .models import DiscoveredOrganization, Member, Organization

logger = logging.getLogger(__name__)

MEMBER_SESSION_HEADER = "X-Stytch-Member-SessionJWT"


class ErrorKind(str, Enum):
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"


class JitProvisioning(str, Enum):
    RESTRICTED = "RESTRICTED"
    NOT_ALLOWED = "NOT_ALLOWED"


@dataclass(frozen=True)
class AuthorityResult:
    """Result of one authority round-trip.

    Attributes:
        ok: Whether the authority accepted the request.
        session_token: Organization-scoped session credential, if issued.
        intermediate_session_token: Intermediate credential, if issued.
        email: Verified email address, if reported.
        discovered_organizations: Organizations the email may enter.
        member: Authenticated member, if reported.
        organization: Organization the session is scoped to, if reported.
        status_code: HTTP status of the authority response, if any.
        error_type: Authority error code (or a local code for transport failures).
        error_kind: Failure classification when ``ok`` is False.
    """

    ok: bool
    session_token: Optional[str] = None
    intermediate_session_token: Optional[str] = None
    email: Optional[str] = None
    discovered_organizations: List[DiscoveredOrganization] = field(default_factory=list)
    member: Optional[Member] = None
    organization: Optional[Organization] = None
    status_code: Optional[int] = None
    error_type: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        error_type: str,
        status_code: Optional[int] = None,
    ) -> "AuthorityResult":
        return cls(ok=False, error_kind=kind, error_type=error_type, status_code=status_code)


class AuthorityClient:
    """
    Client for the identity authority's B2B endpoints.

    Requests authenticate with HTTP basic auth (project id / secret). The
    underlying httpx.AsyncClient is owned by this object; close it with
    ``aclose``.
    """

    def __init__(
        self,
        project_id: str,
        secret: str,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            transport=transport,
            base_url=base_url,
            auth=(project_id, secret),
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthorityClient":
        return cls(
            project_id=settings.STYTCH_PROJECT_ID,
            secret=settings.STYTCH_SECRET,
            base_url=settings.authority_base_url,
            timeout=settings.AUTHORITY_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Magic Links
    # =========================================================================

    async def send_discovery_link(self, email: str) -> AuthorityResult:
        return await self._request(
            "POST",
            "/v1/b2b/magic_links/email/discovery/send",
            "send_discovery_link",
            {"email_address": email},
        )

    async def send_organization_link(self, email: str, organization_id: str) -> AuthorityResult:
        return await self._request(
            "POST",
            "/v1/b2b/magic_links/email/login_or_signup",
            "send_organization_link",
            {"email_address": email, "organization_id": organization_id},
        )

    async def authenticate_discovery_token(self, token: str) -> AuthorityResult:
        """Exchange a discovery magic link token for an intermediate session."""
        return await self._request(
            "POST",
            "/v1/b2b/magic_links/discovery/authenticate",
            "authenticate_discovery_token",
            {"discovery_magic_links_token": token},
            required=("intermediate_session_token", "email_address", "discovered_organizations"),
        )

    async def authenticate_organization_token(self, token: str) -> AuthorityResult:
        """Exchange an organization magic link token for a session."""
        return await self._request(
            "POST",
            "/v1/b2b/magic_links/authenticate",
            "authenticate_organization_token",
            {"magic_links_token": token},
            required=("session_jwt", "member"),
        )

    # =========================================================================
    # OAuth
    # =========================================================================

    async def authenticate_oauth_discovery_token(self, token: str) -> AuthorityResult:
        """
        Authenticate an OAuth discovery token.

        The response carries both an organization-scoped session and the
        sibling organizations available to the same email.
        """
        return await self._request(
            "POST",
            "/v1/b2b/oauth/discovery/authenticate",
            "authenticate_oauth_discovery_token",
            {"discovery_oauth_token": token},
            required=("session_jwt", "email_address", "discovered_organizations"),
        )

    # =========================================================================
    # Discovery
    # =========================================================================

    async def exchange_intermediate_session(
        self, intermediate_session_token: str, organization_id: str
    ) -> AuthorityResult:
        return await self._request(
            "POST",
            "/v1/b2b/discovery/intermediate_sessions/exchange",
            "exchange_intermediate_session",
            {
                "intermediate_session_token": intermediate_session_token,
                "organization_id": organization_id,
            },
            required=("session_jwt",),
        )

    async def list_discovered_organizations(self, session_token: str) -> AuthorityResult:
        return await self._request(
            "POST",
            "/v1/b2b/discovery/organizations",
            "list_discovered_organizations",
            {"session_jwt": session_token},
            required=("email_address", "discovered_organizations"),
        )

    async def create_organization(
        self,
        intermediate_session_token: str,
        organization_name: str,
        organization_slug: str,
    ) -> AuthorityResult:
        """Create an organization and make the intermediate session's member its admin."""
        return await self._request(
            "POST",
            "/v1/b2b/discovery/organizations/create",
            "create_organization",
            {
                "intermediate_session_token": intermediate_session_token,
                "organization_name": organization_name,
                "organization_slug": organization_slug,
            },
            required=("session_jwt",),
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    async def authenticate_session(self, session_token: str) -> AuthorityResult:
        """
        Validate a session; the returned session token may be a rotated value.
        """
        return await self._request(
            "POST",
            "/v1/b2b/sessions/authenticate",
            "authenticate_session",
            {"session_jwt": session_token},
            required=("session_jwt", "member", "organization"),
        )

    async def exchange_session(self, session_token: str, organization_id: str) -> AuthorityResult:
        """Re-scope an existing session to another organization of the same member."""
        return await self._request(
            "POST",
            "/v1/b2b/sessions/exchange",
            "exchange_session",
            {"session_jwt": session_token, "organization_id": organization_id},
            required=("session_jwt",),
        )

    # =========================================================================
    # Organizations
    # =========================================================================

    async def update_organization_settings(
        self,
        organization_id: str,
        jit_provisioning: JitProvisioning,
        allowed_domains: Iterable[str],
        session_token: str,
    ) -> AuthorityResult:
        """
        Update an organization's email JIT provisioning policy.

        The member session is attached as the authorization credential; the
        authority decides whether that member may change the settings.
        """
        return await self._request(
            "PUT",
            f"/v1/b2b/organizations/{organization_id}",
            "update_organization_settings",
            {
                "email_jit_provisioning": jit_provisioning.value,
                "email_allowed_domains": list(allowed_domains),
            },
            headers={MEMBER_SESSION_HEADER: session_token},
        )

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Dict[str, Any],
        required: Iterable[str] = (),
        headers: Optional[Dict[str, str]] = None,
    ) -> AuthorityResult:
        try:
            response = await self._client.request(method, path, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"Authority timeout during {operation}")
            return AuthorityResult.failure(ErrorKind.UNAVAILABLE, "timeout")
        except httpx.HTTPError as e:
            logger.error(f"Authority network error during {operation}: {e}")
            return AuthorityResult.failure(ErrorKind.UNAVAILABLE, "network_error")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            error_body = body if isinstance(body, dict) else {}
            error_type = error_body.get("error_type") or f"http_{response.status_code}"
            kind = ErrorKind.UNAVAILABLE if response.status_code >= 500 else ErrorKind.REJECTED
            logger.error(
                f"Authority rejected {operation}, resp: {error_body or response.text!r}",
                extra={
                    "operation": operation,
                    "status_code": response.status_code,
                    "error_type": error_type,
                    "request_id": error_body.get("request_id"),
                }
            )
            return AuthorityResult.failure(kind, error_type, response.status_code)

        if not isinstance(body, dict):
            logger.error(f"Authority returned a non-JSON body for {operation}")
            return AuthorityResult.failure(ErrorKind.MALFORMED, "invalid_body", response.status_code)

        missing = [key for key in required if body.get(key) in (None, "")]
        if missing:
            logger.error(f"Authority response for {operation} missing fields: {missing}")
            return AuthorityResult.failure(ErrorKind.MALFORMED, "missing_fields", response.status_code)

        try:
            return _parse_success(body, response.status_code)
        except (KeyError, TypeError, PydanticValidationError) as e:
            logger.error(f"Authority response for {operation} has unexpected shape: {e}")
            return AuthorityResult.failure(ErrorKind.MALFORMED, "unexpected_shape", response.status_code)


def _parse_success(body: Dict[str, Any], status_code: int) -> AuthorityResult:
    discovered = [
        DiscoveredOrganization.from_authority(entry)
        for entry in body.get("discovered_organizations") or []
    ]
    member = Member.model_validate(body["member"]) if body.get("member") else None
    organization = (
        Organization.model_validate(body["organization"]) if body.get("organization") else None
    )
    email = body.get("email_address") or (member.email_address if member else None)

    return AuthorityResult(
        ok=True,
        session_token=body.get("session_jwt") or None,
        intermediate_session_token=body.get("intermediate_session_token") or None,
        email=email,
        discovered_organizations=discovered,
        member=member,
        organization=organization,
        status_code=status_code,
    )


__all__ = [
    "AuthorityClient",
    "AuthorityResult",
    "ErrorKind",
    "JitProvisioning",
    "MEMBER_SESSION_HEADER",
]
