"""
Authentication Flow Controller
==============================

State machine driving a browser from anonymous, through an optional
intermediate (discovery) session, to an organization-scoped session, and
between organizations afterwards.

Every operation works on an opened SessionHandle and writes at most one
state transition, after the authority has confirmed the change. Validation
and precondition failures are raised before the authority is contacted.
Authority rejections become AuthenticationError; an unreachable or
malformed authority becomes ServiceError. Nothing is retried.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Type

from ..authority import AuthorityClient, AuthorityResult, ErrorKind, JitProvisioning
from ..errors import (
    AuthenticationError,
    DeliveryError,
    FrontDoorError,
    NotFoundError,
    PreconditionFailed,
    ServiceError,
    UnrecognizedTokenType,
    ValidationError,
)
from ..models import DiscoveredOrganization, Member, Organization
from .state import ANONYMOUS, Anonymous, Intermediate, OrgSessioned
from .store import SessionHandle

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    DISCOVERY = "discovery"
    DISCOVERY_OAUTH = "discovery_oauth"
    ORGANIZATION_MAGIC_LINK = "multi_tenant_magic_links"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TokenType":
        try:
            return cls(value)
        except ValueError:
            logger.error(f"Unrecognized token type: '{value}'")
            raise UnrecognizedTokenType(str(value)) from None


@dataclass(frozen=True)
class Identity:
    """The member and organization an organization session belongs to."""

    member: Member
    organization: Organization


@dataclass(frozen=True)
class Discovery:
    email: str
    organizations: List[DiscoveredOrganization] = field(default_factory=list)


@dataclass(frozen=True)
class AuthenticationOutcome:
    token_type: TokenType
    email: Optional[str] = None
    organizations: List[DiscoveredOrganization] = field(default_factory=list)
    member: Optional[Member] = None
    organization: Optional[Organization] = None


@dataclass(frozen=True)
class SlugResolution:
    organization: Organization
    switched: bool


def _require_success(
    result: AuthorityResult,
    operation: str,
    rejected_error: Type[FrontDoorError] = AuthenticationError,
) -> AuthorityResult:
    if result.ok:
        return result
    if result.error_kind == ErrorKind.REJECTED:
        raise rejected_error()
    logger.error(
        f"Identity authority unavailable during {operation}",
        extra={"error_type": result.error_type, "error_kind": result.error_kind}
    )
    raise ServiceError()


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AuthFlowController:
    """
    Drives browser session transitions against the identity authority.

    Args:
        authority: Identity authority client
    """

    def __init__(self, authority: AuthorityClient):
        self._authority = authority

    # =========================================================================
    # Identity
    # =========================================================================

    async def resolve_current_identity(self, session: SessionHandle) -> Optional[Identity]:
        """
        Re-validate the stored session with the authority.

        Returns the identity and stores the (possibly rotated) session token
        on success. A rejected session is cleared and None is returned. A
        browser without a session token gets None without any authority call.
        Call at most once per request: each call may rotate the token.
        """
        state = session.state
        if not isinstance(state, OrgSessioned):
            return None

        result = await self._authority.authenticate_session(state.session_token)
        if not result.ok and result.error_kind == ErrorKind.REJECTED:
            logger.warning(
                "Stored session rejected by authority, clearing",
                extra={"error_type": result.error_type}
            )
            await session.clear()
            return None

        result = _require_success(result, "authenticate_session")
        await session.transition(OrgSessioned(result.session_token))
        return Identity(member=result.member, organization=result.organization)

    # =========================================================================
    # Login
    # =========================================================================

    async def initiate_login(self, email: Optional[str], organization_id: Optional[str] = None) -> None:
        """
        Send an organization magic link when an organization id is given,
        otherwise a discovery magic link. Sending a link never changes the
        browser's state.
        """
        if _blank(email):
            raise ValidationError("Email is required")
        email = email.strip()

        if not _blank(organization_id):
            result = await self._authority.send_organization_link(email, organization_id.strip())
            _require_success(result, "send_organization_link", DeliveryError)
            logger.info("Success - Organization Magic Link sent")
        else:
            result = await self._authority.send_discovery_link(email)
            _require_success(result, "send_discovery_link", DeliveryError)
            logger.info("Success - Discovery Magic Link sent")

    async def complete_authentication(
        self,
        session: SessionHandle,
        token_type: Optional[str],
        token: Optional[str],
    ) -> AuthenticationOutcome:
        """
        Authenticate a token delivered by magic link or OAuth redirect.

        discovery                -> intermediate session + organization list
        discovery_oauth          -> organization session + organization list
        multi_tenant_magic_links -> organization session

        Tokens are single-use; every call goes to the authority.
        """
        kind = TokenType.parse(token_type)
        if _blank(token):
            logger.error("Token not present in request")
            raise ValidationError("Token is required")

        if kind is TokenType.DISCOVERY:
            result = _require_success(
                await self._authority.authenticate_discovery_token(token),
                "authenticate_discovery_token",
            )
            await session.transition(Intermediate(result.intermediate_session_token))
            logger.info("Success - intermediate session token retrieved")
            return AuthenticationOutcome(
                token_type=kind,
                email=result.email,
                organizations=result.discovered_organizations,
            )

        if kind is TokenType.DISCOVERY_OAUTH:
            result = _require_success(
                await self._authority.authenticate_oauth_discovery_token(token),
                "authenticate_oauth_discovery_token",
            )
            await session.transition(OrgSessioned(result.session_token))
            logger.info("Success - OAuth discovery session retrieved")
            return AuthenticationOutcome(
                token_type=kind,
                email=result.email,
                organizations=result.discovered_organizations,
                member=result.member,
                organization=result.organization,
            )

        if kind is TokenType.ORGANIZATION_MAGIC_LINK:
            result = _require_success(
                await self._authority.authenticate_organization_token(token),
                "authenticate_organization_token",
            )
            await session.transition(OrgSessioned(result.session_token))
            logger.info("Success - organization session retrieved")
            return AuthenticationOutcome(
                token_type=kind,
                email=result.email,
                member=result.member,
                organization=result.organization,
            )

        raise UnrecognizedTokenType(kind.value)

    # =========================================================================
    # Organizations
    # =========================================================================

    async def create_organization(
        self,
        session: SessionHandle,
        org_name: Optional[str],
        org_slug: Optional[str],
    ) -> Optional[Organization]:
        """Create an organization from the intermediate session and enter it."""
        state = session.state
        if not isinstance(state, Intermediate):
            raise PreconditionFailed("An intermediate session is required to create an organization")

        name = (org_name or "").strip()
        slug = "".join((org_slug or "").split())
        if not name or not slug:
            raise ValidationError("Organization name and slug are required")

        result = _require_success(
            await self._authority.create_organization(state.intermediate_session_token, name, slug),
            "create_organization",
        )
        await session.transition(OrgSessioned(result.session_token))
        logger.info("Success - organization created")
        return result.organization

    async def select_organization(self, session: SessionHandle, organization_id: Optional[str]) -> Optional[Organization]:
        """
        Enter an organization.

        With an intermediate session this exchanges it for an organization
        session; with an organization session it switches the same member to
        another of its organizations. The previous credential is kept if the
        authority refuses.
        """
        if _blank(organization_id):
            raise ValidationError("Organization id is required")
        organization_id = organization_id.strip()

        state = session.state
        if isinstance(state, Intermediate):
            result = _require_success(
                await self._authority.exchange_intermediate_session(
                    state.intermediate_session_token, organization_id
                ),
                "exchange_intermediate_session",
            )
        elif isinstance(state, OrgSessioned):
            result = _require_success(
                await self._authority.exchange_session(state.session_token, organization_id),
                "exchange_session",
            )
        elif isinstance(state, Anonymous):
            raise PreconditionFailed("Either an intermediate credential or a session token is required")
        else:
            raise TypeError(f"Unknown flow state: {state!r}")

        await session.transition(OrgSessioned(result.session_token))
        logger.info("Success - organization selected", extra={"organization_id": organization_id})
        return result.organization

    async def list_switchable_organizations(self, session: SessionHandle) -> Discovery:
        """List organizations the signed-in member may switch to. Read-only."""
        state = session.state
        if not isinstance(state, OrgSessioned):
            raise PreconditionFailed("A session is required to list organizations")

        result = _require_success(
            await self._authority.list_discovered_organizations(state.session_token),
            "list_discovered_organizations",
        )
        return Discovery(email=result.email, organizations=result.discovered_organizations)

    async def resolve_organization_by_slug(
        self,
        session: SessionHandle,
        identity: Optional[Identity],
        slug: Optional[str],
    ) -> SlugResolution:
        """
        Make the organization with ``slug`` the current one.

        ``identity`` is the identity already resolved for this request. When
        it is scoped to ``slug`` nothing changes. Otherwise the slug is looked
        up among the member's organizations and selected; an unknown slug
        raises NotFoundError.
        """
        if not isinstance(session.state, OrgSessioned) or identity is None:
            raise PreconditionFailed("A session is required to switch organizations")
        if _blank(slug):
            raise ValidationError("Organization slug is required")
        slug = slug.strip()

        if identity.organization.organization_slug == slug:
            return SlugResolution(organization=identity.organization, switched=False)

        discovery = await self.list_switchable_organizations(session)
        for discovered in discovery.organizations:
            if discovered.organization.organization_slug == slug:
                await self.select_organization(session, discovered.organization.organization_id)
                return SlugResolution(organization=discovered.organization, switched=True)

        raise NotFoundError(f"No organization with slug '{slug}' is available")

    async def update_organization_jit_policy(
        self,
        session: SessionHandle,
        identity: Optional[Identity],
    ) -> str:
        """
        Restrict the current organization's email JIT provisioning to the
        member's own email domain. The authority enforces whether the member
        may do this.

        Returns:
            The allowed domain
        """
        state = session.state
        if not isinstance(state, OrgSessioned) or identity is None:
            raise PreconditionFailed("A session is required to update organization settings")

        email = identity.member.email_address or ""
        domain = email.rpartition("@")[2].strip().lower() if "@" in email else ""
        if not domain:
            raise ValidationError("Member email has no domain")

        _require_success(
            await self._authority.update_organization_settings(
                identity.organization.organization_id,
                JitProvisioning.RESTRICTED,
                [domain],
                state.session_token,
            ),
            "update_organization_settings",
        )
        logger.info(
            "Success - JIT provisioning restricted",
            extra={"organization_id": identity.organization.organization_id, "domain": domain}
        )
        return domain

    # =========================================================================
    # Logout
    # =========================================================================

    async def logout(self, session: SessionHandle) -> None:
        await session.transition(ANONYMOUS)


__all__ = [
    "AuthFlowController",
    "AuthenticationOutcome",
    "Discovery",
    "Identity",
    "SlugResolution",
    "TokenType",
]
