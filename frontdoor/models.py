"""
Data Models Module

This module defines Pydantic models for request/response validation
and data serialization throughout the front door service.

Models are organized by functional area:
- Authority projections (members, organizations, discovery results)
- Request models (login, organization creation)
- Output models handed to the client
- Health and error models
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Authority Projections
# ============================================================================

class Member(BaseModel):
    """Organization member as reported by the identity authority."""
    model_config = ConfigDict(extra="ignore")

    member_id: str = Field(..., description="Authority member identifier")
    email_address: str = Field(..., description="Verified member email")
    name: Optional[str] = Field(None, description="Member display name")
    organization_id: Optional[str] = Field(None, description="Organization the member belongs to")
    status: Optional[str] = Field(None, description="Membership status")


class Organization(BaseModel):
    """Organization as reported by the identity authority."""
    model_config = ConfigDict(extra="ignore")

    organization_id: str = Field(..., description="Authority organization identifier")
    organization_name: str = Field(..., description="Organization display name")
    organization_slug: str = Field("", description="URL slug of the organization")
    email_jit_provisioning: Optional[str] = Field(None, description="JIT provisioning policy")
    email_allowed_domains: List[str] = Field(default_factory=list, description="Domains allowed by the JIT policy")


class DiscoveredOrganization(BaseModel):
    """Organization a verified email may enter, with its membership eligibility."""
    model_config = ConfigDict(extra="ignore")

    organization: Organization
    membership_type: Optional[str] = Field(None, description="active_member, pending_member, eligible_to_join_by_email_domain, ...")
    member_authenticated: bool = Field(False, description="Whether the member already satisfies the org's auth policy")

    @classmethod
    def from_authority(cls, payload: Dict[str, Any]) -> "DiscoveredOrganization":
        membership = payload.get("membership") or {}
        return cls(
            organization=Organization.model_validate(payload["organization"]),
            membership_type=membership.get("type"),
            member_authenticated=bool(payload.get("member_authenticated", False)),
        )


# ============================================================================
# Request Models
# ============================================================================

class LoginRequest(BaseModel):
    """Request model for sending a login magic link."""
    email: Optional[str] = Field(None, description="Email address to send the link to")
    organizationId: Optional[str] = Field(None, description="Send an organization link instead of a discovery link")


class CreateOrganizationRequest(BaseModel):
    """Request model for creating an organization from an intermediate session."""
    orgName: Optional[str] = Field(None, description="Organization display name")
    orgSlug: Optional[str] = Field(None, description="Organization URL slug")


# ============================================================================
# Output Models
# ============================================================================

class DiscoveredOrganizationView(BaseModel):
    """One entry of an organization choice list."""
    organizationId: str
    organizationName: str
    organizationSlug: str = ""
    membershipType: Optional[str] = None

    @classmethod
    def from_discovered(cls, discovered: DiscoveredOrganization) -> "DiscoveredOrganizationView":
        org = discovered.organization
        return cls(
            organizationId=org.organization_id,
            organizationName=org.organization_name,
            organizationSlug=org.organization_slug,
            membershipType=discovered.membership_type,
        )


class IdentityView(BaseModel):
    """Landing page model: who the browser is, if anyone."""
    authenticated: bool = Field(..., description="Whether a valid organization session exists")
    member: Optional[Member] = None
    organization: Optional[Organization] = None


class DiscoveryView(BaseModel):
    """Organization choice list for a verified email."""
    email: str
    discoveredOrganizations: List[DiscoveredOrganizationView] = Field(default_factory=list)


class AuthenticationView(BaseModel):
    """Outcome of completing a magic link or OAuth redirect."""
    method: str = Field(..., description="Discovery, Discovery OAuth or Organization")
    email: Optional[str] = None
    discoveredOrganizations: List[DiscoveredOrganizationView] = Field(default_factory=list)
    member: Optional[Member] = None
    organization: Optional[Organization] = None


class StatusView(BaseModel):
    """Generic outcome with an optional redirect target."""
    status: str = Field(..., description="Outcome code, e.g. email_sent, already_logged_in")
    redirectTo: Optional[str] = Field(None, description="Where the client should navigate next")


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
