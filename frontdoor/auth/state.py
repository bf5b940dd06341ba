"""
Browser session states.

A browser is in exactly one of three states:

    Anonymous     -- no credential
    Intermediate  -- holds an intermediate session token (verified email,
                     no organization chosen yet)
    OrgSessioned  -- holds an organization-scoped session token

BrowserSession is the persisted record. It is always written from a state,
so a stored record never carries both credentials at once.
"""

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class Anonymous:
    pass


@dataclass(frozen=True)
class Intermediate:
    intermediate_session_token: str


@dataclass(frozen=True)
class OrgSessioned:
    session_token: str


FlowState = Union[Anonymous, Intermediate, OrgSessioned]

ANONYMOUS = Anonymous()


class BrowserSession(BaseModel):
    """Server-side record for one browser."""

    session_credential: Optional[str] = None
    intermediate_credential: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.session_credential and not self.intermediate_credential

    @property
    def state(self) -> FlowState:
        # A pending intermediate session takes precedence until exchanged.
        if self.intermediate_credential:
            return Intermediate(self.intermediate_credential)
        if self.session_credential:
            return OrgSessioned(self.session_credential)
        return ANONYMOUS

    @classmethod
    def from_state(cls, state: FlowState) -> "BrowserSession":
        if isinstance(state, Anonymous):
            return cls()
        if isinstance(state, Intermediate):
            return cls(intermediate_credential=state.intermediate_session_token)
        if isinstance(state, OrgSessioned):
            return cls(session_credential=state.session_token)
        raise TypeError(f"Unknown flow state: {state!r}")


__all__ = [
    "ANONYMOUS",
    "Anonymous",
    "BrowserSession",
    "FlowState",
    "Intermediate",
    "OrgSessioned",
]
