"""
Authentication Package

This package holds the front door's authentication state machine and the
HTTP routes that drive it against the identity authority.

Modules:
- state: browser session states and the persisted BrowserSession record
- store: per-browser session storage with per-browser locking
- cookies: signed cookie carrying the opaque browser identifier
- flow: the authentication flow controller
- routes: HTTP endpoints (/, /magic-links/login-signup, /authenticate, ...)

The authentication flow:
1. Browser posts an email to /magic-links/login-signup
2. Authority emails a discovery (or organization) magic link
3. Link lands on /authenticate; a discovery token yields an intermediate
   session and a list of organizations
4. Browser selects or creates an organization; the intermediate session is
   exchanged for an organization session
5. Later requests re-validate that session with the authority
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]
