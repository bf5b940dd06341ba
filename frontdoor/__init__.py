"""
Multi-tenant authentication front door.

Turns magic link, OAuth discovery and intermediate session tokens verified
by the identity authority into organization-scoped browser sessions.
"""

__version__ = "1.0.0"
