"""
Error types raised by the authentication flow.

Every error carries the HTTP status and short error code the application's
exception handler renders. Messages of authority failures are opaque; the
raw authority payload is only ever logged.
"""

from fastapi import status


class FrontDoorError(Exception):
    """Base exception for front door errors"""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"

    def __init__(self, message: str = "Request failed"):
        super().__init__(message)
        self.message = message


class ValidationError(FrontDoorError):
    """A request field is missing or malformed."""

    error = "validation_error"


class PreconditionFailed(FrontDoorError):
    """The credential the operation needs is absent from the browser session."""

    error = "precondition_failed"


class UnrecognizedTokenType(FrontDoorError):
    error = "unrecognized_token_type"

    def __init__(self, token_type: str):
        super().__init__(f"Unrecognized token type: '{token_type}'")
        self.token_type = token_type


class AuthenticationError(FrontDoorError):
    """The identity authority rejected a credential or token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error = "authentication_failed"

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class DeliveryError(FrontDoorError):
    """The identity authority refused to send a login link."""

    error = "delivery_failed"

    def __init__(self, message: str = "Login link could not be sent"):
        super().__init__(message)


class ServiceError(FrontDoorError):
    """The identity authority was unreachable or answered with an unexpected shape."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "service_unavailable"

    def __init__(self, message: str = "Identity service unavailable"):
        super().__init__(message)


class NotFoundError(FrontDoorError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


__all__ = [
    "FrontDoorError",
    "ValidationError",
    "PreconditionFailed",
    "UnrecognizedTokenType",
    "AuthenticationError",
    "DeliveryError",
    "ServiceError",
    "NotFoundError",
]
