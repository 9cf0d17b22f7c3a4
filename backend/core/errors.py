# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Domain error taxonomy.

Every failure the service can surface to a client is one of these classes.
Each carries the HTTP status it maps to and a client-safe ``detail``
message; ``main.py`` registers one handler that turns them into the usual
FastAPI ``{"detail": ...}`` body.  Internal context (user ids, sizes) goes
to the log, never into ``detail``.
"""

from fastapi import status


class CoachError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Unexpected server error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# -- 400 -------------------------------------------------------------------


class ValidationError(CoachError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request"


class WeakPassword(ValidationError):
    detail = "Password must be at least 8 characters long."


class VaultTooLarge(ValidationError):
    detail = "Vault data is too large. Remove some entries and try again."


# -- 401 -------------------------------------------------------------------
# All recoverable by the client presenting credentials again.


class InvalidCredentials(CoachError):
    status_code = status.HTTP_401_UNAUTHORIZED
    # Same text for "no such email" and "wrong password"
    detail = "Invalid credentials."


class Unauthorized(CoachError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Authentication required"


class TokenExpired(Unauthorized):
    detail = "Invalid or expired token"


class TokenMalformed(Unauthorized):
    detail = "Invalid or expired token"


class TokenRevoked(Unauthorized):
    detail = "Session has been revoked. Please log in again."


class ReauthenticationRequired(Unauthorized):
    detail = "Please log in again to unlock your account data."


class AuthenticationFailed(Unauthorized):
    """GCM tag did not verify: wrong key, corruption or tampering."""

    detail = "Unable to unlock your account data. Please log in again."


# -- 403 / 404 / 409 / 429 -------------------------------------------------


class Forbidden(CoachError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Insufficient permissions for this action."


class NotFound(CoachError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Account not found."


class DuplicateEmail(CoachError):
    status_code = status.HTTP_409_CONFLICT
    detail = "An account with this email already exists."


class VaultMigrationRequired(CoachError):
    status_code = status.HTTP_409_CONFLICT
    detail = "This account needs a data migration before it can be unlocked."


class RateLimited(CoachError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    detail = "Too many requests. Please slow down before sending another message."


# -- 5xx -------------------------------------------------------------------


class MalformedBlob(CoachError):
    detail = "Unable to load your account data."


class InvalidSalt(CoachError):
    detail = "Unable to unlock your account data."


class ModelUnavailable(CoachError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "AI model is not ready. Please try again in a moment."
