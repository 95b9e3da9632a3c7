from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base for errors converted to structured responses at the HTTP boundary."""

    status_code: int = 500
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthenticationError(DomainError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(DomainError):
    status_code = 403
    default_message = "Access denied"


class TenantSelectionRequired(AuthorizationError):
    default_message = "Organization selection required"

    def __init__(self, organization_count: int) -> None:
        super().__init__()
        self.organization_count = organization_count


class TenantIsolationViolation(DomainError):
    status_code = 403
    default_message = "Cross-organization access denied"


class TokenValidationError(DomainError):
    # One message for bad signature, malformed, expired and revoked tokens.
    status_code = 403
    default_message = "Invalid or expired impersonation token"

    def __init__(self) -> None:
        super().__init__()


class SessionStateError(DomainError):
    status_code = 403
    default_message = "Support session unavailable"


class NotFoundError(DomainError):
    status_code = 404
    default_message = "Not found"


class InvalidRequestError(DomainError):
    status_code = 400
    default_message = "Invalid request"


class RateLimitExceeded(DomainError):
    status_code = 429
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = max(1, int(retry_after))


def domain_error_headers(exc: DomainError) -> dict[str, str] | None:
    if isinstance(exc, RateLimitExceeded):
        return {"Retry-After": str(exc.retry_after)}
    return None


def domain_error_detail(exc: DomainError) -> dict[str, Any]:
    return {"detail": exc.message}
