"""Error taxonomy for the request gate.

Every gate error carries enough data for the HTTP layer to render an
RFC 9457 Problem Detail:
- status_code: HTTP status
- error_type: problem type URI
- title: short summary
- reason: stable machine-readable code
- detail: human-readable explanation

Denials (401/403/400) are policy outcomes. StoreError is infrastructure
failure and must never be reported as a denial.
"""

from typing import Optional

PROBLEM_BASE_URI = "https://api.wayveexpenses.app/problems"


class GateError(Exception):
    """Base class for errors surfaced by the request gate."""

    status_code: int = 500
    title: str = "Internal Server Error"
    problem_slug: str = "internal-error"

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail or reason.replace("_", " ").capitalize()
        super().__init__(self.detail)

    @property
    def error_type(self) -> str:
        return f"{PROBLEM_BASE_URI}/{self.problem_slug}"


class UnauthenticatedError(GateError):
    """Missing, invalid or expired credential ("log in again")."""

    status_code = 401
    title = "Unauthorized"
    problem_slug = "unauthenticated"

    def __init__(
        self,
        reason: str,
        detail: Optional[str] = None,
        clear_credential: bool = False,
    ):
        super().__init__(reason, detail)
        # Web clients should drop the cookie when the server-side session is gone
        self.clear_credential = clear_credential


class UnauthorizedError(GateError):
    """Valid credential but no access to the requested tenant."""

    status_code = 403
    title = "Forbidden"
    problem_slug = "tenant-access-denied"


class MissingContextError(GateError):
    """Valid credential but no usable tenant identifier on the request."""

    status_code = 400
    title = "Bad Request"
    problem_slug = "missing-tenant-context"


class StoreError(GateError):
    """Persistence layer failure (infrastructure, not policy)."""

    status_code = 503
    title = "Service Unavailable"
    problem_slug = "store-unavailable"

    def __init__(self, operation: str, detail: Optional[str] = None):
        super().__init__(
            reason="store_failure",
            detail=detail or "A storage dependency is unavailable. Please try again later.",
        )
        self.operation = operation


class RateLimitExceededError(GateError):
    """Raised at the HTTP edge when a rate limit decision denies an action.

    The limiter itself never raises this; it returns a RateLimitDecision.
    """

    status_code = 429
    title = "Too Many Requests"
    problem_slug = "rate-limit-exceeded"

    def __init__(
        self,
        limit_hit: str,
        current: int,
        limit: int,
        retry_after_seconds: int,
    ):
        super().__init__(
            reason="rate_limit_exceeded",
            detail=f"{limit_hit} limit of {limit} reached (current: {current})",
        )
        self.limit_hit = limit_hit
        self.current = current
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds


class LoginRejectedError(GateError):
    """Login completion refused (uninvited, expired invite, identity mismatch)."""

    status_code = 403
    title = "Forbidden"
    problem_slug = "login-rejected"


class ScanRejectedError(GateError):
    """The receipt scanner rejected the caller's input."""

    status_code = 400
    title = "Bad Request"
    problem_slug = "scan-rejected"


class ScannerUnavailableError(GateError):
    """No receipt scanner is configured for this deployment."""

    status_code = 503
    title = "Service Unavailable"
    problem_slug = "scanner-unavailable"


class IdentityVerificationError(GateError):
    """The OAuth provider could not turn a callback code into a verified identity."""

    status_code = 502
    title = "Bad Gateway"
    problem_slug = "identity-verification-failed"


class NotificationError(Exception):
    """Alert delivery failure. Never propagates past the alert dispatcher."""
