"""
Error kinds raised by the ledger services.

Routers do not catch these; the application-level exception handler in
src.main renders them with their status code.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for expected, client-correctable ledger errors."""

    status_code: int = 400
    kind: str = "ledger_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "error": self.kind}
        if self.details:
            body["context"] = self.details
        return body


class ValidationError(LedgerError):
    """Malformed request: missing reason, bad price, unknown sale kind."""

    status_code = 422
    kind = "validation_error"


class NotFoundError(LedgerError):
    """Unknown sale, period, transaction or salesperson."""

    status_code = 404
    kind = "not_found"


class RateUnavailableError(NotFoundError):
    """No commission rate was in effect at the event time."""

    kind = "rate_unavailable"


class ConflictError(LedgerError):
    """Request conflicts with current state (double approval, same owner, retired period)."""

    status_code = 409
    kind = "conflict"


class AuthorizationError(LedgerError):
    """Non-administrator attempted an administrator-only action."""

    status_code = 403
    kind = "forbidden"
