"""
Error taxonomy for the trading ledger.

Every error carries a machine-readable ``kind`` so outer layers can map it
without string matching. ``LedgerError`` derives from ValueError, which is
what callers of the storage-backed managers already expect.
"""

from typing import Iterable, Optional


class LedgerError(ValueError):
    """Base class for all ledger errors"""
    kind = "ledger_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class ValidationError(LedgerError):
    """Input rejected before any storage mutation"""
    kind = "validation_error"


class MissingFields(ValidationError):
    kind = "missing_fields"

    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        self.fields = list(fields)
        super().__init__(message or f"Missing fields: {', '.join(self.fields)}", fields=self.fields)


class InvalidAmount(ValidationError):
    kind = "invalid_amount"


class NotFound(LedgerError):
    kind = "not_found"


class DuplicateAccount(LedgerError):
    kind = "duplicate_account"


class InvalidStatusTransition(LedgerError):
    """A request record was asked to leave a state it cannot leave"""
    kind = "invalid_status_transition"


class MarketDataUnavailable(LedgerError):
    kind = "market_data_unavailable"
