"""Error taxonomy for trading operations.

Every error carries a short human-readable message and the HTTP status the
API answers with. Messages never include internal identifiers.
"""


class TradeError(Exception):
    """Base class for errors surfaced to a trading caller."""

    status_code = 500
    default_message = "trade failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(TradeError):
    """Missing or unverifiable credential."""

    status_code = 401
    default_message = "user not authenticated"


class NotFoundError(TradeError):
    status_code = 404
    default_message = "not found"


class UserNotFound(NotFoundError):
    default_message = "user not found"


class AssetNotFound(NotFoundError):
    default_message = "asset not found"


class ValidationError(TradeError):
    """Request the caller must correct before resubmitting."""

    status_code = 400
    default_message = "invalid request"


class InvalidInput(ValidationError):
    default_message = "quantity must be a positive integer"


class InsufficientFunds(ValidationError):
    default_message = "not enough coins"


class InsufficientHoldings(ValidationError):
    default_message = "not enough quantity to sell"


class PersistenceError(TradeError):
    """A ledger store read or write failed."""

    status_code = 500
    default_message = "could not persist trade"

    def __init__(self, message: str | None = None, stage: str | None = None):
        super().__init__(message)
        self.stage = stage


class DegradedReadError(PersistenceError):
    """An aggregate read failed. Callers may fall back to a default."""

    default_message = "could not read aggregate"
