"""Domain-specific exceptions"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or {}


class ValidationError(DomainException):
    """Input is malformed; never retried"""

    code = "VALIDATION_ERROR"


class InvalidTerm(ValidationError):
    """Requested term is not offered for the credit product"""

    code = "INVALID_TERM"


class NotFoundError(DomainException):
    """Referenced entity does not exist"""

    code = "NOT_FOUND"


class UnauthorizedError(DomainException):
    """Credential or lock failure"""

    code = "UNAUTHORIZED"


class InvalidCredentials(UnauthorizedError):
    code = "INVALID_CREDENTIALS"


class AccountLocked(UnauthorizedError):
    code = "ACCOUNT_LOCKED"


class InvalidToken(UnauthorizedError):
    """Password reset token is unknown, expired or already used"""

    code = "INVALID_TOKEN"


class InvalidStateError(DomainException):
    """Operation not allowed from the entity's current status"""

    code = "INVALID_STATE"


class InsufficientFundsError(DomainException):
    """Balance does not cover the debit; fatal, not retried"""

    code = "INSUFFICIENT_FUNDS"


class ExternalAccountInvalid(DomainException):
    """External destination account cannot receive funds"""

    code = "EXTERNAL_ACCOUNT_INVALID"


class InvalidAccountFormat(ExternalAccountInvalid):
    code = "INVALID_ACCOUNT_FORMAT"


class InactiveAccount(ExternalAccountInvalid):
    code = "INACTIVE_ACCOUNT"


class ClearingError(DomainException):
    """Clearing house rejected the transfer or is unavailable"""

    code = "CLEARING_ERROR"


class StoreFailure(DomainException):
    """Repository fault (store unreachable, constraint broken)"""

    code = "STORE_FAILURE"


class CompensationFailure(DomainException):
    """Re-crediting the origin after a failed transfer did not succeed.

    Money is temporarily unaccounted for; this is always surfaced as a fault.
    """

    code = "COMPENSATION_FAILED"


class SettlementNotRecorded(DomainException):
    """Clearing accepted an external transfer but its settled status could not be stored.

    The money has left the wallet; the transfer needs manual reconciliation.
    """

    code = "SETTLEMENT_NOT_RECORDED"
