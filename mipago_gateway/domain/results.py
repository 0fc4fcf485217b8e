"""Discriminated success/failure results returned by core operations"""

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, TypeVar, Union

from mipago_gateway.domain import exceptions as exc
from mipago_gateway.domain.models import Denial

T = TypeVar("T")

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    BUSINESS_RULE_DENIED = "business_rule_denied"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    EXTERNAL_ACCOUNT_INVALID = "external_account_invalid"
    CLEARING_FAILURE = "clearing_failure"
    STORE_FAILURE = "store_failure"


# Most specific class first
_KIND_BY_EXCEPTION = (
    (exc.ValidationError, FailureKind.VALIDATION),
    (exc.NotFoundError, FailureKind.NOT_FOUND),
    (exc.UnauthorizedError, FailureKind.UNAUTHORIZED),
    (exc.InvalidStateError, FailureKind.INVALID_STATE),
    (exc.InsufficientFundsError, FailureKind.INSUFFICIENT_FUNDS),
    (exc.ExternalAccountInvalid, FailureKind.EXTERNAL_ACCOUNT_INVALID),
    (exc.ClearingError, FailureKind.CLEARING_FAILURE),
    (exc.StoreFailure, FailureKind.STORE_FAILURE),
)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    ok: bool = field(default=False, init=False)

    @classmethod
    def from_exception(cls, error: exc.DomainException) -> "Failure":
        for exc_type, kind in _KIND_BY_EXCEPTION:
            if isinstance(error, exc_type):
                return cls(kind=kind, code=error.code, message=error.message, context=dict(error.context))
        raise TypeError(f"No failure kind for {type(error).__name__}")

    @classmethod
    def from_denial(cls, denial: Denial, **extra_context: Any) -> "Failure":
        context = dict(denial.context)
        if denial.remediation:
            context["remediation"] = denial.remediation
        context.update(extra_context)
        return cls(
            kind=FailureKind.BUSINESS_RULE_DENIED,
            code=denial.code,
            message=denial.message,
            context=context,
        )


Result = Union[Success[T], Failure]


def returns_result(func: Callable[..., Any]) -> Callable[..., Result]:
    """
    Wrap a service operation so it always returns Success or Failure.

    Domain exceptions become Failure. CompensationFailure,
    SettlementNotRecorded and anything outside the domain taxonomy
    propagate as faults.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Result:
        try:
            value = func(*args, **kwargs)
        except (exc.CompensationFailure, exc.SettlementNotRecorded):
            raise
        except exc.DomainException as e:
            if isinstance(e, exc.StoreFailure):
                logger.error(f"Store failure in {func.__name__}: {e}")
            return Failure.from_exception(e)
        if isinstance(value, (Success, Failure)):
            return value
        return Success(value)

    return wrapper
