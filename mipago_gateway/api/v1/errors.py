"""Translate service Failures into HTTP errors"""

import logging
from typing import Any

from fastapi import HTTPException

from mipago_gateway.domain.results import Failure, FailureKind, Result

STATUS_BY_KIND = {
    FailureKind.VALIDATION: 400,
    FailureKind.UNAUTHORIZED: 401,
    FailureKind.INSUFFICIENT_FUNDS: 402,
    FailureKind.NOT_FOUND: 404,
    FailureKind.INVALID_STATE: 409,
    FailureKind.BUSINESS_RULE_DENIED: 422,
    FailureKind.EXTERNAL_ACCOUNT_INVALID: 422,
    FailureKind.CLEARING_FAILURE: 503,
    FailureKind.STORE_FAILURE: 503,
}


def http_error(failure: Failure, request_id: str) -> HTTPException:
    status_code = STATUS_BY_KIND[failure.kind]
    if status_code >= 500:
        logging.error(f"{failure.kind.value}: {failure.message}", extra={"request_id": request_id, "code": failure.code})
    else:
        logging.warning(f"{failure.kind.value}: {failure.message}", extra={"request_id": request_id, "code": failure.code})

    return HTTPException(
        status_code=status_code,
        detail={
            "kind": failure.kind.value,
            "code": failure.code,
            "message": failure.message,
            "context": failure.context,
        },
    )


def unwrap_or_raise(result: Result, request_id: str) -> Any:
    """Return a Success value or raise the matching HTTPException"""
    if isinstance(result, Failure):
        raise http_error(result, request_id)
    return result.value
