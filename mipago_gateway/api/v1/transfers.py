"""Transfer endpoints: settlement, lookup, pre-transfer analysis and daily usage"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from mipago_gateway.api.dependencies import get_request_id, get_transfer_service
from mipago_gateway.api.v1.errors import unwrap_or_raise
from mipago_gateway.api.v1.schemas import (
    DailySummaryResponse,
    TransferAnalysisResponse,
    TransferDetailResponse,
    TransferRequest,
    TransferResponse,
)
from mipago_gateway.domain.destinations import mask_account_number
from mipago_gateway.domain.exceptions import CompensationFailure, SettlementNotRecorded
from mipago_gateway.services.transfers import TransferService

router = APIRouter()


@router.post("/transfers", response_model=TransferResponse, status_code=201)
def create_transfer(body: TransferRequest, request: Request, service: TransferService = Depends(get_transfer_service)):
    """
    Settle a transfer to a wallet account or an external CBU/CVU.

    Flow:
    1. Validate input and origin account
    2. Check the daily limit for the account's tier
    3. Score fraud signals (blocking is opt-in)
    4. Validate the external destination
    5. Debit origin, then credit destination or submit to clearing
    """
    request_id = get_request_id(request)
    try:
        result = service.settle(
            body.origin_account_id,
            body.amount_cents,
            destination_account_id=body.destination_account_id,
            destination_account_number=body.destination_account_number,
            reference=body.reference,
            block_on_verification=body.block_on_verification,
        )
    except (CompensationFailure, SettlementNotRecorded) as e:
        logging.error(f"Transfer needs reconciliation: {e}", extra={"request_id": request_id, **e.context})
        raise HTTPException(status_code=500, detail={"code": e.code, "message": "Transfer failed and requires manual reconciliation"})

    return TransferResponse.model_validate(unwrap_or_raise(result, request_id))


@router.get("/accounts/{account_id}/transfer-analysis", response_model=TransferAnalysisResponse)
def analyze_transfer(
    account_id: str,
    request: Request,
    amount_cents: int = Query(...),
    service: TransferService = Depends(get_transfer_service),
):
    analysis = unwrap_or_raise(service.analyze(account_id, amount_cents), get_request_id(request))
    return TransferAnalysisResponse.model_validate(analysis)


@router.get("/accounts/{account_id}/transfers/summary", response_model=DailySummaryResponse)
def daily_summary(account_id: str, request: Request, service: TransferService = Depends(get_transfer_service)):
    summary = unwrap_or_raise(service.daily_summary(account_id), get_request_id(request))
    return DailySummaryResponse.model_validate(summary)


@router.get("/accounts/{account_id}/transfers/{transfer_id}", response_model=TransferDetailResponse)
def get_transfer(
    account_id: str,
    transfer_id: str,
    request: Request,
    service: TransferService = Depends(get_transfer_service),
):
    transfer = unwrap_or_raise(service.get_transfer(transfer_id, account_id), get_request_id(request))
    if transfer.destination_account_number:
        destination = mask_account_number(transfer.destination_account_number)
    else:
        destination = transfer.destination_account_id
    return TransferDetailResponse(
        id=transfer.id,
        origin_account_id=transfer.origin_account_id,
        destination_kind=transfer.destination_kind.value,
        destination=destination,
        amount_cents=transfer.amount_cents,
        status=transfer.status,
        created_at=transfer.created_at,
        reference=transfer.reference,
        transaction_reference=transfer.transaction_reference,
        bank_name=transfer.bank_name,
        fraud_risk=transfer.fraud_risk,
        requires_verification=transfer.requires_verification,
        failure_reason=transfer.failure_reason,
        settled_at=transfer.settled_at,
    )
