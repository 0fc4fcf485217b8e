"""Credit endpoints: eligibility, simulation, creation, disbursement and status changes"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from mipago_gateway.api.dependencies import get_credit_service, get_request_id
from mipago_gateway.api.v1.errors import unwrap_or_raise
from mipago_gateway.api.v1.schemas import (
    CreateCreditRequest,
    CreditDetailResponse,
    CreditResponse,
    EligibilityResponse,
    InstallmentSchema,
    QuoteResponse,
    SimulateRequest,
    TransitionRequest,
)
from mipago_gateway.domain.models import CreditDetail
from mipago_gateway.services.credits import CreditService

router = APIRouter()


def _detail(detail: CreditDetail) -> CreditDetailResponse:
    return CreditDetailResponse(
        credit=CreditResponse.model_validate(detail.credit),
        installments=[InstallmentSchema.model_validate(i) for i in detail.installments],
    )


@router.get("/accounts/{account_id}/eligibility", response_model=EligibilityResponse)
def check_eligibility(
    account_id: str,
    request: Request,
    product_type: str = Query(..., description="quick | normal"),
    amount_cents: Optional[int] = Query(None),
    service: CreditService = Depends(get_credit_service),
):
    """
    Evaluate an account for a credit product.

    A denied decision is still a 200: the body carries the denial code and
    the remediation to show the user.
    """
    decision = unwrap_or_raise(
        service.check_eligibility(account_id, product_type, requested_amount_cents=amount_cents),
        get_request_id(request),
    )
    denial = decision.denial
    return EligibilityResponse(
        product_type=decision.product_type.value,
        eligible=decision.eligible,
        code=denial.code if denial else None,
        message=denial.message if denial else None,
        remediation=denial.remediation if denial else None,
        max_amount_cents=decision.max_amount_cents,
        allowed_terms=list(decision.allowed_terms),
    )


@router.post("/credits/simulate", response_model=QuoteResponse)
def simulate(body: SimulateRequest, request: Request, service: CreditService = Depends(get_credit_service)):
    quote = unwrap_or_raise(
        service.simulate(body.product_type, body.principal_cents, body.term_units),
        get_request_id(request),
    )
    return QuoteResponse.model_validate(quote)


@router.post("/credits", response_model=CreditResponse, status_code=201)
def create_credit(body: CreateCreditRequest, request: Request, service: CreditService = Depends(get_credit_service)):
    credit = unwrap_or_raise(
        service.create_credit(body.account_id, body.product_type, body.principal_cents, body.term_units),
        get_request_id(request),
    )
    return CreditResponse.model_validate(credit)


@router.post("/credits/{credit_id}/disburse", response_model=CreditDetailResponse)
def approve_and_disburse(credit_id: str, request: Request, service: CreditService = Depends(get_credit_service)):
    return _detail(unwrap_or_raise(service.approve_and_disburse(credit_id), get_request_id(request)))


@router.post("/credits/{credit_id}/transitions", response_model=CreditResponse)
def transition(
    credit_id: str,
    body: TransitionRequest,
    request: Request,
    service: CreditService = Depends(get_credit_service),
):
    credit = unwrap_or_raise(
        service.transition(credit_id, body.status, admin_override=body.admin_override),
        get_request_id(request),
    )
    return CreditResponse.model_validate(credit)


@router.get("/credits/{credit_id}", response_model=CreditDetailResponse)
def get_credit(credit_id: str, request: Request, service: CreditService = Depends(get_credit_service)):
    return _detail(unwrap_or_raise(service.get_credit(credit_id), get_request_id(request)))


@router.get("/accounts/{account_id}/credits", response_model=List[CreditResponse])
def list_credits(account_id: str, request: Request, service: CreditService = Depends(get_credit_service)):
    credits = unwrap_or_raise(service.list_credits(account_id), get_request_id(request))
    return [CreditResponse.model_validate(c) for c in credits]
