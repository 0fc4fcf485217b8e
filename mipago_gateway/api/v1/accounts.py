"""Account administration and authentication endpoints"""

from fastapi import APIRouter, Depends, Request

from mipago_gateway.api.dependencies import get_account_service, get_request_id
from mipago_gateway.api.v1.errors import unwrap_or_raise
from mipago_gateway.api.v1.schemas import (
    AccountResponse,
    AmountRequest,
    BalanceResponse,
    ExternalScoreRequest,
    IncomeRequest,
    LoginRequest,
    LoginResponse,
    OpenAccountRequest,
    PasswordRequest,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    PasswordResetTokenResponse,
    SecurityStatusResponse,
)
from mipago_gateway.services.accounts import AccountService

router = APIRouter()


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def open_account(body: OpenAccountRequest, request: Request, service: AccountService = Depends(get_account_service)):
    account = unwrap_or_raise(
        service.open_account(
            email=body.email,
            declared_monthly_income_cents=body.declared_monthly_income_cents,
            password=body.password,
        ),
        get_request_id(request),
    )
    return AccountResponse.model_validate(account)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(account_id: str, request: Request, service: AccountService = Depends(get_account_service)):
    return AccountResponse.model_validate(unwrap_or_raise(service.get_account(account_id), get_request_id(request)))


@router.post("/accounts/{account_id}/deposits", response_model=BalanceResponse)
def deposit(
    account_id: str,
    body: AmountRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    balance = unwrap_or_raise(service.deposit(account_id, body.amount_cents), get_request_id(request))
    return BalanceResponse(account_id=account_id, balance_cents=balance)


@router.put("/accounts/{account_id}/income", response_model=AccountResponse)
def declare_income(
    account_id: str,
    body: IncomeRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    account = unwrap_or_raise(service.declare_income(account_id, body.monthly_income_cents), get_request_id(request))
    return AccountResponse.model_validate(account)


@router.put("/accounts/{account_id}/external-score", response_model=AccountResponse)
def set_external_score(
    account_id: str,
    body: ExternalScoreRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    account = unwrap_or_raise(service.set_external_score(account_id, body.score), get_request_id(request))
    return AccountResponse.model_validate(account)


@router.put("/accounts/{account_id}/password", status_code=204)
def set_password(
    account_id: str,
    body: PasswordRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    unwrap_or_raise(service.set_password(account_id, body.password), get_request_id(request))


@router.get("/accounts/{account_id}/security", response_model=SecurityStatusResponse)
def security_status(account_id: str, request: Request, service: AccountService = Depends(get_account_service)):
    status = unwrap_or_raise(service.security_status(account_id), get_request_id(request))
    return SecurityStatusResponse.model_validate(status)


@router.post("/accounts/{account_id}/unlock", response_model=SecurityStatusResponse)
def unlock(account_id: str, request: Request, service: AccountService = Depends(get_account_service)):
    status = unwrap_or_raise(service.unlock(account_id), get_request_id(request))
    return SecurityStatusResponse.model_validate(status)


@router.post("/auth/login", response_model=LoginResponse)
def login(body: LoginRequest, request: Request, service: AccountService = Depends(get_account_service)):
    outcome = unwrap_or_raise(service.login(body.account_id, body.password), get_request_id(request))
    return LoginResponse.model_validate(outcome)


@router.post("/auth/password-reset", response_model=PasswordResetTokenResponse, status_code=201)
def request_password_reset(
    body: PasswordResetRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    """
    Issue a reset token.

    Returned directly; delivering it out of band (email, SMS) is the
    caller's concern.
    """
    token = unwrap_or_raise(service.request_password_reset(body.account_id), get_request_id(request))
    return PasswordResetTokenResponse.model_validate(token)


@router.post("/auth/password-reset/confirm", status_code=204)
def confirm_password_reset(
    body: PasswordResetConfirmRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    unwrap_or_raise(service.confirm_password_reset(body.token, body.new_password), get_request_id(request))
