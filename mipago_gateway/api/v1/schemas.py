"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional

from mipago_gateway.domain.models import (
    CreditStatus,
    DocumentKind,
    DocumentValidation,
    InstallmentStatus,
    KYCStatus,
    ProductType,
    Severity,
    TransferStatus,
)


class ORMSchema(BaseModel):
    """Response schema populated from domain dataclasses"""

    model_config = ConfigDict(from_attributes=True)


# Accounts


class OpenAccountRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    email: Optional[str] = None
    declared_monthly_income_cents: int = Field(0, ge=0, description="Declared monthly income in cents")
    password: Optional[str] = None


class AccountResponse(ORMSchema):
    id: str
    email: Optional[str] = None
    balance_cents: int
    kyc_status: KYCStatus
    transfer_limit_cents: int
    declared_monthly_income_cents: int
    has_default_history: bool
    external_score: Optional[int] = None
    created_at: datetime


class AmountRequest(BaseModel):
    amount_cents: int = Field(..., description="Amount in cents")


class BalanceResponse(BaseModel):
    account_id: str
    balance_cents: int


class IncomeRequest(BaseModel):
    monthly_income_cents: int


class ExternalScoreRequest(BaseModel):
    score: int


class PasswordRequest(BaseModel):
    password: str


class LoginRequest(BaseModel):
    account_id: str = Field(..., min_length=1)
    password: str


class LoginResponse(ORMSchema):
    account_id: str
    authenticated_at: datetime


class SecurityStatusResponse(ORMSchema):
    account_id: str
    locked: bool
    failed_login_attempts: int
    locked_until: Optional[datetime] = None


class PasswordResetRequest(BaseModel):
    account_id: str = Field(..., min_length=1)


class PasswordResetTokenResponse(ORMSchema):
    token: str
    expires_at: datetime


class PasswordResetConfirmRequest(BaseModel):
    token: str
    new_password: str


# Credits


class EligibilityResponse(BaseModel):
    product_type: str
    eligible: bool
    code: Optional[str] = None
    message: Optional[str] = None
    remediation: Optional[str] = None
    max_amount_cents: Optional[int] = None
    allowed_terms: List[int] = []


class SimulateRequest(BaseModel):
    product_type: str
    principal_cents: int
    term_units: int = Field(..., description="Days for quick credits, months for normal credits")


class InstallmentSchema(ORMSchema):
    """Single installment in a repayment plan"""

    sequence_no: int
    due_date: date
    amount_cents: int
    status: InstallmentStatus = InstallmentStatus.PENDING


class QuoteResponse(ORMSchema):
    product_type: ProductType
    principal_cents: int
    term_units: int
    term_days: int
    tea_rate: float
    cft_rate: float
    interest_cents: int
    admin_fee_cents: int
    total_payable_cents: int
    financing_cost_cents: int
    installment_count: int
    schedule: List[InstallmentSchema]


class CreateCreditRequest(BaseModel):
    account_id: str = Field(..., min_length=1)
    product_type: str
    principal_cents: int
    term_units: int


class CreditResponse(ORMSchema):
    id: str
    account_id: str
    product_type: ProductType
    principal_cents: int
    total_payable_cents: int
    term_units: int
    term_days: int
    tea_rate: float
    cft_rate: float
    status: CreditStatus
    installment_count: int
    due_at: datetime
    created_at: datetime
    disbursed_at: Optional[datetime] = None


class CreditDetailResponse(BaseModel):
    credit: CreditResponse
    installments: List[InstallmentSchema]


class TransitionRequest(BaseModel):
    status: str
    admin_override: bool = False


# Transfers


class TransferRequest(BaseModel):
    """Request body for POST /v1/transfers; give exactly one destination"""

    origin_account_id: str = Field(..., min_length=1)
    amount_cents: int
    destination_account_id: Optional[str] = None
    destination_account_number: Optional[str] = Field(None, description="22-digit CBU or 10-digit CVU")
    reference: Optional[str] = None
    block_on_verification: Optional[bool] = None


class FraudSignalSchema(ORMSchema):
    kind: str
    severity: Severity
    description: str


class FraudAssessmentSchema(ORMSchema):
    signals: List[FraudSignalSchema]
    risk_level: Severity
    requires_verification: bool


class ReceiptSchema(ORMSchema):
    number: str
    issued_at: datetime
    amount_cents: int
    destination: str
    bank_name: Optional[str] = None
    reference: Optional[str] = None


class TransferDetailResponse(BaseModel):
    """Stored transfer; external account numbers are masked"""

    id: str
    origin_account_id: str
    destination_kind: str
    destination: str
    amount_cents: int
    status: TransferStatus
    created_at: datetime
    reference: Optional[str] = None
    transaction_reference: Optional[str] = None
    bank_name: Optional[str] = None
    fraud_risk: Severity
    requires_verification: bool
    failure_reason: Optional[str] = None
    settled_at: Optional[datetime] = None


class TransferResponse(ORMSchema):
    transfer_id: str
    status: TransferStatus
    transaction_reference: Optional[str] = None
    timestamp: datetime
    resulting_balance_cents: int
    fraud: FraudAssessmentSchema
    receipt: Optional[ReceiptSchema] = None


class TransferAnalysisResponse(ORMSchema):
    account_id: str
    amount_cents: int
    balance_cents: int
    can_transfer_directly: bool
    shortfall_cents: int
    credit_offers: List[QuoteResponse]


class DailySummaryResponse(ORMSchema):
    account_id: str
    day: date
    settled_total_cents: int
    settled_count: int
    limit_cents: int
    remaining_cents: int


# KYC


class UploadDocumentRequest(BaseModel):
    kind: str = Field(..., description="id | selfie | proof_of_address")
    document_url: str


class KYCDocumentResponse(ORMSchema):
    id: str
    account_id: str
    kind: DocumentKind
    document_url: str
    uploaded_at: datetime
    validation: DocumentValidation
    rejection_reason: Optional[str] = None
    validated_at: Optional[datetime] = None


class RejectRequest(BaseModel):
    reason: str


class ReviewDocumentRequest(BaseModel):
    validation: str
    reason: Optional[str] = None


class TransferLimitRequest(BaseModel):
    limit_cents: int
