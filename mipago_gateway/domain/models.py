"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ProductType(str, Enum):
    QUICK = "quick"  # term in days
    NORMAL = "normal"  # term in months


class CreditStatus(str, Enum):
    PRE_APPROVED = "pre_approved"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    IN_PROGRESS = "in_progress"
    PAID = "paid"
    DEFAULT = "default"
    CANCELED = "canceled"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    UNPAID = "unpaid"
    RETRYING = "retrying"


class KYCStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentKind(str, Enum):
    ID = "id"
    SELFIE = "selfie"
    PROOF_OF_ADDRESS = "proof_of_address"


class DocumentValidation(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransferStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SETTLED = "settled"
    FAILED = "failed"


class DestinationKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Account:
    """Wallet account with balance, KYC tier and lockout state"""

    id: str
    balance_cents: int
    kyc_status: KYCStatus
    transfer_limit_cents: int
    created_at: datetime
    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None
    password_hash: Optional[str] = None
    email: Optional[str] = None
    declared_monthly_income_cents: int = 0
    has_default_history: bool = False
    external_score: Optional[int] = None


@dataclass
class Credit:
    """Credit agreement for a Quick or Normal product"""

    id: str
    account_id: str
    product_type: ProductType
    principal_cents: int
    total_payable_cents: int
    term_units: int
    term_days: int
    tea_rate: Decimal
    cft_rate: Decimal
    status: CreditStatus
    due_at: datetime
    installment_count: int
    created_at: datetime
    disbursed_at: Optional[datetime] = None


@dataclass
class Installment:
    """Single payment in a repayment plan"""

    sequence_no: int
    due_date: date
    amount_cents: int
    status: InstallmentStatus = InstallmentStatus.PENDING
    id: Optional[str] = None
    credit_id: Optional[str] = None


@dataclass(frozen=True)
class Quote:
    """Priced credit offer with its amortization schedule"""

    product_type: ProductType
    principal_cents: int
    term_units: int
    term_days: int
    tea_rate: Decimal
    cft_rate: Decimal
    interest_cents: int
    admin_fee_cents: int
    total_payable_cents: int
    installment_count: int
    schedule: Tuple[Installment, ...]

    @property
    def financing_cost_cents(self) -> int:
        return self.total_payable_cents - self.principal_cents


@dataclass
class Transfer:
    """Money movement from a wallet account to a peer or external account"""

    id: str
    origin_account_id: str
    destination_kind: DestinationKind
    amount_cents: int
    status: TransferStatus
    created_at: datetime
    destination_account_id: Optional[str] = None
    destination_account_number: Optional[str] = None
    reference: Optional[str] = None
    transaction_reference: Optional[str] = None
    bank_name: Optional[str] = None
    fraud_risk: Severity = Severity.LOW
    requires_verification: bool = False
    failure_reason: Optional[str] = None
    settled_at: Optional[datetime] = None


@dataclass
class KYCDocument:
    id: str
    account_id: str
    kind: DocumentKind
    document_url: str
    uploaded_at: datetime
    validation: DocumentValidation = DocumentValidation.PENDING
    rejection_reason: Optional[str] = None
    validated_at: Optional[datetime] = None


@dataclass
class PasswordResetToken:
    token: str
    account_id: str
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None


@dataclass(frozen=True)
class Denial:
    """Business-rule denial: machine-readable code plus actionable message"""

    code: str
    message: str
    remediation: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EligibilityDecision:
    """Output of an eligibility check"""

    product_type: ProductType
    eligible: bool
    denial: Optional[Denial] = None
    max_amount_cents: Optional[int] = None
    allowed_terms: Tuple[int, ...] = ()


@dataclass(frozen=True)
class FraudSignal:
    kind: str
    severity: Severity
    description: str


@dataclass(frozen=True)
class FraudAssessment:
    signals: Tuple[FraudSignal, ...]
    risk_level: Severity
    requires_verification: bool


@dataclass(frozen=True)
class ResolvedDestination:
    """External account number that passed format and blocklist checks"""

    account_number: str
    account_type: str  # "CBU" | "CVU"
    bank_code: str
    bank_name: str


@dataclass(frozen=True)
class TransferReceipt:
    number: str
    issued_at: datetime
    amount_cents: int
    destination: str  # masked
    bank_name: Optional[str] = None
    reference: Optional[str] = None


@dataclass(frozen=True)
class TransferResult:
    """Immutable outcome of a settlement call"""

    transfer_id: str
    status: TransferStatus
    transaction_reference: Optional[str]
    timestamp: datetime
    resulting_balance_cents: int
    fraud: FraudAssessment
    receipt: Optional[TransferReceipt] = None


@dataclass(frozen=True)
class TransferAnalysis:
    account_id: str
    amount_cents: int
    balance_cents: int
    can_transfer_directly: bool
    shortfall_cents: int
    credit_offers: Tuple[Quote, ...] = ()


@dataclass(frozen=True)
class DailyTransferSummary:
    account_id: str
    day: date
    settled_total_cents: int
    settled_count: int
    limit_cents: int
    remaining_cents: int


@dataclass(frozen=True)
class SecurityStatus:
    account_id: str
    locked: bool
    failed_login_attempts: int
    locked_until: Optional[datetime] = None


@dataclass(frozen=True)
class LoginOutcome:
    account_id: str
    authenticated_at: datetime


@dataclass(frozen=True)
class CreditDetail:
    credit: Credit
    installments: List[Installment]
