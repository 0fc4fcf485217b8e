"""Interfaces the core consumes: the wallet repository and the clearing house"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import ContextManager, List, Optional, Protocol, Sequence

from mipago_gateway.domain.models import (
    Account,
    Credit,
    CreditStatus,
    DocumentValidation,
    Installment,
    KYCDocument,
    KYCStatus,
    PasswordResetToken,
    Transfer,
)


class WalletRepository(Protocol):
    """Account ledger and entity store.

    adjust_balance must be atomic: a single conditional update that refuses
    to take the balance below zero.
    """

    def transaction(self) -> ContextManager[None]: ...

    # Accounts / ledger
    def create_account(self, account: Account) -> Account: ...
    def get_account(self, account_id: str) -> Optional[Account]: ...
    def update_account_profile(self, account_id: str, **fields) -> Account: ...
    def adjust_balance(self, account_id: str, delta_cents: int) -> int: ...

    # Credits
    def create_credit(self, credit: Credit) -> Credit: ...
    def get_credit(self, credit_id: str) -> Optional[Credit]: ...
    def list_credits(self, account_id: str) -> List[Credit]: ...
    def update_credit_status(
        self,
        credit_id: str,
        status: CreditStatus,
        expected: Optional[CreditStatus] = None,
        disbursed_at: Optional[datetime] = None,
    ) -> Credit: ...
    def create_installments(self, credit_id: str, installments: Sequence[Installment]) -> List[Installment]: ...
    def list_installments(self, credit_id: str) -> List[Installment]: ...

    # Transfers
    def create_transfer(self, transfer: Transfer) -> Transfer: ...
    def get_transfer(self, transfer_id: str) -> Optional[Transfer]: ...
    def update_transfer(self, transfer_id: str, **fields) -> Transfer: ...
    def list_settled_transfers(self, account_id: str, day: date) -> List[Transfer]: ...

    # KYC
    def store_kyc_document(self, document: KYCDocument) -> KYCDocument: ...
    def get_kyc_document(self, document_id: str) -> Optional[KYCDocument]: ...
    def list_kyc_documents(self, account_id: str) -> List[KYCDocument]: ...
    def update_kyc_document(
        self, document_id: str, validation: DocumentValidation, reason: Optional[str], validated_at: datetime
    ) -> KYCDocument: ...
    def update_kyc_status(
        self, account_id: str, status: KYCStatus, transfer_limit_cents: Optional[int] = None
    ) -> Account: ...

    # Security
    def store_password_hash(self, account_id: str, password_hash: str) -> None: ...
    def record_failed_login(self, account_id: str) -> int: ...
    def lock_account(self, account_id: str, until: datetime) -> None: ...
    def unlock_account(self, account_id: str) -> None: ...
    def create_reset_token(self, token: PasswordResetToken) -> PasswordResetToken: ...
    def get_reset_token(self, token: str) -> Optional[PasswordResetToken]: ...
    def consume_reset_token(self, token: str, used_at: datetime) -> bool: ...


@dataclass(frozen=True)
class ClearingRequest:
    transfer_id: str
    destination_account_number: str
    amount_cents: int
    reference: Optional[str] = None


@dataclass(frozen=True)
class ClearingConfirmation:
    operation_number: str
    accepted_at: datetime


class ClearingGateway(Protocol):
    """Submits external transfers; raises ClearingError on rejection or outage"""

    def submit(self, request: ClearingRequest) -> ClearingConfirmation: ...
