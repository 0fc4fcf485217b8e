"""Data access layer for wallet entities"""

import functools
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mipago_gateway.domain.exceptions import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    StoreFailure,
)
from mipago_gateway.domain.models import (
    Account,
    Credit,
    CreditStatus,
    DestinationKind,
    DocumentKind,
    DocumentValidation,
    Installment,
    InstallmentStatus,
    KYCDocument,
    KYCStatus,
    PasswordResetToken,
    ProductType,
    Severity,
    Transfer,
    TransferStatus,
)
from mipago_gateway.infrastructure.database.models import (
    WalletAccount,
    WalletCredit,
    WalletInstallment,
    WalletKYCDocument,
    WalletResetToken,
    WalletTransfer,
)
from mipago_gateway.utils.date_utils import day_bounds

_PROFILE_FIELDS = frozenset(
    {"email", "declared_monthly_income_cents", "external_score", "has_default_history", "transfer_limit_cents"}
)
_TRANSFER_FIELDS = frozenset(
    {
        "status",
        "transaction_reference",
        "bank_name",
        "fraud_risk",
        "requires_verification",
        "failure_reason",
        "settled_at",
    }
)


def _store_errors(method):
    """Wrap SQLAlchemy faults into StoreFailure"""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Store error in {method.__name__}: {e.__class__.__name__}") from e

    return wrapper


def _plain(value):
    return value.value if isinstance(value, Enum) else value


def _to_account(row: WalletAccount) -> Account:
    return Account(
        id=row.id,
        balance_cents=row.balance_cents,
        kyc_status=KYCStatus(row.kyc_status),
        transfer_limit_cents=row.transfer_limit_cents,
        created_at=row.created_at,
        failed_login_attempts=row.failed_login_attempts,
        locked_until=row.locked_until,
        password_hash=row.password_hash,
        email=row.email,
        declared_monthly_income_cents=row.declared_monthly_income_cents,
        has_default_history=row.has_default_history,
        external_score=row.external_score,
    )


def _to_credit(row: WalletCredit) -> Credit:
    return Credit(
        id=row.id,
        account_id=row.account_id,
        product_type=ProductType(row.product_type),
        principal_cents=row.principal_cents,
        total_payable_cents=row.total_payable_cents,
        term_units=row.term_units,
        term_days=row.term_days,
        tea_rate=Decimal(row.tea_rate),
        cft_rate=Decimal(row.cft_rate),
        status=CreditStatus(row.status),
        due_at=row.due_at,
        installment_count=row.installment_count,
        created_at=row.created_at,
        disbursed_at=row.disbursed_at,
    )


def _to_installment(row: WalletInstallment) -> Installment:
    return Installment(
        id=row.id,
        credit_id=row.credit_id,
        sequence_no=row.sequence_no,
        due_date=row.due_date,
        amount_cents=row.amount_cents,
        status=InstallmentStatus(row.status),
    )


def _to_transfer(row: WalletTransfer) -> Transfer:
    return Transfer(
        id=row.id,
        origin_account_id=row.origin_account_id,
        destination_kind=DestinationKind(row.destination_kind),
        amount_cents=row.amount_cents,
        status=TransferStatus(row.status),
        created_at=row.created_at,
        destination_account_id=row.destination_account_id,
        destination_account_number=row.destination_account_number,
        reference=row.reference,
        transaction_reference=row.transaction_reference,
        bank_name=row.bank_name,
        fraud_risk=Severity(row.fraud_risk),
        requires_verification=row.requires_verification,
        failure_reason=row.failure_reason,
        settled_at=row.settled_at,
    )


def _to_document(row: WalletKYCDocument) -> KYCDocument:
    return KYCDocument(
        id=row.id,
        account_id=row.account_id,
        kind=DocumentKind(row.kind),
        document_url=row.document_url,
        uploaded_at=row.uploaded_at,
        validation=DocumentValidation(row.validation),
        rejection_reason=row.rejection_reason,
        validated_at=row.validated_at,
    )


def _to_token(row: WalletResetToken) -> PasswordResetToken:
    return PasswordResetToken(
        token=row.token,
        account_id=row.account_id,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
        used=row.used,
        used_at=row.used_at,
    )


class SqlWalletRepository:
    """SQLAlchemy-backed wallet repository.

    Methods flush but never commit; callers group work with transaction().
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit on success, roll back on any error"""
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreFailure(f"Transaction failed: {e.__class__.__name__}") from e
        except BaseException:
            self.db.rollback()
            raise

    def _account_row(self, account_id: str) -> Optional[WalletAccount]:
        return self.db.execute(
            select(WalletAccount)
            .where(WalletAccount.id == account_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _credit_row(self, credit_id: str) -> Optional[WalletCredit]:
        return self.db.execute(
            select(WalletCredit)
            .where(WalletCredit.id == credit_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _require_account(self, account_id: str) -> WalletAccount:
        row = self._account_row(account_id)
        if row is None:
            raise NotFoundError(f"Account {account_id} not found", context={"account_id": account_id})
        return row

    # Accounts / ledger

    @_store_errors
    def create_account(self, account: Account) -> Account:
        row = WalletAccount(
            id=account.id,
            email=account.email,
            balance_cents=account.balance_cents,
            kyc_status=account.kyc_status.value,
            transfer_limit_cents=account.transfer_limit_cents,
            declared_monthly_income_cents=account.declared_monthly_income_cents,
            has_default_history=account.has_default_history,
            external_score=account.external_score,
            password_hash=account.password_hash,
            failed_login_attempts=account.failed_login_attempts,
            locked_until=account.locked_until,
            created_at=account.created_at,
        )
        self.db.add(row)
        self.db.flush()
        return _to_account(row)

    @_store_errors
    def get_account(self, account_id: str) -> Optional[Account]:
        row = self._account_row(account_id)
        return _to_account(row) if row else None

    @_store_errors
    def update_account_profile(self, account_id: str, **fields) -> Account:
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported account fields: {sorted(unknown)}")
        self._require_account(account_id)
        self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account_id)
            .values(**{k: _plain(v) for k, v in fields.items()})
            .execution_options(synchronize_session=False)
        )
        return _to_account(self._require_account(account_id))

    @_store_errors
    def adjust_balance(self, account_id: str, delta_cents: int) -> int:
        """
        Atomically add a signed delta to the balance.

        Single conditional UPDATE: the row changes only if the resulting
        balance stays non-negative, closing the get-then-set race.

        Returns:
            Balance after the adjustment
        """
        result = self.db.execute(
            update(WalletAccount)
            .where(
                WalletAccount.id == account_id,
                WalletAccount.balance_cents + delta_cents >= 0,
            )
            .values(balance_cents=WalletAccount.balance_cents + delta_cents)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            row = self._require_account(account_id)
            raise InsufficientFundsError(
                f"Insufficient funds. Available: {row.balance_cents}, Required: {-delta_cents}",
                context={"balance_cents": row.balance_cents, "required_cents": -delta_cents},
            )
        return self.db.execute(
            select(WalletAccount.balance_cents).where(WalletAccount.id == account_id)
        ).scalar_one()

    # Credits

    @_store_errors
    def create_credit(self, credit: Credit) -> Credit:
        row = WalletCredit(
            id=credit.id,
            account_id=credit.account_id,
            product_type=credit.product_type.value,
            principal_cents=credit.principal_cents,
            total_payable_cents=credit.total_payable_cents,
            term_units=credit.term_units,
            term_days=credit.term_days,
            tea_rate=credit.tea_rate,
            cft_rate=credit.cft_rate,
            status=credit.status.value,
            installment_count=credit.installment_count,
            disbursed_at=credit.disbursed_at,
            due_at=credit.due_at,
            created_at=credit.created_at,
        )
        self.db.add(row)
        self.db.flush()
        return _to_credit(row)

    @_store_errors
    def get_credit(self, credit_id: str) -> Optional[Credit]:
        row = self._credit_row(credit_id)
        return _to_credit(row) if row else None

    @_store_errors
    def list_credits(self, account_id: str) -> List[Credit]:
        rows = self.db.execute(
            select(WalletCredit)
            .where(WalletCredit.account_id == account_id)
            .order_by(WalletCredit.created_at.desc())
            .execution_options(populate_existing=True)
        ).scalars()
        return [_to_credit(r) for r in rows]

    @_store_errors
    def update_credit_status(
        self,
        credit_id: str,
        status: CreditStatus,
        expected: Optional[CreditStatus] = None,
        disbursed_at: Optional[datetime] = None,
    ) -> Credit:
        """
        Change a credit's status, optionally only if it is still `expected`.

        Raises:
            NotFoundError: credit does not exist
            InvalidStateError: status no longer matches `expected`
        """
        conditions = [WalletCredit.id == credit_id]
        if expected is not None:
            conditions.append(WalletCredit.status == expected.value)

        values = {"status": status.value}
        if disbursed_at is not None:
            values["disbursed_at"] = disbursed_at

        result = self.db.execute(
            update(WalletCredit).where(*conditions).values(**values).execution_options(synchronize_session=False)
        )
        row = self._credit_row(credit_id)
        if row is None:
            raise NotFoundError(f"Credit {credit_id} not found", context={"credit_id": credit_id})
        if result.rowcount == 0:
            raise InvalidStateError(
                f"Credit {credit_id} is {row.status}, expected {expected.value}",
                context={"current_status": row.status, "expected_status": expected.value},
            )
        return _to_credit(row)

    @_store_errors
    def create_installments(self, credit_id: str, installments: Sequence[Installment]) -> List[Installment]:
        rows = [
            WalletInstallment(
                credit_id=credit_id,
                sequence_no=inst.sequence_no,
                due_date=inst.due_date,
                amount_cents=inst.amount_cents,
                status=inst.status.value,
            )
            for inst in installments
        ]
        self.db.add_all(rows)
        self.db.flush()
        return [_to_installment(r) for r in rows]

    @_store_errors
    def list_installments(self, credit_id: str) -> List[Installment]:
        rows = self.db.execute(
            select(WalletInstallment)
            .where(WalletInstallment.credit_id == credit_id)
            .order_by(WalletInstallment.sequence_no)
        ).scalars()
        return [_to_installment(r) for r in rows]

    # Transfers

    @_store_errors
    def create_transfer(self, transfer: Transfer) -> Transfer:
        row = WalletTransfer(
            id=transfer.id,
            origin_account_id=transfer.origin_account_id,
            destination_kind=transfer.destination_kind.value,
            destination_account_id=transfer.destination_account_id,
            destination_account_number=transfer.destination_account_number,
            amount_cents=transfer.amount_cents,
            status=transfer.status.value,
            reference=transfer.reference,
            transaction_reference=transfer.transaction_reference,
            bank_name=transfer.bank_name,
            fraud_risk=transfer.fraud_risk.value,
            requires_verification=transfer.requires_verification,
            failure_reason=transfer.failure_reason,
            created_at=transfer.created_at,
            settled_at=transfer.settled_at,
        )
        self.db.add(row)
        self.db.flush()
        return _to_transfer(row)

    @_store_errors
    def get_transfer(self, transfer_id: str) -> Optional[Transfer]:
        row = self.db.execute(
            select(WalletTransfer)
            .where(WalletTransfer.id == transfer_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _to_transfer(row) if row else None

    @_store_errors
    def update_transfer(self, transfer_id: str, **fields) -> Transfer:
        unknown = set(fields) - _TRANSFER_FIELDS
        if unknown:
            raise ValueError(f"Unsupported transfer fields: {sorted(unknown)}")
        row = self.db.get(WalletTransfer, transfer_id)
        if row is None:
            raise NotFoundError(f"Transfer {transfer_id} not found", context={"transfer_id": transfer_id})
        for key, value in fields.items():
            setattr(row, key, _plain(value))
        self.db.flush()
        return _to_transfer(row)

    @_store_errors
    def list_settled_transfers(self, account_id: str, day: date) -> List[Transfer]:
        start, end = day_bounds(day)
        rows = self.db.execute(
            select(WalletTransfer).where(
                WalletTransfer.origin_account_id == account_id,
                WalletTransfer.status == TransferStatus.SETTLED.value,
                WalletTransfer.settled_at >= start,
                WalletTransfer.settled_at < end,
            )
        ).scalars()
        return [_to_transfer(r) for r in rows]

    # KYC

    @_store_errors
    def store_kyc_document(self, document: KYCDocument) -> KYCDocument:
        row = WalletKYCDocument(
            id=document.id,
            account_id=document.account_id,
            kind=document.kind.value,
            document_url=document.document_url,
            uploaded_at=document.uploaded_at,
            validation=document.validation.value,
            rejection_reason=document.rejection_reason,
            validated_at=document.validated_at,
        )
        self.db.add(row)
        self.db.flush()
        return _to_document(row)

    @_store_errors
    def get_kyc_document(self, document_id: str) -> Optional[KYCDocument]:
        row = self.db.get(WalletKYCDocument, document_id)
        return _to_document(row) if row else None

    @_store_errors
    def list_kyc_documents(self, account_id: str) -> List[KYCDocument]:
        rows = self.db.execute(
            select(WalletKYCDocument)
            .where(WalletKYCDocument.account_id == account_id)
            .order_by(WalletKYCDocument.uploaded_at.desc())
        ).scalars()
        return [_to_document(r) for r in rows]

    @_store_errors
    def update_kyc_document(
        self,
        document_id: str,
        validation: DocumentValidation,
        reason: Optional[str],
        validated_at: datetime,
    ) -> KYCDocument:
        row = self.db.get(WalletKYCDocument, document_id)
        if row is None:
            raise NotFoundError(f"KYC document {document_id} not found", context={"document_id": document_id})
        row.validation = validation.value
        row.rejection_reason = reason
        row.validated_at = validated_at
        self.db.flush()
        return _to_document(row)

    @_store_errors
    def update_kyc_status(
        self,
        account_id: str,
        status: KYCStatus,
        transfer_limit_cents: Optional[int] = None,
    ) -> Account:
        """Status and limit tier change in a single UPDATE"""
        values = {"kyc_status": status.value}
        if transfer_limit_cents is not None:
            values["transfer_limit_cents"] = transfer_limit_cents
        result = self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Account {account_id} not found", context={"account_id": account_id})
        return _to_account(self._require_account(account_id))

    # Security

    @_store_errors
    def store_password_hash(self, account_id: str, password_hash: str) -> None:
        self._require_account(account_id)
        self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account_id)
            .values(password_hash=password_hash)
            .execution_options(synchronize_session=False)
        )

    @_store_errors
    def record_failed_login(self, account_id: str) -> int:
        """Atomically increment the failure counter and return the new value"""
        result = self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account_id)
            .values(failed_login_attempts=WalletAccount.failed_login_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Account {account_id} not found", context={"account_id": account_id})
        return self.db.execute(
            select(WalletAccount.failed_login_attempts).where(WalletAccount.id == account_id)
        ).scalar_one()

    @_store_errors
    def lock_account(self, account_id: str, until: datetime) -> None:
        self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account_id)
            .values(locked_until=until)
            .execution_options(synchronize_session=False)
        )

    @_store_errors
    def unlock_account(self, account_id: str) -> None:
        self.db.execute(
            update(WalletAccount)
            .where(WalletAccount.id == account_id)
            .values(failed_login_attempts=0, locked_until=None)
            .execution_options(synchronize_session=False)
        )

    @_store_errors
    def create_reset_token(self, token: PasswordResetToken) -> PasswordResetToken:
        row = WalletResetToken(
            token=token.token,
            account_id=token.account_id,
            issued_at=token.issued_at,
            expires_at=token.expires_at,
            used=token.used,
            used_at=token.used_at,
        )
        self.db.add(row)
        self.db.flush()
        return _to_token(row)

    @_store_errors
    def get_reset_token(self, token: str) -> Optional[PasswordResetToken]:
        row = self.db.execute(
            select(WalletResetToken)
            .where(WalletResetToken.token == token)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _to_token(row) if row else None

    @_store_errors
    def consume_reset_token(self, token: str, used_at: datetime) -> bool:
        """Mark a token used; False if it was already consumed"""
        result = self.db.execute(
            update(WalletResetToken)
            .where(WalletResetToken.token == token, WalletResetToken.used.is_(False))
            .values(used=True, used_at=used_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
