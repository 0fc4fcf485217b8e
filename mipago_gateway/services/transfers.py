"""Transfer settlement: limit check, fraud scoring, destination validation and execution"""

import logging
import secrets
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain.destinations import mask_account_number, normalize_account_number, validate_destination
from mipago_gateway.domain.exceptions import (
    AccountLocked,
    CompensationFailure,
    DomainException,
    InsufficientFundsError,
    NotFoundError,
    SettlementNotRecorded,
    ValidationError,
)
from mipago_gateway.domain.fraud import assess_transfer_risk
from mipago_gateway.domain.models import (
    Account,
    DailyTransferSummary,
    Denial,
    DestinationKind,
    KYCStatus,
    ProductType,
    Transfer,
    TransferAnalysis,
    TransferReceipt,
    TransferResult,
    TransferStatus,
)
from mipago_gateway.domain.ports import ClearingGateway, ClearingRequest, WalletRepository
from mipago_gateway.domain.rates import allowed_terms, quote
from mipago_gateway.domain.results import Failure, returns_result
from mipago_gateway.domain.security import is_locked, lock_expired
from mipago_gateway.infrastructure.observability.logging import log_transfer_outcome
from mipago_gateway.infrastructure.observability.metrics import (
    clearing_failure_counter,
    compensation_failure_counter,
    record_transfer,
    unrecorded_settlement_counter,
)
from mipago_gateway.services.support import require_account, require_positive
from mipago_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def _transaction_reference(now: datetime) -> str:
    return f"TXN-{int(now.timestamp() * 1000)}-{secrets.token_hex(4).upper()}"


def _receipt_number(now: datetime) -> str:
    return f"COMP-{now:%Y%m%d}-{secrets.randbelow(100_000):05d}"


class TransferService:
    """Moves money out of a wallet account to a peer account or an external CBU/CVU"""

    def __init__(
        self,
        repository: WalletRepository,
        clearing: ClearingGateway,
        settings: Settings = default_settings,
    ):
        self.repo = repository
        self.clearing = clearing
        self.settings = settings

    def tier_limit(self, account: Account) -> int:
        """Daily limit: the account's own tier, else the default for its KYC status"""
        if account.transfer_limit_cents:
            return account.transfer_limit_cents
        if account.kyc_status == KYCStatus.APPROVED:
            return self.settings.kyc_approved_transfer_limit_cents
        return self.settings.base_transfer_limit_cents

    def _clear_expired_lock(self, account: Account, now: datetime) -> Account:
        if not lock_expired(account, now):
            return account
        with self.repo.transaction():
            self.repo.unlock_account(account.id)
        return replace(account, failed_login_attempts=0, locked_until=None)

    def _validate(
        self,
        origin_account_id: str,
        amount_cents: int,
        destination_account_id: Optional[str],
        destination_account_number: Optional[str],
        now: datetime,
    ) -> Account:
        require_positive(amount_cents, "amount_cents")
        if (destination_account_id is None) == (destination_account_number is None):
            raise ValidationError("Exactly one of destination_account_id or destination_account_number is required")

        origin = require_account(self.repo, origin_account_id)
        if destination_account_id is not None:
            if destination_account_id == origin.id:
                raise ValidationError("Cannot transfer to the same account")
            require_account(self.repo, destination_account_id)

        origin = self._clear_expired_lock(origin, now)
        if is_locked(origin, now):
            raise AccountLocked(
                "Account is temporarily locked",
                context={"locked_until": origin.locked_until.isoformat()},
            )
        return origin

    def _mark_failed(self, transfer: Transfer, code: str) -> None:
        with self.repo.transaction():
            self.repo.update_transfer(transfer.id, status=TransferStatus.FAILED, failure_reason=code)

    def _compensate(self, transfer: Transfer, cause: Exception) -> int:
        """
        Re-credit the origin after a post-debit failure.

        Raises:
            CompensationFailure: the re-credit itself failed
        """
        try:
            with self.repo.transaction():
                balance = self.repo.adjust_balance(transfer.origin_account_id, transfer.amount_cents)
        except Exception as e:
            compensation_failure_counter.inc()
            logger.critical(
                f"Compensation failed for transfer {transfer.id}; origin not re-credited",
                extra={
                    "step": "transfer_compensation",
                    "transfer_id": transfer.id,
                    "account_id": transfer.origin_account_id,
                    "amount_cents": transfer.amount_cents,
                    "cause": cause.__class__.__name__,
                },
            )
            raise CompensationFailure(
                f"Could not re-credit {transfer.amount_cents} cents to account {transfer.origin_account_id}",
                context={
                    "transfer_id": transfer.id,
                    "account_id": transfer.origin_account_id,
                    "amount_cents": transfer.amount_cents,
                },
            ) from e

        logger.warning(
            f"Transfer {transfer.id} failed after debit; origin re-credited",
            extra={"transfer_id": transfer.id, "account_id": transfer.origin_account_id},
        )
        return balance

    def _record_settled(self, transfer: Transfer, transaction_reference: str, settled_at: datetime) -> None:
        self.repo.update_transfer(
            transfer.id,
            status=TransferStatus.SETTLED,
            transaction_reference=transaction_reference,
            settled_at=settled_at,
        )

    def _report_unrecorded(self, transfer: Transfer, operation_number: str, cause: DomainException) -> None:
        """
        Clearing accepted the transfer but its settled status was not stored.

        Raises:
            SettlementNotRecorded: always
        """
        unrecorded_settlement_counter.inc()
        logger.critical(
            f"Transfer {transfer.id} accepted by clearing but not recorded as settled",
            extra={
                "step": "transfer_settlement",
                "transfer_id": transfer.id,
                "account_id": transfer.origin_account_id,
                "amount_cents": transfer.amount_cents,
                "operation_number": operation_number,
                "cause": cause.code,
            },
        )
        raise SettlementNotRecorded(
            f"Transfer {transfer.id} settled by clearing as {operation_number} but not recorded",
            context={
                "transfer_id": transfer.id,
                "account_id": transfer.origin_account_id,
                "amount_cents": transfer.amount_cents,
                "operation_number": operation_number,
            },
        ) from cause

    def _deny(self, transfer: Transfer, denial: Denial, signals=()) -> Failure:
        self._mark_failed(transfer, denial.code)
        record_transfer(transfer.destination_kind.value, "denied", signals)
        log_transfer_outcome(
            transfer.id,
            transfer.origin_account_id,
            transfer.destination_kind.value,
            transfer.amount_cents,
            "denied",
            code=denial.code,
        )
        return Failure.from_denial(denial, transfer_id=transfer.id)

    @returns_result
    def settle(
        self,
        origin_account_id: str,
        amount_cents: int,
        destination_account_id: Optional[str] = None,
        destination_account_number: Optional[str] = None,
        reference: Optional[str] = None,
        block_on_verification: Optional[bool] = None,
    ) -> TransferResult:
        """
        Settle a transfer through validation, limit check, fraud scoring,
        destination validation and execution, stopping at the first failure.

        Once the origin is debited, any later failure re-credits it before
        the failure is returned.

        Raises:
            CompensationFailure: the re-credit after a failed transfer failed
            SettlementNotRecorded: clearing accepted but the settled status was not stored
        """
        now = utcnow()
        origin = self._validate(origin_account_id, amount_cents, destination_account_id, destination_account_number, now)

        kind = DestinationKind.INTERNAL if destination_account_id is not None else DestinationKind.EXTERNAL
        transfer = Transfer(
            id=str(uuid.uuid4()),
            origin_account_id=origin.id,
            destination_kind=kind,
            amount_cents=amount_cents,
            status=TransferStatus.PENDING,
            created_at=now,
            destination_account_id=destination_account_id,
            destination_account_number=(
                normalize_account_number(destination_account_number) if destination_account_number is not None else None
            ),
            reference=reference,
        )
        with self.repo.transaction():
            self.repo.create_transfer(transfer)

        try:
            return self._execute(transfer, origin, now, block_on_verification)
        except (CompensationFailure, SettlementNotRecorded):
            raise
        except DomainException as e:
            e.context.setdefault("transfer_id", transfer.id)
            record_transfer(kind.value, "failed")
            log_transfer_outcome(transfer.id, origin.id, kind.value, amount_cents, "failed", code=e.code)
            raise

    def _execute(
        self,
        transfer: Transfer,
        origin: Account,
        now: datetime,
        block_on_verification: Optional[bool],
    ):
        amount = transfer.amount_cents

        # Limit
        settled_today = self.repo.list_settled_transfers(origin.id, now.date())
        used = sum(t.amount_cents for t in settled_today)
        limit = self.tier_limit(origin)
        remaining = limit - used
        if amount > remaining:
            return self._deny(
                transfer,
                Denial(
                    code="LIMIT_EXCEEDED",
                    message=f"Daily transfer limit exceeded. Available today: {max(remaining, 0) / 100:.2f}",
                    remediation="Complete KYC verification to raise your limit or try again tomorrow",
                    context={"limit_cents": limit, "used_cents": used, "exceeded_by_cents": amount - remaining},
                ),
            )

        # Fraud scoring
        fraud = assess_transfer_risk(origin, amount, len(settled_today), now=now, settings=self.settings)
        with self.repo.transaction():
            self.repo.update_transfer(
                transfer.id,
                fraud_risk=fraud.risk_level,
                requires_verification=fraud.requires_verification,
            )
        block = self.settings.block_flagged_transfers if block_on_verification is None else block_on_verification
        if block and fraud.requires_verification:
            return self._deny(
                transfer,
                Denial(
                    code="FRAUD_VERIFICATION_REQUIRED",
                    message="Transfer requires additional verification",
                    remediation="Contact support to verify this transfer",
                    context={"signals": [s.kind for s in fraud.signals], "risk_level": fraud.risk_level.value},
                ),
                signals=fraud.signals,
            )

        # Destination
        destination = None
        if transfer.destination_kind == DestinationKind.EXTERNAL:
            try:
                destination = validate_destination(
                    transfer.destination_account_number,
                    blocklist=self.settings.blocked_destinations,
                )
            except DomainException as e:
                self._mark_failed(transfer, e.code)
                raise
            with self.repo.transaction():
                self.repo.update_transfer(transfer.id, bank_name=destination.bank_name)

        # Execution
        if origin.balance_cents < amount:
            self._mark_failed(transfer, InsufficientFundsError.code)
            raise InsufficientFundsError(
                f"Insufficient funds. Available: {origin.balance_cents / 100:.2f}, Required: {amount / 100:.2f}",
                context={"balance_cents": origin.balance_cents, "required_cents": amount},
            )

        try:
            with self.repo.transaction():
                balance = self.repo.adjust_balance(origin.id, -amount)
                self.repo.update_transfer(transfer.id, status=TransferStatus.PROCESSING)
        except DomainException as e:
            self._mark_failed(transfer, e.code)
            raise

        try:
            if destination is None:
                # Destination credit and settled status commit or roll back together
                transaction_reference = _transaction_reference(now)
                settled_at = utcnow()
                with self.repo.transaction():
                    self.repo.adjust_balance(transfer.destination_account_id, amount)
                    self._record_settled(transfer, transaction_reference, settled_at)
            else:
                confirmation = self.clearing.submit(
                    ClearingRequest(
                        transfer_id=transfer.id,
                        destination_account_number=destination.account_number,
                        amount_cents=amount,
                        reference=transfer.reference,
                    )
                )
                transaction_reference = confirmation.operation_number
        except Exception as e:
            if destination is not None:
                clearing_failure_counter.inc()
            restored = self._compensate(transfer, e)
            self._mark_failed(transfer, getattr(e, "code", e.__class__.__name__))
            if isinstance(e, DomainException):
                e.context["resulting_balance_cents"] = restored
            raise

        if destination is not None:
            settled_at = utcnow()
            try:
                with self.repo.transaction():
                    self._record_settled(transfer, transaction_reference, settled_at)
            except DomainException as e:
                self._report_unrecorded(transfer, transaction_reference, e)

        masked = mask_account_number(destination.account_number) if destination else transfer.destination_account_id
        receipt = TransferReceipt(
            number=_receipt_number(settled_at),
            issued_at=settled_at,
            amount_cents=amount,
            destination=masked,
            bank_name=destination.bank_name if destination else None,
            reference=transfer.reference,
        )

        record_transfer(transfer.destination_kind.value, "settled", fraud.signals)
        log_transfer_outcome(
            transfer.id,
            origin.id,
            transfer.destination_kind.value,
            amount,
            "settled",
            destination=masked,
            fraud_risk=fraud.risk_level.value,
        )
        return TransferResult(
            transfer_id=transfer.id,
            status=TransferStatus.SETTLED,
            transaction_reference=transaction_reference,
            timestamp=settled_at,
            resulting_balance_cents=balance,
            fraud=fraud,
            receipt=receipt,
        )

    @returns_result
    def analyze(self, account_id: str, amount_cents: int) -> TransferAnalysis:
        """Whether the balance covers a transfer, with Quick credit offers for any shortfall"""
        require_positive(amount_cents, "amount_cents")
        account = require_account(self.repo, account_id)

        shortfall = max(amount_cents - account.balance_cents, 0)
        offers = ()
        if shortfall:
            # credits are granted in whole currency units
            principal = -(-shortfall // 100) * 100
            if principal <= self.settings.quick_credit_max_cents:
                issued_on = utcnow().date()
                offers = tuple(
                    quote(ProductType.QUICK, principal, term, issued_on=issued_on)
                    for term in allowed_terms(ProductType.QUICK)
                )

        return TransferAnalysis(
            account_id=account.id,
            amount_cents=amount_cents,
            balance_cents=account.balance_cents,
            can_transfer_directly=shortfall == 0,
            shortfall_cents=shortfall,
            credit_offers=offers,
        )

    @returns_result
    def get_transfer(self, transfer_id: str, account_id: str) -> Transfer:
        """A transfer as stored, visible only to its origin account"""
        account = require_account(self.repo, account_id)
        transfer = self.repo.get_transfer(transfer_id)
        if transfer is None or transfer.origin_account_id != account.id:
            raise NotFoundError(
                f"Transfer {transfer_id} not found",
                context={"transfer_id": transfer_id, "account_id": account.id},
            )
        return transfer

    @returns_result
    def daily_summary(self, account_id: str) -> DailyTransferSummary:
        account = require_account(self.repo, account_id)
        today = utcnow().date()
        settled = self.repo.list_settled_transfers(account.id, today)
        used = sum(t.amount_cents for t in settled)
        limit = self.tier_limit(account)
        return DailyTransferSummary(
            account_id=account.id,
            day=today,
            settled_total_cents=used,
            settled_count=len(settled),
            limit_cents=limit,
            remaining_cents=max(limit - used, 0),
        )
