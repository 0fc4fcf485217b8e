"""Credit lifecycle: eligibility, simulation, creation, disbursement and status changes"""

import logging
import uuid
from typing import List, Optional

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain import eligibility
from mipago_gateway.domain.credits import due_at_for, ensure_disbursable, ensure_transition
from mipago_gateway.domain.exceptions import DomainException
from mipago_gateway.domain.installments import generate_installment_plan
from mipago_gateway.domain.models import (
    Credit,
    CreditDetail,
    CreditStatus,
    EligibilityDecision,
    ProductType,
    Quote,
)
from mipago_gateway.domain.ports import WalletRepository
from mipago_gateway.domain.rates import INSTALLMENT_INTERVAL_DAYS, lookup_rates, quote
from mipago_gateway.domain.results import Failure, returns_result
from mipago_gateway.infrastructure.observability.logging import log_credit_event
from mipago_gateway.infrastructure.observability.metrics import record_disbursement, record_eligibility
from mipago_gateway.services.support import parse_choice, require_account, require_credit
from mipago_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class CreditService:
    """Quick and Normal credit operations over a wallet repository"""

    def __init__(self, repository: WalletRepository, settings: Settings = default_settings):
        self.repo = repository
        self.settings = settings

    def _evaluate(self, account, product: ProductType, requested_amount_cents: Optional[int]) -> EligibilityDecision:
        decision = eligibility.check_eligibility(
            account,
            product,
            self.repo.list_credits(account.id),
            requested_amount_cents=requested_amount_cents,
            settings=self.settings,
        )
        record_eligibility(product.value, decision.eligible)
        log_credit_event(
            "eligibility",
            account.id,
            product.value,
            "eligible" if decision.eligible else "denied",
            amount_cents=requested_amount_cents,
            code=decision.denial.code if decision.denial else None,
        )
        return decision

    @returns_result
    def check_eligibility(
        self,
        account_id: str,
        product_type,
        requested_amount_cents: Optional[int] = None,
    ) -> EligibilityDecision:
        product = parse_choice(ProductType, product_type, "product_type")
        account = require_account(self.repo, account_id)
        return self._evaluate(account, product, requested_amount_cents)

    @returns_result
    def simulate(self, product_type, principal_cents: int, term_units: int) -> Quote:
        """Price a credit without touching the store"""
        product = parse_choice(ProductType, product_type, "product_type")
        return quote(product, principal_cents, term_units, issued_on=utcnow().date())

    @returns_result
    def create_credit(self, account_id: str, product_type, principal_cents: int, term_units: int):
        """
        Store a pre-approved credit for an eligible account.

        The term is checked before anything else, so an invalid term never
        leaves records behind.
        """
        product = parse_choice(ProductType, product_type, "product_type")
        lookup_rates(product, term_units)

        account = require_account(self.repo, account_id)
        decision = self._evaluate(account, product, principal_cents)
        if not decision.eligible:
            return Failure.from_denial(decision.denial, product_type=product.value)

        now = utcnow()
        priced = quote(product, principal_cents, term_units, issued_on=now.date())
        credit = Credit(
            id=str(uuid.uuid4()),
            account_id=account.id,
            product_type=product,
            principal_cents=priced.principal_cents,
            total_payable_cents=priced.total_payable_cents,
            term_units=priced.term_units,
            term_days=priced.term_days,
            tea_rate=priced.tea_rate,
            cft_rate=priced.cft_rate,
            status=CreditStatus.PRE_APPROVED,
            due_at=due_at_for(priced, now),
            installment_count=priced.installment_count,
            created_at=now,
        )
        with self.repo.transaction():
            stored = self.repo.create_credit(credit)

        log_credit_event("created", account.id, product.value, "pre_approved", credit_id=stored.id, amount_cents=principal_cents)
        return stored

    @returns_result
    def approve_and_disburse(self, credit_id: str) -> CreditDetail:
        """
        Flip a pre-approved credit to in_progress, debit the principal and
        persist its installment plan, all in one transaction.

        The status flip is conditional on pre_approved, so a concurrent or
        repeated call fails with InvalidStateError and never debits twice.
        """
        credit = require_credit(self.repo, credit_id)
        ensure_disbursable(credit.status)

        now = utcnow()
        schedule = generate_installment_plan(
            credit.total_payable_cents,
            credit.installment_count,
            interval_days=INSTALLMENT_INTERVAL_DAYS,
            issued_on=now.date(),
        )
        try:
            with self.repo.transaction():
                disbursed = self.repo.update_credit_status(
                    credit.id,
                    CreditStatus.IN_PROGRESS,
                    expected=CreditStatus.PRE_APPROVED,
                    disbursed_at=now,
                )
                self.repo.adjust_balance(credit.account_id, -credit.principal_cents)
                installments = self.repo.create_installments(credit.id, schedule)
        except DomainException as e:
            record_disbursement(credit.product_type.value, credit.principal_cents, succeeded=False)
            log_credit_event(
                "disbursement",
                credit.account_id,
                credit.product_type.value,
                "failed",
                credit_id=credit.id,
                amount_cents=credit.principal_cents,
                code=e.code,
            )
            raise

        record_disbursement(credit.product_type.value, credit.principal_cents, succeeded=True)
        log_credit_event(
            "disbursement",
            credit.account_id,
            credit.product_type.value,
            "disbursed",
            credit_id=credit.id,
            amount_cents=credit.principal_cents,
        )
        return CreditDetail(credit=disbursed, installments=installments)

    @returns_result
    def transition(self, credit_id: str, target_status, admin_override: bool = False) -> Credit:
        """Move a credit along its state machine; default also flags the account"""
        target = parse_choice(CreditStatus, target_status, "status")
        credit = require_credit(self.repo, credit_id)
        ensure_transition(credit.status, target, admin_override=admin_override)

        with self.repo.transaction():
            updated = self.repo.update_credit_status(credit.id, target, expected=credit.status)
            if target == CreditStatus.DEFAULT:
                self.repo.update_account_profile(credit.account_id, has_default_history=True)

        if admin_override:
            logger.warning(
                f"Admin override moved credit {credit.id} from {credit.status.value} to {target.value}",
                extra={"credit_id": credit.id, "account_id": credit.account_id},
            )
        log_credit_event("transition", credit.account_id, credit.product_type.value, target.value, credit_id=credit.id)
        return updated

    @returns_result
    def get_credit(self, credit_id: str) -> CreditDetail:
        credit = require_credit(self.repo, credit_id)
        return CreditDetail(credit=credit, installments=self.repo.list_installments(credit.id))

    @returns_result
    def list_credits(self, account_id: str) -> List[Credit]:
        require_account(self.repo, account_id)
        return self.repo.list_credits(account_id)
