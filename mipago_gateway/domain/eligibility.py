"""Eligibility engine - acceptance rules for Quick and Normal credits"""

from datetime import datetime
from typing import Iterable, List, Optional

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain.exceptions import ValidationError
from mipago_gateway.domain.models import (
    Account,
    Credit,
    CreditStatus,
    Denial,
    EligibilityDecision,
    KYCStatus,
    ProductType,
)
from mipago_gateway.domain.rates import allowed_terms
from mipago_gateway.utils.date_utils import days_between, utcnow

# Credits that still weigh on the borrower
ACTIVE_CREDIT_STATUSES = frozenset({CreditStatus.IN_PROGRESS, CreditStatus.DEFAULT})


def active_credits(credits: Iterable[Credit]) -> List[Credit]:
    return [c for c in credits if c.status in ACTIVE_CREDIT_STATUSES]


def debt_to_income_ratio(account: Account, credits: Iterable[Credit]) -> float:
    """
    Monthly debt service as a percentage of declared monthly income.

    Each active credit contributes total_payable / installment_count.
    Income of 0 yields a ratio of 0.
    """
    income = account.declared_monthly_income_cents or 0
    if income <= 0:
        return 0.0

    monthly_debt = sum(
        c.total_payable_cents / (c.installment_count or 1) for c in active_credits(credits)
    )
    return round(monthly_debt / income * 100, 2)


def max_amount_for(product_type: ProductType, settings: Settings = default_settings) -> int:
    if product_type == ProductType.QUICK:
        return settings.quick_credit_max_cents
    return settings.normal_credit_max_cents


def _deny(product_type: ProductType, code: str, message: str, remediation: str, **context) -> EligibilityDecision:
    return EligibilityDecision(
        product_type=product_type,
        eligible=False,
        denial=Denial(code=code, message=message, remediation=remediation, context=context),
    )


def _kyc_denial(account: Account, product_type: ProductType) -> Optional[EligibilityDecision]:
    if account.kyc_status != KYCStatus.APPROVED:
        return _deny(
            product_type,
            "KYC_NOT_APPROVED",
            "KYC not completed",
            "Upload an ID and a selfie and wait for identity verification",
            kyc_status=account.kyc_status.value,
        )
    return None


def _default_history_denial(account: Account, product_type: ProductType) -> Optional[EligibilityDecision]:
    if account.has_default_history:
        return _deny(
            product_type,
            "DEFAULT_HISTORY",
            "Account has default history",
            "Settle defaulted credits before applying again",
        )
    return None


def _check_quick(account: Account, credits: List[Credit], now: datetime, settings: Settings) -> Optional[EligibilityDecision]:
    product = ProductType.QUICK

    denial = _kyc_denial(account, product)
    if denial:
        return denial

    age_days = days_between(account.created_at, now)
    if age_days < settings.min_account_age_days:
        return _deny(
            product,
            "ACCOUNT_TOO_NEW",
            f"Account must be at least {settings.min_account_age_days} days old. Current age: {age_days} days",
            f"Apply again in {settings.min_account_age_days - age_days} days",
            account_age_days=age_days,
            required_days=settings.min_account_age_days,
        )

    denial = _default_history_denial(account, product)
    if denial:
        return denial

    ratio = debt_to_income_ratio(account, credits)
    if ratio > settings.max_debt_to_income_pct:
        return _deny(
            product,
            "DEBT_TO_INCOME_EXCEEDED",
            f"Debt-to-income ratio exceeds {settings.max_debt_to_income_pct:g}%. Current ratio: {ratio:.2f}%",
            "Repay active credits or update your declared income",
            debt_to_income_pct=ratio,
            max_debt_to_income_pct=settings.max_debt_to_income_pct,
        )

    return None


def _check_normal(account: Account, credits: List[Credit], settings: Settings) -> Optional[EligibilityDecision]:
    product = ProductType.NORMAL

    denial = _kyc_denial(account, product)
    if denial:
        return denial

    if not account.declared_monthly_income_cents or account.declared_monthly_income_cents <= 0:
        return _deny(
            product,
            "INCOME_NOT_DECLARED",
            "Income not declared or invalid",
            "Declare your monthly income",
        )

    denial = _default_history_denial(account, product)
    if denial:
        return denial

    outstanding = active_credits(credits)
    if outstanding:
        return _deny(
            product,
            "OUTSTANDING_CREDIT",
            "Account has unpaid credits",
            "Finish repaying current credits before requesting a new one",
            credit_ids=[c.id for c in outstanding],
        )

    if settings.enable_external_scoring:
        score = account.external_score
        if score is None or score < settings.external_score_threshold:
            return _deny(
                product,
                "EXTERNAL_SCORE_TOO_LOW",
                f"External score below threshold. Current score: {score or 0}",
                "Improve your external credit score",
                external_score=score,
                threshold=settings.external_score_threshold,
            )

    return None


def check_eligibility(
    account: Optional[Account],
    product_type: ProductType,
    credits: Iterable[Credit] = (),
    requested_amount_cents: Optional[int] = None,
    now: Optional[datetime] = None,
    settings: Settings = default_settings,
) -> EligibilityDecision:
    """
    Evaluate an account against the product's acceptance rules.

    Quick: KYC approved, account age >= 30 days, no default history, DTI <= 40%.
    Normal: KYC approved, declared income > 0, no default history,
            no credit in progress or in default, external score >= 50 when enabled.
    Both: requested amount <= product ceiling.

    Raises:
        ValidationError: account missing or requested amount not positive
    """
    if account is None:
        raise ValidationError("Account is required for eligibility check")
    if requested_amount_cents is not None and requested_amount_cents <= 0:
        raise ValidationError(
            "Amount must be greater than 0",
            context={"requested_amount_cents": requested_amount_cents},
        )

    now = now or utcnow()
    credits = list(credits)
    max_amount = max_amount_for(product_type, settings)

    if product_type == ProductType.QUICK:
        denial = _check_quick(account, credits, now, settings)
    else:
        denial = _check_normal(account, credits, settings)
    if denial:
        return denial

    if requested_amount_cents is not None and requested_amount_cents > max_amount:
        return _deny(
            product_type,
            "AMOUNT_ABOVE_MAXIMUM",
            f"Amount exceeds maximum of {max_amount / 100:.2f}",
            "Request a smaller amount",
            requested_amount_cents=requested_amount_cents,
            max_amount_cents=max_amount,
        )

    return EligibilityDecision(
        product_type=product_type,
        eligible=True,
        max_amount_cents=max_amount,
        allowed_terms=allowed_terms(product_type),
    )
