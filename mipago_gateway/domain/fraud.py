"""Fraud scoring - advisory signals for outgoing transfers"""

from datetime import datetime
from typing import List, Optional

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain.models import Account, FraudAssessment, FraudSignal, Severity
from mipago_gateway.utils.date_utils import days_between, utcnow


def assess_transfer_risk(
    account: Account,
    amount_cents: int,
    settled_today_count: int,
    now: Optional[datetime] = None,
    settings: Settings = default_settings,
) -> FraudAssessment:
    """
    Score a transfer against independent fraud signals.

    Signals:
    - new account (< 30 days) moving more than 5,000: medium
    - more than 10 settled transfers today: high
    - account has default history: high

    requires_verification is true iff any high-severity signal fired.
    Scoring never mutates state; callers decide whether to block.
    """
    now = now or utcnow()
    signals: List[FraudSignal] = []

    age_days = days_between(account.created_at, now)
    if age_days < settings.fraud_new_account_days and amount_cents > settings.fraud_high_amount_cents:
        signals.append(
            FraudSignal(
                kind="new_account_high_amount",
                severity=Severity.MEDIUM,
                description=f"Account is {age_days} days old and amount exceeds {settings.fraud_high_amount_cents / 100:.2f}",
            )
        )

    if settled_today_count > settings.fraud_daily_transfer_threshold:
        signals.append(
            FraudSignal(
                kind="high_daily_velocity",
                severity=Severity.HIGH,
                description=f"{settled_today_count} transfers settled today",
            )
        )

    if account.has_default_history:
        signals.append(
            FraudSignal(
                kind="default_history",
                severity=Severity.HIGH,
                description="Account has default history",
            )
        )

    severities = {s.severity for s in signals}
    if Severity.HIGH in severities:
        risk_level = Severity.HIGH
    elif Severity.MEDIUM in severities:
        risk_level = Severity.MEDIUM
    else:
        risk_level = Severity.LOW

    return FraudAssessment(
        signals=tuple(signals),
        risk_level=risk_level,
        requires_verification=risk_level == Severity.HIGH,
    )
