"""Installment plan generation for credit repayment"""

from datetime import date, timedelta
from typing import List
from mipago_gateway.domain.models import Installment


def generate_installment_plan(
    amount_cents: int,
    num_installments: int,
    interval_days: int = 30,
    issued_on: date | None = None,
) -> List[Installment]:
    """
    Split a credit's total payable into a schedule of installments.

    Requirements:
    - Installments are numbered 1..N
    - Due dates are interval_days apart; the first falls interval_days after issuance
    - Last installment absorbs rounding remainder so the amounts sum to the total exactly

    Args:
        amount_cents: Total payable to split
        num_installments: Number of payments
        interval_days: Days between payments (default 30)
        issued_on: Issuance date (default: today)

    Example:
        1,000.03 over 3 installments -> [333.34, 333.34, 333.35]
        100003 cents // 3 = 33334 base, remainder 1
        Last installment: 33334 + 1 = 33335
    """
    if amount_cents <= 0 or num_installments <= 0:
        return []

    if issued_on is None:
        issued_on = date.today()

    base_amount = amount_cents // num_installments
    remainder = amount_cents % num_installments

    installments = []
    for seq in range(1, num_installments + 1):
        due_date = issued_on + timedelta(days=seq * interval_days)
        amount = base_amount + (remainder if seq == num_installments else 0)
        installments.append(Installment(sequence_no=seq, due_date=due_date, amount_cents=amount))

    return installments
