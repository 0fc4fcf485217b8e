"""Unit tests for the rate table and amortization calculator"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from mipago_gateway.domain.exceptions import InvalidTerm, ValidationError
from mipago_gateway.domain.models import ProductType
from mipago_gateway.domain.rates import (
    CFT_TABLE,
    RATE_TABLE,
    allowed_terms,
    installment_count_for,
    lookup_rates,
    quote,
    term_in_days,
)


def test_rate_table_values():
    """Test TEA by product and term"""
    assert RATE_TABLE[ProductType.QUICK] == {30: Decimal("110"), 60: Decimal("115"), 90: Decimal("120")}
    assert RATE_TABLE[ProductType.NORMAL] == {3: Decimal("85"), 6: Decimal("90"), 12: Decimal("95")}


def test_cft_rounds_half_up():
    """Test CFT = round-half-up(TEA x 1.15)"""
    assert CFT_TABLE[ProductType.QUICK][30] == Decimal("127")  # 126.5
    assert CFT_TABLE[ProductType.QUICK][60] == Decimal("132")  # 132.25
    assert CFT_TABLE[ProductType.QUICK][90] == Decimal("138")
    assert CFT_TABLE[ProductType.NORMAL][3] == Decimal("98")  # 97.75
    assert CFT_TABLE[ProductType.NORMAL][6] == Decimal("104")  # 103.5
    assert CFT_TABLE[ProductType.NORMAL][12] == Decimal("109")  # 109.25


def test_rate_table_is_read_only():
    """Test rate table cannot be mutated at runtime"""
    with pytest.raises(TypeError):
        RATE_TABLE[ProductType.QUICK][45] = Decimal("112")


def test_term_and_installment_count():
    """Test Quick terms are days (count rounds up), Normal terms are months (count rounds down)"""
    assert term_in_days(ProductType.QUICK, 60) == 60
    assert term_in_days(ProductType.NORMAL, 6) == 180
    assert installment_count_for(ProductType.QUICK, 30) == 1
    assert installment_count_for(ProductType.QUICK, 60) == 2
    assert installment_count_for(ProductType.QUICK, 45) == 2
    assert installment_count_for(ProductType.NORMAL, 360) == 12
    assert installment_count_for(ProductType.NORMAL, 45) == 1


def test_quote_quick_30_days():
    """Test 1,000 over 30 days: interest 90.41, fee 20, total rounds to 1,110"""
    result = quote(ProductType.QUICK, 100000, 30)

    assert result.tea_rate == Decimal("110")
    assert result.cft_rate == Decimal("127")
    assert result.term_days == 30
    assert result.interest_cents == 9041
    assert result.admin_fee_cents == 2000
    assert result.total_payable_cents == 111000
    assert result.financing_cost_cents == 11000
    assert result.installment_count == 1
    assert result.schedule[0].amount_cents == 111000


def test_quote_quick_90_days_schedule():
    """Test 1,000 over 90 days: total 1,316 split in 3 with remainder on the last"""
    result = quote(ProductType.QUICK, 100000, 90)

    assert result.total_payable_cents == 131600
    assert result.installment_count == 3
    assert [inst.amount_cents for inst in result.schedule] == [43866, 43866, 43868]


def test_quote_normal_12_months():
    """Test 10,000 over 12 months at 95% TEA"""
    result = quote(ProductType.NORMAL, 1000000, 12)

    assert result.term_days == 360
    assert result.total_payable_cents == 1957000
    assert result.installment_count == 12
    assert sum(inst.amount_cents for inst in result.schedule) == result.total_payable_cents


def test_quote_schedule_dates_follow_issuance():
    """Test due dates are 30 days apart from the issue date"""
    issued = date(2024, 3, 1)
    result = quote(ProductType.NORMAL, 500000, 3, issued_on=issued)

    assert [inst.due_date for inst in result.schedule] == [
        issued + timedelta(days=30),
        issued + timedelta(days=60),
        issued + timedelta(days=90),
    ]


@pytest.mark.parametrize("product_type", list(ProductType))
@pytest.mark.parametrize("principal_cents", [100, 123400, 5000000])
def test_schedule_sums_to_total_for_every_term(product_type: ProductType, principal_cents: int):
    """Test every offered term yields a schedule summing exactly to the total"""
    for term in allowed_terms(product_type):
        result = quote(product_type, principal_cents, term)
        assert sum(inst.amount_cents for inst in result.schedule) == result.total_payable_cents
        assert result.total_payable_cents >= principal_cents
        assert len(result.schedule) == result.installment_count


def test_quick_term_outside_table_rejected():
    """Test Quick 45 days raises InvalidTerm listing the allowed terms"""
    with pytest.raises(InvalidTerm) as exc_info:
        quote(ProductType.QUICK, 100000, 45)

    assert exc_info.value.context["allowed_terms"] == [30, 60, 90]


def test_normal_nine_months_rejected():
    """Test a Normal term missing from the rate table is rejected"""
    with pytest.raises(InvalidTerm):
        lookup_rates(ProductType.NORMAL, 9)


def test_term_checked_before_principal():
    """Test an invalid term wins over an invalid principal"""
    with pytest.raises(InvalidTerm):
        quote(ProductType.QUICK, 0, 45)


@pytest.mark.parametrize("principal_cents", [0, -100, 150050])
def test_invalid_principal_rejected(principal_cents: int):
    """Test non-positive or fractional-unit principals"""
    with pytest.raises(ValidationError):
        quote(ProductType.QUICK, principal_cents, 30)
