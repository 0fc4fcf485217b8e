"""Rate table and amortization calculator for Quick and Normal credits"""

import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Mapping, Tuple

from mipago_gateway.domain.exceptions import InvalidTerm, ValidationError
from mipago_gateway.domain.installments import generate_installment_plan
from mipago_gateway.domain.models import ProductType, Quote

# TEA (nominal annual rate, %) by term. Quick terms are days, Normal terms are months.
RATE_TABLE: Mapping[ProductType, Mapping[int, Decimal]] = MappingProxyType(
    {
        ProductType.QUICK: MappingProxyType({30: Decimal("110"), 60: Decimal("115"), 90: Decimal("120")}),
        ProductType.NORMAL: MappingProxyType({3: Decimal("85"), 6: Decimal("90"), 12: Decimal("95")}),
    }
)

CFT_MULTIPLIER = Decimal("1.15")
ADMIN_FEE_PCT = Decimal("2")
DAYS_PER_YEAR = Decimal("365")
INSTALLMENT_INTERVAL_DAYS = 30

# CFT derived once from the table: round-half-up(TEA x 1.15)
CFT_TABLE: Mapping[ProductType, Mapping[int, Decimal]] = MappingProxyType(
    {
        product: MappingProxyType(
            {term: (tea * CFT_MULTIPLIER).quantize(Decimal("1"), rounding=ROUND_HALF_UP) for term, tea in terms.items()}
        )
        for product, terms in RATE_TABLE.items()
    }
)


def allowed_terms(product_type: ProductType) -> Tuple[int, ...]:
    return tuple(sorted(RATE_TABLE[product_type]))


def term_in_days(product_type: ProductType, term_units: int) -> int:
    if product_type == ProductType.QUICK:
        return term_units
    return term_units * 30


def installment_count_for(product_type: ProductType, term_days: int) -> int:
    """Quick rounds partial months up, Normal rounds them down"""
    if product_type == ProductType.QUICK:
        return math.ceil(term_days / 30)
    return term_days // 30


def lookup_rates(product_type: ProductType, term_units: int) -> Tuple[Decimal, Decimal]:
    """Return (TEA, CFT) for a product term or raise InvalidTerm"""
    terms = RATE_TABLE[product_type]
    if term_units not in terms:
        unit = "days" if product_type == ProductType.QUICK else "months"
        allowed = ", ".join(str(t) for t in allowed_terms(product_type))
        raise InvalidTerm(
            f"Invalid term for {product_type.value} credit: {term_units} {unit}. Allowed: {allowed} {unit}",
            context={"term_units": term_units, "allowed_terms": list(allowed_terms(product_type))},
        )
    return terms[term_units], CFT_TABLE[product_type][term_units]


def quote(
    product_type: ProductType,
    principal_cents: int,
    term_units: int,
    issued_on: date | None = None,
) -> Quote:
    """
    Price a credit and build its installment schedule.

    interest = principal x TEA/100 x term_days/365
    admin_fee = principal x 2%
    total = principal + interest + admin_fee, rounded half-up to a whole currency unit

    Raises:
        InvalidTerm: term has no entry in the product's rate table
        ValidationError: principal is not positive
    """
    tea, cft = lookup_rates(product_type, term_units)

    if principal_cents <= 0:
        raise ValidationError("Principal must be greater than 0", context={"principal_cents": principal_cents})
    # totals are rounded to whole units, so a fractional principal could round below itself
    if principal_cents % 100:
        raise ValidationError(
            "Principal must be a whole currency amount",
            context={"principal_cents": principal_cents},
        )

    term_days = term_in_days(product_type, term_units)
    principal = Decimal(principal_cents)
    interest = principal * (tea / 100) * (Decimal(term_days) / DAYS_PER_YEAR)
    admin_fee = principal * (ADMIN_FEE_PCT / 100)

    total_units = ((principal + interest + admin_fee) / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    total_cents = int(total_units) * 100

    count = installment_count_for(product_type, term_days)
    schedule = generate_installment_plan(
        total_cents,
        count,
        interval_days=INSTALLMENT_INTERVAL_DAYS,
        issued_on=issued_on,
    )

    return Quote(
        product_type=product_type,
        principal_cents=principal_cents,
        term_units=term_units,
        term_days=term_days,
        tea_rate=tea,
        cft_rate=cft,
        interest_cents=int(interest.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        admin_fee_cents=int(admin_fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        total_payable_cents=total_cents,
        installment_count=count,
        schedule=tuple(schedule),
    )
