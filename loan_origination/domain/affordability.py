"""Debt-to-income ratio for affordability review"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from loan_origination.domain.models import Employment, PaymentFrequency

PERCENT = Decimal("0.01")


def debt_to_income(proposed_payment: Decimal, monthly_income: Optional[Decimal]) -> Optional[Decimal]:
    """
    Proposed monthly payment as a percentage of monthly income.

    Returns None when income is unknown or zero.
    """
    if not monthly_income or monthly_income <= 0:
        return None
    return (proposed_payment / monthly_income * Decimal(100)).quantize(PERCENT, rounding=ROUND_HALF_UP)


def income_for(employment: Optional[Employment]) -> Optional[Decimal]:
    """Verified income wins over declared income"""
    if employment is None:
        return None
    return employment.verified_income or employment.monthly_income


def monthly_equivalent(payment: Decimal, frequency: PaymentFrequency) -> Decimal:
    """Scale a per-period installment to a monthly amount"""
    return (payment * Decimal(frequency.periods_per_year) / Decimal(12)).quantize(PERCENT, rounding=ROUND_HALF_UP)
