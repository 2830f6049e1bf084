"""Unit tests for the amortization engine"""

import pytest
from decimal import Decimal
from loan_origination.domain.amortization import (
    calculate_terms,
    fixed_payment,
    generate_schedule,
    period_rate,
    total_periods,
)
from loan_origination.domain.exceptions import CalculationError
from loan_origination.domain.models import PaymentFrequency


def test_monthly_loan_with_commission():
    """50,000 at 24% for 12 months with 3% opening commission"""
    terms = calculate_terms(Decimal("50000"), Decimal("24"), 12, PaymentFrequency.MONTHLY, Decimal("3"))

    assert terms.total_periods == 12
    assert terms.period_rate == Decimal("0.02")
    assert terms.payment == Decimal("4727.98")
    assert terms.total_to_pay == Decimal("56735.76")
    assert terms.total_interest == Decimal("6735.76")
    assert terms.opening_commission == Decimal("1500.00")
    assert terms.net_amount == Decimal("48500.00")
    assert terms.cat == Decimal("16.47")


def test_zero_rate_biweekly_loan():
    """Straight-line split with the residual cent absorbed by the last installment"""
    terms = calculate_terms(Decimal("10000"), Decimal("0"), 3, PaymentFrequency.BIWEEKLY)
    assert terms.total_periods == 6
    assert terms.payment == Decimal("1666.67")
    assert terms.total_to_pay == Decimal("10000.00")
    assert terms.total_interest == Decimal("0.00")


def test_zero_rate_schedule_last_installment_adjusted():
    rows = list(generate_schedule(Decimal("10000"), Decimal("0"), 3, PaymentFrequency.BIWEEKLY))

    assert [r.payment for r in rows[:5]] == [Decimal("1666.67")] * 5
    assert rows[-1].payment == Decimal("1666.65")
    assert rows[-1].remaining_balance == Decimal("0")
    assert sum(r.payment for r in rows) == Decimal("10000.00")


@pytest.mark.parametrize(
    "term,frequency,expected",
    [
        (12, PaymentFrequency.MONTHLY, 12),
        (3, PaymentFrequency.BIWEEKLY, 6),
        (12, PaymentFrequency.WEEKLY, 52),
        (1, PaymentFrequency.WEEKLY, 4),  # 4.33 rounds down
        (3, PaymentFrequency.WEEKLY, 13),
    ],
)
def test_total_periods(term, frequency, expected):
    assert total_periods(term, frequency) == expected


@pytest.mark.parametrize(
    "principal,rate,term,frequency",
    [
        (Decimal("50000"), Decimal("24"), 12, PaymentFrequency.MONTHLY),
        (Decimal("12345.67"), Decimal("36.5"), 18, PaymentFrequency.BIWEEKLY),
        (Decimal("8000"), Decimal("45"), 6, PaymentFrequency.WEEKLY),
        (Decimal("1000"), Decimal("0"), 7, PaymentFrequency.MONTHLY),
    ],
)
def test_schedule_principal_sums_to_loan_and_ends_at_zero(principal, rate, term, frequency):
    schedule = generate_schedule(principal, rate, term, frequency)
    rows = list(schedule)

    assert len(rows) == len(schedule) == total_periods(term, frequency)
    assert sum(r.principal_portion for r in rows) == principal
    assert rows[-1].remaining_balance == Decimal("0")
    assert all(r.remaining_balance >= 0 for r in rows)
    for row in rows:
        assert row.payment == row.principal_portion + row.interest_portion


def _assert_well_formed(rows, principal):
    balances = [principal] + [r.remaining_balance for r in rows]
    assert all(later <= earlier for earlier, later in zip(balances, balances[1:]))
    assert all(r.payment >= 0 and r.principal_portion >= 0 and r.interest_portion >= 0 for r in rows)
    assert sum(r.principal_portion for r in rows) == principal
    assert rows[-1].remaining_balance == Decimal("0")


def test_long_zero_rate_weekly_schedule_stays_within_a_cent():
    """6.42 a week for 1560 weeks would overshoot 10,008; installments are spread instead"""
    principal = Decimal("10008")
    rows = list(generate_schedule(principal, Decimal("0"), 360, PaymentFrequency.WEEKLY))

    assert len(rows) == 1560
    _assert_well_formed(rows, principal)
    exact = principal / 1560
    assert all(abs(r.payment - exact) <= Decimal("0.01") for r in rows)


def test_tiny_principal_never_repays_more_than_outstanding():
    principal = Decimal("10")
    rows = list(generate_schedule(principal, Decimal("1"), 24, PaymentFrequency.WEEKLY))

    assert len(rows) == 104
    _assert_well_formed(rows, principal)
    for row in rows:
        assert row.payment == row.principal_portion + row.interest_portion


def test_schedule_is_restartable():
    schedule = generate_schedule(Decimal("50000"), Decimal("24"), 12)
    assert list(schedule) == list(schedule)


def test_schedule_first_row_interest():
    first = next(iter(generate_schedule(Decimal("50000"), Decimal("24"), 12)))
    assert first.interest_portion == Decimal("1000.00")
    assert first.principal_portion == Decimal("3727.98")
    assert first.remaining_balance == Decimal("46272.02")


def test_calculation_is_deterministic():
    a = calculate_terms(Decimal("23456.78"), Decimal("31.9"), 24, PaymentFrequency.WEEKLY, Decimal("2.5"))
    b = calculate_terms(Decimal("23456.78"), Decimal("31.9"), 24, PaymentFrequency.WEEKLY, Decimal("2.5"))
    assert a == b


def test_fixed_payment_zero_rate_is_straight_line():
    assert fixed_payment(Decimal("900"), Decimal("0"), 3) == Decimal("300.00")


def test_period_rate_weekly():
    assert period_rate(Decimal("52"), PaymentFrequency.WEEKLY) == Decimal("0.01")


def test_rejects_non_positive_principal():
    with pytest.raises(CalculationError):
        calculate_terms(Decimal("0"), Decimal("24"), 12)


def test_rejects_term_below_one():
    with pytest.raises(CalculationError):
        calculate_terms(Decimal("1000"), Decimal("24"), 0)


def test_rejects_negative_rate():
    with pytest.raises(CalculationError):
        calculate_terms(Decimal("1000"), Decimal("-1"), 12)


def test_rejects_float_inputs():
    with pytest.raises(CalculationError):
        calculate_terms(50000.0, Decimal("24"), 12)


def test_rejects_unknown_frequency():
    with pytest.raises(CalculationError):
        calculate_terms(Decimal("1000"), Decimal("24"), 12, "DAILY")
