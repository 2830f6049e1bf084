"""Amortization engine - fixed-rate installment loan calculations"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterator, Union

from loan_origination.domain.exceptions import CalculationError
from loan_origination.domain.models import PaymentFrequency

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")

Number = Union[Decimal, int, str]


def money(value: Decimal) -> Decimal:
    """Round to cents, half-up"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal(value: Number, name: str) -> Decimal:
    if isinstance(value, float):
        raise CalculationError(f"{name} must be Decimal, int or str, not float")
    try:
        return Decimal(value)
    except (ArithmeticError, ValueError, TypeError) as e:
        raise CalculationError(f"{name} is not a number: {value!r}") from e


def _frequency(frequency: Union[PaymentFrequency, str]) -> PaymentFrequency:
    try:
        return PaymentFrequency(frequency)
    except ValueError as e:
        raise CalculationError(f"Unsupported payment frequency: {frequency!r}") from e


@dataclass(frozen=True)
class LoanTerms:
    """Complete result of a loan calculation"""

    principal: Decimal
    term_months: int
    frequency: PaymentFrequency
    annual_rate: Decimal
    period_rate: Decimal
    total_periods: int
    payment: Decimal
    opening_commission_rate: Decimal
    opening_commission: Decimal
    net_amount: Decimal
    total_to_pay: Decimal
    total_interest: Decimal
    cat: Decimal


@dataclass(frozen=True)
class ScheduleRow:
    """Single period in an amortization schedule"""

    period: int
    payment: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    remaining_balance: Decimal


def periods_per_year(frequency: Union[PaymentFrequency, str]) -> int:
    return _frequency(frequency).periods_per_year


def total_periods(term_months: int, frequency: Union[PaymentFrequency, str]) -> int:
    """
    Number of installments for a term.

    WEEKLY uses 52/12 periods per month, BIWEEKLY exactly 2, MONTHLY 1.
    Rounded half-up to the nearest integer, never below 1.
    """
    if term_months < 1:
        raise CalculationError(f"term_months must be >= 1, got {term_months}")
    per_year = Decimal(periods_per_year(frequency))
    periods = (Decimal(term_months) * per_year / MONTHS_PER_YEAR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(int(periods), 1)


def period_rate(annual_rate_percent: Number, frequency: Union[PaymentFrequency, str]) -> Decimal:
    annual = _decimal(annual_rate_percent, "annual_rate_percent")
    if annual < 0:
        raise CalculationError(f"annual_rate_percent must be >= 0, got {annual}")
    return annual / HUNDRED / Decimal(periods_per_year(frequency))


def fixed_payment(principal: Decimal, rate: Decimal, periods: int) -> Decimal:
    """
    French (constant payment) installment, rounded to cents.

    P = L * r(1+r)^n / ((1+r)^n - 1), or L / n when r == 0.
    """
    if rate > 0:
        growth = (1 + rate) ** periods
        return money(principal * rate * growth / (growth - 1))
    return money(principal / periods)


def _check_principal(principal: Number) -> Decimal:
    value = _decimal(principal, "principal")
    if value <= 0:
        raise CalculationError(f"principal must be > 0, got {value}")
    return value


def calculate_terms(
    principal: Number,
    annual_rate_percent: Number,
    term_months: int,
    frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
    opening_commission_percent: Number = 0,
) -> LoanTerms:
    """
    Compute payment, totals, commission and CAT for a fixed-rate loan.

    Monetary outputs are rounded half-up to cents. CAT is the simplified
    effective annual cost: (interest + commission) / principal / years * 100.
    """
    amount = _check_principal(principal)
    freq = _frequency(frequency)
    commission_rate = _decimal(opening_commission_percent, "opening_commission_percent")
    if commission_rate < 0:
        raise CalculationError(f"opening_commission_percent must be >= 0, got {commission_rate}")

    periods = total_periods(term_months, freq)
    rate = period_rate(annual_rate_percent, freq)
    payment = fixed_payment(amount, rate, periods)

    if rate > 0:
        total_to_pay = money(payment * periods)
        total_interest = money(total_to_pay - amount)
    else:
        # Straight-line loans carry no interest; residual cents live in the last installment
        total_to_pay = money(amount)
        total_interest = money(ZERO)

    opening_commission = money(amount * commission_rate / HUNDRED)
    net_amount = money(amount - opening_commission)
    years = Decimal(term_months) / MONTHS_PER_YEAR
    cat = money((total_interest + opening_commission) / amount / years * HUNDRED)

    return LoanTerms(
        principal=amount,
        term_months=term_months,
        frequency=freq,
        annual_rate=_decimal(annual_rate_percent, "annual_rate_percent"),
        period_rate=rate,
        total_periods=periods,
        payment=payment,
        opening_commission_rate=commission_rate,
        opening_commission=opening_commission,
        net_amount=net_amount,
        total_to_pay=total_to_pay,
        total_interest=total_interest,
        cat=cat,
    )


class AmortizationSchedule:
    """
    Lazy, finite, restartable period-by-period schedule.

    Each iteration recomputes rows from the loan inputs, so the same
    schedule object can be iterated any number of times.

    No row repays more principal than is outstanding. Last-period adjustment:
    the final principal portion equals the exact remaining balance and that
    row's payment is recomputed, so the balance ends at exactly zero and
    principal portions sum to the principal.
    """

    def __init__(
        self,
        principal: Number,
        annual_rate_percent: Number,
        term_months: int,
        frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
    ):
        self.principal = _check_principal(principal)
        self.frequency = _frequency(frequency)
        self.total_periods = total_periods(term_months, self.frequency)
        self.period_rate = period_rate(annual_rate_percent, self.frequency)
        self.payment = fixed_payment(self.principal, self.period_rate, self.total_periods)

    def __len__(self) -> int:
        return self.total_periods

    def _straight_line_portion(self, period: int) -> Decimal:
        """Cumulative rounding keeps every installment within a cent of principal / n"""
        n = self.total_periods
        return money(self.principal * period / n) - money(self.principal * (period - 1) / n)

    def __iter__(self) -> Iterator[ScheduleRow]:
        balance = self.principal
        spread = self.period_rate == 0 and self.payment * (self.total_periods - 1) > self.principal
        for period in range(1, self.total_periods + 1):
            interest = money(balance * self.period_rate)
            if period == self.total_periods:
                principal_portion = balance
            elif spread:
                principal_portion = self._straight_line_portion(period)
            else:
                # Rounded-up payments would overshoot the balance near the end
                principal_portion = max(min(self.payment - interest, balance), ZERO)
            payment = principal_portion + interest
            balance = balance - principal_portion

            yield ScheduleRow(
                period=period,
                payment=payment,
                principal_portion=principal_portion,
                interest_portion=interest,
                remaining_balance=balance,
            )


def generate_schedule(
    principal: Number,
    annual_rate_percent: Number,
    term_months: int,
    frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
) -> AmortizationSchedule:
    return AmortizationSchedule(principal, annual_rate_percent, term_months, frequency)
