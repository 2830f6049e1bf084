"""Unit tests for debt-to-income"""

from decimal import Decimal
from loan_origination.domain.affordability import debt_to_income, income_for, monthly_equivalent
from loan_origination.domain.models import Employment, PaymentFrequency


def test_debt_to_income_percentage():
    assert debt_to_income(Decimal("4727.98"), Decimal("25000")) == Decimal("18.91")


def test_unknown_income_has_no_ratio():
    assert debt_to_income(Decimal("1000"), None) is None
    assert debt_to_income(Decimal("1000"), Decimal("0")) is None


def test_verified_income_wins():
    employment = Employment(
        employer_name="Acme",
        employment_type="EMPLOYED",
        monthly_income=Decimal("30000"),
        verified_income=Decimal("22000"),
    )
    assert income_for(employment) == Decimal("22000")
    assert income_for(None) is None


def test_monthly_equivalent():
    assert monthly_equivalent(Decimal("1000"), PaymentFrequency.BIWEEKLY) == Decimal("2000.00")
    assert monthly_equivalent(Decimal("300"), PaymentFrequency.WEEKLY) == Decimal("1300.00")
    assert monthly_equivalent(Decimal("4727.98"), PaymentFrequency.MONTHLY) == Decimal("4727.98")
