"""Product rules - immutable loan product configuration and request validation"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, List, Tuple

from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import PaymentFrequency


@dataclass(frozen=True)
class ProductRules:
    """
    Loan product limits and pricing.

    Rates are percentages (24.0 means 24% per year). Products are created by
    admin tooling; this core only reads them.
    """

    id: str
    tenant_id: str
    name: str
    annual_rate: Decimal
    opening_commission_rate: Decimal
    min_amount: Decimal
    max_amount: Decimal
    min_term_months: int
    max_term_months: int
    allowed_frequencies: FrozenSet[PaymentFrequency] = frozenset({PaymentFrequency.MONTHLY})
    required_documents: Tuple[str, ...] = field(default_factory=tuple)
    is_active: bool = True

    def __post_init__(self):
        errors = []
        if not Decimal(0) <= self.annual_rate <= Decimal(100):
            errors.append("annual_rate must be between 0 and 100")
        if self.opening_commission_rate < 0:
            errors.append("opening_commission_rate must be >= 0")
        if self.min_amount <= 0:
            errors.append("min_amount must be > 0")
        if self.min_amount > self.max_amount:
            errors.append("min_amount must not exceed max_amount")
        if self.min_term_months < 1:
            errors.append("min_term_months must be >= 1")
        if self.min_term_months > self.max_term_months:
            errors.append("min_term_months must not exceed max_term_months")
        if not self.allowed_frequencies:
            errors.append("allowed_frequencies must not be empty")
        if errors:
            raise ValidationError(f"Invalid product {self.id}: " + "; ".join(errors), errors)

    def is_amount_valid(self, amount: Decimal) -> bool:
        return self.min_amount <= amount <= self.max_amount

    def is_term_valid(self, term_months: int) -> bool:
        return self.min_term_months <= term_months <= self.max_term_months

    def allows(self, frequency: PaymentFrequency) -> bool:
        return frequency in self.allowed_frequencies


def limit_errors(product: ProductRules, amount: Decimal, term_months: int) -> List[str]:
    """Amount and term range violations"""
    errors = []
    if not product.is_amount_valid(amount):
        errors.append(f"Amount must be between {product.min_amount} and {product.max_amount}")
    if not product.is_term_valid(term_months):
        errors.append(
            f"Term must be between {product.min_term_months} and {product.max_term_months} months"
        )
    return errors


def loan_request_errors(
    product: ProductRules,
    amount: Decimal,
    term_months: int,
    frequency: PaymentFrequency,
) -> List[str]:
    errors = limit_errors(product, amount, term_months)
    if not product.allows(frequency):
        allowed = ", ".join(sorted(f.value for f in product.allowed_frequencies))
        errors.append(f"Payment frequency {frequency.value} not offered (allowed: {allowed})")
    return errors


def validate_loan_request(
    product: ProductRules,
    amount: Decimal,
    term_months: int,
    frequency: PaymentFrequency,
) -> None:
    """Raise ValidationError listing every product limit the request breaks"""
    if not product.is_active:
        raise ValidationError(f"Product {product.id} is not available")
    errors = loan_request_errors(product, amount, term_months, frequency)
    if errors:
        raise ValidationError("; ".join(errors), errors)
