"""Counter-offer negotiation between staff and applicant"""

import dataclasses
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from loan_origination.domain.amortization import calculate_terms
from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import (
    ApplicationRecord,
    ApplicationStatus,
    CounterOffer,
    Decision,
    PaymentFrequency,
)
from loan_origination.domain.products import ProductRules, limit_errors

DEFAULT_OFFER_TTL_DAYS = 7


def build_counter_offer(
    record: ApplicationRecord,
    product: ProductRules,
    amount: Optional[Decimal],
    term_months: Optional[int],
    now: datetime,
    interest_rate: Optional[Decimal] = None,
    reason: Optional[str] = None,
    offered_by: Optional[str] = None,
    ttl_days: int = DEFAULT_OFFER_TTL_DAYS,
) -> CounterOffer:
    """
    Quote alternative terms for an application under review.

    Counter-offers are always quoted at MONTHLY frequency. The rate defaults
    to the product's base rate and the offer expires after ttl_days.
    """
    if amount is None or term_months is None:
        raise ValidationError("Counter offer must include amount and term_months")
    if record.status != ApplicationStatus.IN_REVIEW:
        raise ValidationError(
            f"Counter offers can only be sent while in review (status is {record.status.value})"
        )

    errors = limit_errors(product, amount, term_months)
    rate = product.annual_rate if interest_rate is None else interest_rate
    if not Decimal(0) <= rate <= Decimal(100):
        errors.append("Interest rate must be between 0 and 100")
    if errors:
        raise ValidationError("; ".join(errors), errors)

    terms = calculate_terms(amount, rate, term_months, PaymentFrequency.MONTHLY, record.opening_commission_rate)

    return CounterOffer(
        amount=amount,
        term_months=term_months,
        interest_rate=rate,
        monthly_payment=terms.payment,
        total_amount=terms.total_to_pay,
        offered_at=now,
        expires_at=now + timedelta(days=ttl_days),
        offered_by=offered_by,
        reason=reason,
    )


def attach_counter_offer(record: ApplicationRecord, offer: CounterOffer) -> ApplicationRecord:
    return dataclasses.replace(
        record,
        decision=Decision.COUNTER_OFFER,
        decision_at=offer.offered_at,
        decision_by=offer.offered_by,
        decision_notes=offer.reason,
        counter_offer=offer,
        counter_offer_accepted=None,
        counter_offer_responded_at=None,
    )


def active_counter_offer(record: ApplicationRecord, now: datetime) -> CounterOffer:
    """Expiry is checked lazily against the supplied clock reading"""
    if record.counter_offer is None:
        raise ValidationError("No counter offer to respond to")
    if not record.counter_offer.is_active(now):
        raise ValidationError(
            f"Counter offer expired at {record.counter_offer.expires_at.isoformat()}"
        )
    return record.counter_offer


def accept_counter_offer(record: ApplicationRecord, now: datetime) -> ApplicationRecord:
    """Adopt the offer's terms as the requested terms and recompute them"""
    offer = active_counter_offer(record, now)
    terms = calculate_terms(
        offer.amount,
        offer.interest_rate,
        offer.term_months,
        PaymentFrequency.MONTHLY,
        record.opening_commission_rate,
    )
    return dataclasses.replace(
        record,
        requested_amount=offer.amount,
        requested_term_months=offer.term_months,
        interest_rate=offer.interest_rate,
        payment_frequency=PaymentFrequency.MONTHLY,
        monthly_payment=terms.payment,
        total_interest=terms.total_interest,
        total_amount=terms.total_to_pay,
        cat=terms.cat,
        counter_offer=None,
        counter_offer_accepted=True,
        counter_offer_responded_at=now,
        updated_at=now,
    )


def decline_counter_offer(record: ApplicationRecord, now: datetime) -> ApplicationRecord:
    """Drop the offer; status is left for staff to re-decide"""
    active_counter_offer(record, now)
    return dataclasses.replace(
        record,
        counter_offer=None,
        counter_offer_accepted=False,
        counter_offer_responded_at=now,
        updated_at=now,
    )
