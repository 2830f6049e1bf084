"""
Application lifecycle operations.

Every function here is pure: it takes the current ApplicationRecord and
returns a LifecycleResult holding the new record plus the history entries
and events the caller must persist atomically. Nothing in this module
touches storage or the wall clock.
"""

import dataclasses
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from loan_origination.domain import events as ev
from loan_origination.domain.amortization import calculate_terms
from loan_origination.domain.counter_offer import (
    accept_counter_offer,
    active_counter_offer,
    attach_counter_offer,
    build_counter_offer,
    decline_counter_offer,
)
from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import (
    Actor,
    ActorType,
    ApplicantProfile,
    ApplicantType,
    ApplicationRecord,
    ApplicationStatus,
    Decision,
    LifecycleResult,
    LoanPurpose,
    LoanRequest,
    PaymentFrequency,
    RejectionReason,
    RiskLevel,
    StatusHistoryEntry,
)
from loan_origination.domain.products import ProductRules, validate_loan_request
from loan_origination.domain.snapshot import build_snapshot, ensure_snapshot_unset
from loan_origination.domain.submission import DEFAULT_MIN_REFERENCES, ensure_submittable
from loan_origination.domain.transitions import is_editable, is_terminal, validate_transition

S = ApplicationStatus

ACCEPT_POLICY_APPROVE = "approve"
ACCEPT_POLICY_REVIEW = "review"


def _require_actor(actor: Actor, *types: ActorType) -> None:
    if actor.type not in types:
        allowed = ", ".join(t.value for t in types)
        raise ValidationError(f"Operation requires a {allowed} actor, got {actor.type.value}")


def _ensure_not_final(record: ApplicationRecord) -> None:
    if is_terminal(record.status):
        raise ValidationError(f"Application {record.id} is {record.status.value} and can no longer change")


def _ensure_not_expired(record: ApplicationRecord, now: datetime) -> None:
    if record.status == S.DRAFT and record.is_expired(now):
        raise ValidationError(f"Draft application {record.id} expired at {record.expires_at.isoformat()}")


def _history(
    record: ApplicationRecord,
    from_status: Optional[ApplicationStatus],
    actor: Actor,
    now: datetime,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        application_id=record.id,
        from_status=from_status,
        to_status=record.status,
        changed_by=actor.id,
        changed_by_type=actor.type,
        created_at=now,
        notes=notes,
        metadata=metadata or {},
    )


def _transition(
    record: ApplicationRecord,
    new_status: ApplicationStatus,
    actor: Actor,
    now: datetime,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    **changes: Any,
) -> LifecycleResult:
    """Validate and apply a status change together with its ledger entry and events"""
    validate_transition(record.status, new_status, actor.type)
    previous = record.status
    updated = dataclasses.replace(
        record,
        status=new_status,
        status_changed_at=now,
        status_changed_by=actor.id,
        status_changed_by_type=actor.type,
        updated_at=now,
        **changes,
    )
    return LifecycleResult(
        record=updated,
        history=[_history(updated, previous, actor, now, notes, metadata)],
        events=ev.status_change_events(updated, previous, now),
    )


def create_draft(
    application_id: str,
    tenant_id: str,
    product: ProductRules,
    applicant_type: ApplicantType,
    applicant_id: str,
    loan_request: LoanRequest,
    created_by: Actor,
    now: datetime,
    draft_ttl_days: int = 30,
) -> LifecycleResult:
    """Price the request against the product and open a DRAFT application"""
    validate_loan_request(product, loan_request.amount, loan_request.term_months, loan_request.frequency)
    terms = calculate_terms(
        loan_request.amount,
        product.annual_rate,
        loan_request.term_months,
        loan_request.frequency,
        product.opening_commission_rate,
    )

    record = ApplicationRecord(
        id=application_id,
        tenant_id=tenant_id,
        product_id=product.id,
        applicant_type=applicant_type,
        person_id=applicant_id if applicant_type == ApplicantType.INDIVIDUAL else None,
        company_id=applicant_id if applicant_type == ApplicantType.COMPANY else None,
        requested_amount=loan_request.amount,
        requested_term_months=loan_request.term_months,
        payment_frequency=loan_request.frequency,
        interest_rate=product.annual_rate,
        opening_commission_rate=product.opening_commission_rate,
        monthly_payment=terms.payment,
        total_interest=terms.total_interest,
        total_amount=terms.total_to_pay,
        cat=terms.cat,
        purpose=loan_request.purpose,
        purpose_description=loan_request.purpose_description,
        status=S.DRAFT,
        status_changed_at=now,
        status_changed_by=created_by.id,
        status_changed_by_type=created_by.type,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(days=draft_ttl_days),
    )
    return LifecycleResult(
        record=record,
        history=[_history(record, None, created_by, now, notes="Application created")],
        events=[ev.event(ev.APPLICATION_CREATED, record, now)],
    )


def update_loan_terms(
    record: ApplicationRecord,
    product: ProductRules,
    actor: Actor,
    now: datetime,
    amount: Optional[Decimal] = None,
    term_months: Optional[int] = None,
    frequency: Optional[PaymentFrequency] = None,
    purpose: Optional[LoanPurpose] = None,
    purpose_description: Optional[str] = None,
) -> LifecycleResult:
    """
    Change requested terms on a draft and recompute payment figures.

    The rate and commission copied at creation are reused, so identical
    inputs always yield identical figures.
    """
    _require_actor(actor, ActorType.APPLICANT, ActorType.STAFF)
    if not is_editable(record.status):
        raise ValidationError(f"Application cannot be edited in status {record.status.value}")
    _ensure_not_expired(record, now)

    new_amount = record.requested_amount if amount is None else amount
    new_term = record.requested_term_months if term_months is None else term_months
    new_frequency = record.payment_frequency if frequency is None else frequency
    validate_loan_request(product, new_amount, new_term, new_frequency)

    terms = calculate_terms(
        new_amount,
        record.interest_rate,
        new_term,
        new_frequency,
        record.opening_commission_rate,
    )
    updated = dataclasses.replace(
        record,
        requested_amount=new_amount,
        requested_term_months=new_term,
        payment_frequency=new_frequency,
        monthly_payment=terms.payment,
        total_interest=terms.total_interest,
        total_amount=terms.total_to_pay,
        cat=terms.cat,
        purpose=record.purpose if purpose is None else purpose,
        purpose_description=record.purpose_description if purpose_description is None else purpose_description,
        updated_at=now,
    )
    return LifecycleResult(record=updated)


def submit(
    record: ApplicationRecord,
    product: ProductRules,
    submitted_by: Actor,
    profile: Optional[ApplicantProfile],
    uploaded_document_types: Iterable[str],
    reference_count: int,
    now: datetime,
    min_references: int = DEFAULT_MIN_REFERENCES,
) -> LifecycleResult:
    """
    DRAFT -> SUBMITTED, gated by the completeness checks.

    The applicant snapshot is captured here and only here.
    """
    validate_transition(record.status, S.SUBMITTED, submitted_by.type)
    _ensure_not_expired(record, now)
    ensure_snapshot_unset(record)
    ensure_submittable(record, product, profile, uploaded_document_types, reference_count, min_references)

    snapshot = build_snapshot(record.applicant_type, profile, now)
    return _transition(
        record,
        S.SUBMITTED,
        submitted_by,
        now,
        snapshot_data=snapshot,
        submitted_at=now,
        submitted_by=submitted_by.id,
    )


def approve(
    record: ApplicationRecord,
    actor: Actor,
    now: datetime,
    amount: Optional[Decimal] = None,
    term_months: Optional[int] = None,
    interest_rate: Optional[Decimal] = None,
    notes: Optional[str] = None,
) -> LifecycleResult:
    """Approve, optionally with terms that differ from the request"""
    validate_transition(record.status, S.APPROVED, actor.type)
    if record.approved_amount is not None:
        raise ValidationError(f"Application {record.id} already has approved terms")

    approved_amount = record.requested_amount if amount is None else amount
    approved_term = record.requested_term_months if term_months is None else term_months
    approved_rate = record.interest_rate if interest_rate is None else interest_rate
    if approved_amount <= 0 or approved_term < 1:
        raise ValidationError("Approved amount must be > 0 and term >= 1 month")

    terms = calculate_terms(
        approved_amount,
        approved_rate,
        approved_term,
        record.payment_frequency,
        record.opening_commission_rate,
    )
    return _transition(
        record,
        S.APPROVED,
        actor,
        now,
        notes=notes,
        decision=Decision.APPROVED,
        decision_at=now,
        decision_by=actor.id,
        decision_notes=notes,
        approved_amount=approved_amount,
        approved_term_months=approved_term,
        approved_interest_rate=approved_rate,
        approved_monthly_payment=terms.payment,
        counter_offer=None,
    )


def reject(
    record: ApplicationRecord,
    actor: Actor,
    reason: Optional[Union[RejectionReason, str]],
    now: datetime,
    notes: Optional[str] = None,
) -> LifecycleResult:
    if not reason:
        raise ValidationError("Rejection reason is required")
    try:
        rejection_reason = RejectionReason(reason)
    except ValueError as e:
        raise ValidationError(f"Unknown rejection reason: {reason!r}") from e

    return _transition(
        record,
        S.REJECTED,
        actor,
        now,
        notes=notes or rejection_reason.value,
        metadata={"rejection_reason": rejection_reason.value},
        decision=Decision.REJECTED,
        decision_at=now,
        decision_by=actor.id,
        decision_notes=notes,
        rejection_reason=rejection_reason,
        counter_offer=None,
    )


def cancel(record: ApplicationRecord, actor: Actor, reason: Optional[str], now: datetime) -> LifecycleResult:
    if not reason or not reason.strip():
        raise ValidationError("Cancellation reason is required")
    return _transition(record, S.CANCELLED, actor, now, notes=reason, counter_offer=None)


def mark_synced(
    record: ApplicationRecord,
    external_id: str,
    external_system: str,
    now: datetime,
    sync_data: Optional[Dict[str, Any]] = None,
) -> LifecycleResult:
    """APPROVED -> SYNCED once the loan exists in the core banking system"""
    if not external_id or not external_system:
        raise ValidationError("external_id and external_system are required")
    return _transition(
        record,
        S.SYNCED,
        Actor.system(),
        now,
        notes=f"Synced to {external_system}",
        metadata={"external_id": external_id, "external_system": external_system},
        external_id=external_id,
        external_system=external_system,
        sync_data=sync_data,
        synced_at=now,
    )


def change_status(
    record: ApplicationRecord,
    new_status: ApplicationStatus,
    actor: Actor,
    now: datetime,
    notes: Optional[str] = None,
) -> LifecycleResult:
    """
    Generic staff/system status change.

    Targets that need extra data are routed to their dedicated operation:
    APPROVED approves with the requested terms, CANCELLED uses notes as the
    reason. SUBMITTED, REJECTED and SYNCED must go through submit, reject
    and mark_synced.
    """
    if new_status == S.APPROVED:
        return approve(record, actor, now, notes=notes)
    if new_status == S.CANCELLED:
        return cancel(record, actor, notes, now)
    if new_status in (S.SUBMITTED, S.REJECTED, S.SYNCED):
        validate_transition(record.status, new_status, actor.type)
        raise ValidationError(f"Status {new_status.value} requires its dedicated operation")
    return _transition(record, new_status, actor, now, notes=notes)


def assign(record: ApplicationRecord, assignee_id: str, assigned_by: Actor, now: datetime) -> LifecycleResult:
    _require_actor(assigned_by, ActorType.STAFF)
    _ensure_not_final(record)
    if record.status == S.DRAFT:
        raise ValidationError("Draft applications cannot be assigned")
    if not assignee_id:
        raise ValidationError("assignee_id is required")
    updated = dataclasses.replace(
        record,
        assigned_to=assignee_id,
        assigned_at=now,
        assigned_by=assigned_by.id,
        updated_at=now,
    )
    return LifecycleResult(record=updated)


def send_counter_offer(
    record: ApplicationRecord,
    product: ProductRules,
    actor: Actor,
    now: datetime,
    amount: Optional[Decimal],
    term_months: Optional[int],
    interest_rate: Optional[Decimal] = None,
    reason: Optional[str] = None,
    ttl_days: int = 7,
) -> LifecycleResult:
    _require_actor(actor, ActorType.STAFF)
    offer = build_counter_offer(
        record,
        product,
        amount,
        term_months,
        now,
        interest_rate=interest_rate,
        reason=reason,
        offered_by=actor.id,
        ttl_days=ttl_days,
    )
    updated = dataclasses.replace(attach_counter_offer(record, offer), updated_at=now)
    return LifecycleResult(record=updated)


def respond_to_counter_offer(
    record: ApplicationRecord,
    actor: Actor,
    accepted: bool,
    now: datetime,
    policy: str = ACCEPT_POLICY_APPROVE,
) -> LifecycleResult:
    """
    Applicant answer to a pending counter-offer.

    Accepting rewrites the requested terms from the offer. Under the
    "approve" policy the application then moves IN_REVIEW -> APPROVED as a
    system transition; under "review" it stays IN_REVIEW for staff.
    Declining only clears the offer.
    """
    _require_actor(actor, ActorType.APPLICANT)
    if record.status != S.IN_REVIEW:
        raise ValidationError(
            f"Counter offers can only be answered while in review (status is {record.status.value})"
        )
    offer = active_counter_offer(record, now)

    if not accepted:
        return LifecycleResult(record=decline_counter_offer(record, now))

    updated = accept_counter_offer(record, now)
    if policy == ACCEPT_POLICY_REVIEW:
        return LifecycleResult(record=updated)
    if policy != ACCEPT_POLICY_APPROVE:
        raise ValidationError(f"Unknown counter offer policy: {policy!r}")

    result = approve(
        updated,
        Actor.system(),
        now,
        amount=offer.amount,
        term_months=offer.term_months,
        interest_rate=offer.interest_rate,
        notes="Counter offer accepted by applicant",
    )
    entries: List[StatusHistoryEntry] = [
        dataclasses.replace(entry, metadata={**entry.metadata, "accepted_by": actor.id})
        for entry in result.history
    ]
    return LifecycleResult(record=result.record, history=entries, events=result.events)


def update_verification(
    record: ApplicationRecord,
    checks: Dict[str, Union[bool, int]],
    actor: Actor,
    now: datetime,
) -> LifecycleResult:
    """Merge verification checks into the checklist"""
    _require_actor(actor, ActorType.STAFF, ActorType.SYSTEM)
    _ensure_not_final(record)
    for name, value in checks.items():
        if not isinstance(value, (bool, int)):
            raise ValidationError(f"Verification check {name!r} must be a boolean or a count")
    merged = {**record.verification_checklist, **checks}
    return LifecycleResult(record=dataclasses.replace(record, verification_checklist=merged, updated_at=now))


def set_risk_assessment(
    record: ApplicationRecord,
    level: Union[RiskLevel, str],
    actor: Actor,
    now: datetime,
    data: Optional[Dict[str, Any]] = None,
) -> LifecycleResult:
    _require_actor(actor, ActorType.STAFF, ActorType.SYSTEM)
    _ensure_not_final(record)
    try:
        risk_level = RiskLevel(level)
    except ValueError as e:
        raise ValidationError(f"Unknown risk level: {level!r}") from e
    return LifecycleResult(
        record=dataclasses.replace(record, risk_level=risk_level, risk_data=data, updated_at=now)
    )
