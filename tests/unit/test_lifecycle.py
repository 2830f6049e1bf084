"""Unit tests for pure lifecycle operations"""

import dataclasses
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from loan_origination.domain import events as ev
from loan_origination.domain import lifecycle
from loan_origination.domain.exceptions import IllegalTransition, ValidationError
from loan_origination.domain.models import (
    Actor,
    ActorType,
    ApplicantType,
    ApplicationStatus as S,
    Decision,
    IndividualSnapshot,
    LoanPurpose,
    LoanRequest,
    PaymentFrequency,
    RejectionReason,
    RiskLevel,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
STAFF = Actor.staff("analyst-1")
APPLICANT = Actor.applicant("person-1")
DOCS = ["INE_FRONT", "PROOF_OF_ADDRESS"]


@pytest.fixture
def draft(product):
    return lifecycle.create_draft(
        "app-1",
        product.tenant_id,
        product,
        ApplicantType.INDIVIDUAL,
        "person-1",
        LoanRequest(amount=Decimal("50000"), term_months=12, purpose=LoanPurpose.PERSONAL),
        APPLICANT,
        NOW,
    ).record


@pytest.fixture
def submitted(draft, product, person_profile):
    return lifecycle.submit(draft, product, APPLICANT, person_profile, DOCS, 2, NOW).record


@pytest.fixture
def in_review(submitted):
    return lifecycle.change_status(submitted, S.IN_REVIEW, STAFF, NOW).record


def test_create_draft_prices_request_and_logs_creation(product):
    result = lifecycle.create_draft(
        "app-1",
        product.tenant_id,
        product,
        ApplicantType.INDIVIDUAL,
        "person-1",
        LoanRequest(amount=Decimal("50000"), term_months=12),
        APPLICANT,
        NOW,
        draft_ttl_days=30,
    )
    record = result.record

    assert record.status == S.DRAFT
    assert record.monthly_payment == Decimal("4727.98")
    assert record.total_amount == Decimal("56735.76")
    assert record.interest_rate == product.annual_rate
    assert record.expires_at == NOW + timedelta(days=30)
    assert record.person_id == "person-1" and record.company_id is None

    assert len(result.history) == 1
    assert result.history[0].from_status is None
    assert result.history[0].to_status == S.DRAFT
    assert result.history[0].notes == "Application created"
    assert [e.event_type for e in result.events] == [ev.APPLICATION_CREATED]


def test_create_draft_outside_product_limits(product):
    with pytest.raises(ValidationError) as exc:
        lifecycle.create_draft(
            "app-1",
            product.tenant_id,
            product,
            ApplicantType.INDIVIDUAL,
            "person-1",
            LoanRequest(amount=Decimal("500"), term_months=48),
            APPLICANT,
            NOW,
        )
    assert len(exc.value.errors) == 2


def test_update_terms_recomputes_with_copied_rate(draft, product):
    result = lifecycle.update_loan_terms(
        draft, product, APPLICANT, NOW, amount=Decimal("10000"), frequency=PaymentFrequency.BIWEEKLY
    )
    record = result.record
    assert record.requested_amount == Decimal("10000")
    assert record.payment_frequency == PaymentFrequency.BIWEEKLY
    assert record.requested_term_months == 12
    assert record.interest_rate == draft.interest_rate
    assert result.history == [] and result.events == []


def test_update_terms_only_in_draft(submitted, product):
    with pytest.raises(ValidationError):
        lifecycle.update_loan_terms(submitted, product, APPLICANT, NOW, amount=Decimal("10000"))


def test_expired_draft_cannot_be_edited_or_submitted(draft, product, person_profile):
    later = NOW + timedelta(days=31)
    with pytest.raises(ValidationError):
        lifecycle.update_loan_terms(draft, product, APPLICANT, later, amount=Decimal("10000"))
    with pytest.raises(ValidationError):
        lifecycle.submit(draft, product, APPLICANT, person_profile, DOCS, 2, later)


def test_submit_captures_snapshot_and_emits_events(draft, product, person_profile):
    result = lifecycle.submit(draft, product, APPLICANT, person_profile, DOCS, 2, NOW)
    record = result.record

    assert record.status == S.SUBMITTED
    assert record.submitted_at == NOW
    assert record.submitted_by == "person-1"
    assert isinstance(record.snapshot_data, IndividualSnapshot)
    assert record.snapshot_data.full_name == "Ana Lopez Ruiz"
    assert [e.event_type for e in result.events] == [ev.APPLICATION_STATUS_CHANGED, ev.APPLICATION_SUBMITTED]
    assert result.events[0].payload["previous_status"] == "DRAFT"


def test_staff_cannot_submit(draft, product, person_profile):
    with pytest.raises(IllegalTransition):
        lifecycle.submit(draft, product, STAFF, person_profile, DOCS, 2, NOW)


def test_approve_with_requested_terms(in_review):
    result = lifecycle.approve(in_review, STAFF, NOW, notes="Good profile")
    record = result.record

    assert record.status == S.APPROVED
    assert record.decision == Decision.APPROVED
    assert record.approved_amount == Decimal("50000")
    assert record.approved_term_months == 12
    assert record.approved_monthly_payment == Decimal("4727.98")
    assert record.decision_by == "analyst-1"
    assert [e.event_type for e in result.events] == [ev.APPLICATION_STATUS_CHANGED, ev.APPLICATION_APPROVED]


def test_approve_with_overridden_terms(in_review):
    record = lifecycle.approve(in_review, STAFF, NOW, amount=Decimal("30000"), term_months=6).record
    assert record.approved_amount == Decimal("30000")
    assert record.approved_term_months == 6
    assert record.approved_interest_rate == in_review.interest_rate


def test_approved_terms_are_write_once(in_review):
    approved = lifecycle.approve(in_review, STAFF, NOW).record
    # Force the status back to exercise the guard on its own
    reopened = dataclasses.replace(approved, status=S.IN_REVIEW)
    with pytest.raises(ValidationError):
        lifecycle.approve(reopened, STAFF, NOW)


def test_reject_requires_known_reason(in_review):
    with pytest.raises(ValidationError):
        lifecycle.reject(in_review, STAFF, None, NOW)
    with pytest.raises(ValidationError):
        lifecycle.reject(in_review, STAFF, "BAD_VIBES", NOW)

    result = lifecycle.reject(in_review, STAFF, "LOW_SCORE", NOW)
    assert result.record.rejection_reason == RejectionReason.LOW_SCORE
    assert result.record.decision == Decision.REJECTED
    assert result.history[0].metadata == {"rejection_reason": "LOW_SCORE"}
    assert ev.APPLICATION_REJECTED in [e.event_type for e in result.events]


def test_cancel_requires_reason(submitted):
    with pytest.raises(ValidationError):
        lifecycle.cancel(submitted, APPLICANT, "  ", NOW)
    result = lifecycle.cancel(submitted, APPLICANT, "Found a better rate", NOW)
    assert result.record.status == S.CANCELLED
    assert result.history[0].notes == "Found a better rate"


def test_approved_application_can_be_cancelled_before_sync(in_review):
    approved = lifecycle.approve(in_review, STAFF, NOW).record
    result = lifecycle.cancel(approved, STAFF, "Applicant declined disbursement", NOW)

    assert result.record.status == S.CANCELLED
    assert result.record.approved_amount == approved.approved_amount
    assert (result.history[0].from_status, result.history[0].to_status) == (S.APPROVED, S.CANCELLED)

    with pytest.raises(IllegalTransition):
        lifecycle.mark_synced(result.record, "LN-1", "core-banking", NOW)


def test_mark_synced_from_approved(in_review):
    approved = lifecycle.approve(in_review, STAFF, NOW).record
    result = lifecycle.mark_synced(approved, "LN-1001", "core-banking", NOW, {"branch": "001"})

    assert result.record.status == S.SYNCED
    assert result.record.external_id == "LN-1001"
    assert result.record.synced_at == NOW
    assert result.history[0].changed_by_type == ActorType.SYSTEM
    assert result.history[0].changed_by is None


def test_mark_synced_requires_approved(in_review):
    with pytest.raises(IllegalTransition):
        lifecycle.mark_synced(in_review, "LN-1001", "core-banking", NOW)


def test_change_status_routes_to_dedicated_operations(in_review, submitted):
    assert lifecycle.change_status(in_review, S.APPROVED, STAFF, NOW).record.decision == Decision.APPROVED
    assert lifecycle.change_status(submitted, S.CANCELLED, STAFF, NOW, notes="Duplicate").record.status == S.CANCELLED
    with pytest.raises(ValidationError):
        lifecycle.change_status(in_review, S.REJECTED, STAFF, NOW)


def test_change_status_rejects_illegal_pairs(submitted):
    with pytest.raises(IllegalTransition):
        lifecycle.change_status(submitted, S.APPROVED, STAFF, NOW)


def test_assign_requires_staff_and_non_draft(draft, submitted):
    with pytest.raises(ValidationError):
        lifecycle.assign(draft, "analyst-2", STAFF, NOW)
    with pytest.raises(ValidationError):
        lifecycle.assign(submitted, "analyst-2", APPLICANT, NOW)

    record = lifecycle.assign(submitted, "analyst-2", STAFF, NOW).record
    assert record.assigned_to == "analyst-2"
    assert record.assigned_by == "analyst-1"
    assert record.status == S.SUBMITTED


def test_update_verification_merges_checks(submitted):
    first = lifecycle.update_verification(submitted, {"identity": True}, STAFF, NOW).record
    second = lifecycle.update_verification(first, {"references": 2}, Actor.system(), NOW).record
    assert second.verification_checklist == {"identity": True, "references": 2}

    with pytest.raises(ValidationError):
        lifecycle.update_verification(submitted, {"identity": "yes"}, STAFF, NOW)


def test_set_risk_assessment(submitted):
    record = lifecycle.set_risk_assessment(submitted, "HIGH", STAFF, NOW, {"score": 540}).record
    assert record.risk_level == RiskLevel.HIGH
    assert record.risk_data == {"score": 540}

    with pytest.raises(ValidationError):
        lifecycle.set_risk_assessment(submitted, "EXTREME", STAFF, NOW)
    with pytest.raises(ValidationError):
        lifecycle.set_risk_assessment(submitted, "LOW", APPLICANT, NOW)
