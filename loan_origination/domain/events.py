"""Outbound application events consumed by webhook delivery"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from loan_origination.domain.models import (
    ApplicationRecord,
    ApplicationStatus,
    DomainEvent,
    to_jsonable,
)

APPLICATION_CREATED = "application.created"
APPLICATION_SUBMITTED = "application.submitted"
APPLICATION_STATUS_CHANGED = "application.status_changed"
APPLICATION_APPROVED = "application.approved"
APPLICATION_REJECTED = "application.rejected"


def build_application_payload(record: ApplicationRecord) -> Dict[str, Any]:
    """Monetary values are serialized as stored, never re-rounded"""
    return to_jsonable(
        {
            "id": record.id,
            "tenant_id": record.tenant_id,
            "product_id": record.product_id,
            "applicant_type": record.applicant_type,
            "applicant_id": record.applicant_id,
            "status": record.status,
            "version": record.version,
            "requested_amount": record.requested_amount,
            "requested_term_months": record.requested_term_months,
            "payment_frequency": record.payment_frequency,
            "interest_rate": record.interest_rate,
            "monthly_payment": record.monthly_payment,
            "total_interest": record.total_interest,
            "total_amount": record.total_amount,
            "cat": record.cat,
            "decision": record.decision,
            "approved_amount": record.approved_amount,
            "approved_term_months": record.approved_term_months,
            "approved_interest_rate": record.approved_interest_rate,
            "approved_monthly_payment": record.approved_monthly_payment,
            "rejection_reason": record.rejection_reason,
            "submitted_at": record.submitted_at,
            "decision_at": record.decision_at,
        }
    )


def event(event_type: str, record: ApplicationRecord, now: datetime, **extra: Any) -> DomainEvent:
    payload = {"event": event_type, "application": build_application_payload(record)}
    payload.update(to_jsonable(extra))
    return DomainEvent(
        event_type=event_type,
        application_id=record.id,
        tenant_id=record.tenant_id,
        payload=payload,
        occurred_at=now,
    )


def status_change_events(
    record: ApplicationRecord,
    previous_status: Optional[ApplicationStatus],
    now: datetime,
) -> List[DomainEvent]:
    """status_changed plus the specific approved/rejected/submitted event when one applies"""
    events = [event(APPLICATION_STATUS_CHANGED, record, now, previous_status=previous_status)]
    if record.status == ApplicationStatus.SUBMITTED:
        events.append(event(APPLICATION_SUBMITTED, record, now))
    elif record.status == ApplicationStatus.APPROVED:
        events.append(event(APPLICATION_APPROVED, record, now))
    elif record.status == ApplicationStatus.REJECTED:
        events.append(event(APPLICATION_REJECTED, record, now))
    return events
