"""Tenant-scoped data access for products, applications, status history and the outbox"""

import dataclasses
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from loan_origination.domain.exceptions import ConcurrentModification, NotFound
from loan_origination.domain.models import (
    ActorType,
    ApplicantType,
    ApplicationRecord,
    ApplicationStatus,
    CounterOffer,
    Decision,
    DomainEvent,
    LoanPurpose,
    PaymentFrequency,
    RejectionReason,
    RiskLevel,
    StatusHistoryEntry,
    snapshot_from_dict,
)
from loan_origination.domain.products import ProductRules
from loan_origination.infrastructure.database.models import (
    ApplicationStatusHistory,
    LoanApplication,
    OutboundEvent,
    Product,
)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; everything we store is UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _enum(enum_cls, value):
    return enum_cls(value) if value is not None else None


def _value(member):
    return member.value if member is not None else None


class ProductRepository:
    """Repository for loan products"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, tenant_id: str, product_id: str) -> ProductRules:
        row = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.tenant_id == tenant_id)
            .first()
        )
        if row is None:
            raise NotFound("Product", product_id)
        return ProductRules(
            id=row.id,
            tenant_id=row.tenant_id,
            name=row.name,
            annual_rate=Decimal(row.annual_rate),
            opening_commission_rate=Decimal(row.opening_commission_rate),
            min_amount=Decimal(row.min_amount),
            max_amount=Decimal(row.max_amount),
            min_term_months=row.min_term_months,
            max_term_months=row.max_term_months,
            allowed_frequencies=frozenset(PaymentFrequency(f) for f in row.allowed_frequencies),
            required_documents=tuple(row.required_documents or ()),
            is_active=row.is_active,
        )

    def add(self, product: ProductRules) -> None:
        self.db.add(
            Product(
                id=product.id,
                tenant_id=product.tenant_id,
                name=product.name,
                annual_rate=product.annual_rate,
                opening_commission_rate=product.opening_commission_rate,
                min_amount=product.min_amount,
                max_amount=product.max_amount,
                min_term_months=product.min_term_months,
                max_term_months=product.max_term_months,
                allowed_frequencies=sorted(f.value for f in product.allowed_frequencies),
                required_documents=list(product.required_documents),
                is_active=product.is_active,
            )
        )
        self.db.flush()


def _row_values(record: ApplicationRecord) -> Dict[str, Any]:
    """Columns written on every save (snapshot_data is handled separately)"""
    return {
        "product_id": record.product_id,
        "applicant_type": record.applicant_type.value,
        "person_id": record.person_id,
        "company_id": record.company_id,
        "requested_amount": record.requested_amount,
        "requested_term_months": record.requested_term_months,
        "payment_frequency": record.payment_frequency.value,
        "purpose": _value(record.purpose),
        "purpose_description": record.purpose_description,
        "interest_rate": record.interest_rate,
        "opening_commission_rate": record.opening_commission_rate,
        "monthly_payment": record.monthly_payment,
        "total_interest": record.total_interest,
        "total_amount": record.total_amount,
        "cat": record.cat,
        "status": record.status.value,
        "status_changed_at": record.status_changed_at,
        "status_changed_by": record.status_changed_by,
        "status_changed_by_type": _value(record.status_changed_by_type),
        "submitted_at": record.submitted_at,
        "submitted_by": record.submitted_by,
        "expires_at": record.expires_at,
        "assigned_to": record.assigned_to,
        "assigned_at": record.assigned_at,
        "assigned_by": record.assigned_by,
        "decision": _value(record.decision),
        "decision_at": record.decision_at,
        "decision_by": record.decision_by,
        "decision_notes": record.decision_notes,
        "approved_amount": record.approved_amount,
        "approved_term_months": record.approved_term_months,
        "approved_interest_rate": record.approved_interest_rate,
        "approved_monthly_payment": record.approved_monthly_payment,
        "rejection_reason": _value(record.rejection_reason),
        "counter_offer": record.counter_offer.to_dict() if record.counter_offer else None,
        "counter_offer_accepted": record.counter_offer_accepted,
        "counter_offer_responded_at": record.counter_offer_responded_at,
        "verification_checklist": dict(record.verification_checklist),
        "risk_level": _value(record.risk_level),
        "risk_data": record.risk_data,
        "external_id": record.external_id,
        "external_system": record.external_system,
        "sync_data": record.sync_data,
        "synced_at": record.synced_at,
        "updated_at": record.updated_at,
    }


def _to_record(row: LoanApplication) -> ApplicationRecord:
    return ApplicationRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        product_id=row.product_id,
        applicant_type=ApplicantType(row.applicant_type),
        person_id=row.person_id,
        company_id=row.company_id,
        requested_amount=Decimal(row.requested_amount),
        requested_term_months=row.requested_term_months,
        payment_frequency=PaymentFrequency(row.payment_frequency),
        interest_rate=Decimal(row.interest_rate),
        opening_commission_rate=Decimal(row.opening_commission_rate),
        monthly_payment=Decimal(row.monthly_payment),
        total_interest=Decimal(row.total_interest),
        total_amount=Decimal(row.total_amount),
        cat=Decimal(row.cat) if row.cat is not None else None,
        purpose=_enum(LoanPurpose, row.purpose),
        purpose_description=row.purpose_description,
        status=ApplicationStatus(row.status),
        version=row.version,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        expires_at=_aware(row.expires_at),
        status_changed_at=_aware(row.status_changed_at),
        status_changed_by=row.status_changed_by,
        status_changed_by_type=_enum(ActorType, row.status_changed_by_type),
        submitted_at=_aware(row.submitted_at),
        submitted_by=row.submitted_by,
        assigned_to=row.assigned_to,
        assigned_at=_aware(row.assigned_at),
        assigned_by=row.assigned_by,
        decision=_enum(Decision, row.decision),
        decision_at=_aware(row.decision_at),
        decision_by=row.decision_by,
        decision_notes=row.decision_notes,
        approved_amount=Decimal(row.approved_amount) if row.approved_amount is not None else None,
        approved_term_months=row.approved_term_months,
        approved_interest_rate=(
            Decimal(row.approved_interest_rate) if row.approved_interest_rate is not None else None
        ),
        approved_monthly_payment=(
            Decimal(row.approved_monthly_payment) if row.approved_monthly_payment is not None else None
        ),
        rejection_reason=_enum(RejectionReason, row.rejection_reason),
        counter_offer=CounterOffer.from_dict(row.counter_offer),
        counter_offer_accepted=row.counter_offer_accepted,
        counter_offer_responded_at=_aware(row.counter_offer_responded_at),
        snapshot_data=snapshot_from_dict(row.snapshot_data),
        verification_checklist=dict(row.verification_checklist or {}),
        risk_level=_enum(RiskLevel, row.risk_level),
        risk_data=row.risk_data,
        external_id=row.external_id,
        external_system=row.external_system,
        sync_data=row.sync_data,
        synced_at=_aware(row.synced_at),
    )


class ApplicationRepository:
    """
    Repository for loan applications.

    Every query is filtered by tenant. Writes use optimistic locking:
    save() only succeeds if the stored version still equals the version
    the caller read.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, tenant_id: str, application_id: str) -> ApplicationRecord:
        row = (
            self.db.query(LoanApplication)
            .filter(LoanApplication.id == application_id, LoanApplication.tenant_id == tenant_id)
            .populate_existing()
            .first()
        )
        if row is None:
            raise NotFound("Application", application_id)
        return _to_record(row)

    def add(self, record: ApplicationRecord) -> ApplicationRecord:
        """Insert a new application at version 1"""
        values = _row_values(record)
        row = LoanApplication(
            id=record.id,
            tenant_id=record.tenant_id,
            version=1,
            created_at=record.created_at,
            snapshot_data=record.snapshot_data.to_dict() if record.snapshot_data else None,
            **values,
        )
        self.db.add(row)
        self.db.flush()
        return dataclasses.replace(record, version=1)

    def save(self, record: ApplicationRecord, expected_version: int, write_snapshot: bool = False) -> ApplicationRecord:
        """
        Compare-and-swap the row on version.

        The snapshot column is only written when write_snapshot is set, and
        only if it is still empty.

        Raises:
            ConcurrentModification: the row changed since expected_version was read
        """
        values = _row_values(record)
        values["version"] = expected_version + 1

        stmt = update(LoanApplication).where(
            LoanApplication.id == record.id,
            LoanApplication.tenant_id == record.tenant_id,
            LoanApplication.version == expected_version,
        )
        if write_snapshot:
            stmt = stmt.where(LoanApplication.snapshot_data.is_(None))
            values["snapshot_data"] = record.snapshot_data.to_dict() if record.snapshot_data else None

        result = self.db.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModification(record.id, expected_version)
        return dataclasses.replace(record, version=expected_version + 1)

    def list_for_tenant(
        self,
        tenant_id: str,
        status: Optional[ApplicationStatus] = None,
        assigned_to: Optional[str] = None,
        unassigned: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ApplicationRecord]:
        query = self.db.query(LoanApplication).filter(LoanApplication.tenant_id == tenant_id)
        if status is not None:
            query = query.filter(LoanApplication.status == status.value)
        if assigned_to is not None:
            query = query.filter(LoanApplication.assigned_to == assigned_to)
        if unassigned:
            query = query.filter(LoanApplication.assigned_to.is_(None))
        rows = (
            query.order_by(LoanApplication.created_at.desc(), LoanApplication.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [_to_record(row) for row in rows]

    def status_counts(self, tenant_id: str) -> Dict[str, int]:
        statuses = (
            self.db.query(LoanApplication.status)
            .filter(LoanApplication.tenant_id == tenant_id)
            .all()
        )
        counts = Counter(status for (status,) in statuses)
        return {s.value: counts.get(s.value, 0) for s in ApplicationStatus}


class StatusHistoryRepository:
    """Append-only access to the status ledger"""

    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: StatusHistoryEntry) -> None:
        self.db.add(
            ApplicationStatusHistory(
                application_id=entry.application_id,
                from_status=_value(entry.from_status),
                to_status=entry.to_status.value,
                changed_by=entry.changed_by,
                changed_by_type=entry.changed_by_type.value,
                notes=entry.notes,
                metadata_=entry.metadata,
                created_at=entry.created_at,
            )
        )

    def list_for_application(self, application_id: str) -> List[StatusHistoryEntry]:
        """Oldest first; insertion id breaks timestamp ties"""
        rows = (
            self.db.query(ApplicationStatusHistory)
            .filter(ApplicationStatusHistory.application_id == application_id)
            .order_by(ApplicationStatusHistory.created_at, ApplicationStatusHistory.id)
            .all()
        )
        return [
            StatusHistoryEntry(
                application_id=row.application_id,
                from_status=_enum(ApplicationStatus, row.from_status),
                to_status=ApplicationStatus(row.to_status),
                changed_by=row.changed_by,
                changed_by_type=ActorType(row.changed_by_type),
                created_at=_aware(row.created_at),
                notes=row.notes,
                metadata=dict(row.metadata_ or {}),
            )
            for row in rows
        ]


class OutboxRepository:
    """Pending outbound events awaiting webhook delivery"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, event: DomainEvent) -> OutboundEvent:
        row = OutboundEvent(
            event_type=event.event_type,
            application_id=event.application_id,
            tenant_id=event.tenant_id,
            payload=event.payload,
            created_at=event.occurred_at,
        )
        self.db.add(row)
        return row

    def pending(self, limit: int = 100) -> List[OutboundEvent]:
        return (
            self.db.query(OutboundEvent)
            .filter(OutboundEvent.status == "pending")
            .order_by(OutboundEvent.created_at)
            .limit(limit)
            .all()
        )

    def claim_pending(self, limit: int = 100) -> List[OutboundEvent]:
        """
        Lock pending rows for delivery until the session commits.

        Rows already locked by another deliverer are skipped (PostgreSQL
        FOR UPDATE SKIP LOCKED; SQLite has no row locks and ignores it).
        """
        return (
            self.db.query(OutboundEvent)
            .filter(OutboundEvent.status == "pending")
            .order_by(OutboundEvent.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .all()
        )

    def for_application(self, application_id: str) -> List[OutboundEvent]:
        return (
            self.db.query(OutboundEvent)
            .filter(OutboundEvent.application_id == application_id)
            .order_by(OutboundEvent.created_at)
            .all()
        )

    def mark_attempt(self, row: OutboundEvent, delivered: bool, now: datetime, max_attempts: int = 5) -> None:
        """Failed rows stay pending for the next run until max_attempts is used up"""
        row.attempts = (row.attempts or 0) + 1
        row.last_attempt_at = now
        if delivered:
            row.status = "delivered"
        elif row.attempts >= max_attempts:
            row.status = "failed"
        else:
            row.status = "pending"
