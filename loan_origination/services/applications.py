"""
Application service.

Each mutation reads the current record, runs the matching pure lifecycle
operation, then persists the new row (compare-and-swap on version), the
history entries and the outbox events in one transaction.
"""

import dataclasses
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from loan_origination.config import Settings, settings as default_settings
from loan_origination.domain import lifecycle
from loan_origination.domain.affordability import debt_to_income, income_for, monthly_equivalent
from loan_origination.domain.amortization import AmortizationSchedule, LoanTerms, calculate_terms, generate_schedule
from loan_origination.domain.events import build_application_payload
from loan_origination.domain.exceptions import ConcurrentModification
from loan_origination.domain.models import (
    Actor,
    ApplicantProfile,
    ApplicantType,
    ApplicationRecord,
    ApplicationStatus,
    DomainEvent,
    IndividualSnapshot,
    LifecycleResult,
    LoanPurpose,
    LoanRequest,
    PaymentFrequency,
    RejectionReason,
    RiskLevel,
    StatusHistoryEntry,
)
from loan_origination.domain.products import ProductRules, validate_loan_request
from loan_origination.infrastructure.database.repositories import (
    ApplicationRepository,
    OutboxRepository,
    ProductRepository,
    StatusHistoryRepository,
)
from loan_origination.infrastructure.observability.logging import log_transition
from loan_origination.infrastructure.observability.metrics import (
    concurrent_modification_counter,
    record_decision,
    record_simulation,
    record_transition,
)
from loan_origination.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

S = ApplicationStatus


class ApplicationService:
    """Tenant-scoped operations on loan applications"""

    def __init__(self, db: Session, config: Optional[Settings] = None, clock: Optional[Clock] = None, request_id: Optional[str] = None):
        self.db = db
        self.settings = config or default_settings
        self.clock = clock or SystemClock()
        self.request_id = request_id
        self.products = ProductRepository(db)
        self.applications = ApplicationRepository(db)
        self.history = StatusHistoryRepository(db)
        self.outbox = OutboxRepository(db)

    # Persistence

    def _restamp(self, events: List[DomainEvent], record: ApplicationRecord) -> List[DomainEvent]:
        """Payloads carry the committed version, not the one read"""
        application = build_application_payload(record)
        return [
            dataclasses.replace(e, payload={**e.payload, "application": application})
            for e in events
        ]

    def _persist(
        self,
        result: LifecycleResult,
        expected_version: Optional[int] = None,
        write_snapshot: bool = False,
    ) -> LifecycleResult:
        """Write record, history and outbox atomically; expected_version None means insert"""
        try:
            if expected_version is None:
                saved = self.applications.add(result.record)
            else:
                saved = self.applications.save(result.record, expected_version, write_snapshot=write_snapshot)
            for entry in result.history:
                self.history.append(entry)
            events = self._restamp(result.events, saved)
            for event in events:
                self.outbox.add(event)
            self.db.commit()
        except ConcurrentModification:
            self.db.rollback()
            concurrent_modification_counter.inc()
            logger.warning(
                "Concurrent modification",
                extra={
                    "request_id": self.request_id,
                    "application_id": result.record.id,
                    "expected_version": expected_version,
                },
            )
            raise
        except Exception:
            self.db.rollback()
            raise

        for entry in result.history:
            self._observe(saved, entry)
        return LifecycleResult(record=saved, history=result.history, events=events)

    def _observe(self, record: ApplicationRecord, entry: StatusHistoryEntry) -> None:
        from_status = entry.from_status.value if entry.from_status else None
        record_transition(from_status, entry.to_status.value)
        if entry.to_status in (S.APPROVED, S.REJECTED):
            record_decision(entry.to_status.value)
        log_transition(
            application_id=record.id,
            tenant_id=record.tenant_id,
            from_status=from_status,
            to_status=entry.to_status.value,
            actor_type=entry.changed_by_type.value,
            actor_id=entry.changed_by,
            version=record.version,
            request_id=self.request_id,
        )

    def _load(self, tenant_id: str, application_id: str, expected_version: Optional[int]) -> ApplicationRecord:
        """Read the record, failing fast when the caller's version is already stale"""
        record = self.applications.get(tenant_id, application_id)
        if expected_version is not None and record.version != expected_version:
            concurrent_modification_counter.inc()
            raise ConcurrentModification(application_id, expected_version)
        return record

    def _mutate(self, tenant_id: str, application_id: str, expected_version: Optional[int], operation, write_snapshot: bool = False) -> LifecycleResult:
        record = self._load(tenant_id, application_id, expected_version)
        result = operation(record)
        return self._persist(result, record.version, write_snapshot=write_snapshot)

    # Commands

    def create_application(
        self,
        tenant_id: str,
        applicant_type: ApplicantType,
        applicant_id: str,
        product_id: str,
        loan_request: LoanRequest,
        created_by: Actor,
    ) -> LifecycleResult:
        product = self.products.get(tenant_id, product_id)
        result = lifecycle.create_draft(
            application_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            product=product,
            applicant_type=applicant_type,
            applicant_id=applicant_id,
            loan_request=loan_request,
            created_by=created_by,
            now=self.clock.now(),
            draft_ttl_days=self.settings.draft_ttl_days,
        )
        return self._persist(result)

    def update_loan_terms(
        self,
        tenant_id: str,
        application_id: str,
        actor: Actor,
        amount: Optional[Decimal] = None,
        term_months: Optional[int] = None,
        frequency: Optional[PaymentFrequency] = None,
        purpose: Optional[LoanPurpose] = None,
        purpose_description: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        record = self._load(tenant_id, application_id, expected_version)
        product = self.products.get(tenant_id, record.product_id)
        result = lifecycle.update_loan_terms(
            record,
            product,
            actor,
            self.clock.now(),
            amount=amount,
            term_months=term_months,
            frequency=frequency,
            purpose=purpose,
            purpose_description=purpose_description,
        )
        return self._persist(result, record.version)

    def submit(
        self,
        tenant_id: str,
        application_id: str,
        submitted_by: Actor,
        profile: Optional[ApplicantProfile],
        uploaded_document_types: Iterable[str],
        reference_count: int,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        record = self._load(tenant_id, application_id, expected_version)
        product = self.products.get(tenant_id, record.product_id)
        result = lifecycle.submit(
            record,
            product,
            submitted_by,
            profile,
            uploaded_document_types,
            reference_count,
            self.clock.now(),
            min_references=self.settings.min_references,
        )
        return self._persist(result, record.version, write_snapshot=True)

    def change_status(
        self,
        tenant_id: str,
        application_id: str,
        new_status: ApplicationStatus,
        actor: Actor,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.change_status(record, new_status, actor, self.clock.now(), notes=notes),
        )

    def approve(
        self,
        tenant_id: str,
        application_id: str,
        actor: Actor,
        amount: Optional[Decimal] = None,
        term_months: Optional[int] = None,
        interest_rate: Optional[Decimal] = None,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.approve(
                record,
                actor,
                self.clock.now(),
                amount=amount,
                term_months=term_months,
                interest_rate=interest_rate,
                notes=notes,
            ),
        )

    def reject(
        self,
        tenant_id: str,
        application_id: str,
        actor: Actor,
        reason: Optional[Union[RejectionReason, str]],
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.reject(record, actor, reason, self.clock.now(), notes=notes),
        )

    def cancel(
        self,
        tenant_id: str,
        application_id: str,
        actor: Actor,
        reason: Optional[str],
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.cancel(record, actor, reason, self.clock.now()),
        )

    def assign(
        self,
        tenant_id: str,
        application_id: str,
        assignee_id: str,
        assigned_by: Actor,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.assign(record, assignee_id, assigned_by, self.clock.now()),
        )

    def send_counter_offer(
        self,
        tenant_id: str,
        application_id: str,
        actor: Actor,
        amount: Optional[Decimal],
        term_months: Optional[int],
        interest_rate: Optional[Decimal] = None,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        record = self._load(tenant_id, application_id, expected_version)
        product = self.products.get(tenant_id, record.product_id)
        result = lifecycle.send_counter_offer(
            record,
            product,
            actor,
            self.clock.now(),
            amount,
            term_months,
            interest_rate=interest_rate,
            reason=reason,
            ttl_days=self.settings.counter_offer_ttl_days,
        )
        return self._persist(result, record.version)

    def respond_to_counter_offer(
        self,
        tenant_id: str,
        application_id: str,
        actor: Actor,
        accepted: bool,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.respond_to_counter_offer(
                record,
                actor,
                accepted,
                self.clock.now(),
                policy=self.settings.counter_offer_accept_policy,
            ),
        )

    def mark_synced(
        self,
        tenant_id: str,
        application_id: str,
        external_id: str,
        external_system: str,
        sync_data: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.mark_synced(record, external_id, external_system, self.clock.now(), sync_data),
        )

    def update_verification(
        self,
        tenant_id: str,
        application_id: str,
        checks: Dict[str, Union[bool, int]],
        actor: Actor,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.update_verification(record, checks, actor, self.clock.now()),
        )

    def set_risk_assessment(
        self,
        tenant_id: str,
        application_id: str,
        level: Union[RiskLevel, str],
        actor: Actor,
        data: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> LifecycleResult:
        return self._mutate(
            tenant_id,
            application_id,
            expected_version,
            lambda record: lifecycle.set_risk_assessment(record, level, actor, self.clock.now(), data),
        )

    # Queries

    def get(self, tenant_id: str, application_id: str) -> ApplicationRecord:
        return self.applications.get(tenant_id, application_id)

    def list_applications(
        self,
        tenant_id: str,
        status: Optional[ApplicationStatus] = None,
        assigned_to: Optional[str] = None,
        unassigned: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ApplicationRecord]:
        return self.applications.list_for_tenant(
            tenant_id,
            status=status,
            assigned_to=assigned_to,
            unassigned=unassigned,
            limit=limit,
            offset=offset,
        )

    def status_history(self, tenant_id: str, application_id: str) -> List[StatusHistoryEntry]:
        self.applications.get(tenant_id, application_id)
        return self.history.list_for_application(application_id)

    def status_counts(self, tenant_id: str) -> Dict[str, int]:
        return self.applications.status_counts(tenant_id)

    def amortization_schedule(self, tenant_id: str, application_id: str) -> AmortizationSchedule:
        """Schedule for the approved terms once they exist, otherwise for the request"""
        record = self.applications.get(tenant_id, application_id)
        if record.approved_amount is not None:
            return generate_schedule(
                record.approved_amount,
                record.approved_interest_rate,
                record.approved_term_months,
                record.payment_frequency,
            )
        return generate_schedule(
            record.requested_amount,
            record.interest_rate,
            record.requested_term_months,
            record.payment_frequency,
        )

    def simulate(
        self,
        amount: Decimal,
        term_months: int,
        frequency: PaymentFrequency,
        annual_rate: Decimal,
        commission_rate: Decimal = Decimal("0"),
    ) -> LoanTerms:
        terms = calculate_terms(amount, annual_rate, term_months, frequency, commission_rate)
        record_simulation(terms.frequency.value)
        return terms

    def simulate_for_product(
        self,
        tenant_id: str,
        product_id: str,
        amount: Decimal,
        term_months: int,
        frequency: PaymentFrequency = PaymentFrequency.MONTHLY,
    ) -> LoanTerms:
        product = self.products.get(tenant_id, product_id)
        validate_loan_request(product, amount, term_months, frequency)
        return self.simulate(amount, term_months, frequency, product.annual_rate, product.opening_commission_rate)

    def debt_to_income(
        self,
        tenant_id: str,
        application_id: str,
        monthly_income: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """
        Monthly-equivalent payment over income, as a percentage.

        Falls back to the income captured in the submission snapshot when no
        income is passed in.
        """
        record = self.applications.get(tenant_id, application_id)
        payment = record.approved_monthly_payment or record.monthly_payment
        if monthly_income is None and isinstance(record.snapshot_data, IndividualSnapshot):
            monthly_income = income_for(record.snapshot_data.current_employment)
        return debt_to_income(monthly_equivalent(payment, record.payment_frequency), monthly_income)

    def product(self, tenant_id: str, product_id: str) -> ProductRules:
        return self.products.get(tenant_id, product_id)
