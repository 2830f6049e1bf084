"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from loan_origination.domain.amortization import LoanTerms, ScheduleRow
from loan_origination.domain.models import (
    ActorType,
    ApplicantType,
    ApplicationRecord,
    ApplicationStatus,
    Decision,
    LoanPurpose,
    PaymentFrequency,
    RejectionReason,
    RiskLevel,
    StatusHistoryEntry,
    to_jsonable,
)


# Simulations


class SimulationRequest(BaseModel):
    """Request body for POST /v1/simulations"""

    amount: Decimal = Field(..., gt=0, description="Principal requested")
    term_months: int = Field(..., ge=1)
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    annual_rate: Decimal = Field(..., ge=0, le=100, description="Annual rate in percent, e.g. 24.0")
    opening_commission_rate: Decimal = Field(Decimal("0"), ge=0, description="Opening commission in percent")
    include_schedule: bool = False


class ProductSimulationRequest(BaseModel):
    """Request body for POST /v1/products/{product_id}/simulations"""

    amount: Decimal = Field(..., gt=0)
    term_months: int = Field(..., ge=1)
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    include_schedule: bool = False


class ScheduleRowSchema(BaseModel):
    period: int
    payment: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    remaining_balance: Decimal

    @classmethod
    def from_row(cls, row: ScheduleRow) -> "ScheduleRowSchema":
        return cls(
            period=row.period,
            payment=row.payment,
            principal_portion=row.principal_portion,
            interest_portion=row.interest_portion,
            remaining_balance=row.remaining_balance,
        )


class SimulationResponse(BaseModel):
    principal: Decimal
    term_months: int
    frequency: PaymentFrequency
    annual_rate: Decimal
    total_periods: int
    payment: Decimal
    opening_commission: Decimal
    net_amount: Decimal
    total_to_pay: Decimal
    total_interest: Decimal
    cat: Decimal
    schedule: Optional[List[ScheduleRowSchema]] = None

    @classmethod
    def from_terms(cls, terms: LoanTerms, schedule=None) -> "SimulationResponse":
        return cls(
            principal=terms.principal,
            term_months=terms.term_months,
            frequency=terms.frequency,
            annual_rate=terms.annual_rate,
            total_periods=terms.total_periods,
            payment=terms.payment,
            opening_commission=terms.opening_commission,
            net_amount=terms.net_amount,
            total_to_pay=terms.total_to_pay,
            total_interest=terms.total_interest,
            cat=terms.cat,
            schedule=[ScheduleRowSchema.from_row(r) for r in schedule] if schedule is not None else None,
        )


class ScheduleResponse(BaseModel):
    """Response for GET /v1/applications/{id}/schedule"""

    application_id: str
    total_periods: int
    rows: List[ScheduleRowSchema]


# Application commands


class VersionedRequest(BaseModel):
    """Mutations may pin the version they read; a stale version yields 409"""

    expected_version: Optional[int] = Field(None, ge=1)


class CreateApplicationRequest(BaseModel):
    """Request body for POST /v1/applications"""

    applicant_type: ApplicantType
    applicant_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    term_months: int = Field(..., ge=1)
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    purpose: Optional[LoanPurpose] = None
    purpose_description: Optional[str] = None


class UpdateTermsRequest(VersionedRequest):
    amount: Optional[Decimal] = Field(None, gt=0)
    term_months: Optional[int] = Field(None, ge=1)
    frequency: Optional[PaymentFrequency] = None
    purpose: Optional[LoanPurpose] = None
    purpose_description: Optional[str] = None


class SubmitRequest(VersionedRequest):
    pass


class StatusChangeRequest(VersionedRequest):
    status: ApplicationStatus
    notes: Optional[str] = None


class AssignRequest(VersionedRequest):
    assignee_id: str = Field(..., min_length=1)


class ApproveRequest(VersionedRequest):
    amount: Optional[Decimal] = Field(None, gt=0)
    term_months: Optional[int] = Field(None, ge=1)
    interest_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class RejectRequest(VersionedRequest):
    reason: RejectionReason
    notes: Optional[str] = None


class CancelRequest(VersionedRequest):
    reason: str = Field(..., min_length=1)


class CounterOfferRequest(VersionedRequest):
    amount: Decimal = Field(..., gt=0)
    term_months: int = Field(..., ge=1)
    interest_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    reason: Optional[str] = None


class CounterOfferAnswer(VersionedRequest):
    accepted: bool


class SyncRequest(VersionedRequest):
    external_id: str = Field(..., min_length=1)
    external_system: str = Field(..., min_length=1)
    sync_data: Optional[Dict[str, Any]] = None


# Application views


class CounterOfferSchema(BaseModel):
    amount: Decimal
    term_months: int
    interest_rate: Decimal
    monthly_payment: Decimal
    total_amount: Decimal
    offered_at: datetime
    expires_at: datetime
    offered_by: Optional[str] = None
    reason: Optional[str] = None


class ApplicationResponse(BaseModel):
    """Full view of one application"""

    id: str
    tenant_id: str
    product_id: str
    version: int
    status: ApplicationStatus
    applicant_type: ApplicantType
    applicant_id: str
    requested_amount: Decimal
    requested_term_months: int
    payment_frequency: PaymentFrequency
    purpose: Optional[LoanPurpose] = None
    purpose_description: Optional[str] = None
    interest_rate: Decimal
    opening_commission_rate: Decimal
    monthly_payment: Decimal
    total_interest: Decimal
    total_amount: Decimal
    cat: Optional[Decimal] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    decision: Optional[Decision] = None
    decision_at: Optional[datetime] = None
    approved_amount: Optional[Decimal] = None
    approved_term_months: Optional[int] = None
    approved_interest_rate: Optional[Decimal] = None
    approved_monthly_payment: Optional[Decimal] = None
    rejection_reason: Optional[RejectionReason] = None
    counter_offer: Optional[CounterOfferSchema] = None
    counter_offer_accepted: Optional[bool] = None
    snapshot: Optional[Dict[str, Any]] = None
    verification_checklist: Dict[str, Union[bool, int]] = {}
    risk_level: Optional[RiskLevel] = None
    external_id: Optional[str] = None
    external_system: Optional[str] = None
    synced_at: Optional[datetime] = None
    allowed_next_statuses: Optional[List[ApplicationStatus]] = None

    @classmethod
    def from_record(
        cls,
        record: ApplicationRecord,
        allowed_next_statuses: Optional[List[ApplicationStatus]] = None,
    ) -> "ApplicationResponse":
        offer = record.counter_offer
        return cls(
            id=record.id,
            tenant_id=record.tenant_id,
            product_id=record.product_id,
            version=record.version,
            status=record.status,
            applicant_type=record.applicant_type,
            applicant_id=record.applicant_id,
            requested_amount=record.requested_amount,
            requested_term_months=record.requested_term_months,
            payment_frequency=record.payment_frequency,
            purpose=record.purpose,
            purpose_description=record.purpose_description,
            interest_rate=record.interest_rate,
            opening_commission_rate=record.opening_commission_rate,
            monthly_payment=record.monthly_payment,
            total_interest=record.total_interest,
            total_amount=record.total_amount,
            cat=record.cat,
            created_at=record.created_at,
            updated_at=record.updated_at,
            expires_at=record.expires_at,
            submitted_at=record.submitted_at,
            assigned_to=record.assigned_to,
            decision=record.decision,
            decision_at=record.decision_at,
            approved_amount=record.approved_amount,
            approved_term_months=record.approved_term_months,
            approved_interest_rate=record.approved_interest_rate,
            approved_monthly_payment=record.approved_monthly_payment,
            rejection_reason=record.rejection_reason,
            counter_offer=CounterOfferSchema(**vars(offer)) if offer else None,
            counter_offer_accepted=record.counter_offer_accepted,
            snapshot=record.snapshot_data.to_dict() if record.snapshot_data else None,
            verification_checklist=dict(record.verification_checklist),
            risk_level=record.risk_level,
            external_id=record.external_id,
            external_system=record.external_system,
            synced_at=record.synced_at,
            allowed_next_statuses=allowed_next_statuses,
        )


class MutationResponse(BaseModel):
    """Committed application state plus the events the change emitted"""

    application: ApplicationResponse
    events: List[str]


class ApplicationListResponse(BaseModel):
    items: List[ApplicationResponse]
    counts: Dict[str, int]
    limit: int
    offset: int


class HistoryItem(BaseModel):
    """Single status change in the ledger"""

    from_status: Optional[ApplicationStatus] = None
    to_status: ApplicationStatus
    changed_by: Optional[str] = None
    changed_by_type: ActorType
    notes: Optional[str] = None
    metadata: Dict[str, Any] = {}
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: StatusHistoryEntry) -> "HistoryItem":
        return cls(
            from_status=entry.from_status,
            to_status=entry.to_status,
            changed_by=entry.changed_by,
            changed_by_type=entry.changed_by_type,
            notes=entry.notes,
            metadata=to_jsonable(entry.metadata),
            created_at=entry.created_at,
        )


class HistoryResponse(BaseModel):
    """Response for GET /v1/applications/{id}/history"""

    application_id: str
    entries: List[HistoryItem]


class AffordabilityResponse(BaseModel):
    application_id: str
    monthly_income: Optional[Decimal] = None
    debt_to_income: Optional[Decimal] = None
