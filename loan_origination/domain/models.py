"""Domain models - pure Python dataclasses representing business entities"""

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from loan_origination.domain.exceptions import ValidationError


class PaymentFrequency(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"

    @property
    def periods_per_year(self) -> int:
        return {"WEEKLY": 52, "BIWEEKLY": 24, "MONTHLY": 12}[self.value]


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    DOCS_PENDING = "DOCS_PENDING"
    CORRECTIONS_PENDING = "CORRECTIONS_PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    SYNCED = "SYNCED"


class ApplicantType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    COMPANY = "COMPANY"


class ActorType(str, Enum):
    APPLICANT = "APPLICANT"
    STAFF = "STAFF"
    SYSTEM = "SYSTEM"


class Decision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COUNTER_OFFER = "COUNTER_OFFER"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class LoanPurpose(str, Enum):
    PERSONAL = "PERSONAL"
    DEBT_CONSOLIDATION = "DEBT_CONSOLIDATION"
    BUSINESS = "BUSINESS"
    MEDICAL = "MEDICAL"
    EDUCATION = "EDUCATION"
    TRAVEL = "TRAVEL"
    HOME_IMPROVEMENT = "HOME_IMPROVEMENT"
    OTHER = "OTHER"


class RejectionReason(str, Enum):
    LOW_SCORE = "LOW_SCORE"
    INSUFFICIENT_INCOME = "INSUFFICIENT_INCOME"
    NEGATIVE_HISTORY = "NEGATIVE_HISTORY"
    FALSE_DOCUMENTATION = "FALSE_DOCUMENTATION"
    UNVERIFIED_REFERENCES = "UNVERIFIED_REFERENCES"
    OVER_INDEBTEDNESS = "OVER_INDEBTEDNESS"
    INTERNAL_POLICY = "INTERNAL_POLICY"
    OTHER = "OTHER"


def to_jsonable(value: Any) -> Any:
    """Convert decimals, dates and enums into JSON-safe primitives without re-rounding"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


@dataclass(frozen=True)
class Actor:
    """Who performs an operation; SYSTEM actors carry no id"""

    id: Optional[str]
    type: ActorType

    def __post_init__(self):
        if self.type == ActorType.SYSTEM and self.id is not None:
            raise ValidationError("System actor must not carry an id")
        if self.type != ActorType.SYSTEM and not self.id:
            raise ValidationError(f"{self.type.value} actor requires an id")

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, type=ActorType.SYSTEM)

    @classmethod
    def staff(cls, staff_id: str) -> "Actor":
        return cls(id=staff_id, type=ActorType.STAFF)

    @classmethod
    def applicant(cls, account_id: str) -> "Actor":
        return cls(id=account_id, type=ActorType.APPLICANT)


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    state: str
    postal_code: str
    neighborhood: Optional[str] = None
    country: str = "MX"

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(dataclasses.asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(**data)


@dataclass(frozen=True)
class Employment:
    employer_name: str
    employment_type: str
    monthly_income: Decimal
    position: Optional[str] = None
    verified_income: Optional[Decimal] = None
    start_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(dataclasses.asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Employment":
        return cls(
            employer_name=data["employer_name"],
            employment_type=data["employment_type"],
            monthly_income=Decimal(data["monthly_income"]),
            position=data.get("position"),
            verified_income=_parse_decimal(data.get("verified_income")),
            start_date=_parse_date(data.get("start_date")),
        )


@dataclass(frozen=True)
class IndividualProfile:
    """Live person data as returned by the applicant collaborator"""

    person_id: str
    first_name: str
    last_name: str
    curp: Optional[str] = None
    rfc: Optional[str] = None
    second_last_name: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    current_address: Optional[Address] = None
    current_employment: Optional[Employment] = None

    applicant_type: ClassVar[ApplicantType] = ApplicantType.INDIVIDUAL

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name, self.second_last_name]
        return " ".join(p.strip() for p in parts if p and p.strip())


@dataclass(frozen=True)
class CompanyProfile:
    """Live company data as returned by the applicant collaborator"""

    company_id: str
    legal_name: str
    rfc: Optional[str] = None
    trade_name: Optional[str] = None
    fiscal_regime: Optional[str] = None
    legal_representative: Optional[str] = None

    applicant_type: ClassVar[ApplicantType] = ApplicantType.COMPANY


ApplicantProfile = Union[IndividualProfile, CompanyProfile]


@dataclass(frozen=True)
class IndividualSnapshot:
    """Point-in-time copy of a person's data taken at submission"""

    person_id: str
    full_name: str
    captured_at: datetime
    curp: Optional[str] = None
    rfc: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    current_address: Optional[Address] = None
    current_employment: Optional[Employment] = None

    type: ClassVar[str] = "individual"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "person_id": self.person_id,
            "full_name": self.full_name,
            "curp": self.curp,
            "rfc": self.rfc,
            "birth_date": to_jsonable(self.birth_date),
            "nationality": self.nationality,
            "current_address": self.current_address.to_dict() if self.current_address else None,
            "current_employment": self.current_employment.to_dict() if self.current_employment else None,
            "captured_at": self.captured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndividualSnapshot":
        address = data.get("current_address")
        employment = data.get("current_employment")
        return cls(
            person_id=data["person_id"],
            full_name=data["full_name"],
            captured_at=datetime.fromisoformat(data["captured_at"]),
            curp=data.get("curp"),
            rfc=data.get("rfc"),
            birth_date=_parse_date(data.get("birth_date")),
            nationality=data.get("nationality"),
            current_address=Address.from_dict(address) if address else None,
            current_employment=Employment.from_dict(employment) if employment else None,
        )


@dataclass(frozen=True)
class CompanySnapshot:
    """Point-in-time copy of a company's data taken at submission"""

    company_id: str
    legal_name: str
    captured_at: datetime
    trade_name: Optional[str] = None
    rfc: Optional[str] = None
    fiscal_regime: Optional[str] = None
    legal_representative: Optional[str] = None

    type: ClassVar[str] = "company"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "company_id": self.company_id,
            "legal_name": self.legal_name,
            "trade_name": self.trade_name,
            "rfc": self.rfc,
            "fiscal_regime": self.fiscal_regime,
            "legal_representative": self.legal_representative,
            "captured_at": self.captured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompanySnapshot":
        return cls(
            company_id=data["company_id"],
            legal_name=data["legal_name"],
            captured_at=datetime.fromisoformat(data["captured_at"]),
            trade_name=data.get("trade_name"),
            rfc=data.get("rfc"),
            fiscal_regime=data.get("fiscal_regime"),
            legal_representative=data.get("legal_representative"),
        )


Snapshot = Union[IndividualSnapshot, CompanySnapshot]


def snapshot_from_dict(data: Optional[Dict[str, Any]]) -> Optional[Snapshot]:
    """Rebuild a stored snapshot, dispatching on its type tag"""
    if data is None:
        return None
    kind = data.get("type")
    if kind == IndividualSnapshot.type:
        return IndividualSnapshot.from_dict(data)
    if kind == CompanySnapshot.type:
        return CompanySnapshot.from_dict(data)
    raise ValidationError(f"Unknown snapshot type: {kind!r}")


@dataclass(frozen=True)
class CounterOffer:
    """Staff-proposed alternative terms, quoted monthly and time-limited"""

    amount: Decimal
    term_months: int
    interest_rate: Decimal
    monthly_payment: Decimal
    total_amount: Decimal
    offered_at: datetime
    expires_at: datetime
    offered_by: Optional[str] = None
    reason: Optional[str] = None

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(dataclasses.asdict(self))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CounterOffer"]:
        if data is None:
            return None
        return cls(
            amount=Decimal(data["amount"]),
            term_months=int(data["term_months"]),
            interest_rate=Decimal(data["interest_rate"]),
            monthly_payment=Decimal(data["monthly_payment"]),
            total_amount=Decimal(data["total_amount"]),
            offered_at=datetime.fromisoformat(data["offered_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            offered_by=data.get("offered_by"),
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class LoanRequest:
    """Initial loan data supplied by the applicant"""

    amount: Decimal
    term_months: int
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    purpose: Optional[LoanPurpose] = None
    purpose_description: Optional[str] = None


@dataclass(frozen=True)
class ApplicationRecord:
    """Loan application aggregate. Never mutated in place; see domain.lifecycle"""

    id: str
    tenant_id: str
    product_id: str
    applicant_type: ApplicantType
    requested_amount: Decimal
    requested_term_months: int
    payment_frequency: PaymentFrequency
    interest_rate: Decimal
    opening_commission_rate: Decimal
    monthly_payment: Decimal
    total_interest: Decimal
    total_amount: Decimal
    status: ApplicationStatus
    created_at: datetime
    person_id: Optional[str] = None
    company_id: Optional[str] = None
    cat: Optional[Decimal] = None
    purpose: Optional[LoanPurpose] = None
    purpose_description: Optional[str] = None
    version: int = 1
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    status_changed_by_type: Optional[ActorType] = None
    submitted_at: Optional[datetime] = None
    submitted_by: Optional[str] = None

    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None

    decision: Optional[Decision] = None
    decision_at: Optional[datetime] = None
    decision_by: Optional[str] = None
    decision_notes: Optional[str] = None
    approved_amount: Optional[Decimal] = None
    approved_term_months: Optional[int] = None
    approved_interest_rate: Optional[Decimal] = None
    approved_monthly_payment: Optional[Decimal] = None
    rejection_reason: Optional[RejectionReason] = None
    counter_offer: Optional[CounterOffer] = None
    counter_offer_accepted: Optional[bool] = None
    counter_offer_responded_at: Optional[datetime] = None

    snapshot_data: Optional[Snapshot] = None
    verification_checklist: Dict[str, Union[bool, int]] = field(default_factory=dict)
    risk_level: Optional[RiskLevel] = None
    risk_data: Optional[Dict[str, Any]] = None

    external_id: Optional[str] = None
    external_system: Optional[str] = None
    sync_data: Optional[Dict[str, Any]] = None
    synced_at: Optional[datetime] = None

    def __post_init__(self):
        if (self.person_id is None) == (self.company_id is None):
            raise ValidationError("Exactly one of person_id or company_id must be set")
        if self.applicant_type == ApplicantType.INDIVIDUAL and self.person_id is None:
            raise ValidationError("Individual applications require person_id")
        if self.applicant_type == ApplicantType.COMPANY and self.company_id is None:
            raise ValidationError("Company applications require company_id")

    @property
    def applicant_id(self) -> str:
        return self.person_id if self.applicant_type == ApplicantType.INDIVIDUAL else self.company_id

    def has_active_counter_offer(self, now: datetime) -> bool:
        return self.counter_offer is not None and self.counter_offer.is_active(now)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class StatusHistoryEntry:
    """Append-only ledger row describing one status change"""

    application_id: str
    from_status: Optional[ApplicationStatus]
    to_status: ApplicationStatus
    changed_by: Optional[str]
    changed_by_type: ActorType
    created_at: datetime
    notes: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DomainEvent:
    """Outbound event intent, persisted to the outbox for webhook delivery"""

    event_type: str
    application_id: str
    tenant_id: str
    payload: Dict[str, Any]
    occurred_at: datetime


@dataclass(frozen=True)
class LifecycleResult:
    """New record state plus the side-effect intents produced by an operation"""

    record: ApplicationRecord
    history: List[StatusHistoryEntry] = field(default_factory=list)
    events: List[DomainEvent] = field(default_factory=list)
