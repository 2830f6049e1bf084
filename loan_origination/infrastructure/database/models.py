"""SQLAlchemy ORM models for products, applications, the status ledger and the event outbox"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Numeric, Text, JSON, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

Money = Numeric(14, 2, asdecimal=True)
Percent = Numeric(9, 4, asdecimal=True)


class Product(Base):
    """Loan product configuration (maintained by admin tooling)"""

    __tablename__ = "product"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    name = Column(Text, nullable=False)
    annual_rate = Column(Percent, nullable=False)
    opening_commission_rate = Column(Percent, nullable=False, default=0)
    min_amount = Column(Money, nullable=False)
    max_amount = Column(Money, nullable=False)
    min_term_months = Column(Integer, nullable=False)
    max_term_months = Column(Integer, nullable=False)
    allowed_frequencies = Column(JSON, nullable=False)
    required_documents = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LoanApplication(Base):
    """Loan application row; `version` is compared-and-swapped on every write"""

    __tablename__ = "loan_application"
    __table_args__ = (Index("ix_loan_application_tenant_status", "tenant_id", "status"),)

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    applicant_type = Column(String(16), nullable=False)
    person_id = Column(String(36), nullable=True, index=True)
    company_id = Column(String(36), nullable=True, index=True)

    requested_amount = Column(Money, nullable=False)
    requested_term_months = Column(Integer, nullable=False)
    payment_frequency = Column(String(16), nullable=False)
    purpose = Column(String(32), nullable=True)
    purpose_description = Column(Text, nullable=True)
    interest_rate = Column(Percent, nullable=False)
    opening_commission_rate = Column(Percent, nullable=False)
    monthly_payment = Column(Money, nullable=False)
    total_interest = Column(Money, nullable=False)
    total_amount = Column(Money, nullable=False)
    cat = Column(Percent, nullable=True)

    status = Column(String(32), nullable=False)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_by = Column(String(36), nullable=True)
    status_changed_by_type = Column(String(16), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(String(36), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    assigned_to = Column(String(36), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    assigned_by = Column(String(36), nullable=True)

    decision = Column(String(16), nullable=True)
    decision_at = Column(DateTime(timezone=True), nullable=True)
    decision_by = Column(String(36), nullable=True)
    decision_notes = Column(Text, nullable=True)
    approved_amount = Column(Money, nullable=True)
    approved_term_months = Column(Integer, nullable=True)
    approved_interest_rate = Column(Percent, nullable=True)
    approved_monthly_payment = Column(Money, nullable=True)
    rejection_reason = Column(String(32), nullable=True)
    counter_offer = Column(JSON(none_as_null=True), nullable=True)
    counter_offer_accepted = Column(Boolean, nullable=True)
    counter_offer_responded_at = Column(DateTime(timezone=True), nullable=True)

    snapshot_data = Column(JSON(none_as_null=True), nullable=True)
    verification_checklist = Column(JSON, nullable=False, default=dict)
    risk_level = Column(String(16), nullable=True)
    risk_data = Column(JSON(none_as_null=True), nullable=True)

    external_id = Column(Text, nullable=True)
    external_system = Column(Text, nullable=True)
    sync_data = Column(JSON(none_as_null=True), nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    history = relationship("ApplicationStatusHistory", back_populates="application", order_by="ApplicationStatusHistory.id")


class ApplicationStatusHistory(Base):
    """Append-only status ledger; rows are never updated or deleted"""

    __tablename__ = "application_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(String(36), ForeignKey("loan_application.id"), nullable=False, index=True)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)
    changed_by = Column(String(36), nullable=True)
    changed_by_type = Column(String(16), nullable=False)
    notes = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)

    application = relationship("LoanApplication", back_populates="history")


class OutboundEvent(Base):
    """Event outbox written in the same transaction as the state change it describes"""

    __tablename__ = "outbound_event"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(Text, nullable=False)
    application_id = Column(String(36), nullable=False, index=True)
    tenant_id = Column(String(36), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
