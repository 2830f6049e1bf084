"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from loan_origination.api.dependencies import get_clock, get_settings
from loan_origination.api.main import create_app
from loan_origination.config import Settings
from loan_origination.domain.models import (
    Actor,
    Address,
    ApplicantType,
    ApplicationStatus,
    Employment,
    IndividualProfile,
    LoanPurpose,
    LoanRequest,
    PaymentFrequency,
)
from loan_origination.domain.products import ProductRules
from loan_origination.infrastructure.database.models import Base
from loan_origination.infrastructure.database.repositories import ProductRepository
from loan_origination.infrastructure.database.session import get_db
from loan_origination.services.applications import ApplicationService
from loan_origination.utils.clock import FixedClock


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
PERSON_ID = "person-1"
STAFF = Actor.staff("analyst-1")
APPLICANT = Actor.applicant(PERSON_ID)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(database_url=TEST_DATABASE_URL, webhook_url=None)


@pytest.fixture
def product() -> ProductRules:
    """Personal loan: 24% annual, 3% opening commission"""
    return ProductRules(
        id="prod-personal",
        tenant_id=TENANT,
        name="Personal loan",
        annual_rate=Decimal("24.0"),
        opening_commission_rate=Decimal("3.0"),
        min_amount=Decimal("1000"),
        max_amount=Decimal("100000"),
        min_term_months=3,
        max_term_months=36,
        allowed_frequencies=frozenset(PaymentFrequency),
        required_documents=("INE_FRONT", "PROOF_OF_ADDRESS"),
    )


@pytest.fixture
def seeded_product(db: Session, product: ProductRules) -> ProductRules:
    ProductRepository(db).add(product)
    db.commit()
    return product


@pytest.fixture
def service(db: Session, seeded_product: ProductRules, test_settings: Settings, clock: FixedClock) -> ApplicationService:
    return ApplicationService(db, config=test_settings, clock=clock)


@pytest.fixture
def person_profile() -> IndividualProfile:
    return IndividualProfile(
        person_id=PERSON_ID,
        first_name="Ana",
        last_name="Lopez",
        second_last_name="Ruiz",
        curp="LORA900101MDFPZN09",
        rfc="LORA900101AB1",
        birth_date=date(1990, 1, 1),
        nationality="MX",
        current_address=Address(
            street="Av. Reforma 100",
            city="Ciudad de Mexico",
            state="CDMX",
            postal_code="06600",
        ),
        current_employment=Employment(
            employer_name="Acme SA de CV",
            employment_type="EMPLOYED",
            monthly_income=Decimal("25000"),
        ),
    )


@pytest.fixture
def loan_request() -> LoanRequest:
    return LoanRequest(
        amount=Decimal("50000"),
        term_months=12,
        frequency=PaymentFrequency.MONTHLY,
        purpose=LoanPurpose.PERSONAL,
    )


@pytest.fixture
def draft(service: ApplicationService, loan_request: LoanRequest):
    """Freshly created DRAFT application record"""
    return service.create_application(
        TENANT, ApplicantType.INDIVIDUAL, PERSON_ID, "prod-personal", loan_request, APPLICANT
    ).record


@pytest.fixture
def submitted(service: ApplicationService, draft, person_profile: IndividualProfile):
    return service.submit(
        TENANT, draft.id, APPLICANT, person_profile, ["INE_FRONT", "PROOF_OF_ADDRESS"], 2
    ).record


@pytest.fixture
def in_review(service: ApplicationService, submitted):
    return service.change_status(TENANT, submitted.id, ApplicationStatus.IN_REVIEW, STAFF).record


@pytest.fixture
def client(db: Session, seeded_product: ProductRules, test_settings: Settings, clock: FixedClock) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)
