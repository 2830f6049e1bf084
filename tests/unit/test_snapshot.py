"""Unit tests for the submission snapshot"""

import dataclasses
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import (
    ApplicantType,
    CompanyProfile,
    CompanySnapshot,
    IndividualSnapshot,
    snapshot_from_dict,
)
from loan_origination.domain.snapshot import build_snapshot

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def test_individual_snapshot_copies_profile(person_profile):
    snapshot = build_snapshot(ApplicantType.INDIVIDUAL, person_profile, NOW)

    assert isinstance(snapshot, IndividualSnapshot)
    assert snapshot.full_name == "Ana Lopez Ruiz"
    assert snapshot.curp == person_profile.curp
    assert snapshot.current_employment.monthly_income == Decimal("25000")
    assert snapshot.captured_at == NOW


def test_snapshot_does_not_follow_profile_changes(person_profile):
    snapshot = build_snapshot(ApplicantType.INDIVIDUAL, person_profile, NOW)
    dataclasses.replace(person_profile, last_name="Martinez")
    assert snapshot.full_name == "Ana Lopez Ruiz"


def test_stored_snapshot_restores_exactly(person_profile):
    snapshot = build_snapshot(ApplicantType.INDIVIDUAL, person_profile, NOW)
    assert snapshot_from_dict(snapshot.to_dict()) == snapshot


def test_company_snapshot():
    profile = CompanyProfile(company_id="company-9", legal_name="Tortilleria Lupita SA de CV", rfc="TLU010101AA1")
    snapshot = build_snapshot(ApplicantType.COMPANY, profile, NOW)

    assert isinstance(snapshot, CompanySnapshot)
    assert snapshot.to_dict()["type"] == "company"
    assert snapshot.legal_name == "Tortilleria Lupita SA de CV"


def test_profile_type_must_match_applicant_type(person_profile):
    with pytest.raises(ValidationError):
        build_snapshot(ApplicantType.COMPANY, person_profile, NOW)


def test_unknown_snapshot_type():
    with pytest.raises(ValidationError):
        snapshot_from_dict({"type": "trust"})
