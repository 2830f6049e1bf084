"""Point-in-time applicant snapshot captured at submission"""

from datetime import datetime

from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import (
    ApplicantProfile,
    ApplicantType,
    ApplicationRecord,
    CompanyProfile,
    CompanySnapshot,
    IndividualProfile,
    IndividualSnapshot,
    Snapshot,
)


def build_snapshot(applicant_type: ApplicantType, profile: ApplicantProfile, captured_at: datetime) -> Snapshot:
    """
    Copy the applicant data we knew at submission time.

    The snapshot is stored verbatim and never recomputed, so later profile
    corrections do not alter it.
    """
    if applicant_type == ApplicantType.INDIVIDUAL:
        if not isinstance(profile, IndividualProfile):
            raise ValidationError("Individual application requires a person profile")
        return IndividualSnapshot(
            person_id=profile.person_id,
            full_name=profile.full_name,
            captured_at=captured_at,
            curp=profile.curp,
            rfc=profile.rfc,
            birth_date=profile.birth_date,
            nationality=profile.nationality,
            current_address=profile.current_address,
            current_employment=profile.current_employment,
        )

    if not isinstance(profile, CompanyProfile):
        raise ValidationError("Company application requires a company profile")
    return CompanySnapshot(
        company_id=profile.company_id,
        legal_name=profile.legal_name,
        captured_at=captured_at,
        trade_name=profile.trade_name,
        rfc=profile.rfc,
        fiscal_regime=profile.fiscal_regime,
        legal_representative=profile.legal_representative,
    )


def ensure_snapshot_unset(record: ApplicationRecord) -> None:
    """Snapshots are write-once"""
    if record.snapshot_data is not None:
        raise ValidationError(f"Application {record.id} already has a submission snapshot")
