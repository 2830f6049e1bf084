"""Completeness checks gating DRAFT -> SUBMITTED"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from loan_origination.domain.exceptions import IncompleteApplication
from loan_origination.domain.models import (
    ApplicantProfile,
    ApplicantType,
    ApplicationRecord,
    CompanyProfile,
    IndividualProfile,
)
from loan_origination.domain.products import ProductRules

DEFAULT_MIN_REFERENCES = 2


@dataclass(frozen=True)
class MissingItem:
    """One unmet submission requirement"""

    field: str
    message: str


def _applicant_missing(record: ApplicationRecord, profile: Optional[ApplicantProfile]) -> Optional[MissingItem]:
    if record.applicant_type == ApplicantType.INDIVIDUAL:
        if not isinstance(profile, IndividualProfile) or profile.person_id != record.person_id:
            return MissingItem("applicant", "Person data is missing")
        if not profile.full_name:
            return MissingItem("applicant", "Person name is missing")
        return None

    if not isinstance(profile, CompanyProfile) or profile.company_id != record.company_id:
        return MissingItem("applicant", "Company data is missing")
    if not (profile.legal_name or "").strip():
        return MissingItem("applicant", "Company legal name is missing")
    return None


def validate_submission(
    record: ApplicationRecord,
    product: ProductRules,
    profile: Optional[ApplicantProfile],
    uploaded_document_types: Iterable[str],
    reference_count: int,
    min_references: int = DEFAULT_MIN_REFERENCES,
) -> List[MissingItem]:
    """
    Collect every unmet submission requirement.

    Checks, in order:
    - applicant identity payload present for the application's applicant type
    - loan purpose set
    - every document type the product requires has been uploaded
    - at least min_references accepted references
    """
    missing: List[MissingItem] = []

    applicant = _applicant_missing(record, profile)
    if applicant is not None:
        missing.append(applicant)

    if record.purpose is None:
        missing.append(MissingItem("purpose", "Loan purpose is required"))

    uploaded = set(uploaded_document_types)
    missing_docs = [doc for doc in product.required_documents if doc not in uploaded]
    if missing_docs:
        missing.append(MissingItem("documents", "Missing required documents: " + ", ".join(missing_docs)))

    if reference_count < min_references:
        missing.append(
            MissingItem(
                "references",
                f"At least {min_references} references are required ({reference_count} on file)",
            )
        )

    return missing


def ensure_submittable(
    record: ApplicationRecord,
    product: ProductRules,
    profile: Optional[ApplicantProfile],
    uploaded_document_types: Iterable[str],
    reference_count: int,
    min_references: int = DEFAULT_MIN_REFERENCES,
) -> None:
    """All-or-nothing gate: raises IncompleteApplication naming every unmet condition"""
    missing = validate_submission(
        record, product, profile, uploaded_document_types, reference_count, min_references
    )
    if missing:
        raise IncompleteApplication(missing)
