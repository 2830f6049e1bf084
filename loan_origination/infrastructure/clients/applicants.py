"""Applicant directory HTTP client: profiles, uploaded documents and references"""

import httpx
from datetime import date
from decimal import InvalidOperation
from typing import Any, Dict, List, Optional
from loan_origination.domain.models import (
    Address,
    ApplicantProfile,
    ApplicantType,
    CompanyProfile,
    Employment,
    IndividualProfile,
)
from loan_origination.domain.exceptions import CollaboratorError, NotFound
from loan_origination.config import settings
from loan_origination.infrastructure.observability.metrics import collaborator_failure_counter

ACCEPTED_REFERENCE_STATUSES = frozenset({"ACCEPTED", "VERIFIED"})


def _individual(data: Dict[str, Any]) -> IndividualProfile:
    address = data.get("current_address")
    employment = data.get("current_employment")
    return IndividualProfile(
        person_id=str(data["id"]),
        first_name=data["first_name"],
        last_name=data["last_name"],
        second_last_name=data.get("second_last_name"),
        curp=data.get("curp"),
        rfc=data.get("rfc"),
        birth_date=date.fromisoformat(data["birth_date"]) if data.get("birth_date") else None,
        nationality=data.get("nationality"),
        current_address=Address.from_dict(address) if address else None,
        current_employment=Employment.from_dict(employment) if employment else None,
    )


def _company(data: Dict[str, Any]) -> CompanyProfile:
    return CompanyProfile(
        company_id=str(data["id"]),
        legal_name=data["legal_name"],
        rfc=data.get("rfc"),
        trade_name=data.get("trade_name"),
        fiscal_regime=data.get("fiscal_regime"),
        legal_representative=data.get("legal_representative"),
    )


class ApplicantDirectoryClient:
    """Client for the service that owns person, company, document and reference data"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url or settings.applicant_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def _get(self, tenant_id: str, path: str) -> Optional[Dict[str, Any]]:
        """
        GET a JSON document; None on 404.

        Raises:
            CollaboratorError: On timeout, HTTP errors, or non-JSON responses
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    f"{self.base_url}{path}",
                    headers={"X-Tenant-ID": tenant_id},
                )
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                collaborator_failure_counter.inc()
                raise CollaboratorError(f"Applicant API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                collaborator_failure_counter.inc()
                raise CollaboratorError(f"Applicant API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                collaborator_failure_counter.inc()
                raise CollaboratorError(f"Applicant API unreachable: {e}") from e
            except ValueError as e:
                collaborator_failure_counter.inc()
                raise CollaboratorError(f"Invalid JSON from applicant API: {e}") from e

    async def get_profile(self, tenant_id: str, applicant_type: ApplicantType, applicant_id: str) -> Optional[ApplicantProfile]:
        """Current live profile, or None if the directory has no such applicant"""
        if applicant_type == ApplicantType.INDIVIDUAL:
            data = await self._get(tenant_id, f"/persons/{applicant_id}")
            parse = _individual
        else:
            data = await self._get(tenant_id, f"/companies/{applicant_id}")
            parse = _company
        if data is None:
            return None
        try:
            return parse(data)
        except (KeyError, ValueError, TypeError, InvalidOperation) as e:
            collaborator_failure_counter.inc()
            raise CollaboratorError(f"Invalid applicant data: {e}") from e

    async def get_uploaded_document_types(self, tenant_id: str, application_id: str) -> List[str]:
        data = await self._get(tenant_id, f"/applications/{application_id}/documents")
        if data is None:
            raise NotFound("Application documents", application_id)
        try:
            return [doc["type"] for doc in data.get("documents", [])]
        except (KeyError, TypeError) as e:
            collaborator_failure_counter.inc()
            raise CollaboratorError(f"Invalid document data: {e}") from e

    async def count_references(self, tenant_id: str, applicant_type: ApplicantType, applicant_id: str) -> int:
        """Number of references the applicant has that were accepted or verified"""
        kind = "persons" if applicant_type == ApplicantType.INDIVIDUAL else "companies"
        data = await self._get(tenant_id, f"/{kind}/{applicant_id}/references")
        if data is None:
            return 0
        try:
            return sum(
                1 for ref in data.get("references", []) if str(ref["status"]).upper() in ACCEPTED_REFERENCE_STATUSES
            )
        except (KeyError, TypeError) as e:
            collaborator_failure_counter.inc()
            raise CollaboratorError(f"Invalid reference data: {e}") from e
