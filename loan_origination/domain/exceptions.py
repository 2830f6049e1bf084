"""Domain-specific exceptions"""

from typing import Any, Dict, List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "domain_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DomainException):
    """Input is malformed or outside product limits"""

    code = "validation_error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message, {"errors": self.errors})


class IllegalTransition(DomainException):
    """Requested status change is not permitted from the current status"""

    code = "illegal_transition"

    def __init__(self, current_status: str, requested_status: str, role: Optional[str] = None):
        self.current_status = current_status
        self.requested_status = requested_status
        self.role = role
        message = f"Cannot change status from '{current_status}' to '{requested_status}'"
        if role is not None:
            message += f" as {role}"
        details = {"current_status": current_status, "requested_status": requested_status}
        if role is not None:
            details["role"] = role
        super().__init__(message, details)


class IncompleteApplication(DomainException):
    """Submission attempted while required data is still missing"""

    code = "incomplete_application"

    def __init__(self, missing: list):
        self.missing = list(missing)
        message = "Application is incomplete: " + "; ".join(item.message for item in self.missing)
        super().__init__(
            message,
            {"missing": [{"field": item.field, "message": item.message} for item in self.missing]},
        )

    @property
    def fields(self) -> List[str]:
        return [item.field for item in self.missing]


class ConcurrentModification(DomainException):
    """Record changed since it was read; caller must re-read and retry"""

    code = "concurrent_modification"

    def __init__(self, application_id: str, expected_version: int):
        self.application_id = application_id
        self.expected_version = expected_version
        super().__init__(
            f"Application {application_id} was modified concurrently (expected version {expected_version})",
            {"application_id": application_id, "expected_version": expected_version},
        )


class NotFound(DomainException):
    """Referenced entity does not exist for the tenant"""

    code = "not_found"

    def __init__(self, entity: str, identifier: str):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found", {"entity": entity, "id": identifier})


class CalculationError(DomainException):
    """Amortization engine called with arguments that violate its preconditions"""

    code = "calculation_error"


class CollaboratorError(DomainException):
    """Applicant/document/reference service returned an error or is unavailable"""

    code = "collaborator_error"
