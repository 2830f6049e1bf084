"""Map domain exceptions to HTTP responses"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from loan_origination.domain.exceptions import (
    CalculationError,
    CollaboratorError,
    ConcurrentModification,
    DomainException,
    IllegalTransition,
    IncompleteApplication,
    NotFound,
    ValidationError,
)
from loan_origination.domain.models import to_jsonable

logger = logging.getLogger(__name__)

# First match wins
STATUS_CODES = (
    (IncompleteApplication, 422),
    (ValidationError, 422),
    (IllegalTransition, 409),
    (ConcurrentModification, 409),
    (NotFound, 404),
    (CollaboratorError, 503),
    (CalculationError, 500),
)


def status_code_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def error_body(exc: DomainException) -> dict:
    return {"error": exc.code, "message": exc.message, "details": to_jsonable(exc.details)}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = status_code_for(exc)
    request_id = getattr(request.state, "request_id", "unknown")
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{exc.code}: {exc.message}",
        extra={"request_id": request_id, "path": request.url.path, "status": status_code},
    )
    return JSONResponse(status_code=status_code, content=error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
