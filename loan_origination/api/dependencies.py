"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from loan_origination.config import Settings, settings
from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import Actor, ActorType
from loan_origination.infrastructure.clients.applicants import ApplicantDirectoryClient
from loan_origination.infrastructure.clients.webhooks import WebhookClient
from loan_origination.infrastructure.database.session import get_db
from loan_origination.services.applications import ApplicationService
from loan_origination.utils.clock import Clock, SystemClock


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings() -> Settings:
    return settings


def get_clock() -> Clock:
    return SystemClock()


def get_tenant_id(x_tenant_id: str = Header(..., min_length=1)) -> str:
    """Every request is scoped to the tenant in X-Tenant-ID"""
    return x_tenant_id


def _build_actor(actor_type: str, actor_id: Optional[str]) -> Actor:
    try:
        kind = ActorType(actor_type.upper())
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown actor type: {actor_type}")
    try:
        return Actor(id=actor_id or None, type=kind)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)


def get_actor(
    x_actor_type: str = Header(...),
    x_actor_id: Optional[str] = Header(None),
) -> Actor:
    """Who is calling, from X-Actor-Type / X-Actor-Id"""
    return _build_actor(x_actor_type, x_actor_id)


def get_optional_actor(
    x_actor_type: Optional[str] = Header(None),
    x_actor_id: Optional[str] = Header(None),
) -> Optional[Actor]:
    if x_actor_type is None:
        return None
    return _build_actor(x_actor_type, x_actor_id)


def get_application_service(
    request: Request,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> ApplicationService:
    return ApplicationService(db, config=config, clock=clock, request_id=get_request_id(request))


def get_applicant_client() -> ApplicantDirectoryClient:
    """Provide applicant directory client instance"""
    return ApplicantDirectoryClient()


def get_webhook_client() -> WebhookClient:
    """Provide event webhook client instance"""
    return WebhookClient()
