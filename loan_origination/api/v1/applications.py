"""/v1/applications - loan application lifecycle endpoints"""

from decimal import Decimal
from typing import Dict, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from loan_origination.api.dependencies import (
    get_actor,
    get_applicant_client,
    get_application_service,
    get_optional_actor,
    get_tenant_id,
    get_webhook_client,
)
from loan_origination.api.v1.schemas import (
    AffordabilityResponse,
    ApplicationListResponse,
    ApplicationResponse,
    ApproveRequest,
    AssignRequest,
    CancelRequest,
    CounterOfferAnswer,
    CounterOfferRequest,
    CreateApplicationRequest,
    HistoryItem,
    HistoryResponse,
    MutationResponse,
    RejectRequest,
    ScheduleResponse,
    ScheduleRowSchema,
    StatusChangeRequest,
    SubmitRequest,
    SyncRequest,
    UpdateTermsRequest,
)
from loan_origination.domain.exceptions import ValidationError
from loan_origination.domain.models import Actor, ActorType, ApplicationStatus, LifecycleResult, LoanRequest, RiskLevel
from loan_origination.domain.transitions import allowed_next_statuses
from loan_origination.infrastructure.clients.applicants import ApplicantDirectoryClient
from loan_origination.infrastructure.clients.webhooks import WebhookClient
from loan_origination.services.applications import ApplicationService
from loan_origination.services.delivery import deliver_in_background

router = APIRouter()


def _respond(result: LifecycleResult, background_tasks: BackgroundTasks, webhook_client: WebhookClient) -> MutationResponse:
    """Schedule outbox delivery when the change emitted events"""
    if result.events:
        background_tasks.add_task(deliver_in_background, webhook_client)
    return MutationResponse(
        application=ApplicationResponse.from_record(result.record),
        events=[e.event_type for e in result.events],
    )


@router.post("/applications", response_model=MutationResponse, status_code=201)
def create_application(
    body: CreateApplicationRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    """Open a DRAFT application priced against the product"""
    result = service.create_application(
        tenant_id=tenant_id,
        applicant_type=body.applicant_type,
        applicant_id=body.applicant_id,
        product_id=body.product_id,
        loan_request=LoanRequest(
            amount=body.amount,
            term_months=body.term_months,
            frequency=body.frequency,
            purpose=body.purpose,
            purpose_description=body.purpose_description,
        ),
        created_by=actor,
    )
    return _respond(result, background_tasks, webhook_client)


@router.get("/applications", response_model=ApplicationListResponse)
def list_applications(
    status: Optional[ApplicationStatus] = None,
    assigned_to: Optional[str] = None,
    unassigned: bool = False,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    tenant_id: str = Depends(get_tenant_id),
    service: ApplicationService = Depends(get_application_service),
):
    """Tenant's applications, newest first, with per-status counts"""
    records = service.list_applications(
        tenant_id,
        status=status,
        assigned_to=assigned_to,
        unassigned=unassigned,
        limit=limit,
        offset=offset,
    )
    return ApplicationListResponse(
        items=[ApplicationResponse.from_record(r) for r in records],
        counts=service.status_counts(tenant_id),
        limit=limit,
        offset=offset,
    )


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: str,
    tenant_id: str = Depends(get_tenant_id),
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: ApplicationService = Depends(get_application_service),
):
    record = service.get(tenant_id, application_id)
    allowed = allowed_next_statuses(record.status, actor.type) if actor else None
    return ApplicationResponse.from_record(record, allowed_next_statuses=allowed)


@router.patch("/applications/{application_id}/terms", response_model=MutationResponse)
def update_terms(
    application_id: str,
    body: UpdateTermsRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.update_loan_terms(
        tenant_id,
        application_id,
        actor,
        amount=body.amount,
        term_months=body.term_months,
        frequency=body.frequency,
        purpose=body.purpose,
        purpose_description=body.purpose_description,
        expected_version=body.expected_version,
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/submit", response_model=MutationResponse)
async def submit_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    body: Optional[SubmitRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    applicant_client: ApplicantDirectoryClient = Depends(get_applicant_client),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    """
    Submit a draft for review.

    Flow:
    1. Load the application to learn who the applicant is
    2. Fetch live profile, uploaded document types and reference count
    3. Run completeness checks, capture the snapshot and move to SUBMITTED
    """
    record = service.get(tenant_id, application_id)
    profile = await applicant_client.get_profile(tenant_id, record.applicant_type, record.applicant_id)
    document_types = await applicant_client.get_uploaded_document_types(tenant_id, application_id)
    reference_count = await applicant_client.count_references(tenant_id, record.applicant_type, record.applicant_id)

    result = service.submit(
        tenant_id,
        application_id,
        actor,
        profile,
        document_types,
        reference_count,
        expected_version=(body.expected_version if body else None) or record.version,
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/status", response_model=MutationResponse)
def change_status(
    application_id: str,
    body: StatusChangeRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.change_status(
        tenant_id, application_id, body.status, actor, notes=body.notes, expected_version=body.expected_version
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/assign", response_model=MutationResponse)
def assign_application(
    application_id: str,
    body: AssignRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.assign(tenant_id, application_id, body.assignee_id, actor, expected_version=body.expected_version)
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/approve", response_model=MutationResponse)
def approve_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    body: Optional[ApproveRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    """Approve, optionally overriding amount, term or rate"""
    body = body or ApproveRequest()
    result = service.approve(
        tenant_id,
        application_id,
        actor,
        amount=body.amount,
        term_months=body.term_months,
        interest_rate=body.interest_rate,
        notes=body.notes,
        expected_version=body.expected_version,
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/reject", response_model=MutationResponse)
def reject_application(
    application_id: str,
    body: RejectRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.reject(
        tenant_id, application_id, actor, body.reason, notes=body.notes, expected_version=body.expected_version
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/cancel", response_model=MutationResponse)
def cancel_application(
    application_id: str,
    body: CancelRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.cancel(tenant_id, application_id, actor, body.reason, expected_version=body.expected_version)
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/counter-offer", response_model=MutationResponse)
def send_counter_offer(
    application_id: str,
    body: CounterOfferRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.send_counter_offer(
        tenant_id,
        application_id,
        actor,
        body.amount,
        body.term_months,
        interest_rate=body.interest_rate,
        reason=body.reason,
        expected_version=body.expected_version,
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/counter-offer/response", response_model=MutationResponse)
def respond_to_counter_offer(
    application_id: str,
    body: CounterOfferAnswer,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.respond_to_counter_offer(
        tenant_id, application_id, actor, body.accepted, expected_version=body.expected_version
    )
    return _respond(result, background_tasks, webhook_client)


@router.post("/applications/{application_id}/sync", response_model=MutationResponse)
def mark_synced(
    application_id: str,
    body: SyncRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    """Record the core-banking loan created from an approved application"""
    if actor.type != ActorType.SYSTEM:
        raise ValidationError("Only the system actor can mark applications as synced")
    result = service.mark_synced(
        tenant_id,
        application_id,
        body.external_id,
        body.external_system,
        sync_data=body.sync_data,
        expected_version=body.expected_version,
    )
    return _respond(result, background_tasks, webhook_client)


@router.patch("/applications/{application_id}/verification", response_model=MutationResponse)
def update_verification(
    application_id: str,
    background_tasks: BackgroundTasks,
    checks: Dict[str, Union[bool, int]] = Body(..., embed=True),
    expected_version: Optional[int] = Body(None, embed=True),
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.update_verification(tenant_id, application_id, checks, actor, expected_version=expected_version)
    return _respond(result, background_tasks, webhook_client)


@router.put("/applications/{application_id}/risk", response_model=MutationResponse)
def set_risk_assessment(
    application_id: str,
    background_tasks: BackgroundTasks,
    level: RiskLevel = Body(..., embed=True),
    data: Optional[dict] = Body(None, embed=True),
    expected_version: Optional[int] = Body(None, embed=True),
    tenant_id: str = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    service: ApplicationService = Depends(get_application_service),
    webhook_client: WebhookClient = Depends(get_webhook_client),
):
    result = service.set_risk_assessment(
        tenant_id, application_id, level, actor, data=data, expected_version=expected_version
    )
    return _respond(result, background_tasks, webhook_client)


@router.get("/applications/{application_id}/history", response_model=HistoryResponse)
def get_history(
    application_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: ApplicationService = Depends(get_application_service),
):
    """Status ledger, oldest first"""
    entries = service.status_history(tenant_id, application_id)
    return HistoryResponse(application_id=application_id, entries=[HistoryItem.from_entry(e) for e in entries])


@router.get("/applications/{application_id}/schedule", response_model=ScheduleResponse)
def get_schedule(
    application_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: ApplicationService = Depends(get_application_service),
):
    schedule = service.amortization_schedule(tenant_id, application_id)
    return ScheduleResponse(
        application_id=application_id,
        total_periods=len(schedule),
        rows=[ScheduleRowSchema.from_row(row) for row in schedule],
    )


@router.get("/applications/{application_id}/affordability", response_model=AffordabilityResponse)
def get_affordability(
    application_id: str,
    monthly_income: Optional[Decimal] = Query(None, gt=0),
    tenant_id: str = Depends(get_tenant_id),
    service: ApplicationService = Depends(get_application_service),
):
    """Debt-to-income for the application's payment"""
    ratio = service.debt_to_income(tenant_id, application_id, monthly_income)
    return AffordabilityResponse(application_id=application_id, monthly_income=monthly_income, debt_to_income=ratio)
