"""POST /v1/simulations - loan payment simulator"""

from fastapi import APIRouter, Depends

from loan_origination.api.dependencies import get_application_service, get_tenant_id
from loan_origination.api.v1.schemas import ProductSimulationRequest, SimulationRequest, SimulationResponse
from loan_origination.domain.amortization import generate_schedule
from loan_origination.services.applications import ApplicationService

router = APIRouter()


@router.post("/simulations", response_model=SimulationResponse)
def simulate(
    body: SimulationRequest,
    service: ApplicationService = Depends(get_application_service),
):
    """
    Price a loan with an explicit rate and commission.

    No tenant or product is involved; nothing is persisted.
    """
    terms = service.simulate(
        body.amount,
        body.term_months,
        body.frequency,
        body.annual_rate,
        body.opening_commission_rate,
    )
    schedule = generate_schedule(body.amount, body.annual_rate, body.term_months, body.frequency) if body.include_schedule else None
    return SimulationResponse.from_terms(terms, schedule)


@router.post("/products/{product_id}/simulations", response_model=SimulationResponse)
def simulate_for_product(
    product_id: str,
    body: ProductSimulationRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: ApplicationService = Depends(get_application_service),
):
    """Price a loan with the product's rate and commission, enforcing its limits"""
    terms = service.simulate_for_product(tenant_id, product_id, body.amount, body.term_months, body.frequency)
    schedule = (
        generate_schedule(body.amount, terms.annual_rate, body.term_months, body.frequency)
        if body.include_schedule
        else None
    )
    return SimulationResponse.from_terms(terms, schedule)
