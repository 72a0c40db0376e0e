"""Collateral endpoints - NAV updates and the portfolio rebalancing report"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from lamf_servicing.api.dependencies import (
    get_rebalancing_advisor,
    get_request_id,
    get_valuation_monitor,
    parse_id,
)
from lamf_servicing.api.errors import to_http_exception
from lamf_servicing.api.v1.loans import collateral_response, rebalancing_need_schema
from lamf_servicing.api.v1.schemas import (
    BatchFailureSchema,
    CollateralResponse,
    NavUpdateRequest,
    RebalancingResultResponse,
)
from lamf_servicing.domain.exceptions import DomainException
from lamf_servicing.services.rebalancing import RebalancingAdvisor
from lamf_servicing.services.valuation import ValuationMonitor

router = APIRouter()


@router.put("/collaterals/{collateral_id}/nav", response_model=CollateralResponse)
def update_nav(
    collateral_id: str,
    request_body: NavUpdateRequest,
    request: Request,
    monitor: ValuationMonitor = Depends(get_valuation_monitor),
):
    """
    Apply a new NAV to a single position.

    A pledged position triggers an LTV recheck of its loan, which may raise
    a margin call.
    """
    try:
        collateral = monitor.revalue(parse_id(collateral_id, "collateral ID"), request_body.nav)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return collateral_response(collateral)


@router.get("/collateral/rebalancing", response_model=RebalancingResultResponse)
def get_rebalancing_report(
    request: Request,
    advisor: RebalancingAdvisor = Depends(get_rebalancing_advisor),
):
    """
    Every active loan above its max LTV, most urgent first.

    Loans that cannot be assessed are listed under ``failures``.
    """
    try:
        result = advisor.detect_all()
    except Exception as e:
        logging.error(f"Rebalancing report failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return RebalancingResultResponse(
        needs_rebalancing=[rebalancing_need_schema(need) for need in result.needs_rebalancing],
        total_loans_checked=result.total_loans_checked,
        loans_at_risk=result.loans_at_risk,
        total_shortfall=result.total_shortfall,
        failures=[BatchFailureSchema(entity_id=f.entity_id, error=f.error) for f in result.failures],
    )
