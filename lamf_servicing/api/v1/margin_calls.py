"""Margin call lifecycle endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from lamf_servicing.api.dependencies import get_request_id, get_risk_engine, parse_id
from lamf_servicing.api.errors import to_http_exception
from lamf_servicing.api.v1.loans import margin_call_schema
from lamf_servicing.api.v1.schemas import MarginCallResolveRequest, MarginCallSchema
from lamf_servicing.domain.exceptions import DomainException
from lamf_servicing.services.risk import RiskEngine

router = APIRouter()


@router.post("/margin-calls/{margin_call_id}/resolve", response_model=MarginCallSchema)
def resolve_margin_call(
    margin_call_id: str,
    request: Request,
    request_body: Optional[MarginCallResolveRequest] = None,
    risk_engine: RiskEngine = Depends(get_risk_engine),
):
    """Close a PENDING margin call once the borrower has cured the shortfall"""
    try:
        margin_call = risk_engine.resolve_margin_call(
            parse_id(margin_call_id, "margin call ID"),
            top_up_amount=request_body.top_up_amount if request_body else None,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return margin_call_schema(margin_call)


@router.post("/margin-calls/{margin_call_id}/escalate", response_model=MarginCallSchema)
def escalate_margin_call(
    margin_call_id: str,
    request: Request,
    risk_engine: RiskEngine = Depends(get_risk_engine),
):
    """Hand a PENDING margin call over to collections"""
    try:
        margin_call = risk_engine.escalate_margin_call(parse_id(margin_call_id, "margin call ID"))
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return margin_call_schema(margin_call)
