"""Loan endpoints - origination, schedule, payments, LTV, foreclosure and rebalancing"""

import time
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from lamf_servicing.api.dependencies import (
    get_foreclosure_calculator,
    get_loan_originator,
    get_payment_allocator,
    get_rebalancing_advisor,
    get_request_id,
    get_risk_engine,
    parse_id,
)
from lamf_servicing.api.errors import to_http_exception
from lamf_servicing.api.v1.schemas import (
    CollateralPledgeRequest,
    CollateralResponse,
    ForeclosureResponse,
    HoldingAllocationSchema,
    InstallmentSchema,
    LoanCreateRequest,
    LoanResponse,
    LtvResponse,
    MarginCallSchema,
    PaymentRequest,
    PaymentResponse,
    RebalancingActionSchema,
    RebalancingAssessmentResponse,
    RebalancingNeedSchema,
    ReallocationPlanResponse,
    ScheduleResponse,
)
from lamf_servicing.domain.exceptions import DomainException, LoanNotFoundError
from lamf_servicing.domain.models import RebalancingNeed
from lamf_servicing.infrastructure.database.models import Collateral, EmiInstallment, Loan, MarginCall
from lamf_servicing.infrastructure.observability.logging import log_payment
from lamf_servicing.services.foreclosure import ForeclosureCalculator
from lamf_servicing.services.origination import LoanOriginator
from lamf_servicing.services.payments import PaymentAllocator
from lamf_servicing.services.rebalancing import RebalancingAdvisor
from lamf_servicing.services.risk import RiskEngine

router = APIRouter()


def loan_response(loan: Loan) -> LoanResponse:
    return LoanResponse(
        loan_id=str(loan.id),
        loan_number=loan.loan_number,
        status=loan.status,
        principal_amount=loan.principal_amount,
        interest_rate=loan.interest_rate,
        tenure_months=loan.tenure_months,
        emi_amount=loan.emi_amount,
        outstanding_principal=loan.outstanding_principal,
        outstanding_interest=loan.outstanding_interest,
        total_outstanding=loan.total_outstanding,
        disbursement_date=loan.disbursement_date,
        maturity_date=loan.maturity_date,
        current_ltv=loan.current_ltv,
    )


def installment_schema(inst: EmiInstallment) -> InstallmentSchema:
    return InstallmentSchema(
        sequence_no=inst.sequence_no,
        due_date=inst.due_date,
        emi_amount=inst.emi_amount,
        principal_component=inst.principal_component,
        interest_component=inst.interest_component,
        paid_amount=inst.paid_amount,
        paid_date=inst.paid_date,
        status=inst.status,
    )


def collateral_response(collateral: Collateral) -> CollateralResponse:
    return CollateralResponse(
        collateral_id=str(collateral.id),
        loan_id=str(collateral.loan_id) if collateral.loan_id else None,
        fund_name=collateral.fund_name,
        scheme_code=collateral.scheme_code,
        units=collateral.units,
        current_nav=collateral.current_nav,
        current_value=collateral.current_value,
        pledge_status=collateral.pledge_status,
    )


def margin_call_schema(mc: MarginCall) -> MarginCallSchema:
    return MarginCallSchema(
        margin_call_id=str(mc.id),
        loan_id=str(mc.loan_id),
        trigger_ltv=mc.trigger_ltv,
        current_ltv=mc.current_ltv,
        shortfall_amount=mc.shortfall_amount,
        status=mc.status,
        due_date=mc.due_date,
        resolved_at=mc.resolved_at,
        top_up_amount=mc.top_up_amount,
    )


def rebalancing_need_schema(need: RebalancingNeed) -> RebalancingNeedSchema:
    return RebalancingNeedSchema(
        loan_id=str(need.loan_id),
        loan_number=need.loan_number,
        current_ltv=need.current_ltv,
        target_ltv=need.target_ltv,
        collateral_value=need.collateral_value,
        outstanding_amount=need.outstanding_amount,
        shortfall=need.shortfall,
        urgency=need.urgency.value,
        suggested_actions=[
            RebalancingActionSchema(
                type=action.type.value,
                description=action.description,
                amount=action.amount,
                impact=action.impact,
            )
            for action in need.suggested_actions
        ],
    )


@router.post("/loans", response_model=LoanResponse, status_code=201)
def create_loan(
    request_body: LoanCreateRequest,
    request: Request,
    originator: LoanOriginator = Depends(get_loan_originator),
):
    """Book a disbursed loan and generate its EMI schedule"""
    product_id = parse_id(request_body.product_id, "product ID")
    try:
        loan = originator.originate(
            loan_number=request_body.loan_number,
            product_id=product_id,
            principal=request_body.principal,
            tenure_months=request_body.tenure_months,
            disbursement_date=request_body.disbursement_date,
            annual_rate_percent=request_body.annual_rate_percent,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return loan_response(loan)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, originator: LoanOriginator = Depends(get_loan_originator)):
    loan = originator.loans.get(parse_id(loan_id, "loan ID"))
    if loan is None:
        raise HTTPException(status_code=404, detail="Loan not found")
    return loan_response(loan)


@router.get("/loans/{loan_id}/schedule", response_model=ScheduleResponse)
def get_schedule(loan_id: str, originator: LoanOriginator = Depends(get_loan_originator)):
    """
    Retrieve the EMI schedule with repayment progress.

    Returns:
        Installments in sequence order; the last due date is the maturity date
    """
    loan_uuid = parse_id(loan_id, "loan ID")
    loan = originator.loans.get(loan_uuid)
    if loan is None:
        raise HTTPException(status_code=404, detail="Loan not found")

    return ScheduleResponse(
        loan_id=str(loan.id),
        maturity_date=loan.maturity_date,
        installments=[installment_schema(inst) for inst in originator.installments.list_by_loan(loan.id)],
    )


@router.post("/loans/{loan_id}/payments", response_model=PaymentResponse)
def record_payment(
    loan_id: str,
    request_body: PaymentRequest,
    request: Request,
    allocator: PaymentAllocator = Depends(get_payment_allocator),
):
    """
    Record a payment against a loan.

    Flow:
    1. Waterfall the amount over unpaid installments, oldest first
    2. Reduce the loan balance by the full amount (floored at zero)
    3. Append to the payment ledger (all three atomically)
    4. Recheck LTV, raising a margin call if the loan is still in breach
    """
    start_time = time.time()
    request_id = get_request_id(request)
    loan_uuid = parse_id(loan_id, "loan ID")

    try:
        result = allocator.allocate(
            loan_uuid,
            request_body.amount,
            request_body.payment_date,
            payment_mode=request_body.payment_mode,
            transaction_ref=request_body.transaction_ref,
        )
    except DomainException as e:
        raise to_http_exception(e, request_id)

    duration_ms = (time.time() - start_time) * 1000
    log_payment(
        request_id,
        str(result.loan.id),
        request_body.amount,
        len(result.outcome.allocations),
        result.loan.total_outstanding,
        duration_ms,
    )

    return PaymentResponse(
        payment_id=str(result.payment.id),
        loan_id=str(result.loan.id),
        amount=result.payment.amount,
        unapplied_amount=result.unapplied_amount,
        total_outstanding=result.loan.total_outstanding,
        installments=[installment_schema(inst) for inst in result.installments],
        current_ltv=result.loan.current_ltv,
        margin_call_raised=bool(result.ltv_check and result.ltv_check.margin_call_raised),
    )


@router.post("/loans/{loan_id}/collaterals", response_model=CollateralResponse, status_code=201)
def pledge_collateral(
    loan_id: str,
    request_body: CollateralPledgeRequest,
    request: Request,
    originator: LoanOriginator = Depends(get_loan_originator),
):
    """Lien-mark a mutual-fund position against the loan"""
    try:
        collateral = originator.pledge_collateral(
            parse_id(loan_id, "loan ID"),
            fund_name=request_body.fund_name,
            units=request_body.units,
            nav=request_body.nav,
            scheme_code=request_body.scheme_code,
            scheme_type=request_body.scheme_type,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return collateral_response(collateral)


@router.post("/loans/{loan_id}/ltv", response_model=LtvResponse)
def recompute_ltv(
    loan_id: str,
    request: Request,
    risk_engine: RiskEngine = Depends(get_risk_engine),
):
    """Recompute LTV from current collateral values; may raise a margin call"""
    try:
        check = risk_engine.recompute_ltv(parse_id(loan_id, "loan ID"))
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return LtvResponse(
        loan_id=str(check.loan_id),
        ltv=check.ltv,
        collateral_value=check.collateral_value,
        margin_call_raised=check.margin_call_raised,
        margin_call_id=str(check.margin_call_id) if check.margin_call_id else None,
    )


@router.get("/loans/{loan_id}/foreclosure", response_model=ForeclosureResponse)
def get_foreclosure_quote(
    loan_id: str,
    request: Request,
    foreclosure_date: Optional[date] = Query(None, alias="date", description="Settlement date, default today"),
    calculator: ForeclosureCalculator = Depends(get_foreclosure_calculator),
):
    """Quote the settlement amount to close the loan early"""
    try:
        quote = calculator.calculate_foreclosure(parse_id(loan_id, "loan ID"), foreclosure_date)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return ForeclosureResponse(
        loan_id=str(quote.loan_id),
        loan_number=quote.loan_number,
        foreclosure_date=quote.foreclosure_date,
        days_since_last_payment=quote.days_since_last_payment,
        outstanding_principal=quote.outstanding_principal,
        outstanding_interest=quote.outstanding_interest,
        accrued_interest=quote.accrued_interest,
        penalty_percent=quote.penalty_percent,
        penalty_amount=quote.penalty_amount,
        tax_on_penalty=quote.tax_on_penalty,
        total_payable=quote.total_payable,
    )


@router.get("/loans/{loan_id}/rebalancing", response_model=RebalancingAssessmentResponse)
def assess_rebalancing(
    loan_id: str,
    request: Request,
    advisor: RebalancingAdvisor = Depends(get_rebalancing_advisor),
):
    try:
        need = advisor.assess(parse_id(loan_id, "loan ID"))
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return RebalancingAssessmentResponse(
        loan_id=loan_id,
        needs_rebalancing=need is not None,
        need=rebalancing_need_schema(need) if need else None,
    )


@router.get("/loans/{loan_id}/margin-calls", response_model=List[MarginCallSchema])
def get_margin_call_history(
    loan_id: str,
    advisor: RebalancingAdvisor = Depends(get_rebalancing_advisor),
):
    """Margin calls raised against the loan, newest first"""
    try:
        history = advisor.history(parse_id(loan_id, "loan ID"))
    except LoanNotFoundError:
        raise HTTPException(status_code=404, detail="Loan not found")

    return [margin_call_schema(mc) for mc in history]


@router.get("/loans/{loan_id}/rebalancing/optimal", response_model=ReallocationPlanResponse)
def get_optimal_reallocation(
    loan_id: str,
    advisor: RebalancingAdvisor = Depends(get_rebalancing_advisor),
):
    """Greedy spread of the outstanding amount over pledged holdings by LTV allowance"""
    try:
        plan = advisor.optimal_reallocation(parse_id(loan_id, "loan ID"))
    except LoanNotFoundError:
        raise HTTPException(status_code=404, detail="Loan not found")

    return ReallocationPlanResponse(
        loan_id=loan_id,
        reallocation=[
            HoldingAllocationSchema(
                scheme_type=h.scheme_type,
                value=h.value,
                allocated_loan=h.allocated_loan,
                utilization=h.utilization,
            )
            for h in plan.reallocation
        ],
        expected_ltv=plan.expected_ltv,
    )
