"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class LoanCreateRequest(BaseModel):
    """Request body for POST /v1/loans"""

    loan_number: str = Field(..., min_length=1, description="Human-facing loan reference")
    product_id: str = Field(..., description="Loan product carrying the LTV policy")
    principal: Decimal = Field(..., gt=0, description="Disbursed amount in rupees")
    tenure_months: int = Field(..., gt=0, description="Number of monthly installments")
    disbursement_date: date
    annual_rate_percent: Optional[Decimal] = Field(None, ge=0, description="Defaults to the product rate")


class LoanResponse(BaseModel):
    loan_id: str
    loan_number: str
    status: str
    principal_amount: Decimal
    interest_rate: Decimal
    tenure_months: int
    emi_amount: Decimal
    outstanding_principal: Decimal
    outstanding_interest: Decimal
    total_outstanding: Decimal
    disbursement_date: date
    maturity_date: date
    current_ltv: Optional[Decimal] = None


class InstallmentSchema(BaseModel):
    """Single installment in an EMI schedule"""

    sequence_no: int
    due_date: date
    emi_amount: Decimal
    principal_component: Decimal
    interest_component: Decimal
    paid_amount: Decimal
    paid_date: Optional[date] = None
    status: str


class ScheduleResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/schedule"""

    loan_id: str
    maturity_date: date
    installments: List[InstallmentSchema]


class PaymentRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/payments"""

    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount received in rupees")
    payment_date: date
    payment_mode: str = Field("CASH", description="CASH | UPI | NEFT | ...")
    transaction_ref: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_id: str
    loan_id: str
    amount: Decimal
    unapplied_amount: Decimal
    total_outstanding: Decimal
    installments: List[InstallmentSchema]
    current_ltv: Optional[Decimal] = None
    margin_call_raised: bool = False


class CollateralPledgeRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/collaterals"""

    fund_name: str = Field(..., min_length=1)
    units: Decimal = Field(..., gt=0)
    nav: Decimal = Field(..., gt=0)
    scheme_code: Optional[str] = None
    scheme_type: str = "EQUITY"


class NavUpdateRequest(BaseModel):
    """Request body for PUT /v1/collaterals/{collateral_id}/nav"""

    nav: Decimal = Field(..., gt=0, description="New NAV per unit")


class CollateralResponse(BaseModel):
    collateral_id: str
    loan_id: Optional[str] = None
    fund_name: str
    scheme_code: Optional[str] = None
    units: Decimal
    current_nav: Decimal
    current_value: Decimal
    pledge_status: str


class LtvResponse(BaseModel):
    """Response for POST /v1/loans/{loan_id}/ltv"""

    loan_id: str
    ltv: Optional[Decimal] = None
    collateral_value: Decimal
    margin_call_raised: bool
    margin_call_id: Optional[str] = None


class ForeclosureResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/foreclosure"""

    loan_id: str
    loan_number: str
    foreclosure_date: date
    days_since_last_payment: int
    outstanding_principal: Decimal
    outstanding_interest: Decimal
    accrued_interest: Decimal
    penalty_percent: Decimal
    penalty_amount: Decimal
    tax_on_penalty: Decimal
    total_payable: Decimal


class RebalancingActionSchema(BaseModel):
    type: str
    description: str
    amount: Decimal
    impact: str


class RebalancingNeedSchema(BaseModel):
    loan_id: str
    loan_number: str
    current_ltv: Decimal
    target_ltv: Decimal
    collateral_value: Decimal
    outstanding_amount: Decimal
    shortfall: Decimal
    urgency: str
    suggested_actions: List[RebalancingActionSchema]


class RebalancingAssessmentResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/rebalancing"""

    loan_id: str
    needs_rebalancing: bool
    need: Optional[RebalancingNeedSchema] = None


class HoldingAllocationSchema(BaseModel):
    scheme_type: str
    value: Decimal
    allocated_loan: Decimal
    utilization: Decimal


class ReallocationPlanResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/rebalancing/optimal"""

    loan_id: str
    reallocation: List[HoldingAllocationSchema]
    expected_ltv: Decimal


class BatchFailureSchema(BaseModel):
    entity_id: str
    error: str


class RebalancingResultResponse(BaseModel):
    """Response for GET /v1/collateral/rebalancing"""

    needs_rebalancing: List[RebalancingNeedSchema]
    total_loans_checked: int
    loans_at_risk: int
    total_shortfall: Decimal
    failures: List[BatchFailureSchema] = []


class MarginCallSchema(BaseModel):
    margin_call_id: str
    loan_id: str
    trigger_ltv: Decimal
    current_ltv: Decimal
    shortfall_amount: Decimal
    status: str
    due_date: datetime
    resolved_at: Optional[datetime] = None
    top_up_amount: Optional[Decimal] = None


class MarginCallResolveRequest(BaseModel):
    top_up_amount: Optional[Decimal] = Field(None, ge=0)


class JobResponse(BaseModel):
    """Summary returned by the on-demand batch job endpoints"""

    success: bool
    message: str
    data: dict
    failures: List[BatchFailureSchema] = []
