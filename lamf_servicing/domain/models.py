"""Domain models - pure Python dataclasses representing servicing entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

ZERO = Decimal("0")


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    DEFAULT = "DEFAULT"
    NPA = "NPA"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"

    @classmethod
    def derive(cls, paid_amount: Decimal, emi_amount: Decimal) -> "InstallmentStatus":
        """Status follows from how much of the EMI has been paid"""
        if paid_amount >= emi_amount:
            return cls.PAID
        if paid_amount > ZERO:
            return cls.PARTIALLY_PAID
        return cls.PENDING


class PledgeStatus(str, Enum):
    PENDING = "PENDING"  # held by the customer, not yet lien-marked
    PLEDGED = "PLEDGED"
    RELEASED = "RELEASED"
    LIQUIDATED = "LIQUIDATED"


class MarginCallStatus(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"


class Urgency(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]


_URGENCY_RANK = {Urgency.CRITICAL: 0, Urgency.HIGH: 1, Urgency.MEDIUM: 2, Urgency.LOW: 3}


class RebalancingActionType(str, Enum):
    TOP_UP = "TOP_UP"
    PARTIAL_REPAY = "PARTIAL_REPAY"
    SWITCH = "SWITCH"


@dataclass
class ScheduledInstallment:
    """Single period of an amortization schedule"""

    sequence_no: int
    due_date: date
    emi_amount: Decimal
    principal_component: Decimal
    interest_component: Decimal


@dataclass(frozen=True)
class LoanPolicy:
    """LTV thresholds (percent) taken from the loan product"""

    max_ltv_percent: Decimal
    margin_call_threshold: Decimal
    liquidation_threshold: Decimal


@dataclass
class InstallmentState:
    """Repayment progress of one installment, as seen by the waterfall"""

    sequence_no: int
    emi_amount: Decimal
    paid_amount: Decimal = ZERO
    paid_date: Optional[date] = None

    @property
    def status(self) -> InstallmentStatus:
        return InstallmentStatus.derive(self.paid_amount, self.emi_amount)

    @property
    def amount_due(self) -> Decimal:
        return max(ZERO, self.emi_amount - self.paid_amount)


@dataclass
class InstallmentAllocation:
    """Portion of a payment applied to one installment"""

    sequence_no: int
    applied_amount: Decimal
    paid_amount: Decimal
    status: InstallmentStatus
    paid_date: Optional[date]


@dataclass
class WaterfallOutcome:
    """Result of spreading a payment over outstanding installments"""

    allocations: List[InstallmentAllocation]
    unapplied_amount: Decimal

    @property
    def applied_amount(self) -> Decimal:
        return sum((a.applied_amount for a in self.allocations), ZERO)


@dataclass
class BalanceUpdate:
    """Loan balances after a payment"""

    outstanding_principal: Decimal
    outstanding_interest: Decimal

    @property
    def total_outstanding(self) -> Decimal:
        return self.outstanding_principal + self.outstanding_interest


@dataclass
class MarginCallDecision:
    """A threshold breach that warrants a new margin call"""

    trigger_ltv: Decimal
    current_ltv: Decimal
    shortfall_amount: Decimal


@dataclass
class LtvCheck:
    """Outcome of an LTV recomputation for one loan"""

    loan_id: uuid.UUID
    ltv: Optional[Decimal]
    collateral_value: Decimal
    margin_call_raised: bool = False
    margin_call_id: Optional[uuid.UUID] = None


@dataclass
class ForeclosureQuote:
    """Settlement amount breakdown, rounded to paise"""

    loan_id: uuid.UUID
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


@dataclass
class RebalancingAction:
    type: RebalancingActionType
    description: str
    amount: Decimal
    impact: str


@dataclass
class RebalancingNeed:
    """A loan whose LTV sits above the product's target"""

    loan_id: uuid.UUID
    loan_number: str
    current_ltv: Decimal
    target_ltv: Decimal
    collateral_value: Decimal
    outstanding_amount: Decimal
    shortfall: Decimal
    urgency: Urgency
    suggested_actions: List[RebalancingAction] = field(default_factory=list)


@dataclass
class BatchFailure:
    """One entity that could not be processed by a batch job"""

    entity_id: str
    error: str


@dataclass
class RebalancingResult:
    needs_rebalancing: List[RebalancingNeed]
    total_loans_checked: int
    loans_at_risk: int
    total_shortfall: Decimal
    failures: List[BatchFailure] = field(default_factory=list)


@dataclass
class MarginCallSweepResult:
    loans_checked: int = 0
    margin_calls_generated: int = 0
    skipped: List[BatchFailure] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)


@dataclass
class ValuationBatchResult:
    updated: int = 0
    failures: List[BatchFailure] = field(default_factory=list)
    affected_loan_ids: List[uuid.UUID] = field(default_factory=list)


@dataclass
class CollateralHolding:
    """Input to the reallocation helper: one holding and its LTV allowance"""

    value: Decimal
    scheme_type: str
    ltv_allowance: Decimal


@dataclass
class HoldingAllocation:
    scheme_type: str
    value: Decimal
    allocated_loan: Decimal
    utilization: Decimal


@dataclass
class ReallocationPlan:
    reallocation: List[HoldingAllocation]
    expected_ltv: Decimal
