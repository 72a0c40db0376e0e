"""Collateral rebalancing - urgency classification and suggested corrective actions"""

import uuid
from decimal import Decimal
from typing import List, Optional, Sequence

from lamf_servicing.domain.models import (
    ZERO,
    CollateralHolding,
    HoldingAllocation,
    LoanPolicy,
    RebalancingAction,
    RebalancingActionType,
    RebalancingNeed,
    ReallocationPlan,
    Urgency,
)
from lamf_servicing.utils.money import HUNDRED, as_decimal, format_inr


def classify_urgency(current_ltv: Decimal, policy: LoanPolicy, medium_buffer_percent: Decimal) -> Urgency:
    """
    Map LTV onto an urgency band, first match wins:

    - at/above liquidation threshold: CRITICAL
    - at/above margin-call threshold: HIGH
    - at/above max LTV + buffer (5 points by default): MEDIUM
    - anything else above max LTV: LOW
    """
    if current_ltv >= policy.liquidation_threshold:
        return Urgency.CRITICAL
    elif current_ltv >= policy.margin_call_threshold:
        return Urgency.HIGH
    elif current_ltv >= policy.max_ltv_percent + medium_buffer_percent:
        return Urgency.MEDIUM
    else:
        return Urgency.LOW


def suggest_actions(
    outstanding_amount: Decimal,
    collateral_value: Decimal,
    shortfall: Decimal,
    max_ltv_percent: Decimal,
) -> List[RebalancingAction]:
    """Independent options, in presentation order: top-up, partial prepayment, fund switch"""
    actions = []
    impact = f"Reduces LTV to target {max_ltv_percent.normalize():f}%"

    if shortfall > 0:
        actions.append(
            RebalancingAction(
                type=RebalancingActionType.TOP_UP,
                description=f"Add additional collateral worth {format_inr(shortfall)}",
                amount=shortfall,
                impact=impact,
            )
        )

    repayment_for_target = outstanding_amount - collateral_value * max_ltv_percent / HUNDRED
    if repayment_for_target > 0:
        actions.append(
            RebalancingAction(
                type=RebalancingActionType.PARTIAL_REPAY,
                description=f"Partial prepayment of {format_inr(repayment_for_target)}",
                amount=repayment_for_target,
                impact=impact,
            )
        )

    if collateral_value > 0:
        actions.append(
            RebalancingAction(
                type=RebalancingActionType.SWITCH,
                description="Switch to lower-risk debt funds with higher LTV allowance",
                amount=ZERO,
                impact="May increase eligible collateral value",
            )
        )

    return actions


def assess_rebalancing(
    loan_id: uuid.UUID,
    loan_number: str,
    current_ltv: Decimal,
    outstanding_amount: Decimal,
    collateral_value: Decimal,
    policy: LoanPolicy,
    medium_buffer_percent: Decimal,
) -> Optional[RebalancingNeed]:
    """
    Build a rebalancing need when LTV is strictly above the product's max LTV.

    Returns None for loans within policy.
    """
    current_ltv = as_decimal(current_ltv)
    if current_ltv <= policy.max_ltv_percent:
        return None

    target_collateral_value = outstanding_amount / (policy.max_ltv_percent / HUNDRED)
    shortfall = max(ZERO, target_collateral_value - collateral_value)

    return RebalancingNeed(
        loan_id=loan_id,
        loan_number=loan_number,
        current_ltv=current_ltv,
        target_ltv=policy.max_ltv_percent,
        collateral_value=collateral_value,
        outstanding_amount=outstanding_amount,
        shortfall=shortfall,
        urgency=classify_urgency(current_ltv, policy, medium_buffer_percent),
        suggested_actions=suggest_actions(outstanding_amount, collateral_value, shortfall, policy.max_ltv_percent),
    )


def sort_by_urgency(needs: Sequence[RebalancingNeed]) -> List[RebalancingNeed]:
    """CRITICAL first; ties keep their input order"""
    return sorted(needs, key=lambda n: n.urgency.rank)


def calculate_optimal_rebalancing(
    holdings: Sequence[CollateralHolding],
    outstanding_amount: Decimal,
) -> ReallocationPlan:
    """
    Spread the outstanding amount across holdings, highest LTV allowance first.

    Each holding can carry up to value × allowance%; allocation stops once the
    loan is fully covered. Expected LTV is measured against total holding value.
    """
    ordered = sorted(holdings, key=lambda h: h.ltv_allowance, reverse=True)

    remaining = as_decimal(outstanding_amount)
    reallocation = []
    for holding in ordered:
        max_loan_on_holding = holding.value * holding.ltv_allowance / HUNDRED
        allocated = min(remaining, max_loan_on_holding)
        utilization = allocated / holding.value * HUNDRED if holding.value > 0 else ZERO

        reallocation.append(
            HoldingAllocation(
                scheme_type=holding.scheme_type,
                value=holding.value,
                allocated_loan=allocated,
                utilization=utilization,
            )
        )

        remaining -= allocated
        if remaining <= 0:
            break

    total_value = sum((h.value for h in holdings), ZERO)
    expected_ltv = as_decimal(outstanding_amount) / total_value * HUNDRED if total_value > 0 else ZERO

    return ReallocationPlan(reallocation=reallocation, expected_ltv=expected_ltv)
