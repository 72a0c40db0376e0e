"""Unit tests for rebalancing urgency and suggestions"""

import uuid
import pytest
from decimal import Decimal
from lamf_servicing.domain.models import CollateralHolding, RebalancingActionType, Urgency
from lamf_servicing.domain.rebalancing import (
    assess_rebalancing,
    calculate_optimal_rebalancing,
    classify_urgency,
    sort_by_urgency,
)
from lamf_servicing.domain.risk import build_policy

BUFFER = Decimal("5")


@pytest.fixture
def policy():
    return build_policy(Decimal("50"), Decimal("60"), Decimal("70"))


def _assess(policy, ltv: Decimal, outstanding: Decimal, collateral: Decimal):
    return assess_rebalancing(
        loan_id=uuid.uuid4(),
        loan_number="LAMF-0001",
        current_ltv=ltv,
        outstanding_amount=outstanding,
        collateral_value=collateral,
        policy=policy,
        medium_buffer_percent=BUFFER,
    )


@pytest.mark.parametrize(
    "ltv, expected",
    [
        (Decimal("75"), Urgency.CRITICAL),
        (Decimal("70"), Urgency.CRITICAL),
        (Decimal("65"), Urgency.HIGH),
        (Decimal("60"), Urgency.HIGH),
        (Decimal("57"), Urgency.MEDIUM),
        (Decimal("55"), Urgency.MEDIUM),
        (Decimal("52"), Urgency.LOW),
    ],
)
def test_urgency_bands(policy, ltv, expected):
    """Test first matching band wins"""
    assert classify_urgency(ltv, policy, BUFFER) == expected


def test_within_policy_needs_nothing(policy):
    """Test LTV equal to max LTV is not a rebalancing need"""
    assert _assess(policy, Decimal("50"), Decimal("300000"), Decimal("600000")) is None


def test_need_carries_shortfall_and_actions(policy):
    """Test ₹330,000 against ₹600,000 of collateral at 50% max LTV"""
    need = _assess(policy, Decimal("55"), Decimal("330000"), Decimal("600000"))

    assert need.urgency == Urgency.MEDIUM
    assert need.target_ltv == Decimal("50")
    # 330000 / 0.5 − 600000
    assert need.shortfall == Decimal("60000")

    types = [action.type for action in need.suggested_actions]
    assert types == [RebalancingActionType.TOP_UP, RebalancingActionType.PARTIAL_REPAY, RebalancingActionType.SWITCH]

    top_up, repay, switch = need.suggested_actions
    assert top_up.amount == Decimal("60000")
    assert top_up.description == "Add additional collateral worth ₹60,000"
    assert top_up.impact == "Reduces LTV to target 50%"
    # 330000 − 600000 × 0.5
    assert repay.amount == Decimal("30000")
    assert repay.description == "Partial prepayment of ₹30,000"
    assert switch.amount == 0


def test_descriptions_use_indian_grouping(policy):
    need = _assess(policy, Decimal("62.5"), Decimal("2500000"), Decimal("4000000"))

    assert need.suggested_actions[0].description == "Add additional collateral worth ₹10,00,000"


def test_sort_by_urgency_is_stable(policy):
    low_a = _assess(policy, Decimal("51"), Decimal("51000"), Decimal("100000"))
    critical = _assess(policy, Decimal("80"), Decimal("80000"), Decimal("100000"))
    low_b = _assess(policy, Decimal("52"), Decimal("52000"), Decimal("100000"))
    high = _assess(policy, Decimal("61"), Decimal("61000"), Decimal("100000"))

    ordered = sort_by_urgency([low_a, critical, low_b, high])

    assert ordered == [critical, high, low_a, low_b]


def test_optimal_rebalancing_prefers_higher_allowance():
    """Test debt holding (80%) is loaded before equity (50%)"""
    holdings = [
        CollateralHolding(value=Decimal("400000"), scheme_type="EQUITY", ltv_allowance=Decimal("50")),
        CollateralHolding(value=Decimal("200000"), scheme_type="DEBT", ltv_allowance=Decimal("80")),
    ]

    plan = calculate_optimal_rebalancing(holdings, Decimal("300000"))

    debt, equity = plan.reallocation
    assert debt.scheme_type == "DEBT"
    assert debt.allocated_loan == Decimal("160000")
    assert debt.utilization == Decimal("80")
    assert equity.allocated_loan == Decimal("140000")
    assert equity.utilization == Decimal("35")
    assert plan.expected_ltv == Decimal("50")


def test_optimal_rebalancing_stops_once_covered():
    holdings = [
        CollateralHolding(value=Decimal("500000"), scheme_type="DEBT", ltv_allowance=Decimal("80")),
        CollateralHolding(value=Decimal("500000"), scheme_type="EQUITY", ltv_allowance=Decimal("50")),
    ]

    plan = calculate_optimal_rebalancing(holdings, Decimal("100000"))

    assert len(plan.reallocation) == 1
    assert plan.reallocation[0].allocated_loan == Decimal("100000")
