"""LTV risk rules - core business logic for margin calls"""

from decimal import Decimal
from typing import Iterable, Optional

from lamf_servicing.domain.exceptions import InvalidPolicyError, PolicyMissingError
from lamf_servicing.domain.models import ZERO, LoanPolicy, MarginCallDecision
from lamf_servicing.utils.money import HUNDRED, as_decimal


def build_policy(
    max_ltv_percent: Optional[Decimal],
    margin_call_threshold: Optional[Decimal],
    liquidation_threshold: Optional[Decimal],
) -> LoanPolicy:
    """
    Assemble and check a product's LTV policy.

    Raises:
        PolicyMissingError: any threshold is absent
        InvalidPolicyError: thresholds not strictly increasing
    """
    if max_ltv_percent is None or margin_call_threshold is None or liquidation_threshold is None:
        raise PolicyMissingError("Loan product is missing LTV thresholds")

    policy = LoanPolicy(
        max_ltv_percent=as_decimal(max_ltv_percent),
        margin_call_threshold=as_decimal(margin_call_threshold),
        liquidation_threshold=as_decimal(liquidation_threshold),
    )
    if not policy.max_ltv_percent < policy.margin_call_threshold < policy.liquidation_threshold:
        raise InvalidPolicyError(
            f"Expected max LTV < margin call < liquidation, got "
            f"{policy.max_ltv_percent} / {policy.margin_call_threshold} / {policy.liquidation_threshold}"
        )
    return policy


def total_collateral_value(values: Iterable[Decimal]) -> Decimal:
    return sum((as_decimal(v) for v in values), ZERO)


def calculate_ltv(total_outstanding: Decimal, collateral_value: Decimal) -> Optional[Decimal]:
    """
    LTV = outstanding / collateral value × 100.

    Returns None without collateral: there is nothing to measure against.
    """
    if collateral_value <= 0:
        return None
    return as_decimal(total_outstanding) / as_decimal(collateral_value) * HUNDRED


def margin_call_shortfall(total_outstanding: Decimal, collateral_value: Decimal, threshold: Decimal) -> Decimal:
    """Repayment (or equivalent collateral) that brings LTV back to ``threshold``"""
    max_safe_loan = threshold / HUNDRED * collateral_value
    return max(ZERO, total_outstanding - max_safe_loan)


def evaluate_margin_call(
    ltv: Decimal,
    total_outstanding: Decimal,
    collateral_value: Decimal,
    policy: LoanPolicy,
) -> Optional[MarginCallDecision]:
    """
    Decide whether the current LTV breaches the margin-call threshold.

    The threshold is inclusive: LTV exactly at the threshold is a breach.
    Duplicate suppression (one PENDING call per loan) is the caller's job.
    """
    if ltv < policy.margin_call_threshold:
        return None

    return MarginCallDecision(
        trigger_ltv=policy.margin_call_threshold,
        current_ltv=ltv,
        shortfall_amount=margin_call_shortfall(total_outstanding, collateral_value, policy.margin_call_threshold),
    )
