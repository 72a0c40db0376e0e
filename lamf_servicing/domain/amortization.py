"""EMI calculation and amortization schedule generation"""

from datetime import date
from decimal import Decimal, ROUND_DOWN, ROUND_UP
from typing import List

from lamf_servicing.domain.exceptions import InvalidLoanTermsError
from lamf_servicing.domain.models import ScheduledInstallment
from lamf_servicing.utils.date_utils import add_months
from lamf_servicing.utils.money import HUNDRED, as_decimal, to_money


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    return as_decimal(annual_rate_percent) / 12 / HUNDRED


def _validate_terms(principal: Decimal, annual_rate_percent: Decimal, tenure_months: int) -> None:
    if tenure_months <= 0:
        raise InvalidLoanTermsError(f"Tenure must be at least one month, got {tenure_months}")
    if annual_rate_percent < 0:
        raise InvalidLoanTermsError(f"Interest rate cannot be negative, got {annual_rate_percent}")
    if principal <= 0:
        raise InvalidLoanTermsError(f"Principal must be positive, got {principal}")


def _annuity(principal: Decimal, r: Decimal, tenure_months: int) -> Decimal:
    """Unrounded EMI; P / n at a zero rate"""
    if r == 0:
        return principal / tenure_months
    growth = (1 + r) ** tenure_months
    return principal * r * growth / (growth - 1)


def calculate_emi(principal: Decimal, annual_rate_percent: Decimal, tenure_months: int) -> Decimal:
    """
    Equated monthly installment on a reducing balance, rounded up to paise.

    EMI = P·r·(1+r)^n / ((1+r)^n − 1) with r the monthly rate; P / n when r = 0.
    Rounding up keeps the rupee total of the schedule at or above the
    exact annuity, so no installment carries negative interest.

    Raises:
        InvalidLoanTermsError: non-positive tenure or principal, negative rate
    """
    principal = as_decimal(principal)
    annual_rate_percent = as_decimal(annual_rate_percent)
    _validate_terms(principal, annual_rate_percent, tenure_months)

    return to_money(_annuity(principal, monthly_rate(annual_rate_percent), tenure_months), rounding=ROUND_UP)


def generate_schedule(
    principal: Decimal,
    annual_rate_percent: Decimal,
    tenure_months: int,
    start_date: date,
) -> List[ScheduledInstallment]:
    """
    Generate the monthly installment schedule for a reducing-balance loan.

    Requirements:
    - One installment per month, installment i due ``i`` months after start_date
    - Identical EMI on every installment
    - Interest each period = remaining principal × monthly rate, taken on the
      unrounded annuity balance and truncated to paise, so rounding never
      compounds across periods
    - Last installment clears the exact remaining principal; its interest
      component absorbs the paise drift so principal components sum to principal
      and stays at or above the exact last-period interest

    Args:
        principal: Amount disbursed
        annual_rate_percent: Nominal yearly rate, e.g. 10.5
        tenure_months: Number of installments
        start_date: Disbursement date; the last due date is the maturity date

    Returns:
        Installments ordered by sequence number

    Example:
        ₹500,000 at 10.5% over 24 months → 24 × ≈₹23,188
    """
    principal = as_decimal(principal)
    annual_rate_percent = as_decimal(annual_rate_percent)
    emi = calculate_emi(principal, annual_rate_percent, tenure_months)
    r = monthly_rate(annual_rate_percent)
    exact_emi = _annuity(principal, r, tenure_months)

    remaining = principal
    exact_balance = principal
    installments = []
    for i in range(1, tenure_months + 1):
        if i == tenure_months:
            principal_component = remaining
            interest_component = emi - remaining
        else:
            exact_interest = exact_balance * r
            exact_balance -= exact_emi - exact_interest
            interest_component = to_money(exact_interest, rounding=ROUND_DOWN)
            principal_component = emi - interest_component

        remaining -= principal_component
        installments.append(
            ScheduledInstallment(
                sequence_no=i,
                due_date=add_months(start_date, i),
                emi_amount=emi,
                principal_component=principal_component,
                interest_component=interest_component,
            )
        )

    return installments


def maturity_date(schedule: List[ScheduledInstallment]) -> date:
    """Due date of the final installment"""
    return schedule[-1].due_date
