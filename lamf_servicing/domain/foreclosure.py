"""Foreclosure (early settlement) amount"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from lamf_servicing.domain.exceptions import ValidationError
from lamf_servicing.domain.models import ZERO, ForeclosureQuote
from lamf_servicing.utils.date_utils import months_between, start_of_month
from lamf_servicing.utils.money import HUNDRED, as_decimal, to_money

DAYS_IN_YEAR = Decimal("365")


def penalty_percent_for(
    disbursement_date: date,
    foreclosure_date: date,
    charge_percent: Decimal,
    waiver_months: int,
) -> Decimal:
    """Foreclosure charge, waived once the loan is older than ``waiver_months``"""
    if months_between(disbursement_date, foreclosure_date) > waiver_months:
        return ZERO
    return as_decimal(charge_percent)


def calculate_foreclosure(
    loan_id: uuid.UUID,
    loan_number: str,
    outstanding_principal: Decimal,
    outstanding_interest: Decimal,
    annual_rate_percent: Decimal,
    disbursement_date: date,
    foreclosure_date: date,
    charge_percent: Decimal,
    waiver_months: int,
    tax_rate: Decimal,
    billing_anchor: Optional[date] = None,
) -> ForeclosureQuote:
    """
    Compute the payoff amount for settling a loan on ``foreclosure_date``.

    Components:
    - Accrued interest on outstanding principal, simple daily rate (rate/365),
      from the start of the current billing period (first of the month)
    - Arrears (outstanding interest) as recorded on the loan
    - Foreclosure charge on outstanding principal, plus tax on that charge

    Rounding to paise happens on the returned figures only.
    """
    if foreclosure_date < disbursement_date:
        raise ValidationError(
            f"Foreclosure date {foreclosure_date} precedes disbursement {disbursement_date}"
        )

    principal = as_decimal(outstanding_principal)
    arrears = as_decimal(outstanding_interest)

    anchor = billing_anchor or start_of_month(foreclosure_date)
    days = (foreclosure_date - anchor).days
    daily_rate = as_decimal(annual_rate_percent) / HUNDRED / DAYS_IN_YEAR
    accrued_interest = principal * daily_rate * days

    penalty_percent = penalty_percent_for(disbursement_date, foreclosure_date, charge_percent, waiver_months)
    penalty_amount = principal * penalty_percent / HUNDRED
    tax_on_penalty = penalty_amount * as_decimal(tax_rate)

    total_payable = principal + arrears + accrued_interest + penalty_amount + tax_on_penalty

    return ForeclosureQuote(
        loan_id=loan_id,
        loan_number=loan_number,
        foreclosure_date=foreclosure_date,
        days_since_last_payment=days,
        outstanding_principal=to_money(principal),
        outstanding_interest=to_money(arrears),
        accrued_interest=to_money(accrued_interest),
        penalty_percent=penalty_percent,
        penalty_amount=to_money(penalty_amount),
        tax_on_penalty=to_money(tax_on_penalty),
        total_payable=to_money(total_payable),
    )
