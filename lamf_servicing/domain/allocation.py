"""Payment waterfall - spreads a payment over outstanding installments, oldest first"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List

from lamf_servicing.domain.exceptions import InvalidPaymentError
from lamf_servicing.domain.models import (
    ZERO,
    BalanceUpdate,
    InstallmentAllocation,
    InstallmentState,
    InstallmentStatus,
    WaterfallOutcome,
)
from lamf_servicing.utils.money import as_decimal


def allocate_payment(
    installments: Iterable[InstallmentState],
    amount: Decimal,
    payment_date: date,
) -> WaterfallOutcome:
    """
    Apply a payment to installments in ascending sequence order.

    Rules:
    - PAID installments are passed over; every other installment takes part
    - An installment is fully paid when the remainder covers its outstanding due
    - Otherwise it takes whatever is left and the waterfall stops there
    - Allocation stops as soon as nothing remains, so a zero amount changes nothing

    Returns:
        Allocations for touched installments and the amount left unapplied
        (overpayment beyond the whole schedule)
    """
    amount = as_decimal(amount)
    if amount < 0:
        raise InvalidPaymentError(f"Payment amount cannot be negative, got {amount}")

    remaining = amount
    allocations: List[InstallmentAllocation] = []

    for inst in sorted(installments, key=lambda i: i.sequence_no):
        if remaining <= 0:
            break
        if inst.status == InstallmentStatus.PAID:
            continue

        due = inst.amount_due
        if remaining >= due:
            allocations.append(
                InstallmentAllocation(
                    sequence_no=inst.sequence_no,
                    applied_amount=due,
                    paid_amount=inst.emi_amount,
                    status=InstallmentStatus.PAID,
                    paid_date=payment_date,
                )
            )
            remaining -= due
        else:
            paid = inst.paid_amount + remaining
            allocations.append(
                InstallmentAllocation(
                    sequence_no=inst.sequence_no,
                    applied_amount=remaining,
                    paid_amount=paid,
                    status=InstallmentStatus.derive(paid, inst.emi_amount),
                    paid_date=inst.paid_date,
                )
            )
            remaining = ZERO

    return WaterfallOutcome(allocations=allocations, unapplied_amount=remaining)


def reduce_outstanding(
    outstanding_principal: Decimal,
    outstanding_interest: Decimal,
    amount: Decimal,
) -> BalanceUpdate:
    """
    Reduce loan balances by the full payment, interest arrears first, floored at zero.

    The total falls by exactly ``amount`` until it reaches zero, whatever the
    waterfall did with principal and interest components.
    """
    amount = as_decimal(amount)
    interest_paid = min(outstanding_interest, amount)
    principal_paid = min(outstanding_principal, amount - interest_paid)
    return BalanceUpdate(
        outstanding_principal=outstanding_principal - principal_paid,
        outstanding_interest=outstanding_interest - interest_paid,
    )
