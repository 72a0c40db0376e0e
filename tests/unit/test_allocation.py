"""Unit tests for the payment waterfall"""

import pytest
from datetime import date
from decimal import Decimal
from lamf_servicing.domain.allocation import allocate_payment, reduce_outstanding
from lamf_servicing.domain.exceptions import InvalidPaymentError
from lamf_servicing.domain.models import InstallmentState, InstallmentStatus

EMI = Decimal("23076")
PAY_DATE = date(2024, 3, 20)


def _installments(*paid_amounts: Decimal) -> list[InstallmentState]:
    return [
        InstallmentState(sequence_no=i, emi_amount=EMI, paid_amount=paid)
        for i, paid in enumerate(paid_amounts, start=1)
    ]


def test_payment_fills_oldest_then_partially_next():
    """Test ₹30,000 over two ₹23,076 installments"""
    outcome = allocate_payment(_installments(Decimal("0"), Decimal("0")), Decimal("30000"), PAY_DATE)

    first, second = outcome.allocations
    assert first.sequence_no == 1
    assert first.paid_amount == Decimal("23076")
    assert first.status == InstallmentStatus.PAID
    assert first.paid_date == PAY_DATE

    assert second.sequence_no == 2
    assert second.paid_amount == Decimal("6924")
    assert second.status == InstallmentStatus.PARTIALLY_PAID
    assert second.paid_date is None

    assert outcome.unapplied_amount == 0
    assert outcome.applied_amount == Decimal("30000")


def test_partially_paid_installment_is_completed_first():
    """Test remaining due on a part-paid installment is settled before the next one"""
    outcome = allocate_payment(_installments(Decimal("6924"), Decimal("0")), Decimal("20000"), PAY_DATE)

    first, second = outcome.allocations
    assert first.applied_amount == Decimal("16152")
    assert first.status == InstallmentStatus.PAID
    assert second.applied_amount == Decimal("3848")
    assert second.status == InstallmentStatus.PARTIALLY_PAID


def test_paid_installments_are_skipped():
    outcome = allocate_payment(_installments(EMI, Decimal("0")), Decimal("1000"), PAY_DATE)

    assert len(outcome.allocations) == 1
    assert outcome.allocations[0].sequence_no == 2


def test_unordered_input_is_allocated_by_sequence():
    installments = list(reversed(_installments(Decimal("0"), Decimal("0"), Decimal("0"))))
    outcome = allocate_payment(installments, EMI, PAY_DATE)

    assert [a.sequence_no for a in outcome.allocations] == [1]


def test_zero_payment_changes_nothing():
    """Test re-entry with zero is a no-op"""
    outcome = allocate_payment(_installments(Decimal("0")), Decimal("0"), PAY_DATE)

    assert outcome.allocations == []
    assert outcome.unapplied_amount == 0


def test_overpayment_is_reported_unapplied():
    outcome = allocate_payment(_installments(Decimal("0"), Decimal("0")), Decimal("50000"), PAY_DATE)

    assert all(a.status == InstallmentStatus.PAID for a in outcome.allocations)
    assert outcome.unapplied_amount == Decimal("50000") - 2 * EMI


def test_negative_payment_rejected():
    with pytest.raises(InvalidPaymentError):
        allocate_payment(_installments(Decimal("0")), Decimal("-1"), PAY_DATE)


def test_exact_due_marks_installment_paid():
    outcome = allocate_payment(_installments(Decimal("0"), Decimal("0")), EMI, PAY_DATE)

    assert len(outcome.allocations) == 1
    assert outcome.allocations[0].status == InstallmentStatus.PAID
    assert outcome.unapplied_amount == 0


@pytest.mark.parametrize(
    "paid, expected",
    [
        (Decimal("0"), InstallmentStatus.PENDING),
        (Decimal("0.01"), InstallmentStatus.PARTIALLY_PAID),
        (EMI, InstallmentStatus.PAID),
    ],
)
def test_status_derived_from_paid_amount(paid, expected):
    assert InstallmentStatus.derive(paid, EMI) == expected


def test_reduce_outstanding_clears_arrears_first():
    balances = reduce_outstanding(Decimal("100000"), Decimal("2000"), Decimal("5000"))

    assert balances.outstanding_interest == 0
    assert balances.outstanding_principal == Decimal("97000")
    assert balances.total_outstanding == Decimal("97000")


def test_reduce_outstanding_floors_at_zero():
    balances = reduce_outstanding(Decimal("1000"), Decimal("0"), Decimal("5000"))

    assert balances.outstanding_principal == 0
    assert balances.total_outstanding == 0
