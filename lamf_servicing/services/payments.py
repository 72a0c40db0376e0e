"""Payment allocation against a loan's EMI schedule"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from lamf_servicing.domain.allocation import allocate_payment, reduce_outstanding
from lamf_servicing.domain.exceptions import (
    DomainException,
    InvalidPaymentError,
    LoanNotFoundError,
)
from lamf_servicing.domain.models import ZERO, InstallmentState, LtvCheck, WaterfallOutcome
from lamf_servicing.infrastructure.database.models import EmiInstallment, Loan, Payment
from lamf_servicing.infrastructure.database.repositories import (
    InstallmentRepository,
    LoanRepository,
    PaymentRepository,
)
from lamf_servicing.infrastructure.database.session import unit_of_work
from lamf_servicing.infrastructure.observability.metrics import record_payment
from lamf_servicing.services.risk import RiskEngine
from lamf_servicing.utils.money import as_decimal, to_money

logger = logging.getLogger(__name__)


@dataclass
class AllocationResult:
    loan: Loan
    installments: List[EmiInstallment]
    payment: Payment
    outcome: WaterfallOutcome
    ltv_check: Optional[LtvCheck] = None

    @property
    def unapplied_amount(self) -> Decimal:
        return self.outcome.unapplied_amount


class PaymentAllocator:
    def __init__(self, db: Session, risk_engine: Optional[RiskEngine] = None):
        self.db = db
        self.risk_engine = risk_engine
        self.loans = LoanRepository(db)
        self.installments = InstallmentRepository(db)
        self.payments = PaymentRepository(db)

    def allocate(
        self,
        loan_id: uuid.UUID,
        amount: Decimal,
        payment_date: date,
        payment_mode: str = "CASH",
        transaction_ref: Optional[str] = None,
    ) -> AllocationResult:
        """
        Record a payment and spread it over the schedule, oldest installment first.

        The loan row is locked for the transaction; installment updates, the
        balance reduction and the payment ledger entry commit together.
        Once committed the loan's LTV is rechecked (best effort).

        Raises:
            InvalidPaymentError: amount not positive or finer than a paisa
            LoanNotFoundError: unknown loan
            TransientStoreError: persistence failed, nothing written
        """
        amount = as_decimal(amount)
        if amount <= 0:
            raise InvalidPaymentError(f"Payment amount must be positive, got {amount}")
        if amount != to_money(amount):
            raise InvalidPaymentError(f"Payment amount must be in whole paise, got {amount}")

        with unit_of_work(self.db):
            loan = self.loans.get(loan_id, for_update=True)
            if loan is None:
                raise LoanNotFoundError(f"Loan {loan_id} not found")

            rows = self.installments.list_by_loan(loan.id)
            states = [
                InstallmentState(
                    sequence_no=row.sequence_no,
                    emi_amount=row.emi_amount,
                    paid_amount=row.paid_amount or ZERO,
                    paid_date=row.paid_date,
                )
                for row in rows
            ]
            outcome = allocate_payment(states, amount, payment_date)

            by_sequence = {row.sequence_no: row for row in rows}
            for allocation in outcome.allocations:
                self.installments.update(
                    by_sequence[allocation.sequence_no],
                    paid_amount=allocation.paid_amount,
                    paid_date=allocation.paid_date,
                    status=allocation.status.value,
                )

            balances = reduce_outstanding(loan.outstanding_principal, loan.outstanding_interest, amount)
            self.loans.update(
                loan,
                outstanding_principal=balances.outstanding_principal,
                outstanding_interest=balances.outstanding_interest,
                total_outstanding=max(ZERO, loan.total_outstanding - amount),
            )

            payment = self.payments.create(
                loan_id=loan.id,
                amount=amount,
                payment_date=payment_date,
                payment_mode=payment_mode,
                transaction_ref=transaction_ref,
            )

        record_payment(outcome.unapplied_amount)
        result = AllocationResult(loan=loan, installments=rows, payment=payment, outcome=outcome)

        if self.risk_engine is not None:
            try:
                result.ltv_check = self.risk_engine.recompute_ltv(loan.id)
            except DomainException as e:
                logger.warning(f"LTV recheck after payment failed: {e}", extra={"loan_id": str(loan.id)})

        return result
