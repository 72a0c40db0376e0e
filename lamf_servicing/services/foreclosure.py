"""Foreclosure calculator - read-only payoff quote for a loan"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from lamf_servicing.config import ServicingConfig
from lamf_servicing.domain.exceptions import InvalidLoanStateError, LoanNotFoundError
from lamf_servicing.domain.foreclosure import calculate_foreclosure
from lamf_servicing.domain.models import ForeclosureQuote, LoanStatus
from lamf_servicing.infrastructure.database.repositories import LoanRepository


class ForeclosureCalculator:
    def __init__(self, db: Session, config: ServicingConfig):
        self.db = db
        self.config = config
        self.loans = LoanRepository(db)

    def calculate_foreclosure(self, loan_id: uuid.UUID, as_of: Optional[date] = None) -> ForeclosureQuote:
        """
        Quote the amount needed to close the loan on ``as_of`` (default today).

        Never mutates the loan; booking the foreclosure is a separate step.

        Raises:
            LoanNotFoundError: unknown loan
            InvalidLoanStateError: loan already closed
            ValidationError: as_of before disbursement
        """
        as_of = as_of or date.today()

        loan = self.loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        if loan.status == LoanStatus.CLOSED.value:
            raise InvalidLoanStateError(f"Loan {loan.loan_number} is already closed")

        charge_percent = self.config.foreclosure_penalty_percent
        if loan.product is not None and loan.product.foreclosure_charge_percent is not None:
            charge_percent = loan.product.foreclosure_charge_percent

        return calculate_foreclosure(
            loan_id=loan.id,
            loan_number=loan.loan_number,
            outstanding_principal=loan.outstanding_principal,
            outstanding_interest=loan.outstanding_interest,
            annual_rate_percent=loan.interest_rate,
            disbursement_date=loan.disbursement_date,
            foreclosure_date=as_of,
            charge_percent=charge_percent,
            waiver_months=self.config.foreclosure_waiver_months,
            tax_rate=self.config.penalty_tax_rate,
        )
