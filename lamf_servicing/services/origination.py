"""Loan origination - creates a loan and its full EMI schedule in one transaction"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from lamf_servicing.domain.amortization import generate_schedule, maturity_date
from lamf_servicing.domain.exceptions import LoanNotFoundError, NotFoundError
from lamf_servicing.domain.models import ZERO, LoanStatus, PledgeStatus
from lamf_servicing.domain.valuation import collateral_value
from lamf_servicing.infrastructure.database.models import Collateral, Loan
from lamf_servicing.infrastructure.database.repositories import (
    CollateralRepository,
    InstallmentRepository,
    LoanRepository,
    ProductRepository,
)
from lamf_servicing.infrastructure.database.session import unit_of_work
from lamf_servicing.utils.date_utils import utcnow
from lamf_servicing.utils.money import as_decimal

logger = logging.getLogger(__name__)


class LoanOriginator:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.loans = LoanRepository(db)
        self.installments = InstallmentRepository(db)
        self.collaterals = CollateralRepository(db)

    def originate(
        self,
        loan_number: str,
        product_id: uuid.UUID,
        principal: Decimal,
        tenure_months: int,
        disbursement_date: date,
        annual_rate_percent: Optional[Decimal] = None,
    ) -> Loan:
        """
        Book a disbursed loan with its schedule.

        The rate defaults to the product's rate. Loan, schedule rows and
        maturity date are written together or not at all.

        Raises:
            InvalidLoanTermsError: bad principal / rate / tenure
            NotFoundError: unknown product
        """
        principal = as_decimal(principal)

        with unit_of_work(self.db):
            product = self.products.get(product_id)
            if product is None:
                raise NotFoundError(f"Loan product {product_id} not found")

            rate = as_decimal(annual_rate_percent) if annual_rate_percent is not None else product.interest_rate_percent
            schedule = generate_schedule(principal, rate, tenure_months, disbursement_date)

            loan = self.loans.create(
                loan_number=loan_number,
                product_id=product.id,
                principal_amount=principal,
                interest_rate=rate,
                tenure_months=tenure_months,
                emi_amount=schedule[0].emi_amount,
                outstanding_principal=principal,
                outstanding_interest=ZERO,
                total_outstanding=principal,
                disbursement_date=disbursement_date,
                maturity_date=maturity_date(schedule),
                status=LoanStatus.ACTIVE.value,
            )
            self.installments.create_many(loan.id, schedule)

        logger.info(
            "Loan originated",
            extra={"loan_id": str(loan.id), "loan_number": loan_number, "emi": str(schedule[0].emi_amount)},
        )
        return loan

    def pledge_collateral(
        self,
        loan_id: uuid.UUID,
        fund_name: str,
        units: Decimal,
        nav: Decimal,
        scheme_code: Optional[str] = None,
        scheme_type: str = "EQUITY",
    ) -> Collateral:
        """Record a mutual-fund position lien-marked against a loan"""
        units = as_decimal(units)
        nav = as_decimal(nav)

        with unit_of_work(self.db):
            if self.loans.get(loan_id) is None:
                raise LoanNotFoundError(f"Loan {loan_id} not found")

            collateral = self.collaterals.create(
                loan_id=loan_id,
                fund_name=fund_name,
                scheme_code=scheme_code,
                scheme_type=scheme_type,
                units=units,
                purchase_nav=nav,
                current_nav=nav,
                current_value=collateral_value(units, nav),
                pledge_status=PledgeStatus.PLEDGED.value,
                last_valuation_at=utcnow(),
            )

        return collateral
