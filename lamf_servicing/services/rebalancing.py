"""Rebalancing advisor - flags loans above target LTV and proposes fixes"""

import logging
import time
import uuid
from decimal import Decimal
from typing import List, Mapping, Optional

from sqlalchemy.orm import Session

from lamf_servicing.config import ServicingConfig
from lamf_servicing.domain.exceptions import LoanNotFoundError
from lamf_servicing.domain.models import (
    ZERO,
    BatchFailure,
    CollateralHolding,
    RebalancingNeed,
    RebalancingResult,
    ReallocationPlan,
)
from lamf_servicing.domain.rebalancing import assess_rebalancing, calculate_optimal_rebalancing, sort_by_urgency
from lamf_servicing.domain.risk import total_collateral_value
from lamf_servicing.infrastructure.database.models import Loan, MarginCall
from lamf_servicing.infrastructure.database.repositories import (
    CollateralRepository,
    LoanRepository,
    MarginCallRepository,
)
from lamf_servicing.infrastructure.observability.logging import log_batch_job
from lamf_servicing.infrastructure.observability.metrics import record_batch_failures
from lamf_servicing.services.risk import policy_for

logger = logging.getLogger(__name__)

# Share of a holding's value that may be lent against, by scheme type
DEFAULT_LTV_ALLOWANCES = {
    "EQUITY": Decimal("50"),
    "DEBT": Decimal("80"),
}


class RebalancingAdvisor:
    def __init__(self, db: Session, config: ServicingConfig):
        self.db = db
        self.config = config
        self.loans = LoanRepository(db)
        self.collaterals = CollateralRepository(db)
        self.margin_calls = MarginCallRepository(db)

    def _assess_loan(self, loan: Loan) -> Optional[RebalancingNeed]:
        policy = policy_for(loan)
        collateral_value = total_collateral_value(
            c.current_value for c in self.collaterals.list_pledged_by_loan(loan.id)
        )
        return assess_rebalancing(
            loan_id=loan.id,
            loan_number=loan.loan_number,
            current_ltv=loan.current_ltv if loan.current_ltv is not None else ZERO,
            outstanding_amount=loan.total_outstanding,
            collateral_value=collateral_value,
            policy=policy,
            medium_buffer_percent=self.config.medium_urgency_buffer_percent,
        )

    def assess(self, loan_id: uuid.UUID) -> Optional[RebalancingNeed]:
        """
        Rebalancing need for one loan, judged on its cached LTV.

        Returns None when the loan is within its product's max LTV.

        Raises:
            LoanNotFoundError: unknown loan
            PolicyError: product thresholds missing or inconsistent
        """
        loan = self.loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return self._assess_loan(loan)

    def detect_all(self) -> RebalancingResult:
        """Assess every ACTIVE loan; failures are reported alongside partial results"""
        start_time = time.time()
        active_loans = self.loans.list_active()

        needs: List[RebalancingNeed] = []
        failures: List[BatchFailure] = []
        for loan in active_loans:
            try:
                need = self._assess_loan(loan)
            except Exception as e:
                loan_id = str(loan.id)
                # Reset the session before the next loan
                self.db.rollback()
                logger.warning(f"Rebalancing assessment failed: {e}", extra={"loan_id": loan_id})
                failures.append(BatchFailure(entity_id=loan_id, error=str(e)))
                continue
            if need is not None:
                needs.append(need)

        record_batch_failures("rebalancing", len(failures))
        log_batch_job(
            "rebalancing",
            processed=len(active_loans),
            failed=len(failures),
            duration_ms=(time.time() - start_time) * 1000,
            loans_at_risk=len(needs),
        )

        return RebalancingResult(
            needs_rebalancing=sort_by_urgency(needs),
            total_loans_checked=len(active_loans),
            loans_at_risk=len(needs),
            total_shortfall=sum((n.shortfall for n in needs), ZERO),
            failures=failures,
        )

    def history(self, loan_id: uuid.UUID) -> List[MarginCall]:
        """Margin calls raised against the loan, newest first"""
        if self.loans.get(loan_id) is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return self.margin_calls.list_by_loan(loan_id)

    def optimal_reallocation(
        self,
        loan_id: uuid.UUID,
        ltv_allowances: Optional[Mapping[str, Decimal]] = None,
    ) -> ReallocationPlan:
        """
        Spread the loan's outstanding over its pledged holdings, most lendable first.

        Scheme types missing from ``ltv_allowances`` are treated as equity.
        """
        loan = self.loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")

        allowances = ltv_allowances or DEFAULT_LTV_ALLOWANCES
        holdings = [
            CollateralHolding(
                value=c.current_value,
                scheme_type=c.scheme_type,
                ltv_allowance=allowances.get(c.scheme_type, DEFAULT_LTV_ALLOWANCES["EQUITY"]),
            )
            for c in self.collaterals.list_pledged_by_loan(loan.id)
        ]
        return calculate_optimal_rebalancing(holdings, loan.total_outstanding)
