"""Risk engine - LTV recomputation, margin-call detection and the daily sweep"""

import logging
import time
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from lamf_servicing.config import ServicingConfig
from lamf_servicing.domain.exceptions import (
    InvalidMarginCallTransitionError,
    LoanNotFoundError,
    MarginCallNotFoundError,
    PolicyError,
    PolicyMissingError,
)
from lamf_servicing.domain.models import (
    BatchFailure,
    LoanPolicy,
    LtvCheck,
    MarginCallDecision,
    MarginCallStatus,
    MarginCallSweepResult,
)
from lamf_servicing.domain.risk import build_policy, calculate_ltv, evaluate_margin_call, total_collateral_value
from lamf_servicing.infrastructure.clients.notifications import NotificationSink
from lamf_servicing.infrastructure.database.models import Loan, MarginCall
from lamf_servicing.infrastructure.database.repositories import (
    CollateralRepository,
    LoanRepository,
    MarginCallRepository,
)
from lamf_servicing.infrastructure.database.session import unit_of_work
from lamf_servicing.infrastructure.observability.logging import log_batch_job
from lamf_servicing.infrastructure.observability.metrics import (
    margin_call_counter,
    record_batch_failures,
    record_ltv,
)
from lamf_servicing.utils.date_utils import days_from_now, utcnow
from lamf_servicing.utils.money import as_decimal, to_money

logger = logging.getLogger(__name__)

LTV_PRECISION = Decimal("0.0001")
MARGIN_CALL_EVENT = "MARGIN_CALL"


def policy_for(loan: Loan) -> LoanPolicy:
    """LTV policy of the loan's product"""
    product = loan.product
    if product is None:
        raise PolicyMissingError(f"Loan {loan.loan_number} has no product")
    return build_policy(product.max_ltv_percent, product.margin_call_threshold, product.liquidation_threshold)


class RiskEngine:
    def __init__(self, db: Session, config: ServicingConfig, notifier: Optional[NotificationSink] = None):
        self.db = db
        self.config = config
        self.notifier = notifier
        self.loans = LoanRepository(db)
        self.collaterals = CollateralRepository(db)
        self.margin_calls = MarginCallRepository(db)

    def recompute_ltv(self, loan_id: uuid.UUID) -> LtvCheck:
        """
        Refresh a loan's LTV and raise a margin call on breach.

        Steps:
        1. Sum current value of PLEDGED collateral; no collateral → nothing to do
        2. LTV = total outstanding / collateral value × 100, cached on the loan
        3. LTV ≥ margin-call threshold and no PENDING call → new call + notification

        Re-running with unchanged inputs yields the same LTV and no second call.

        Raises:
            LoanNotFoundError: unknown loan
            PolicyError: product thresholds missing or inconsistent
            TransientStoreError: persistence failed, nothing written
        """
        with unit_of_work(self.db):
            return self._recompute(loan_id)

    def _recompute(self, loan_id: uuid.UUID) -> LtvCheck:
        loan = self.loans.get(loan_id, for_update=True)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")

        collateral_value = total_collateral_value(
            c.current_value for c in self.collaterals.list_pledged_by_loan(loan.id)
        )
        check = LtvCheck(loan_id=loan.id, ltv=None, collateral_value=collateral_value)

        ltv = calculate_ltv(loan.total_outstanding, collateral_value)
        if ltv is None:
            return check

        policy = policy_for(loan)
        self.loans.update(loan, current_ltv=ltv.quantize(LTV_PRECISION))
        record_ltv(ltv)
        check = replace(check, ltv=ltv)

        decision = evaluate_margin_call(ltv, loan.total_outstanding, collateral_value, policy)
        if decision is None:
            return check

        existing = self.margin_calls.find_pending(loan.id)
        if existing is not None:
            return replace(check, margin_call_id=existing.id)

        decision = replace(
            decision,
            current_ltv=decision.current_ltv.quantize(LTV_PRECISION),
            shortfall_amount=to_money(decision.shortfall_amount),
        )
        margin_call = self.margin_calls.create(
            loan.id,
            decision,
            due_date=days_from_now(self.config.margin_call_grace_days),
        )
        margin_call_counter.inc()
        self._notify(loan, decision)

        logger.warning(
            "Margin call raised",
            extra={
                "loan_id": str(loan.id),
                "ltv": str(decision.current_ltv),
                "shortfall": str(decision.shortfall_amount),
            },
        )
        return replace(check, margin_call_raised=True, margin_call_id=margin_call.id)

    def _notify(self, loan: Loan, decision: MarginCallDecision) -> None:
        if self.notifier is None:
            return
        message = (
            f"Loan {loan.loan_number} LTV has breached {decision.trigger_ltv.normalize():f}%. "
            f"Please add collateral."
        )
        try:
            self.notifier.notify(loan.id, MARGIN_CALL_EVENT, message)
        except Exception:
            logger.exception("Margin call notification failed", extra={"loan_id": str(loan.id)})

    def sweep(self) -> MarginCallSweepResult:
        """
        Recheck every ACTIVE loan, one transaction per loan.

        Loans with unusable policy are skipped; any other per-loan error is
        recorded and the sweep moves on.
        """
        start_time = time.time()
        result = MarginCallSweepResult()

        loan_ids = [loan.id for loan in self.loans.list_active()]
        for loan_id in loan_ids:
            result.loans_checked += 1
            try:
                check = self.recompute_ltv(loan_id)
            except PolicyError as e:
                logger.warning(f"Skipping loan without usable policy: {e}", extra={"loan_id": str(loan_id)})
                result.skipped.append(BatchFailure(entity_id=str(loan_id), error=str(e)))
                continue
            except Exception as e:
                logger.exception("Margin call check failed", extra={"loan_id": str(loan_id)})
                result.failures.append(BatchFailure(entity_id=str(loan_id), error=str(e)))
                continue

            if check.margin_call_raised:
                result.margin_calls_generated += 1

        record_batch_failures("check_margin_calls", len(result.failures))
        log_batch_job(
            "check_margin_calls",
            processed=result.loans_checked,
            failed=len(result.failures),
            duration_ms=(time.time() - start_time) * 1000,
            margin_calls_generated=result.margin_calls_generated,
            skipped=len(result.skipped),
        )
        return result

    def resolve_margin_call(self, margin_call_id: uuid.UUID, top_up_amount: Optional[Decimal] = None) -> MarginCall:
        """PENDING → RESOLVED, recording any collateral top-up that cured it"""
        return self._transition(
            margin_call_id,
            MarginCallStatus.RESOLVED,
            top_up_amount=to_money(as_decimal(top_up_amount)) if top_up_amount is not None else None,
        )

    def escalate_margin_call(self, margin_call_id: uuid.UUID) -> MarginCall:
        """PENDING → ESCALATED, typically once the grace window has lapsed"""
        return self._transition(margin_call_id, MarginCallStatus.ESCALATED)

    def _transition(self, margin_call_id: uuid.UUID, target: MarginCallStatus, **fields) -> MarginCall:
        with unit_of_work(self.db):
            margin_call = self.margin_calls.get(margin_call_id)
            if margin_call is None:
                raise MarginCallNotFoundError(f"Margin call {margin_call_id} not found")
            if margin_call.status != MarginCallStatus.PENDING.value:
                raise InvalidMarginCallTransitionError(
                    f"Margin call {margin_call_id} is {margin_call.status}, cannot move to {target.value}"
                )

            if target == MarginCallStatus.RESOLVED:
                fields["resolved_at"] = utcnow()
            self.margin_calls.update(margin_call, status=target.value, **fields)

        return margin_call
