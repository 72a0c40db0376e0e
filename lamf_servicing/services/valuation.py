"""Valuation monitor - applies NAV updates to collateral positions"""

import logging
import time
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from lamf_servicing.domain.exceptions import CollateralNotFoundError, DomainException
from lamf_servicing.domain.models import BatchFailure, PledgeStatus, ValuationBatchResult
from lamf_servicing.domain.valuation import collateral_value
from lamf_servicing.infrastructure.database.models import Collateral
from lamf_servicing.infrastructure.database.repositories import CollateralRepository
from lamf_servicing.infrastructure.database.session import unit_of_work
from lamf_servicing.infrastructure.observability.logging import log_batch_job
from lamf_servicing.infrastructure.observability.metrics import record_batch_failures
from lamf_servicing.services.price_feeds import PriceFeed
from lamf_servicing.services.risk import RiskEngine
from lamf_servicing.utils.date_utils import utcnow
from lamf_servicing.utils.money import as_decimal

logger = logging.getLogger(__name__)


class ValuationMonitor:
    def __init__(self, db: Session, risk_engine: Optional[RiskEngine] = None):
        self.db = db
        self.risk_engine = risk_engine
        self.collaterals = CollateralRepository(db)

    def _apply_nav(self, collateral: Collateral, nav: Decimal) -> None:
        # value is derived here and nowhere else
        value = collateral_value(collateral.units, nav)
        self.collaterals.update(
            collateral,
            current_nav=nav,
            current_value=value,
            last_valuation_at=utcnow(),
        )

    def revalue(self, collateral_id: uuid.UUID, new_nav: Decimal) -> Collateral:
        """
        Set a position's NAV and recompute its value.

        Pledged positions attached to a loan trigger an LTV recheck once the
        new value is committed; other positions are simply revalued.

        Raises:
            CollateralNotFoundError: unknown position
            ValidationError: NAV not positive
        """
        new_nav = as_decimal(new_nav)

        with unit_of_work(self.db):
            collateral = self.collaterals.get(collateral_id)
            if collateral is None:
                raise CollateralNotFoundError(f"Collateral {collateral_id} not found")
            self._apply_nav(collateral, new_nav)

        if (
            self.risk_engine is not None
            and collateral.loan_id is not None
            and collateral.pledge_status == PledgeStatus.PLEDGED.value
        ):
            try:
                self.risk_engine.recompute_ltv(collateral.loan_id)
            except DomainException as e:
                logger.warning(
                    f"LTV recheck after revaluation failed: {e}",
                    extra={"collateral_id": str(collateral.id), "loan_id": str(collateral.loan_id)},
                )

        return collateral

    def revalue_all(self, price_feed: PriceFeed) -> ValuationBatchResult:
        """
        Reprice every PLEDGED position from the feed, one transaction each.

        A position that fails (no price, bad NAV, store error) is recorded and
        the batch carries on with the rest.
        """
        start_time = time.time()
        result = ValuationBatchResult()

        targets = [(c.id, c.loan_id) for c in self.collaterals.list_pledged()]
        for collateral_id, loan_id in targets:
            try:
                with unit_of_work(self.db):
                    collateral = self.collaterals.get(collateral_id)
                    if collateral is None:
                        raise CollateralNotFoundError(f"Collateral {collateral_id} not found")
                    self._apply_nav(collateral, price_feed.price_for(collateral))
            except Exception as e:
                logger.exception("NAV update failed", extra={"collateral_id": str(collateral_id)})
                result.failures.append(BatchFailure(entity_id=str(collateral_id), error=str(e)))
                continue

            result.updated += 1
            if loan_id is not None and loan_id not in result.affected_loan_ids:
                result.affected_loan_ids.append(loan_id)

        record_batch_failures("update_nav", len(result.failures))
        log_batch_job(
            "update_nav",
            processed=len(targets),
            failed=len(result.failures),
            duration_ms=(time.time() - start_time) * 1000,
            updated=result.updated,
        )
        return result
