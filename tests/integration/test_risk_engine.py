"""Integration tests for LTV recomputation, margin calls and the sweep"""

import uuid
import pytest
from decimal import Decimal
from lamf_servicing.domain.exceptions import (
    InvalidMarginCallTransitionError,
    InvalidPolicyError,
    LoanNotFoundError,
    MarginCallNotFoundError,
    PolicyMissingError,
)
from lamf_servicing.infrastructure.clients.notifications import OutboxNotificationSink
from lamf_servicing.infrastructure.database.models import Loan, MarginCall, OutboundNotification
from lamf_servicing.infrastructure.database.repositories import ProductRepository
from lamf_servicing.services.risk import RiskEngine


class RecordingSink:
    def __init__(self):
        self.sent = []

    def notify(self, loan_id, kind, message):
        self.sent.append((loan_id, kind, message))


class BrokenSink:
    def notify(self, loan_id, kind, message):
        raise RuntimeError("notification service down")


@pytest.fixture
def breached_loan(make_loan, pledge):
    """₹480,000 outstanding against ₹600,000 of collateral: LTV exactly 80%"""
    loan = make_loan(principal=Decimal("480000"))
    pledge(loan, units=Decimal("6000"), nav=Decimal("100"))
    return loan


def test_ltv_at_threshold_raises_margin_call(db, config, breached_loan):
    """Test inclusive threshold: LTV = 80% raises a margin call"""
    sink = RecordingSink()

    check = RiskEngine(db, config, notifier=sink).recompute_ltv(breached_loan.id)

    assert check.ltv == Decimal("80")
    assert check.collateral_value == Decimal("600000")
    assert check.margin_call_raised is True

    margin_call = db.get(MarginCall, check.margin_call_id)
    assert margin_call.status == "PENDING"
    assert margin_call.trigger_ltv == Decimal("80")
    assert margin_call.current_ltv == Decimal("80")
    assert margin_call.shortfall_amount == 0

    assert len(sink.sent) == 1
    loan_id, kind, message = sink.sent[0]
    assert loan_id == breached_loan.id
    assert kind == "MARGIN_CALL"
    assert "breached 80%" in message


def test_recompute_is_idempotent(db, config, breached_loan):
    """Test second run with unchanged inputs creates no second margin call"""
    engine = RiskEngine(db, config)

    first = engine.recompute_ltv(breached_loan.id)
    second = engine.recompute_ltv(breached_loan.id)

    assert first.ltv == second.ltv
    assert second.margin_call_raised is False
    assert second.margin_call_id == first.margin_call_id
    assert db.query(MarginCall).filter(MarginCall.loan_id == breached_loan.id).count() == 1


def test_ltv_is_cached_on_loan(db, config, make_loan, pledge):
    loan = make_loan(principal=Decimal("300000"))
    pledge(loan, units=Decimal("6000"), nav=Decimal("100"))

    check = RiskEngine(db, config).recompute_ltv(loan.id)

    assert check.ltv == Decimal("50")
    assert check.margin_call_raised is False
    db.expire_all()
    assert db.get(Loan, loan.id).current_ltv == Decimal("50")


def test_loan_without_collateral_is_skipped(db, config, make_loan):
    loan = make_loan()

    check = RiskEngine(db, config).recompute_ltv(loan.id)

    assert check.ltv is None
    assert check.margin_call_raised is False
    db.expire_all()
    assert db.get(Loan, loan.id).current_ltv is None


def test_unpledged_collateral_is_ignored(db, config, make_loan, pledge):
    loan = make_loan(principal=Decimal("300000"))
    pledged = pledge(loan, units=Decimal("6000"), nav=Decimal("100"))
    released = pledge(loan, units=Decimal("6000"), nav=Decimal("100"))
    released.pledge_status = "RELEASED"
    db.commit()

    check = RiskEngine(db, config).recompute_ltv(loan.id)

    assert check.collateral_value == pledged.current_value
    assert check.ltv == Decimal("50")


def test_shortfall_and_due_date(db, config, make_loan, pledge):
    loan = make_loan(principal=Decimal("540000"))
    pledge(loan, units=Decimal("6000"), nav=Decimal("100"))

    check = RiskEngine(db, config).recompute_ltv(loan.id)

    margin_call = db.get(MarginCall, check.margin_call_id)
    # 540000 − 0.8 × 600000
    assert margin_call.shortfall_amount == Decimal("60000")
    assert margin_call.due_date is not None


def test_collapsed_collateral_still_raises_margin_call(db, config, make_loan, pledge):
    """Test ₹500,000 against ₹0.60 of collateral: LTV in the tens of millions"""
    loan = make_loan(principal=Decimal("500000"))
    pledge(loan, units=Decimal("1"), nav=Decimal("0.60"))

    check = RiskEngine(db, config).recompute_ltv(loan.id)

    assert check.margin_call_raised is True
    db.expire_all()
    assert db.get(Loan, loan.id).current_ltv == Decimal("83333333.3333")
    assert db.get(MarginCall, check.margin_call_id).current_ltv == Decimal("83333333.3333")


@pytest.mark.parametrize(
    "column",
    [Loan.__table__.c.current_ltv, MarginCall.__table__.c.current_ltv, MarginCall.__table__.c.trigger_ltv],
)
def test_ltv_columns_hold_extreme_ratios(column):
    """Test LTV columns fit ratios far above one million percent"""
    assert column.type.precision - column.type.scale >= 12


def test_margin_call_written_to_outbox(db, config, breached_loan):
    """Test outbox row commits together with the margin call"""
    engine = RiskEngine(db, config, notifier=OutboxNotificationSink(db, target_url="http://hooks.test/alerts"))

    engine.recompute_ltv(breached_loan.id)

    rows = db.query(OutboundNotification).all()
    assert len(rows) == 1
    assert rows[0].status == "pending"
    assert rows[0].target_url == "http://hooks.test/alerts"
    assert rows[0].payload["event"] == "MARGIN_CALL"
    assert rows[0].payload["loan_id"] == str(breached_loan.id)


def test_failing_notifier_does_not_block_margin_call(db, config, breached_loan):
    check = RiskEngine(db, config, notifier=BrokenSink()).recompute_ltv(breached_loan.id)

    assert check.margin_call_raised is True
    assert db.query(MarginCall).count() == 1


def test_unknown_loan(db, config, product):
    with pytest.raises(LoanNotFoundError):
        RiskEngine(db, config).recompute_ltv(uuid.uuid4())


def test_missing_policy_writes_nothing(db, config, make_loan, pledge):
    """Test product without thresholds: policy error, LTV not persisted"""
    bare = ProductRepository(db).create(name="Legacy", interest_rate_percent=Decimal("11"))
    db.commit()
    loan = make_loan(product_id=bare.id)
    pledge(loan)

    with pytest.raises(PolicyMissingError):
        RiskEngine(db, config).recompute_ltv(loan.id)

    db.expire_all()
    assert db.get(Loan, loan.id).current_ltv is None


def test_unordered_policy_rejected(db, config, make_loan, pledge):
    odd = ProductRepository(db).create(
        name="Misconfigured",
        interest_rate_percent=Decimal("11"),
        max_ltv_percent=Decimal("85"),
        margin_call_threshold=Decimal("80"),
        liquidation_threshold=Decimal("90"),
    )
    db.commit()
    loan = make_loan(product_id=odd.id)
    pledge(loan)

    with pytest.raises(InvalidPolicyError):
        RiskEngine(db, config).recompute_ltv(loan.id)


def test_sweep_checks_every_active_loan(db, config, make_loan, pledge):
    """Test sweep: one breach, one healthy, one without policy, one closed"""
    breached = make_loan(principal=Decimal("500000"))
    pledge(breached, units=Decimal("6000"), nav=Decimal("100"))

    healthy = make_loan(principal=Decimal("100000"))
    pledge(healthy, units=Decimal("6000"), nav=Decimal("100"))

    bare = ProductRepository(db).create(name="Legacy", interest_rate_percent=Decimal("11"))
    db.commit()
    unpolicied = make_loan(product_id=bare.id)
    pledge(unpolicied)

    closed = make_loan()
    closed.status = "CLOSED"
    db.commit()

    result = RiskEngine(db, config).sweep()

    assert result.loans_checked == 3
    assert result.margin_calls_generated == 1
    assert [s.entity_id for s in result.skipped] == [str(unpolicied.id)]
    assert result.failures == []

    again = RiskEngine(db, config).sweep()
    assert again.margin_calls_generated == 0


def test_resolve_margin_call(db, config, breached_loan):
    engine = RiskEngine(db, config)
    check = engine.recompute_ltv(breached_loan.id)

    margin_call = engine.resolve_margin_call(check.margin_call_id, top_up_amount=Decimal("25000"))

    assert margin_call.status == "RESOLVED"
    assert margin_call.resolved_at is not None
    assert margin_call.top_up_amount == Decimal("25000")


def test_escalate_margin_call(db, config, breached_loan):
    engine = RiskEngine(db, config)
    check = engine.recompute_ltv(breached_loan.id)

    margin_call = engine.escalate_margin_call(check.margin_call_id)

    assert margin_call.status == "ESCALATED"
    assert margin_call.resolved_at is None


def test_only_pending_calls_transition(db, config, breached_loan):
    engine = RiskEngine(db, config)
    check = engine.recompute_ltv(breached_loan.id)
    engine.resolve_margin_call(check.margin_call_id)

    with pytest.raises(InvalidMarginCallTransitionError):
        engine.escalate_margin_call(check.margin_call_id)


def test_new_call_after_resolution(db, config, breached_loan):
    """Test a resolved call no longer blocks a fresh one"""
    engine = RiskEngine(db, config)
    first = engine.recompute_ltv(breached_loan.id)
    engine.resolve_margin_call(first.margin_call_id)

    second = engine.recompute_ltv(breached_loan.id)

    assert second.margin_call_raised is True
    assert second.margin_call_id != first.margin_call_id


def test_unknown_margin_call(db, config):
    with pytest.raises(MarginCallNotFoundError):
        RiskEngine(db, config).resolve_margin_call(uuid.uuid4())
