"""Dependency injection for FastAPI endpoints"""

import uuid
from typing import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from lamf_servicing.config import ServicingConfig
from lamf_servicing.infrastructure.clients.notifications import NotificationClient, OutboxNotificationSink
from lamf_servicing.infrastructure.database.session import get_db
from lamf_servicing.services.foreclosure import ForeclosureCalculator
from lamf_servicing.services.origination import LoanOriginator
from lamf_servicing.services.payments import PaymentAllocator
from lamf_servicing.services.rebalancing import RebalancingAdvisor
from lamf_servicing.services.risk import RiskEngine
from lamf_servicing.services.valuation import ValuationMonitor


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def parse_id(raw: str, label: str = "ID") -> uuid.UUID:
    """Path IDs are UUIDs; anything else is a client error"""
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")


def get_servicing_config(request: Request) -> ServicingConfig:
    """Servicing config held by the app; replaced only by an explicit refresh"""
    return request.app.state.servicing_config


def get_session_factory(request: Request) -> Callable[[], Session]:
    """Session factory for work that outlives the request (background delivery)"""
    return request.app.state.session_factory


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def get_risk_engine(
    db: Session = Depends(get_db),
    config: ServicingConfig = Depends(get_servicing_config),
) -> RiskEngine:
    return RiskEngine(db, config, notifier=OutboxNotificationSink(db))


def get_payment_allocator(
    db: Session = Depends(get_db),
    risk_engine: RiskEngine = Depends(get_risk_engine),
) -> PaymentAllocator:
    return PaymentAllocator(db, risk_engine=risk_engine)


def get_valuation_monitor(
    db: Session = Depends(get_db),
    risk_engine: RiskEngine = Depends(get_risk_engine),
) -> ValuationMonitor:
    return ValuationMonitor(db, risk_engine=risk_engine)


def get_foreclosure_calculator(
    db: Session = Depends(get_db),
    config: ServicingConfig = Depends(get_servicing_config),
) -> ForeclosureCalculator:
    return ForeclosureCalculator(db, config)


def get_rebalancing_advisor(
    db: Session = Depends(get_db),
    config: ServicingConfig = Depends(get_servicing_config),
) -> RebalancingAdvisor:
    return RebalancingAdvisor(db, config)


def get_loan_originator(db: Session = Depends(get_db)) -> LoanOriginator:
    return LoanOriginator(db)
