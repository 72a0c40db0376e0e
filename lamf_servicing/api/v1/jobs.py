"""On-demand batch jobs - NAV refresh, margin-call sweep, notification delivery"""

import logging
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lamf_servicing.api.dependencies import (
    get_notification_client,
    get_request_id,
    get_risk_engine,
    get_servicing_config,
    get_session_factory,
    get_valuation_monitor,
)
from lamf_servicing.api.v1.schemas import BatchFailureSchema, JobResponse
from lamf_servicing.config import ServicingConfig
from lamf_servicing.infrastructure.clients.notifications import NotificationClient, deliver_pending
from lamf_servicing.services.price_feeds import RandomWalkPriceFeed
from lamf_servicing.services.risk import RiskEngine
from lamf_servicing.services.valuation import ValuationMonitor

router = APIRouter()


async def deliver_in_background(session_factory: Callable[[], Session], client: NotificationClient) -> None:
    """Drain the notification outbox on a session of its own"""
    db = session_factory()
    try:
        counts = await deliver_pending(db, client)
        logging.info("Notification delivery finished", extra=counts)
    finally:
        db.close()


@router.post("/jobs/update-nav", response_model=JobResponse)
def update_nav_job(
    request: Request,
    background_tasks: BackgroundTasks,
    monitor: ValuationMonitor = Depends(get_valuation_monitor),
    risk_engine: RiskEngine = Depends(get_risk_engine),
    config: ServicingConfig = Depends(get_servicing_config),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """
    Reprice every pledged position, then recheck LTV on the loans it touched.

    Prices come from a bounded random walk around the current NAV.
    """
    request_id = get_request_id(request)
    try:
        result = monitor.revalue_all(RandomWalkPriceFeed(config.nav_fluctuation_percent))
    except Exception as e:
        logging.error(f"NAV update job failed: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    failures = [BatchFailureSchema(entity_id=f.entity_id, error=f.error) for f in result.failures]
    margin_calls_generated = 0
    for loan_id in result.affected_loan_ids:
        try:
            if risk_engine.recompute_ltv(loan_id).margin_call_raised:
                margin_calls_generated += 1
        except Exception as e:
            logging.warning(f"LTV recheck failed: {e}", extra={"request_id": request_id, "loan_id": str(loan_id)})
            failures.append(BatchFailureSchema(entity_id=str(loan_id), error=str(e)))

    if margin_calls_generated > 0:
        background_tasks.add_task(deliver_in_background, session_factory, notification_client)

    return JobResponse(
        success=True,
        message=f"Updated NAV for {result.updated} collaterals",
        data={
            "updated": result.updated,
            "loans_rechecked": len(result.affected_loan_ids),
            "margin_calls_generated": margin_calls_generated,
        },
        failures=failures,
    )


@router.post("/jobs/check-margin-calls", response_model=JobResponse)
def check_margin_calls_job(
    request: Request,
    background_tasks: BackgroundTasks,
    risk_engine: RiskEngine = Depends(get_risk_engine),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """
    Sweep every active loan for margin-call breaches.

    New margin calls land in the notification outbox with their loan; the
    outbox is drained after the response is sent.
    """
    request_id = get_request_id(request)
    try:
        result = risk_engine.sweep()
    except Exception as e:
        logging.error(f"Margin call sweep failed: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if result.margin_calls_generated > 0:
        background_tasks.add_task(deliver_in_background, session_factory, notification_client)

    return JobResponse(
        success=True,
        message=f"Generated {result.margin_calls_generated} margin calls",
        data={
            "loans_checked": result.loans_checked,
            "margin_calls_generated": result.margin_calls_generated,
            "skipped": len(result.skipped),
        },
        failures=[BatchFailureSchema(entity_id=f.entity_id, error=f.error) for f in result.failures + result.skipped],
    )


@router.post("/jobs/deliver-notifications", response_model=JobResponse)
async def deliver_notifications_job(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    notification_client: NotificationClient = Depends(get_notification_client),
):
    """Push every undelivered outbox notification, including earlier failures"""
    db = session_factory()
    try:
        counts = await deliver_pending(db, notification_client)
    finally:
        db.close()

    return JobResponse(
        success=True,
        message=f"Delivered {counts['delivered']} notifications",
        data=counts,
    )
