"""Notification outbox and webhook delivery client with exponential backoff retry logic"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Protocol

import httpx
from sqlalchemy.orm import Session

from lamf_servicing.config import settings
from lamf_servicing.infrastructure.database.repositories import NotificationRepository
from lamf_servicing.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)
from lamf_servicing.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Receives loan alerts; delivery is fire-and-forget"""

    def notify(self, loan_id: uuid.UUID, kind: str, message: str) -> None: ...


class OutboxNotificationSink:
    """
    Writes each notification to the outbox inside the caller's transaction.

    A notification therefore exists exactly when the change it announces was
    committed. Delivery happens later through ``deliver_pending``.
    """

    def __init__(self, db: Session, target_url: str | None = None):
        self.repo = NotificationRepository(db)
        self.target_url = target_url or settings.notification_webhook_url

    def notify(self, loan_id: uuid.UUID, kind: str, message: str) -> None:
        self.repo.enqueue(
            loan_id=loan_id,
            kind=kind,
            payload={"event": kind, "loan_id": str(loan_id), "message": message},
            target_url=self.target_url,
        )


class NotificationClient:
    """Client for posting notification events to the notification service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = max_retries if max_retries is not None else settings.webhook_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_event(self, payload: Dict[str, Any], target_url: str | None = None) -> bool:
        """
        Send a notification event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^attempt)
        - Retries on 5xx errors and network failures
        - Tracks latency histogram and failure counter

        Returns:
            True when delivered. Final failures are logged, never raised.
        """
        url = target_url or self.webhook_url
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(url, json=payload)
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Notification delivery failed after {attempt} attempts: {e}",
                            extra={"event": payload.get("event"), "loan_id": payload.get("loan_id")},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

        return False


async def deliver_pending(db: Session, client: NotificationClient) -> Dict[str, int]:
    """
    Push every pending outbox row to the webhook and record the outcome.

    Returns:
        Counts of delivered and failed notifications
    """
    repo = NotificationRepository(db)
    pending: List = repo.list_pending()

    delivered = failed = 0
    for row in pending:
        ok = await client.send_event(row.payload, target_url=row.target_url)
        row.attempts = (row.attempts or 0) + 1
        row.last_attempt_at = utcnow()
        row.status = "delivered" if ok else "failed"
        if ok:
            delivered += 1
        else:
            failed += 1
        db.commit()

    return {"delivered": delivered, "failed": failed}
