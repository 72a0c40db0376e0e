"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "lamf-servicing", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "lamf-servicing") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep SQL chatter out of the service log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_payment(
    request_id: str,
    loan_id: str,
    amount: Decimal,
    installments_touched: int,
    total_outstanding: Decimal,
    duration_ms: float,
) -> None:
    """Log structured payment allocation outcome"""
    logging.info(
        "Payment allocated",
        extra={
            "request_id": request_id,
            "loan_id": loan_id,
            "step": "payment_allocated",
            "amount": str(amount),
            "installments_touched": installments_touched,
            "total_outstanding": str(total_outstanding),
            "duration_ms": duration_ms,
        },
    )


def log_batch_job(job: str, processed: int, failed: int, duration_ms: float, **counts: int) -> None:
    """Log summary of a batch job run"""
    logging.info(
        "Batch job completed",
        extra={
            "step": "batch_complete",
            "job": job,
            "processed": processed,
            "failed": failed,
            "duration_ms": duration_ms,
            **counts,
        },
    )
