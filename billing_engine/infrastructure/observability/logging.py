"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from billing_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # SQL echo is noise at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def log_payment(
    customer_id: str,
    amount: int,
    target_kind: str,
    success: bool,
    allocated: int,
    excess: int,
    error_type: str | None = None,
) -> None:
    """Log structured payment outcome"""
    logging.getLogger("billing_engine.payments").info(
        "Payment processed" if success else "Payment rejected",
        extra={
            "customer_id": customer_id,
            "step": "payment_complete",
            "amount": amount,
            "target_kind": target_kind,
            "outcome": "applied" if success else "rejected",
            "allocated": allocated,
            "excess": excess,
            "error_type": error_type,
        },
    )


def log_job_run(
    job_name: str,
    run_date: str,
    skipped: bool,
    generated_count: int,
    overdue_count: int,
    error_count: int,
    duration_ms: float,
) -> None:
    """Log structured daily job outcome"""
    logging.getLogger("billing_engine.jobs").info(
        "Daily job skipped" if skipped else "Daily job completed",
        extra={
            "job_name": job_name,
            "run_date": run_date,
            "step": "job_complete",
            "skipped": skipped,
            "generated_count": generated_count,
            "overdue_count": overdue_count,
            "error_count": error_count,
            "duration_ms": duration_ms,
        },
    )
