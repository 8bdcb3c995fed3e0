"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from household_ledger.config import settings


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

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_bill_payment(
    bill_id: str,
    account_id: str,
    amount_cents: int,
    paid_in_full: bool,
    duration_ms: float,
) -> None:
    """Log structured bill payment outcome for reconciliation"""
    logging.getLogger("household_ledger.payments").info(
        "Bill payment applied",
        extra={
            "bill_id": bill_id,
            "account_id": account_id,
            "step": "bill_payment",
            "amount_cents": amount_cents,
            "payment_outcome": "paid_in_full" if paid_in_full else "partial",
            "duration_ms": duration_ms,
        },
    )
