"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from payment_reconciler.config import settings
from payment_reconciler.domain.models import ReconciliationSummary


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

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_pass_summary(summary: ReconciliationSummary, duration_ms: float) -> None:
    """Log structured reconciliation pass outcome"""
    level = logging.ERROR if summary.error else logging.INFO
    logging.getLogger("payment_reconciler.pass").log(
        level,
        "Reconciliation pass completed",
        extra={
            "step": "reconciliation_complete",
            "checked": summary.checked,
            "updated": summary.updated,
            "deleted": summary.deleted,
            "pass_error": summary.error,
            "duration_ms": duration_ms,
        },
    )
