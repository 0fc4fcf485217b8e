"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from mipago_gateway.config import settings


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


def log_credit_event(
    step: str,
    account_id: str,
    product_type: str,
    outcome: str,
    credit_id: Optional[str] = None,
    amount_cents: Optional[int] = None,
    code: Optional[str] = None,
) -> None:
    """Log a credit lifecycle step (eligibility, creation, disbursement, transition)"""
    logging.info(
        f"Credit {step}: {outcome}",
        extra={
            "step": step,
            "account_id": account_id,
            "credit_id": credit_id,
            "product_type": product_type,
            "amount_cents": amount_cents,
            "outcome": outcome,
            "code": code,
        },
    )


def log_transfer_outcome(
    transfer_id: str,
    account_id: str,
    destination_kind: str,
    amount_cents: int,
    outcome: str,
    destination: Optional[str] = None,
    code: Optional[str] = None,
    fraud_risk: Optional[str] = None,
) -> None:
    """Log the resolution of a transfer. `destination` must already be masked."""
    logging.info(
        f"Transfer {outcome}",
        extra={
            "step": "transfer_resolved",
            "transfer_id": transfer_id,
            "account_id": account_id,
            "destination_kind": destination_kind,
            "destination": destination,
            "amount_cents": amount_cents,
            "outcome": outcome,
            "code": code,
            "fraud_risk": fraud_risk,
        },
    )


def log_security_event(step: str, account_id: str, outcome: str, **fields: Any) -> None:
    """Log an authentication event. Never pass passwords, hashes or tokens."""
    level = logging.WARNING if outcome in ("locked", "denied") else logging.INFO
    logging.log(
        level,
        f"Security {step}: {outcome}",
        extra={"step": step, "account_id": account_id, "outcome": outcome, **fields},
    )
