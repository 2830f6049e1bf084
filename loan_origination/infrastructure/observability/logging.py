"""Structured JSON logging for lifecycle auditing"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from loan_origination.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level and service name"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_transition(
    application_id: str,
    tenant_id: str,
    from_status: Optional[str],
    to_status: str,
    actor_type: str,
    actor_id: Optional[str],
    version: int,
    request_id: Optional[str] = None,
) -> None:
    """Log one committed status change"""
    logging.getLogger("loan_origination.lifecycle").info(
        "Status changed",
        extra={
            "request_id": request_id,
            "application_id": application_id,
            "tenant_id": tenant_id,
            "step": "status_change",
            "from_status": from_status,
            "to_status": to_status,
            "actor_type": actor_type,
            "actor_id": actor_id,
            "version": version,
        },
    )
