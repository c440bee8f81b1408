"""Structured JSON logging for settlement runs"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

from pythonjsonlogger import jsonlogger

from settlement_engine.domain.models import Flag, PendingPayout, RevenueClassification

logger = logging.getLogger("settlement_engine")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "settlement-engine", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "settlement-engine") -> None:
    """Configure structured JSON logging on the root logger"""
    root = logging.getLogger()
    root.setLevel(level)

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_classification(run_id: str, report: RevenueClassification, duration_ms: float) -> None:
    """Log the headline numbers of a period classification"""
    level = logging.INFO if report.is_balanced else logging.ERROR
    logger.log(
        level,
        "Classification completed",
        extra={
            "run_id": run_id,
            "step": "classification_complete",
            "policy_version": report.policy_version,
            "booking_count": report.booking_count,
            "gross_collected_cents": report.gross_collected_cents,
            "platform_revenue_cents": report.platform_revenue.total_cents,
            "passthrough_cents": report.passthrough.total_cents,
            "total_refunded_cents": report.total_refunded_cents,
            "excluded_count": report.excluded_count,
            "flagged_count": report.flagged_count,
            "balanced": report.is_balanced,
            "duration_ms": duration_ms,
        },
    )


def log_payout(payout: PendingPayout) -> None:
    logger.info(
        "Payout netted",
        extra={
            "step": "payout_netted",
            "booking_id": payout.booking_id,
            "host_id": payout.host_id,
            "tier": payout.tier_name,
            "rate_overridden": payout.rate_overridden,
            "net_payout_cents": payout.net_payout_cents,
            "eligible_at": payout.eligible_at.isoformat(),
        },
    )


def log_flags(run_id: str, flags: Iterable[Flag]) -> None:
    """One warning line per flagged record so reviewers can grep by record id"""
    for flag in flags:
        logger.warning(
            flag.message,
            extra={
                "run_id": run_id,
                "step": "record_flagged",
                "flag_kind": flag.kind.value,
                "flag_code": flag.code,
                "record_id": flag.record_id,
            },
        )
