"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from loan_risk.config import settings


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


def log_scoring_run(
    run_id: str,
    scored: int,
    failed: int,
    high_risk: int,
    duration_ms: float,
) -> None:
    """Log structured scoring-run outcome for analysis"""
    logging.info(
        "Scoring run completed",
        extra={
            "run_id": run_id,
            "step": "scoring_complete",
            "scored_loans": scored,
            "unscoreable_loans": failed,
            "high_risk_loans": high_risk,
            "duration_ms": duration_ms,
        },
    )


def log_unscoreable(run_id: str, loan_id: str, reason: str) -> None:
    """Log a loan excluded from a run because of malformed input"""
    logging.warning(
        "Loan excluded from scoring",
        extra={
            "run_id": run_id,
            "step": "validation",
            "loan_id": loan_id,
            "reason": reason,
        },
    )


def log_concentration_report(
    total_loans: int,
    overall_risk: str,
    concentration_score: int,
    recommendation_count: int,
    duration_ms: float,
) -> None:
    """Log concentration report outcome"""
    logging.info(
        "Concentration report completed",
        extra={
            "step": "concentration_complete",
            "total_loans": total_loans,
            "overall_risk": overall_risk,
            "concentration_score": concentration_score,
            "recommendations": recommendation_count,
            "duration_ms": duration_ms,
        },
    )
