"""
Structured Logging & Observability
Production-grade logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Any
from src.config import get_settings


def configure_logging():
    """
    Configure loguru for production observability.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion (ELK, Datadog, etc.)
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


def log_score_computation(
    deal_id: str,
    trigger_source: str,
    confidence_score: int,
    base_score: float,
    total_penalties: float,
    total_bonus: float,
    duration_ms: float | None = None,
    **context: Any
):
    """
    Structured logging for a single deal rescore.

    Example:
        >>> log_score_computation(
        ...     deal_id="rec-123",
        ...     trigger_source="invite_opened",
        ...     confidence_score=72,
        ...     base_score=82,
        ...     total_penalties=10.0,
        ...     total_bonus=0,
        ... )
    """
    log_data = {
        "event_type": "score_computed",
        "deal_id": deal_id,
        "trigger_source": trigger_source,
        "confidence_score": confidence_score,
        "base_score": base_score,
        "total_penalties": total_penalties,
        "total_bonus": total_bonus,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    log_data.update(context)

    logger.bind(**log_data).info(
        f"Scored {deal_id}: score={confidence_score} base={base_score} "
        f"penalties={total_penalties} bonus={total_bonus} ({trigger_source})"
    )


def log_business_event(
    event_type: str,
    deal_id: str,
    **details: Any
):
    """
    Log business-critical events for analytics.

    Examples:
        - Deal snoozed / archived / revived
        - Scoring config replaced
    """
    log_data = {
        "event_type": event_type,
        "deal_id": deal_id,
        **details
    }

    logger.bind(**log_data).success(f"Business Event: {event_type}")
