"""Structured logging for itinerary sync operations."""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationContext:
    """Context for one optimistic mutation and its persistence call."""

    trip_id: str
    mutation_id: str
    operation: str
    day_number: int | None = None


class StructuredSyncLogger:
    """Structured logger for persistence calls."""

    def log_sync(
        self,
        ctx: MutationContext,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a persistence call outcome with structured data."""
        log_data: dict[str, Any] = {
            "trip_id": ctx.trip_id,
            "mutation_id": ctx.mutation_id,
            "operation": ctx.operation,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if ctx.day_number is not None:
            log_data["day_number"] = ctx.day_number
        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Itinerary sync: {ctx.operation} - {outcome}"
        if ctx.day_number is not None:
            log_msg += f" (day {ctx.day_number})"

        if outcome in ("success", "stale"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
