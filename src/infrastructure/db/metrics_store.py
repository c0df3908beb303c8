"""
Routing metrics sink - persists conversation analysis metrics.

Metrics must never break routing: ``RoutingMetricsSink.record`` logs and
swallows its own failures, and ``safe_record`` guards any sink the core
is given.
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from infrastructure.db.models import RoutingMetric
from infrastructure.db.sql_client import get_session
from infrastructure.observability import update_current_trace


async def safe_record(sink: Optional[Any], record: Dict[str, Any]) -> None:
    """Await one ``sink.record(record)`` call; failures are logged, never raised."""
    if sink is None:
        return
    try:
        await sink.record(record)
    except Exception as exc:
        logger.opt(exception=exc).error("Routing metrics save failed: {}", exc)


class RoutingMetricsSink:
    """Telemetry sink writing one ``routing_metrics`` row per record."""

    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    async def record(self, record: Dict[str, Any]) -> None:
        update_current_trace(
            metadata={
                "current_agent": record.get("current_agent"),
                "topic_stability": record.get("topic_stability"),
                "message_count": record.get("message_count"),
            },
        )
        try:
            await asyncio.to_thread(self._record_sync, record)
        except Exception as exc:
            logger.opt(exception=exc).error("Routing metrics save failed: {}", exc)

    def _record_sync(self, record: Dict[str, Any]) -> None:
        analysis = record.get("full_analysis") or {}
        session = self._session_factory()
        try:
            session.add(RoutingMetric(
                user_id=record.get("user_id"),
                campaign_id=record.get("campaign_id"),
                thread_id=record.get("thread_id"),
                run_id=record.get("run_id"),
                analysis_time_ms=record.get("analysis_time_ms", 0.0),
                message_count=record.get("message_count", 0),
                topic_stability=record.get("topic_stability", 1.0),
                current_agent=record.get("current_agent") or "",
                available_agents=record.get("available_agents") or [],
                dominant_topics=record.get("dominant_topics") or [],
                topic_shift_count=record.get("topic_shift_count", 0),
                agent_performance_json=analysis.get("agentPerformance"),
                patterns_json=analysis.get("patterns"),
                topic_shifts_json=analysis.get("topicShifts"),
                continuity_factors_json=analysis.get("continuityFactors"),
                recommendations_json=analysis.get("recommendations"),
            ))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class InMemoryMetricsSink:
    """Keeps metric records in a list."""

    def __init__(self) -> None:
        self.records = []

    async def record(self, record: Dict[str, Any]) -> None:
        self.records.append(record)
