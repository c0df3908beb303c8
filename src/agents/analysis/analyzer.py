"""
Conversation Analyzer - scores recent conversation against sibling agents.

Flow:
  1. Validate the requested window (1-10 messages).
  2. Build the topic map from the siblings' specializations.
  3. Analyse the window: topic shifts, dominant topics, stability,
     agent performance, patterns, continuity factors.
  4. Derive recommendations.
  5. Emit exactly one telemetry record, whichever branch was taken.
"""

import time
from typing import Any, Optional, Sequence

from loguru import logger

from agents.analysis.continuity import assess_continuity_factors
from agents.analysis.keywords import build_agent_topic_map
from agents.analysis.patterns import identify_conversation_patterns
from agents.analysis.performance import analyze_agent_performance
from agents.analysis.recommendations import generate_recommendations
from agents.analysis.topics import (
    analyze_topic_shifts,
    calculate_topic_stability,
    extract_dominant_topics,
)
from agents.analysis.types import AnalysisMessage, ConversationAnalysis
from agents.errors import InvalidMessageCountError
from infrastructure.config import (
    ANALYSIS_DEFAULT_MESSAGE_COUNT,
    ANALYSIS_MAX_MESSAGES,
    ANALYSIS_MIN_MESSAGES,
)
from infrastructure.db.metrics_store import safe_record
from infrastructure.observability import observe, update_current_observation

NO_SUB_AGENTS_RECOMMENDATION = "No sub-agents available for routing analysis"
NO_HISTORY_RECOMMENDATION = "No conversation history available for analysis"


def validate_message_count(message_count: Any) -> int:
    """Return the window size, or raise ``InvalidMessageCountError``."""
    if (
        isinstance(message_count, bool)
        or not isinstance(message_count, int)
        or not ANALYSIS_MIN_MESSAGES <= message_count <= ANALYSIS_MAX_MESSAGES
    ):
        raise InvalidMessageCountError(message_count, ANALYSIS_MIN_MESSAGES, ANALYSIS_MAX_MESSAGES)
    return message_count


class ConversationAnalyzer:
    """
    Analyses a bounded window of recent messages for routing.

    Dependencies (injected via '__init__'):
        telemetry - TelemetrySink (optional - analysis runs without it)
    """

    def __init__(self, telemetry: Optional[Any] = None) -> None:
        self.telemetry = telemetry

    @observe(name="analyze_conversation")
    async def analyze(
        self,
        current_agent: str,
        siblings: Sequence,
        messages: Sequence[Any],
        message_count: int = ANALYSIS_DEFAULT_MESSAGE_COUNT,
        context: Optional[Any] = None,
    ) -> ConversationAnalysis:
        """
        Analyse the last ``message_count`` messages against ``siblings``.

        Raises:
            InvalidMessageCountError: ``message_count`` outside 1-10.
        """
        message_count = validate_message_count(message_count)
        t0 = time.perf_counter()

        if not siblings:
            analysis = ConversationAnalysis(
                message_count=0,
                recommendations=[NO_SUB_AGENTS_RECOMMENDATION],
            )
        else:
            window = [
                AnalysisMessage.from_any(m, i)
                for i, m in enumerate(list(messages)[-message_count:])
            ]
            if not window:
                analysis = ConversationAnalysis(
                    message_count=0,
                    recommendations=[NO_HISTORY_RECOMMENDATION],
                )
            else:
                analysis = self._analyze_window(window, siblings)

        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.debug(
            "Conversation analysis for '{}': {} messages, stability={:.2f}, {} shifts",
            current_agent,
            analysis.message_count,
            analysis.topic_stability,
            len(analysis.topic_shifts),
        )
        update_current_observation(
            metadata={
                "current_agent": current_agent,
                "message_count": analysis.message_count,
                "topic_stability": analysis.topic_stability,
            },
        )

        await safe_record(self.telemetry, self._metrics_record(
            analysis, current_agent, siblings, context, elapsed_ms,
        ))
        return analysis

    # helpers

    @staticmethod
    def _analyze_window(window, siblings) -> ConversationAnalysis:
        topic_map = build_agent_topic_map(siblings)
        analysis = ConversationAnalysis(
            message_count=len(window),
            topic_shifts=analyze_topic_shifts(window, topic_map),
            dominant_topics=extract_dominant_topics(window, topic_map),
            topic_stability=calculate_topic_stability(window, topic_map),
            agent_performance=analyze_agent_performance(window, [a.name for a in siblings]),
            patterns=identify_conversation_patterns(window, topic_map),
            continuity_factors=assess_continuity_factors(window, topic_map),
        )
        analysis.recommendations = generate_recommendations(analysis)
        return analysis

    @staticmethod
    def _metrics_record(analysis, current_agent, siblings, context, elapsed_ms) -> dict:
        return {
            "user_id": getattr(context, "user_id", None),
            "campaign_id": getattr(context, "campaign_id", None),
            "thread_id": getattr(context, "thread_id", None),
            "run_id": getattr(context, "run_id", None),
            "analysis_time_ms": elapsed_ms,
            "message_count": analysis.message_count,
            "topic_stability": analysis.topic_stability,
            "current_agent": current_agent,
            "available_agents": [a.name for a in siblings],
            "dominant_topics": list(analysis.dominant_topics),
            "topic_shift_count": len(analysis.topic_shifts),
            "full_analysis": analysis.to_dict(),
        }
