"""
Conversation analysis - topic map, topic shifts, patterns, continuity
and recommendations used to inform routing.
"""

from .analyzer import ConversationAnalyzer, validate_message_count
from .keywords import STOP_WORDS, build_agent_topic_map, extract_keywords
from .topics import (
    analyze_topic_shifts,
    calculate_topic_shift_confidence,
    calculate_topic_stability,
    extract_dominant_topics,
    extract_topic_from_message,
)
from .types import AgentTopicMap, AnalysisMessage, ConversationAnalysis

__all__ = [
    "AgentTopicMap",
    "AnalysisMessage",
    "ConversationAnalysis",
    "ConversationAnalyzer",
    "STOP_WORDS",
    "analyze_topic_shifts",
    "build_agent_topic_map",
    "calculate_topic_shift_confidence",
    "calculate_topic_stability",
    "extract_dominant_topics",
    "extract_keywords",
    "extract_topic_from_message",
    "validate_message_count",
]
