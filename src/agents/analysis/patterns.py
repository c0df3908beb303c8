"""
Conversation pattern detection.

Each detector returns a ``ConversationPattern`` or ``None``.
"""

import re
from collections import Counter
from typing import List, Optional, Sequence

from agents.analysis.topics import unique_specific_topics
from agents.analysis.types import AgentTopicMap, AnalysisMessage, ConversationPattern

_TECHNICAL_TERMS = re.compile(r"\b(implement|configure|optimize|debug|analyze)\b", re.IGNORECASE)


def count_keyword_mentions(messages: Sequence[AnalysisMessage], keywords: Sequence[str]) -> Counter:
    """Number of messages mentioning each keyword (substring match)."""
    mentions: Counter = Counter()
    for message in messages:
        content = message.content.lower()
        for keyword in keywords:
            if keyword in content:
                mentions[keyword] += 1
    return mentions


def detect_escalating_complexity(messages: Sequence[AnalysisMessage]) -> Optional[ConversationPattern]:
    user_messages = [m for m in messages if m.role == "user"]
    if len(user_messages) < 3:
        return None

    scores = [
        len(m.content) + 50 * len(_TECHNICAL_TERMS.findall(m.content))
        for m in user_messages
    ][-3:]
    if all(later > earlier for earlier, later in zip(scores, scores[1:])):
        return ConversationPattern(
            type="escalating_complexity",
            description="User requests are becoming increasingly complex and technical",
            confidence=0.8,
            recommendation="route_to_specialist",
        )
    return None


def detect_repeated_failures(messages: Sequence[AnalysisMessage]) -> Optional[ConversationPattern]:
    failure_count = sum(1 for m in messages if m.routing_success is False)
    if failure_count >= 2:
        return ConversationPattern(
            type="repeated_failures",
            description=f"Multiple routing failures detected ({failure_count} failures)",
            confidence=0.9,
            recommendation="try_different_agent",
            failure_count=failure_count,
        )
    return None


def detect_workflow_continuation(
    messages: Sequence[AnalysisMessage],
    topic_map: AgentTopicMap,
) -> Optional[ConversationPattern]:
    """A keyword mentioned in at least 3 of the last 5 messages."""
    mentions = count_keyword_mentions(messages[-5:], topic_map.all_keywords())
    if not mentions:
        return None

    keyword, count = mentions.most_common(1)[0]
    if count >= 3 and topic_map.keyword_to_agents.get(keyword):
        return ConversationPattern(
            type="session_flow",
            description=f"User appears to be in the middle of a {keyword}-related workflow",
            confidence=0.85,
            recommendation="maintain_current_agent",
            current_step=keyword,
        )
    return None


def detect_topic_drift(
    messages: Sequence[AnalysisMessage],
    topic_map: AgentTopicMap,
) -> Optional[ConversationPattern]:
    if len(unique_specific_topics(messages, topic_map)) > len(messages) * 0.6:
        return ConversationPattern(
            type="topic_drift",
            description="Conversation topics are changing frequently without clear focus",
            confidence=0.7,
            recommendation="try_different_agent",
        )
    return None


def identify_conversation_patterns(
    messages: Sequence[AnalysisMessage],
    topic_map: AgentTopicMap,
) -> List[ConversationPattern]:
    detected = [
        detect_escalating_complexity(messages),
        detect_repeated_failures(messages),
        detect_workflow_continuation(messages, topic_map),
        detect_topic_drift(messages, topic_map),
    ]
    return [pattern for pattern in detected if pattern is not None]
