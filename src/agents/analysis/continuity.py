"""
Continuity factors - signals that favour keeping the current agent.
"""

from typing import List, Optional, Sequence

from agents.analysis.patterns import count_keyword_mentions
from agents.analysis.types import AgentTopicMap, AnalysisMessage, ContinuityFactor

_PREFERENCE_CUES = ("prefer", "like", "continue")


def assess_active_workflow(
    messages: Sequence[AnalysisMessage],
    topic_map: AgentTopicMap,
) -> Optional[ContinuityFactor]:
    mentions = count_keyword_mentions(messages, topic_map.all_keywords())
    if not mentions:
        return None

    keyword, count = mentions.most_common(1)[0]
    if count < 2:
        return None

    # Five mentions is treated as a finished workflow.
    completion = min(1.0, count / 5)
    return ContinuityFactor(
        type="active_workflow",
        workflow=keyword,
        completion_percentage=completion,
        description=f"{keyword} workflow is {round(completion * 100)}% complete",
        recommendation="maintain_current_agent" if completion > 0.7 else "prefer_current_agent",
    )


def assess_knowledge_buildup(messages: Sequence[AnalysisMessage]) -> Optional[ContinuityFactor]:
    replies = [m for m in messages if m.role == "assistant"]
    if len(replies) < 3:
        return None

    avg_length = sum(len(m.content) for m in replies) / len(replies)
    if avg_length > 500:
        context_value = "high"
    elif avg_length > 200:
        context_value = "medium"
    else:
        context_value = "low"

    return ContinuityFactor(
        type="knowledge_buildup",
        context_value=context_value,
        description=f"Assistant has built {context_value} context about the conversation",
        recommendation="maintain_current_agent" if context_value == "high" else "prefer_current_agent",
    )


def assess_user_preferences(messages: Sequence[AnalysisMessage]) -> Optional[ContinuityFactor]:
    for message in messages:
        if message.role != "user":
            continue
        content = message.content.lower()
        if any(cue in content for cue in _PREFERENCE_CUES):
            return ContinuityFactor(
                type="user_preference",
                description="User has expressed preferences for current interaction style",
                recommendation="prefer_current_agent",
            )
    return None


def assess_continuity_factors(
    messages: Sequence[AnalysisMessage],
    topic_map: AgentTopicMap,
) -> List[ContinuityFactor]:
    assessed = [
        assess_active_workflow(messages, topic_map),
        assess_knowledge_buildup(messages),
        assess_user_preferences(messages),
    ]
    return [factor for factor in assessed if factor is not None]
