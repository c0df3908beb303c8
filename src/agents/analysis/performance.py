"""
Per-agent performance heuristics from routing metadata saved with messages.
"""

from typing import Dict, List, Sequence

from agents.analysis.types import AgentPerformance, AnalysisMessage

_POSITIVE_CUES = ("thank", "great", "perfect", "exactly", "helpful")
_NEGATIVE_CUES = ("wrong", "not what", "try again", "different", "that's not")


def determine_user_satisfaction(
    all_messages: Sequence[AnalysisMessage],
    agent_messages: Sequence[AnalysisMessage],
) -> str:
    """Compare positive and negative cues in the user's follow-up to each agent reply."""
    positive = negative = 0
    index_by_id = {m.id: i for i, m in enumerate(all_messages)}

    for agent_message in agent_messages:
        index = index_by_id.get(agent_message.id)
        if index is None or index + 1 >= len(all_messages):
            continue
        follow_up = all_messages[index + 1]
        if follow_up.role != "user":
            continue
        content = follow_up.content.lower()
        if any(cue in content for cue in _POSITIVE_CUES):
            positive += 1
        if any(cue in content for cue in _NEGATIVE_CUES):
            negative += 1

    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def calculate_context_mismatch(agent_messages: Sequence[AnalysisMessage]) -> float:
    """Word diversity per message, normalised to [0, 1]."""
    if len(agent_messages) < 2:
        return 0.0
    words = set()
    for message in agent_messages:
        words.update(message.content.lower().split())
    return min(1.0, (len(words) / len(agent_messages)) / 50)


def analyze_agent_performance(
    messages: Sequence[AnalysisMessage],
    agent_names: List[str],
) -> Dict[str, AgentPerformance]:
    """Performance for every sibling that appears as a routing target in the window."""
    performance: Dict[str, AgentPerformance] = {}

    for name in agent_names:
        agent_messages = [m for m in messages if m.routed_agent == name]
        if not agent_messages:
            continue

        last_index = max(i for i, m in enumerate(messages) if m.routed_agent == name)
        successes = sum(1 for m in agent_messages if m.routing_success is True)
        # Quality on a 1-5 scale from reply length.
        quality = sum(min(5.0, max(1.0, len(m.content) / 100)) for m in agent_messages)

        performance[name] = AgentPerformance(
            last_used=len(messages) - last_index - 1,
            success_rate=successes / len(agent_messages),
            avg_response_quality=quality / len(agent_messages),
            user_satisfaction=determine_user_satisfaction(messages, agent_messages),
            overuse_indicator=len(agent_messages) > len(messages) * 0.7,
            context_mismatch=calculate_context_mismatch(agent_messages),
        )

    return performance
