"""
Topic extraction, topic shifts and topic stability.

A message's topic is the keyword profile of the sibling agent whose
keywords it matches most, or ``"general"`` when nothing matches.
"""

from collections import Counter
from typing import Dict, List, Sequence

from agents.analysis.types import AgentTopicMap, AnalysisMessage, TopicShift

GENERAL_TOPIC = "general"


def extract_topic_from_message(message: AnalysisMessage, topic_map: AgentTopicMap) -> str:
    content = message.content.lower()
    content_words = set(content.split())

    scores: Dict[str, int] = {}
    for keyword, agent_names in topic_map.keyword_to_agents.items():
        if keyword in content_words or keyword in content:
            for name in agent_names:
                scores[name] = scores.get(name, 0) + 1

    if not scores:
        return GENERAL_TOPIC

    # Stable sort keeps first-seen agent on ties.
    top_agent = sorted(scores.items(), key=lambda item: item[1], reverse=True)[0][0]
    return "_".join(topic_map.agent_to_keywords.get(top_agent, []))


def calculate_topic_shift_confidence(prev: AnalysisMessage, curr: AnalysisMessage) -> float:
    """Higher confidence for less similar messages: max(0.1, 1 - Jaccard)."""
    prev_words = set(prev.content.lower().split())
    curr_words = set(curr.content.lower().split())
    union = prev_words | curr_words
    if not union:
        return 0.1
    similarity = len(prev_words & curr_words) / len(union)
    return max(0.1, 1 - similarity)


def _topics(messages: Sequence[AnalysisMessage], topic_map: AgentTopicMap) -> List[str]:
    return [extract_topic_from_message(m, topic_map) for m in messages]


def analyze_topic_shifts(messages: Sequence[AnalysisMessage], topic_map: AgentTopicMap) -> List[TopicShift]:
    """Shifts between consecutive messages whose topics are both specific and differ."""
    topics = _topics(messages, topic_map)
    shifts = []
    for i in range(1, len(topics)):
        prev_topic, topic = topics[i - 1], topics[i]
        if topic != prev_topic and GENERAL_TOPIC not in (topic, prev_topic):
            shifts.append(TopicShift(
                from_topic=prev_topic,
                to_topic=topic,
                message_index=i,
                confidence=calculate_topic_shift_confidence(messages[i - 1], messages[i]),
            ))
    return shifts


def extract_dominant_topics(messages: Sequence[AnalysisMessage], topic_map: AgentTopicMap) -> List[str]:
    """The three most frequent topics, with ``general`` dropped afterwards."""
    counts = Counter(_topics(messages, topic_map))
    return [topic for topic, _ in counts.most_common(3) if topic != GENERAL_TOPIC]


def unique_specific_topics(messages: Sequence[AnalysisMessage], topic_map: AgentTopicMap) -> set:
    return {t for t in _topics(messages, topic_map) if t != GENERAL_TOPIC}


def calculate_topic_stability(messages: Sequence[AnalysisMessage], topic_map: AgentTopicMap) -> float:
    """Topic stability in [0.1, 1.0]; 1.0 when at most one specific topic appears."""
    unique = unique_specific_topics(messages, topic_map)
    if len(unique) <= 1:
        return 1.0
    if len(unique) >= len(messages) * 0.8:
        return 0.1
    return max(0.1, 1 - len(unique) / len(messages))
