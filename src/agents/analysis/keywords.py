"""
Keyword extraction from agent specializations and the agent topic map.
"""

import re
from typing import Iterable, List

from agents.analysis.types import AgentTopicMap

# Common English words that carry no routing signal.
STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
    "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
    "to", "was", "will", "with",
})

_DELIMITERS = re.compile(r"[\W_]+")


def extract_keywords(specialization: str) -> List[str]:
    """
    Lowercased, de-duplicated keywords from a specialization string.

    >>> extract_keywords("character creation and management")
    ['character', 'creation', 'management']
    >>> extract_keywords("location-based campaign assets like towns, dungeons, and landmarks")
    ['location', 'based', 'campaign', 'assets', 'like', 'towns', 'dungeons', 'landmarks']
    """
    keywords: List[str] = []
    for token in _DELIMITERS.split((specialization or "").lower()):
        if token and token not in STOP_WORDS and token not in keywords:
            keywords.append(token)
    return keywords


def build_agent_topic_map(agents: Iterable) -> AgentTopicMap:
    """Build agent → keywords and keyword → agents from each agent's specialization."""
    topic_map = AgentTopicMap()
    for agent in agents:
        keywords = extract_keywords(agent.specialization)
        topic_map.agent_to_keywords[agent.name] = keywords
        for keyword in keywords:
            names = topic_map.keyword_to_agents.setdefault(keyword, [])
            if agent.name not in names:
                names.append(agent.name)
    return topic_map
