"""
Conversation analysis schemas.

Dataclasses for analysed messages, topic shifts, agent performance,
conversation patterns, continuity factors and the full analysis result.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

Role = Literal["user", "assistant", "system"]

_ROLE_BY_TYPE = {"human": "user", "ai": "assistant", "system": "system"}


@dataclass
class AnalysisMessage:
    """
    A single message as seen by the analyzer.

    ``routing_metadata`` is the serialised ``RoutingMetadata`` saved with
    an assistant message (``decision.targetAgent``, ``success``...).
    """
    id: str
    content: str
    role: Role
    created_at: str = ""
    routing_metadata: Optional[Dict[str, Any]] = None

    @property
    def routing_success(self) -> Optional[bool]:
        if not self.routing_metadata:
            return None
        return self.routing_metadata.get("success")

    @property
    def routed_agent(self) -> Optional[str]:
        decision = (self.routing_metadata or {}).get("decision") or {}
        return decision.get("targetAgent")

    @classmethod
    def from_any(cls, message: Any, index: int = 0) -> "AnalysisMessage":
        """
        Build from a dict, a ``SavedMessage`` or a LangChain message.

        Missing ids fall back to the message position.
        """
        if isinstance(message, AnalysisMessage):
            return message

        if isinstance(message, dict):
            return cls(
                id=str(message.get("id") or index),
                content=str(message.get("content") or ""),
                role=message.get("role", "user"),
                created_at=str(message.get("createdAt") or message.get("created_at") or ""),
                routing_metadata=message.get("routingMetadata") or message.get("routing_metadata"),
            )

        role = getattr(message, "role", None) or _ROLE_BY_TYPE.get(getattr(message, "type", ""), "user")
        content = getattr(message, "content", "")
        if not isinstance(content, str):
            content = str(content)
        created_at = getattr(message, "created_at", "")
        metadata = getattr(message, "routing_metadata", None)
        if metadata is None:
            metadata = (getattr(message, "additional_kwargs", None) or {}).get("routing_metadata")
        return cls(
            id=str(getattr(message, "id", None) or index),
            content=content,
            role=role,
            created_at=created_at.isoformat() if hasattr(created_at, "isoformat") else str(created_at or ""),
            routing_metadata=metadata,
        )


@dataclass
class TopicShift:
    from_topic: str
    to_topic: str
    message_index: int
    confidence: float

    def to_dict(self) -> Dict:
        return {
            "from": self.from_topic,
            "to": self.to_topic,
            "messageIndex": self.message_index,
            "confidence": self.confidence,
        }


@dataclass
class AgentPerformance:
    """Heuristic performance of one sibling agent over the window."""
    last_used: int  # messages ago
    success_rate: float
    avg_response_quality: float  # 1-5
    user_satisfaction: Literal["positive", "negative", "neutral"]
    overuse_indicator: bool = False
    context_mismatch: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "lastUsed": self.last_used,
            "successRate": self.success_rate,
            "avgResponseQuality": self.avg_response_quality,
            "userSatisfaction": self.user_satisfaction,
            "overuseIndicator": self.overuse_indicator,
            "contextMismatch": self.context_mismatch,
        }


@dataclass
class ConversationPattern:
    type: Literal[
        "escalating_complexity",
        "repeated_failures",
        "session_flow",
        "topic_drift",
        "workflow_continuation",
    ]
    description: str
    confidence: float
    recommendation: Literal[
        "route_to_specialist",
        "try_different_agent",
        "maintain_current_agent",
        "escalate_to_human",
    ]
    failure_count: Optional[int] = None
    current_step: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            "type": self.type,
            "description": self.description,
            "confidence": self.confidence,
            "recommendation": self.recommendation,
        }
        if self.failure_count is not None:
            data["failureCount"] = self.failure_count
        if self.current_step is not None:
            data["currentStep"] = self.current_step
        return data


@dataclass
class ContinuityFactor:
    type: Literal["active_workflow", "knowledge_buildup", "user_preference", "session_state"]
    description: str
    recommendation: Literal["maintain_current_agent", "prefer_current_agent", "allow_agent_switch"]
    workflow: Optional[str] = None
    completion_percentage: Optional[float] = None
    context_value: Optional[Literal["high", "medium", "low"]] = None

    def to_dict(self) -> Dict:
        data = {
            "type": self.type,
            "description": self.description,
            "recommendation": self.recommendation,
        }
        if self.workflow is not None:
            data["workflow"] = self.workflow
        if self.completion_percentage is not None:
            data["completionPercentage"] = self.completion_percentage
        if self.context_value is not None:
            data["contextValue"] = self.context_value
        return data


@dataclass
class ConversationAnalysis:
    """Result of one conversation analysis pass."""
    message_count: int
    topic_shifts: List[TopicShift] = field(default_factory=list)
    dominant_topics: List[str] = field(default_factory=list)
    topic_stability: float = 1.0
    agent_performance: Dict[str, AgentPerformance] = field(default_factory=dict)
    patterns: List[ConversationPattern] = field(default_factory=list)
    continuity_factors: List[ContinuityFactor] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    analysis_type: str = "conversation_context"

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "analysisType": self.analysis_type,
            "messageCount": self.message_count,
            "topicShifts": [s.to_dict() for s in self.topic_shifts],
            "dominantTopics": list(self.dominant_topics),
            "topicStability": self.topic_stability,
            "agentPerformance": {k: v.to_dict() for k, v in self.agent_performance.items()},
            "patterns": [p.to_dict() for p in self.patterns],
            "continuityFactors": [c.to_dict() for c in self.continuity_factors],
            "recommendations": list(self.recommendations),
        }


@dataclass
class AgentTopicMap:
    """
    Bidirectional agent/keyword lookup.

    ``agent_to_keywords`` keeps each agent's keywords in specialization
    order; ``keyword_to_agents`` lists each agent at most once per keyword.
    """
    agent_to_keywords: Dict[str, List[str]] = field(default_factory=dict)
    keyword_to_agents: Dict[str, List[str]] = field(default_factory=dict)

    def all_keywords(self) -> List[str]:
        seen: Dict[str, None] = {}
        for keywords in self.agent_to_keywords.values():
            for keyword in keywords:
                seen.setdefault(keyword, None)
        return list(seen)

    def to_dict(self) -> Dict:
        return asdict(self)
