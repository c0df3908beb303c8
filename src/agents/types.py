"""
Core types for agent routing and handoff.

Dataclasses for agent definitions, routing decisions, workflow state,
execution results and the events streamed back to callers.
Protocol definitions for the collaborators the core depends on
(execution service, checkpoint store, persistence, telemetry, events).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple


class RouterType(str, Enum):
    """How an agent relates to its sub-agents."""

    NONE = "none"
    HANDOFF = "handoff"
    CONTROLLER = "controller"


class ResponseType(str, Enum):
    """Kind of payload streamed back for a turn."""

    DEBUG = "Debug"
    INTERMEDIATE = "Intermediate"
    FINAL = "Final"
    ERROR = "Error"


@dataclass(frozen=True)
class RoutingExample:
    """An example request an agent declares it is good at."""

    user_request: str
    confidence: float
    reasoning: Optional[str] = None


@dataclass(frozen=True)
class AgentDefinition:
    """
    Static description of one agent.

    Loaded once at process start and never mutated afterwards.
    ``model`` is a key into the model catalog, ``tools`` are tool names
    from the tool catalog and ``sub_agents`` are full definitions.
    """

    name: str
    model: str
    description: str = ""
    specialization: str = ""
    system_message: str = ""
    router_type: RouterType = RouterType.NONE
    tools: Tuple[str, ...] = ()
    sub_agents: Tuple["AgentDefinition", ...] = ()
    routing_examples: Tuple[RoutingExample, ...] = ()
    max_tool_calls: Optional[int] = None
    client_overrides: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def sub_agent_names(self) -> List[str]:
        return [agent.name for agent in self.sub_agents]

    def describe(self) -> Dict[str, Any]:
        """Short, serialisable summary used in logs and prompts."""
        return {
            "name": self.name,
            "description": self.description,
            "specialization": self.specialization,
            "router_type": self.router_type.value,
            "tools": list(self.tools),
            "sub_agents": self.sub_agent_names,
        }


@dataclass
class CampaignMetadata:
    """Campaign context used to enrich agent instructions."""

    name: str
    setting: str
    tone: str
    ruleset: str


@dataclass
class RequestContext:
    """
    Deterministic per-request values threaded through every hop.

    ``event_sink`` lets tools push progress events while a turn runs.
    """

    user_id: str
    campaign_id: str
    thread_id: str
    run_id: str
    campaign_metadata: Optional[CampaignMetadata] = None
    allow_edits: bool = True
    event_sink: Optional["EventSink"] = None

    def composite_thread_id(self, agent_scope: Optional[str] = None) -> str:
        """
        Key addressing persisted conversation state.

        Without ``agent_scope`` the key is shared by every agent in the
        thread, which is what carries continuity across handoffs.
        """
        key = f"{self.user_id}:{self.thread_id}:{self.campaign_id}"
        if agent_scope:
            key = f"{key}:{agent_scope}"
        return key

    def identity(self) -> Dict[str, str]:
        return {
            "user_id": self.user_id,
            "campaign_id": self.campaign_id,
            "thread_id": self.thread_id,
            "run_id": self.run_id,
        }


@dataclass
class RoutingDecision:
    """A resolved routing decision. Built per turn, not persisted verbatim."""

    target_agent: AgentDefinition
    confidence: float
    reasoning: str
    fallback_agent: AgentDefinition
    intent_keywords: List[str] = field(default_factory=list)
    context_factors: List[str] = field(default_factory=list)
    routed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    routing_version: str = "1.0"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "targetAgent": self.target_agent.name,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "fallbackAgent": self.fallback_agent.name,
            "intentKeywords": list(self.intent_keywords),
            "contextFactors": list(self.context_factors),
            "routedAt": self.routed_at.isoformat(),
            "routingVersion": self.routing_version,
        }


@dataclass
class RoutingMetadata:
    """Outcome bookkeeping for one routing pass."""

    decision: Optional[RoutingDecision]
    execution_time: float  # milliseconds
    success: bool
    fallback_used: bool
    user_satisfaction: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "decision": self.decision.to_dict() if self.decision else None,
            "executionTime": self.execution_time,
            "success": self.success,
            "fallbackUsed": self.fallback_used,
            "userSatisfaction": self.user_satisfaction,
        }


@dataclass
class ToolCallRecord:
    """A tool call requested by the model."""

    tool_name: str
    arguments: Dict[str, Any]
    tool_call_id: Optional[str] = None
    date_occurred: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ToolResultRecord:
    """The string result of one executed tool call."""

    tool_name: str
    result: str
    tool_call_id: Optional[str] = None
    elapsed_time: Optional[float] = None  # seconds
    date_occurred: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ExecutionResult:
    """
    What the execution service returns for one agent invocation.

    ``messages`` are the messages produced during this invocation
    (LangChain ``BaseMessage`` objects). ``structured_response`` is set
    only when a response schema was requested.
    """

    messages: List[Any] = field(default_factory=list)
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    tool_results: List[ToolResultRecord] = field(default_factory=list)
    structured_response: Optional[Any] = None

    @property
    def final_text(self) -> Optional[str]:
        """Content of the last assistant message, if any."""
        for message in reversed(self.messages):
            if getattr(message, "type", None) == "ai":
                content = message.content
                if isinstance(content, list):
                    content = "".join(
                        part.get("text", "") if isinstance(part, dict) else str(part)
                        for part in content
                    )
                return content
        return None

    @property
    def tool_names(self) -> List[str]:
        return [call.tool_name for call in self.tool_calls if call.tool_name]


@dataclass
class RouterWorkflowState:
    """
    State carried through the routing sub-path.

    ``extras`` holds fields merged in from agent results that the
    workflow itself does not interpret; merges only add or update keys.
    """

    messages: List[Any]
    run_id: str
    router_agent: Optional[AgentDefinition] = None
    routing_decision: Optional[RoutingDecision] = None
    routing_metadata: Optional[RoutingMetadata] = None
    routing_attempts: int = 0
    max_routing_attempts: int = 3
    is_routed: bool = False
    target_agent: Optional[AgentDefinition] = None
    current_response: str = ""
    tool_results: List[ToolResultRecord] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def routing_succeeded(self) -> bool:
        return bool(self.routing_metadata and self.routing_metadata.success)


@dataclass
class WorkspaceEntry:
    """Audit trail entry saved alongside the final message."""

    message_type: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    elapsed_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messageType": self.message_type,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "elapsedTime": self.elapsed_time,
        }


@dataclass
class SavedMessage:
    """A message as returned by the persistence layer."""

    id: str
    thread_id: str
    content: str
    role: str
    run_id: Optional[str] = None
    workspace: List[WorkspaceEntry] = field(default_factory=list)
    routing_metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "content": self.content,
            "role": self.role,
            "runId": self.run_id,
            "workspace": [entry.to_dict() for entry in self.workspace],
            "routingMetadata": self.routing_metadata,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class AgentEvent:
    """One payload streamed to the caller while a turn runs."""

    response_type: ResponseType
    content: str
    message: Optional[SavedMessage] = None

    @classmethod
    def debug(cls, content: str) -> "AgentEvent":
        return cls(ResponseType.DEBUG, content)

    @classmethod
    def intermediate(cls, content: str) -> "AgentEvent":
        return cls(ResponseType.INTERMEDIATE, content)

    @classmethod
    def final(cls, message: SavedMessage) -> "AgentEvent":
        return cls(ResponseType.FINAL, message.content, message)

    @classmethod
    def error(cls, content: str) -> "AgentEvent":
        return cls(ResponseType.ERROR, content)


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol interfaces
# ═══════════════════════════════════════════════════════════════════════════════


class ExecutionService(Protocol):
    """Runs one agent invocation against the model (tool loop included)."""

    async def invoke(
        self,
        prepared: Any,
        messages: Sequence[Any],
        thread_id: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> ExecutionResult:
        ...


class CheckpointStore(Protocol):
    """Conversation state keyed by composite thread id."""

    async def get_state(self, composite_thread_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def put_state(self, composite_thread_id: str, state: Dict[str, Any]) -> None:
        ...


class MessageStore(Protocol):
    """Persists final assistant messages."""

    async def save(
        self,
        thread_id: str,
        content: str,
        role: str,
        workspace: Sequence[WorkspaceEntry] = (),
        run_id: Optional[str] = None,
        routing_metadata: Optional[Dict[str, Any]] = None,
    ) -> SavedMessage:
        ...


class TelemetrySink(Protocol):
    """Receives routing metric records. Failures must not be fatal."""

    async def record(self, record: Dict[str, Any]) -> None:
        ...


class EventSink(Protocol):
    """Receives progress / notice events for the UI."""

    def emit(self, event: AgentEvent) -> None:
        ...
