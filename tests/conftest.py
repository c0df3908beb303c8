"""
Shared fixtures and in-memory fakes for the routing core.

No network and no real models: the execution service is scripted per
agent name and the builder resolves every configured model to a dummy
object.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from langchain_core.messages import AIMessage, HumanMessage
from loguru import logger

from agents.analysis import ConversationAnalyzer
from agents.builder import AgentBuilder
from agents.registry import ROUTER_TOOL_NAMES, AgentRegistry
from agents.routing import RoutingServices
from agents.types import (
    AgentDefinition,
    ExecutionResult,
    RequestContext,
    RouterType,
    ToolCallRecord,
    ToolResultRecord,
)
from infrastructure.db.checkpoint_store import InMemoryCheckpointStore
from infrastructure.db.message_store import InMemoryMessageStore
from infrastructure.db.metrics_store import InMemoryMetricsSink

MISSING_MODEL = "missing-model"


# ── result helpers ────────────────────────────────────────


def reply(text: str, *, tools: tuple = (), structured: Any = None) -> ExecutionResult:
    """An execution result whose final assistant message is ``text``."""
    return ExecutionResult(
        messages=[AIMessage(content=text)],
        tool_calls=[ToolCallRecord(tool_name=name, arguments={}) for name in tools],
        tool_results=[ToolResultRecord(tool_name=name, result="ok") for name in tools],
        structured_response=structured,
    )


def routing_payload(target: str, confidence: float = 4.25, fallback: Optional[str] = "cheapest", **extra) -> str:
    payload = {
        "type": "routing_decision",
        "targetAgent": target,
        "confidence": confidence,
        "reasoning": "Request is about building a new character",
        "fallbackAgent": fallback,
        "intentKeywords": ["character"],
        "contextFactors": [],
        "timestamp": "2024-05-01T12:00:00+00:00",
    }
    payload.update(extra)
    return json.dumps(payload)


def routed(raw: str) -> ExecutionResult:
    """Router output carrying one ``routeToAgent`` tool result."""
    return ExecutionResult(
        messages=[AIMessage(content="Routing now.")],
        tool_calls=[ToolCallRecord(tool_name="routeToAgent", arguments={})],
        tool_results=[ToolResultRecord(tool_name="routeToAgent", result=raw)],
    )


# ── fakes ─────────────────────────────────────────────────


@dataclass
class Invocation:
    agent: str
    messages: List[Any]
    thread_id: Optional[str]


Scripted = Union[ExecutionResult, Exception, Callable[..., ExecutionResult], List[Any]]


@dataclass
class FakeExecution:
    """
    Execution service returning scripted results per agent name.

    A list value is consumed one entry per call (last entry repeats).
    """

    responses: Dict[str, Scripted] = field(default_factory=dict)
    calls: List[Invocation] = field(default_factory=list)

    async def invoke(self, prepared, messages, thread_id, context=None) -> ExecutionResult:
        self.calls.append(Invocation(prepared.name, list(messages), thread_id))
        response = self.responses.get(prepared.name)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prepared, messages)
        if response is None:
            return reply(f"answer from {prepared.name}")
        return response

    def agents_called(self) -> List[str]:
        return [call.agent for call in self.calls]


class ScriptedModel:
    """Chat model double replaying AI messages in order."""

    def __init__(self, replies, structured=None):
        self.replies = list(replies)
        self.structured = structured
        self.seen = []
        self.bind_kwargs = []

    def bind_tools(self, tools, **kwargs):
        self.bind_kwargs.append(kwargs)
        return self

    async def ainvoke(self, messages, config=None):
        self.seen.append(list(messages))
        return self.replies.pop(0)

    def with_structured_output(self, schema, method=None):
        return _StructuredModel(self.structured)


class _StructuredModel:
    def __init__(self, value):
        self.value = value

    async def ainvoke(self, messages, config=None):
        if isinstance(self.value, Exception):
            raise self.value
        return self.value


class RecordingSink:
    """Event sink keeping every emitted event."""

    def __init__(self) -> None:
        self.events = []

    def emit(self, event) -> None:
        self.events.append(event)


def fake_model_resolver(agent: Optional[AgentDefinition]):
    if agent is None or not agent.model or agent.model == MISSING_MODEL:
        return None
    return object()


# ── agents ────────────────────────────────────────────────


def make_agent(name: str, **kwargs) -> AgentDefinition:
    kwargs.setdefault("model", "test-model")
    return AgentDefinition(name=name, **kwargs)


@pytest.fixture
def default_agent() -> AgentDefinition:
    return make_agent(
        "cheapest",
        description="General assistant",
        specialization="general questions",
        tools=("current_time", "calculator"),
    )


@pytest.fixture
def target_agent() -> AgentDefinition:
    return make_agent(
        "target-agent",
        description="Creates characters",
        specialization="character creation and management",
    )


@pytest.fixture
def router_agent(default_agent, target_agent) -> AgentDefinition:
    return make_agent(
        "router",
        description="Routes requests",
        router_type=RouterType.HANDOFF,
        tools=ROUTER_TOOL_NAMES,
        sub_agents=(default_agent, target_agent),
    )


@pytest.fixture
def registry(default_agent, target_agent, router_agent) -> AgentRegistry:
    return AgentRegistry([default_agent, target_agent, router_agent], "cheapest")


# ── collaborators ─────────────────────────────────────────


@pytest.fixture
def execution() -> FakeExecution:
    return FakeExecution()


@pytest.fixture
def telemetry() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
def builder(execution, telemetry) -> AgentBuilder:
    return AgentBuilder(
        ConversationAnalyzer(telemetry),
        execution=execution,
        model_resolver=fake_model_resolver,
    )


@pytest.fixture
def checkpoints() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def context(sink) -> RequestContext:
    return RequestContext(
        user_id="user-1",
        campaign_id="campaign-1",
        thread_id="thread-1",
        run_id="run-1",
        event_sink=sink,
    )


@pytest.fixture
def services(registry, builder, execution, context) -> RoutingServices:
    return RoutingServices(
        registry=registry,
        builder=builder,
        execution=execution,
        context=context,
        max_routing_attempts=3,
    )


@pytest.fixture
def user_messages():
    return [HumanMessage(content="Create a dwarf character for my campaign")]


@pytest.fixture
def error_logs():
    """Messages logged at ERROR or above while the test runs."""
    records: List[str] = []
    handler_id = logger.add(lambda message: records.append(message.record["message"]), level="ERROR")
    yield records
    logger.remove(handler_id)
