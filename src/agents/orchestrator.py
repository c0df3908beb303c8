"""
Handoff Orchestrator - main execution loop for one turn.

Flow:
  1. Prepare the active agent (tools, schema, enriched prompt).
  2. Invoke it on the shared composite thread. Only the newest message is
     sent when a checkpoint already holds the history.
  3. Handoff-mode agent naming a known target → hand off and repeat from 1
     with an empty message list (the checkpoint carries continuity).
  4. Otherwise the agent's reply is the answer: report tools used, save
     exactly one message and yield the final event. An agent that produced
     no reply fails the turn.

Hops are bounded by ``MAX_HANDOFF_HOPS``. Configuration errors propagate
unchanged; every other failure is logged with the turn identity, an error
event is emitted and a single ``TurnGenerationError`` is raised.
"""

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional, Sequence, Union

from agents.errors import AgentConfigurationError, HandoffLimitExceededError, TurnGenerationError
from agents.routing.common import RoutingServices
from agents.routing.workflow import generate_message_with_router
from agents.schemas import RoutingParseFailure, parse_handoff_response
from agents.types import (
    AgentDefinition,
    AgentEvent,
    ExecutionResult,
    RequestContext,
    RouterType,
    WorkspaceEntry,
)
from infrastructure.config import MAX_HANDOFF_HOPS, MAX_ROUTING_ATTEMPTS
from infrastructure.log import turn_logger
from infrastructure.observability import observe, trace_request, update_current_observation, update_current_trace


@dataclass(frozen=True)
class ContinueHandoff:
    """Hop outcome: control passes to ``next_agent``."""

    next_agent: AgentDefinition
    reasoning: str = ""


@dataclass(frozen=True)
class TerminalResponse:
    """Hop outcome: ``text`` is the turn's answer, ``None`` when the agent gave no reply."""

    text: Optional[str]


HopOutcome = Union[ContinueHandoff, TerminalResponse]


class HandoffOrchestrator:
    """
    Runs turns across chained agents.

    Dependencies (injected via '__init__'):
        registry      - AgentRegistry
        builder       - AgentBuilder
        execution     - ExecutionService
        checkpoints   - CheckpointStore (read only here)
        message_store - MessageStore for the final message
        max_hops      - bound on agent invocations per turn
    """

    def __init__(
        self,
        registry: Any,
        builder: Any,
        execution: Any,
        checkpoints: Any,
        message_store: Any,
        max_hops: int = MAX_HANDOFF_HOPS,
        max_routing_attempts: int = MAX_ROUTING_ATTEMPTS,
    ) -> None:
        self.registry = registry
        self.builder = builder
        self.execution = execution
        self.checkpoints = checkpoints
        self.message_store = message_store
        self.max_hops = max_hops
        self.max_routing_attempts = max_routing_attempts

    # public entry points

    async def run_turn(
        self,
        agent: AgentDefinition,
        messages: Sequence[Any],
        context: RequestContext,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run one turn starting at ``agent``.

        Yields debug and intermediate events, then exactly one final
        event carrying the saved message.

        Raises:
            AgentConfigurationError: invalid agent setup.
            TurnGenerationError: any other failure.
        """
        t0 = time.perf_counter()
        log = turn_logger(context, agent=agent.name)
        trace_request(context, tags=["handoff"])

        workspace: List[WorkspaceEntry] = []
        tools_used: List[str] = []
        chain: List[str] = []

        try:
            current = agent
            pending: List[Any] = list(messages)

            while True:
                if len(chain) >= self.max_hops:
                    raise HandoffLimitExceededError(self.max_hops, chain + [current.name])
                if current.name in chain:
                    log.warning("Agent '{}' revisited in handoff chain {}", current.name, chain)
                chain.append(current.name)

                # Handoff targets execute on an empty list but analyse the turn's messages.
                prepared = self.builder.prepare(current, context, messages)
                if prepared.llm is None:
                    raise AgentConfigurationError(f"Model for agent {current.name} not configured")

                banner = (
                    f"🔧 Agent: {current.name} | Tools: {len(prepared.tools)} "
                    f"| Sub-agents: {len(current.sub_agents)}"
                )
                workspace.append(WorkspaceEntry(message_type="debug", content=banner))
                yield AgentEvent.debug(banner)

                result = await self._run_hop(prepared, pending, context)
                for name in result.tool_names:
                    if name not in tools_used:
                        tools_used.append(name)

                outcome = self._hop_outcome(current, result, log)
                if isinstance(outcome, ContinueHandoff):
                    target = outcome.next_agent
                    log.info("Handing off from '{}' to '{}'", current.name, target.name)
                    workspace.append(WorkspaceEntry(
                        message_type="routing",
                        content=f"Handed off to {target.name}",
                        elapsed_time=(time.perf_counter() - t0) * 1000,
                    ))
                    yield AgentEvent.intermediate(f"🔀 Routing to {target.name}...")
                    current = target
                    pending = []
                    continue

                if outcome.text is None:
                    raise RuntimeError(f"No assistant response generated by agent '{current.name}'")
                answer = outcome.text
                break

            if tools_used:
                tool_list = ", ".join(tools_used)
                workspace.append(WorkspaceEntry(message_type="tool_usage", content=f"Tools used: {tool_list}"))
                yield AgentEvent.intermediate(f"🛠️ Used tools: {tool_list}")

            saved = await self.message_store.save(
                context.thread_id,
                answer,
                "assistant",
                workspace=workspace,
                run_id=context.run_id,
            )
            update_current_trace(metadata={
                "handoff_chain": chain,
                "tools_used": tools_used,
                "latency_ms": int((time.perf_counter() - t0) * 1000),
            })
            yield AgentEvent.final(saved)
        except AgentConfigurationError:
            raise
        except Exception as exc:
            log.opt(exception=exc).error("Turn failed after hops {}: {}", chain, exc)
            self._emit_error(context)
            raise TurnGenerationError() from exc

    async def route_turn(
        self,
        router_agent: Optional[AgentDefinition],
        messages: Sequence[Any],
        context: RequestContext,
    ) -> AsyncIterator[AgentEvent]:
        """Run one turn through the routing workflow instead of handoffs."""
        services = RoutingServices(
            registry=self.registry,
            builder=self.builder,
            execution=self.execution,
            context=context,
            max_routing_attempts=self.max_routing_attempts,
        )
        async for event in generate_message_with_router(
            router_agent,
            list(messages),
            services=services,
            message_store=self.message_store,
            thread_id=context.thread_id,
            run_id=context.run_id,
        ):
            yield event

    # internal steps

    @observe(name="handoff_hop")
    async def _run_hop(self, prepared: Any, pending: List[Any], context: RequestContext) -> ExecutionResult:
        """Invoke one agent on the shared thread."""
        thread_key = context.composite_thread_id()
        outgoing = pending
        if pending and await self.checkpoints.get_state(thread_key):
            outgoing = pending[-1:]
        update_current_observation(
            input=f"agent={prepared.name} messages={len(outgoing)}",
            metadata={"thread_key": thread_key, "history_replayed": len(outgoing) == len(pending)},
        )
        return await self.execution.invoke(prepared, outgoing, thread_key, context)

    def _hop_outcome(self, agent: AgentDefinition, result: ExecutionResult, log) -> HopOutcome:
        if agent.router_type != RouterType.HANDOFF:
            return TerminalResponse(result.final_text)

        response = parse_handoff_response(result.structured_response)
        if isinstance(response, RoutingParseFailure):
            return self._handoff_anomaly(agent, result, log, response.reason)

        target = self.registry.get_agent_by_name(response.targetAgent)
        if target is None:
            return self._handoff_anomaly(
                agent, result, log, f"unknown target agent '{response.targetAgent}'",
            )
        return ContinueHandoff(next_agent=target, reasoning=response.reasoning)

    @staticmethod
    def _handoff_anomaly(agent: AgentDefinition, result: ExecutionResult, log, reason: str) -> TerminalResponse:
        log.warning("Handoff agent '{}' produced no usable handoff ({}); using its direct reply", agent.name, reason)
        update_current_trace(tags=["handoff_anomaly"], metadata={"handoff_anomaly": reason, "agent": agent.name})
        return TerminalResponse(result.final_text)

    @staticmethod
    def _emit_error(context: RequestContext) -> None:
        if context.event_sink is not None:
            context.event_sink.emit(AgentEvent.error(TurnGenerationError.DEFAULT_MESSAGE))


# Factory: build a fully-wired orchestrator from config


def build_orchestrator(
    *,
    in_memory: bool = False,
    checkpoints: Optional[Any] = None,
    message_store: Optional[Any] = None,
    telemetry: Optional[Any] = None,
) -> HandoffOrchestrator:
    """
    Convenience factory that constructs and wires all components.

    Reads config / env for API keys, agents and the database URL.

    Args:
        in_memory: Use in-memory stores instead of the SQL database.
        checkpoints: CheckpointStore override.
        message_store: MessageStore override.
        telemetry: TelemetrySink override.

    Returns:
        A fully initialised ``HandoffOrchestrator``.
    """
    from dotenv import load_dotenv

    load_dotenv()

    # Eagerly init LangFuse so child spans are captured
    from infrastructure.observability import get_langfuse

    get_langfuse()

    from agents.analysis import ConversationAnalyzer
    from agents.builder import AgentBuilder
    from agents.execution import LangChainExecutionService
    from agents.registry import load_agent_registry
    from agents.tools import TOOL_CATALOG
    from infrastructure.config import DEFAULT_AGENT_NAME, get_agent_specs, get_model_catalog
    from infrastructure.db.checkpoint_store import InMemoryCheckpointStore, SqlCheckpointStore
    from infrastructure.db.message_store import InMemoryMessageStore, SqlMessageStore
    from infrastructure.db.metrics_store import InMemoryMetricsSink, RoutingMetricsSink
    from infrastructure.db.sql_client import create_tables

    if in_memory:
        checkpoints = checkpoints or InMemoryCheckpointStore()
        message_store = message_store or InMemoryMessageStore()
        telemetry = telemetry or InMemoryMetricsSink()
    else:
        create_tables()
        checkpoints = checkpoints or SqlCheckpointStore()
        message_store = message_store or SqlMessageStore()
        telemetry = telemetry or RoutingMetricsSink()

    registry = load_agent_registry(
        get_agent_specs(),
        DEFAULT_AGENT_NAME,
        tool_names=TOOL_CATALOG,
        model_catalog=get_model_catalog(),
    )
    execution = LangChainExecutionService(checkpoints)
    builder = AgentBuilder(ConversationAnalyzer(telemetry), execution=execution)

    return HandoffOrchestrator(
        registry=registry,
        builder=builder,
        execution=execution,
        checkpoints=checkpoints,
        message_store=message_store,
    )
