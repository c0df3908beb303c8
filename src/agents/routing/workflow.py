"""
Router workflow - the routing sub-path as a small state machine.

    analyze ──decision──▶ target ──▶ validate ──ok──▶ END
       │ ▲                               │
       │ └─no decision (attempts < max)  └─not ok──▶ fallback ──▶ validate ─▶ ...
       │
       ├─failed──────────▶ fallback
       └─attempts ≥ max──▶ default agent

Every node returns a new ``RouterWorkflowState``; nothing is mutated
in place.
"""

import time
from typing import AsyncIterator, List, Optional

from agents.errors import AgentConfigurationError, TurnGenerationError
from agents.routing.common import RoutingServices, elapsed_ms
from agents.routing.extractor import analyze_and_route
from agents.routing.fallback import execute_default_agent, execute_fallback
from agents.routing.target import execute_target_agent
from agents.routing.validator import validate_routing
from agents.types import AgentDefinition, AgentEvent, RouterWorkflowState, WorkspaceEntry
from infrastructure.log import turn_logger
from infrastructure.observability import observe, trace_request, update_current_trace

NO_RESPONSE_MESSAGE = "I'm having trouble processing your request. Please try again."


class RouterWorkflow:
    """Runs the routing sub-path for one turn."""

    def __init__(self, services: RoutingServices) -> None:
        self.services = services

    @property
    def max_attempts(self) -> int:
        return self.services.max_routing_attempts

    @observe(name="router_workflow")
    async def run(
        self,
        messages: List,
        router_agent: Optional[AgentDefinition],
        run_id: str,
    ) -> RouterWorkflowState:
        state = RouterWorkflowState(
            messages=list(messages),
            run_id=run_id,
            router_agent=router_agent,
            max_routing_attempts=self.max_attempts,
        )

        while True:
            state = await analyze_and_route(state, self.services)
            metadata = state.routing_metadata
            if metadata.fallback_used:
                # Extractor failed outright.
                return await self._recover(state)
            if state.routing_decision is not None:
                break
            if state.routing_attempts >= self.max_attempts:
                return await execute_default_agent(state, self.services)

        state = validate_routing(await execute_target_agent(state, self.services))
        if state.routing_succeeded:
            return state
        return await self._recover(state)

    async def _recover(self, state: RouterWorkflowState) -> RouterWorkflowState:
        """At least one fallback pass, more while attempts remain."""
        state = validate_routing(await execute_fallback(state, self.services))
        while not state.routing_succeeded and state.routing_attempts < self.max_attempts:
            state = validate_routing(await execute_fallback(state, self.services))
        return state


async def generate_message_with_router(
    router_agent: Optional[AgentDefinition],
    messages: List,
    *,
    services: RoutingServices,
    message_store,
    thread_id: str,
    run_id: str,
) -> AsyncIterator[AgentEvent]:
    """
    Route one turn through the workflow and persist the answer.

    Yields a debug event, a routing notice when a decision was made and
    one final event carrying the saved message.

    Raises:
        AgentConfigurationError: invalid agent setup.
        TurnGenerationError: any other failure, after logging it.
    """
    t0 = time.perf_counter()
    context = services.context
    log = turn_logger(context, agent=router_agent.name if router_agent else None)
    workspace: List[WorkspaceEntry] = []
    trace_request(context, tags=["router"])

    try:
        yield AgentEvent.debug("🎯 Analyzing request for optimal agent routing...")

        state = await RouterWorkflow(services).run(messages, router_agent, run_id)

        decision = state.routing_decision
        if decision is not None:
            notice = f"🎯 Routed to **{decision.target_agent.name}** (confidence: {decision.confidence:g}/5)"
            workspace.append(WorkspaceEntry(
                message_type="routing",
                content=(
                    f"Routed to: {decision.target_agent.name} with {decision.confidence:g} confidence. "
                    f"Reasoning: {decision.reasoning}"
                ),
                elapsed_time=elapsed_ms(t0),
            ))
            yield AgentEvent.intermediate(notice)

        metadata = state.routing_metadata
        routing_metadata = metadata.to_dict() if metadata else None
        if routing_metadata is not None:
            routing_metadata["executionTime"] = elapsed_ms(t0)

        saved = await message_store.save(
            thread_id,
            state.current_response or NO_RESPONSE_MESSAGE,
            "assistant",
            workspace=workspace,
            run_id=run_id,
            routing_metadata=routing_metadata,
        )
        update_current_trace(metadata={
            "routed_to": decision.target_agent.name if decision else None,
            "routing_attempts": state.routing_attempts,
        })
        yield AgentEvent.final(saved)
    except AgentConfigurationError:
        raise
    except Exception as exc:
        log.opt(exception=exc).error("Routed message generation failed: {}", exc)
        if context is not None and context.event_sink is not None:
            context.event_sink.emit(AgentEvent.error(TurnGenerationError.DEFAULT_MESSAGE))
        raise TurnGenerationError() from exc
