"""
Shared plumbing for the routing sub-path nodes.
"""

import time
from dataclasses import dataclass, replace
from typing import Any, Optional

from agents.types import (
    AgentDefinition,
    ExecutionResult,
    RequestContext,
    RouterWorkflowState,
    RoutingMetadata,
)
from infrastructure.config import MAX_ROUTING_ATTEMPTS


@dataclass
class RoutingServices:
    """
    Collaborators used by every routing node.

    Attributes:
        registry: AgentRegistry for name lookups and the default agent.
        builder: AgentBuilder preparing agents per invocation.
        execution: ExecutionService running prepared agents.
        context: RequestContext of the current turn (optional).
        max_routing_attempts: Bound on extractor and fallback passes.
    """

    registry: Any
    builder: Any
    execution: Any
    context: Optional[RequestContext] = None
    max_routing_attempts: int = MAX_ROUTING_ATTEMPTS


def elapsed_ms(t0: float) -> float:
    return (time.perf_counter() - t0) * 1000


def metadata_or_default(state: RouterWorkflowState) -> RoutingMetadata:
    if state.routing_metadata is not None:
        return state.routing_metadata
    return RoutingMetadata(
        decision=state.routing_decision,
        execution_time=0.0,
        success=False,
        fallback_used=False,
    )


async def run_agent(agent: AgentDefinition, state: RouterWorkflowState, services: RoutingServices) -> ExecutionResult:
    """
    Prepare and invoke ``agent`` on the workflow's messages.

    Routing invocations carry no checkpoint; every attempt sees exactly
    ``state.messages``.

    Raises:
        AgentConfigurationError: invalid agent setup (never recovered).
        ValueError: the agent's model cannot be resolved.
    """
    prepared = services.builder.prepare(agent, services.context, state.messages)
    if prepared.llm is None:
        raise ValueError(f"Model for agent {agent.name} not configured")
    return await services.execution.invoke(
        prepared, state.messages, None, services.context,
    )


def merge_result(state: RouterWorkflowState, result: ExecutionResult, agent: AgentDefinition) -> RouterWorkflowState:
    """Fold an agent result into the state. Only adds or updates keys."""
    extras = dict(state.extras)
    if result.structured_response is not None:
        extras["structured_response"] = result.structured_response
    extras.setdefault("tool_calls", [])
    extras["tool_calls"] = extras["tool_calls"] + list(result.tool_calls)
    return replace(
        state,
        current_response=result.final_text or "",
        target_agent=agent,
        tool_results=state.tool_results + list(result.tool_results),
        extras=extras,
    )
