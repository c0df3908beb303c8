"""
Fallback and default-agent execution.

Neither node lets an agent failure escape: the response becomes the
generic apology and the pass is marked unsuccessful. Configuration
errors still propagate.
"""

from dataclasses import replace

from agents.errors import AgentConfigurationError
from agents.routing.common import RoutingServices, merge_result, metadata_or_default, run_agent
from agents.types import AgentDefinition, RouterWorkflowState
from infrastructure.config import APOLOGY_MESSAGE
from infrastructure.log import turn_logger
from infrastructure.observability import observe


async def _run_recovery(
    agent: AgentDefinition,
    state: RouterWorkflowState,
    services: RoutingServices,
    count_attempt: bool,
) -> RouterWorkflowState:
    metadata = metadata_or_default(state)
    attempts = state.routing_attempts + 1 if count_attempt else state.routing_attempts
    try:
        result = await run_agent(agent, state, services)
    except AgentConfigurationError:
        raise
    except Exception as exc:
        turn_logger(services.context, agent=agent.name).opt(exception=exc).error(
            "Recovery agent {} failed: {}", agent.name, exc,
        )
        return replace(
            state,
            current_response=APOLOGY_MESSAGE,
            routing_attempts=attempts,
            routing_metadata=replace(metadata, success=False, fallback_used=True),
        )

    merged = merge_result(state, result, agent)
    return replace(
        merged,
        is_routed=True,
        routing_attempts=attempts,
        routing_metadata=replace(metadata, success=True, fallback_used=True),
    )


@observe(name="execute_fallback")
async def execute_fallback(state: RouterWorkflowState, services: RoutingServices) -> RouterWorkflowState:
    """Run the decision's fallback agent (default agent when none). Counts one attempt."""
    decision = state.routing_decision
    agent = decision.fallback_agent if decision and decision.fallback_agent else None
    if agent is None:
        agent = services.registry.get_default_agent()
    return await _run_recovery(agent, state, services, count_attempt=True)


@observe(name="execute_default_agent")
async def execute_default_agent(state: RouterWorkflowState, services: RoutingServices) -> RouterWorkflowState:
    """Run the default agent once the extractor has exhausted its attempts."""
    agent = services.registry.get_default_agent()
    return await _run_recovery(agent, state, services, count_attempt=False)
