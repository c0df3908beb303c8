"""
Target agent execution - runs the agent a routing decision named.
"""

from dataclasses import replace

from agents.errors import AgentConfigurationError
from agents.routing.common import RoutingServices, merge_result, metadata_or_default, run_agent
from agents.types import RouterWorkflowState
from infrastructure.log import turn_logger
from infrastructure.observability import observe

TARGET_FAILURE_TEMPLATE = (
    "I apologize, but I encountered an issue while processing your request "
    "with the {name} agent. Let me try a different approach."
)


@observe(name="execute_target_agent")
async def execute_target_agent(state: RouterWorkflowState, services: RoutingServices) -> RouterWorkflowState:
    """
    Invoke the decision's target agent.

    A failure leaves an apology as the response and marks the pass
    unsuccessful so the fallback path takes over.
    """
    decision = state.routing_decision
    if decision is None:
        raise ValueError("No routing decision available")

    target = decision.target_agent
    metadata = metadata_or_default(state)
    try:
        result = await run_agent(target, state, services)
    except AgentConfigurationError:
        raise
    except Exception as exc:
        turn_logger(services.context, agent=target.name).opt(exception=exc).error(
            "Failed to execute target agent {}: {}", target.name, exc,
        )
        return replace(
            state,
            current_response=TARGET_FAILURE_TEMPLATE.format(name=target.name),
            routing_metadata=replace(metadata, success=False),
        )

    merged = merge_result(state, result, target)
    return replace(merged, is_routed=True, routing_metadata=metadata)
