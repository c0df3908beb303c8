"""
Routing Decision Extractor - asks the router agent where a request goes.

Three outcomes, each adding exactly one routing attempt:
  success      decision resolved, success=True,  fallbackUsed=False
  no-decision  decision=None,     success=False, fallbackUsed=False
  failed       default-agent decision with the sentinel confidence,
               success=False, fallbackUsed=True

Exceptions raised while invoking the router or reading its output are
logged and turned into the ``failed`` outcome. Configuration errors
propagate.
"""

import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from agents.errors import AgentConfigurationError
from agents.routing.common import RoutingServices, elapsed_ms
from agents.schemas import RoutingParseFailure, parse_routing_payload
from agents.types import ExecutionResult, RouterWorkflowState, RoutingDecision, RoutingMetadata
from infrastructure.config import FALLBACK_CONFIDENCE, ROUTING_TOOL_NAME, ROUTING_VERSION
from infrastructure.log import turn_logger
from infrastructure.observability import observe, update_current_observation

FAILED_REASONING = "Router analysis failed, using default agent"
ROUTING_ERROR_FACTOR = "routing_error"


def _routed_at(timestamp: Optional[str]) -> datetime:
    if timestamp:
        try:
            return datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def extract_routing_decision(
    result: ExecutionResult,
    services: RoutingServices,
    log,
) -> Optional[RoutingDecision]:
    """
    First resolvable ``routeToAgent`` output among the tool results.

    Returns ``None`` when the tool was not called, its output does not
    parse, or a named agent does not exist. An empty fallback name
    resolves to the default agent.
    """
    registry = services.registry
    for tool_result in result.tool_results:
        if tool_result.tool_name != ROUTING_TOOL_NAME:
            continue

        payload = parse_routing_payload(tool_result.result)
        if isinstance(payload, RoutingParseFailure):
            log.warning("Routing tool output rejected: {}", payload.reason)
            continue

        target = registry.get_agent_by_name(payload.targetAgent)
        if target is None:
            log.warning("Routing target '{}' is not a known agent", payload.targetAgent)
            continue

        if payload.fallbackAgent:
            fallback = registry.get_agent_by_name(payload.fallbackAgent)
            if fallback is None:
                log.warning("Fallback agent '{}' is not a known agent", payload.fallbackAgent)
                continue
        else:
            fallback = registry.get_default_agent()

        return RoutingDecision(
            target_agent=target,
            confidence=payload.confidence,
            reasoning=payload.reasoning,
            fallback_agent=fallback,
            intent_keywords=list(payload.intentKeywords),
            context_factors=list(payload.contextFactors),
            routed_at=_routed_at(payload.timestamp),
            routing_version=ROUTING_VERSION,
        )

    log.info("No routing decision found in router output")
    return None


def failed_routing(state: RouterWorkflowState, services: RoutingServices, t0: float) -> RouterWorkflowState:
    """The ``failed`` outcome: route to the default agent with the sentinel confidence."""
    default_agent = services.registry.get_default_agent()
    decision = RoutingDecision(
        target_agent=default_agent,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=FAILED_REASONING,
        fallback_agent=default_agent,
        intent_keywords=[],
        context_factors=[ROUTING_ERROR_FACTOR],
        routing_version=ROUTING_VERSION,
    )
    return replace(
        state,
        routing_decision=decision,
        routing_attempts=state.routing_attempts + 1,
        routing_metadata=RoutingMetadata(
            decision=decision,
            execution_time=elapsed_ms(t0),
            success=False,
            fallback_used=True,
        ),
    )


@observe(name="analyze_and_route")
async def analyze_and_route(state: RouterWorkflowState, services: RoutingServices) -> RouterWorkflowState:
    """Run one extractor pass over ``state``."""
    t0 = time.perf_counter()
    router = state.router_agent
    log = turn_logger(services.context, agent=router.name if router else None)

    if router is None:
        log.warning("No router agent provided; routing to default agent")
        return failed_routing(state, services, t0)

    try:
        prepared = services.builder.prepare(router, services.context, state.messages)
        if prepared.llm is None:
            log.warning("Router model '{}' not configured; routing to default agent", router.model)
            return failed_routing(state, services, t0)
        result = await services.execution.invoke(
            prepared, state.messages, None, services.context,
        )
        decision = extract_routing_decision(result, services, log)
    except AgentConfigurationError:
        raise
    except Exception as exc:
        log.opt(exception=exc).error("Router analysis failed: {}", exc)
        return failed_routing(state, services, t0)

    update_current_observation(
        output=decision.target_agent.name if decision else "no-decision",
        metadata={"attempt": state.routing_attempts + 1},
    )
    return replace(
        state,
        routing_decision=decision,
        routing_attempts=state.routing_attempts + 1,
        tool_results=state.tool_results + list(result.tool_results),
        routing_metadata=RoutingMetadata(
            decision=decision,
            execution_time=elapsed_ms(t0),
            success=decision is not None,
            fallback_used=False,
        ),
    )
