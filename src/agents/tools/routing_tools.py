"""
Routing tools - routing decision, conversation analysis, progress updates.

``route_to_agent`` is static. The analysis and progress tools close over
per-invocation state (siblings, messages, request context), so they are
built fresh for every agent invocation.
"""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from langchain_core.tools import StructuredTool
from loguru import logger

from agents.schemas import AnalyzeConversationContextInput, ProgressInput, RouteToAgentInput
from agents.types import AgentEvent
from infrastructure.config import ANALYSIS_DEFAULT_MESSAGE_COUNT, ROUTING_TOOL_NAME

ANALYZE_TOOL_NAME = "analyzeConversationContext"
PROGRESS_TOOL_NAME = "yield_progress"


# 1. routeToAgent


def _route_to_agent(
    targetAgent: str,
    confidence: float,
    reasoning: str,
    intentKeywords: List[str],
    fallbackAgent: Optional[str] = None,
    contextFactors: Optional[List[str]] = None,
) -> str:
    decision = {
        "type": "routing_decision",
        "targetAgent": targetAgent,
        "confidence": confidence,
        "reasoning": reasoning,
        "fallbackAgent": fallbackAgent,
        "intentKeywords": intentKeywords,
        "contextFactors": contextFactors or [],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    logger.info("🎯 Routing Decision: {} ({} confidence)", targetAgent, confidence)
    logger.debug("📝 Reasoning: {}", reasoning)
    return json.dumps(decision)


route_to_agent = StructuredTool.from_function(
    func=_route_to_agent,
    name=ROUTING_TOOL_NAME,
    description="Route the user's request to the most appropriate specialized agent",
    args_schema=RouteToAgentInput,
)


# 2. analyzeConversationContext


def build_analyze_conversation_tool(
    analyzer: Any,
    agent: Any,
    siblings: Sequence,
    messages: Sequence,
    context: Optional[Any] = None,
) -> StructuredTool:
    """
    Conversation analysis bound to one invocation.

    Args:
        analyzer: ``ConversationAnalyzer``.
        agent: The agent calling the tool (current agent).
        siblings: Agents it can route to.
        messages: Conversation messages visible to this invocation.
        context: ``RequestContext`` for telemetry identity.
    """
    async def _analyze(messageCount: Optional[int] = ANALYSIS_DEFAULT_MESSAGE_COUNT) -> str:
        if messageCount is None:
            messageCount = ANALYSIS_DEFAULT_MESSAGE_COUNT
        analysis = await analyzer.analyze(
            agent.name,
            siblings,
            messages,
            message_count=messageCount,
            context=context,
        )
        return json.dumps(analysis.to_dict(), indent=2)

    return StructuredTool.from_function(
        coroutine=_analyze,
        name=ANALYZE_TOOL_NAME,
        description="Analyze recent conversation history for context clues that influence routing",
        args_schema=AnalyzeConversationContextInput,
    )


# 3. yield_progress


def build_progress_tool(context: Optional[Any]) -> StructuredTool:
    """Progress updates forwarded to the request's event sink."""

    def _yield_progress(message: str) -> str:
        sink = getattr(context, "event_sink", None)
        if sink is None:
            logger.warning("Progress event dropped: no event sink in request context")
            return "Progress message queued (no yield available)"
        sink.emit(AgentEvent.intermediate(message))
        return "message sent"

    return StructuredTool.from_function(
        func=_yield_progress,
        name=PROGRESS_TOOL_NAME,
        description=(
            "Send a progress update to the user during long operations. Use this to keep "
            "the user informed about what you're doing. Call this frequently to prevent "
            "timeouts and keep the user updated on your progress."
        ),
        args_schema=ProgressInput,
    )
