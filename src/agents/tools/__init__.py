"""
Agent tools - routing, conversation analysis, progress and general tools.

``TOOL_CATALOG`` maps the tool names used in ``agents.yaml`` to static
tools. Per-invocation tools (analysis, progress, sub-agent tools) are
built by ``agents.builder``.
"""

from .general_tools import calculator, current_time
from .routing_tools import (
    ANALYZE_TOOL_NAME,
    PROGRESS_TOOL_NAME,
    build_analyze_conversation_tool,
    build_progress_tool,
    route_to_agent,
)

TOOL_CATALOG = {
    route_to_agent.name: route_to_agent,
    calculator.name: calculator,
    current_time.name: current_time,
}

__all__ = [
    "ANALYZE_TOOL_NAME",
    "PROGRESS_TOOL_NAME",
    "TOOL_CATALOG",
    "build_analyze_conversation_tool",
    "build_progress_tool",
    "calculator",
    "current_time",
    "route_to_agent",
]
