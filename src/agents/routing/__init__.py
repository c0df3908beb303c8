"""
Routing sub-path - router agent decides, target or fallback answers.

Public API:
    analyze_and_route()             → one extractor pass
    execute_target_agent()          → run the decided agent
    execute_fallback()              → run the fallback (or default) agent
    execute_default_agent()         → run the default agent
    validate_routing()              → response gate
    RouterWorkflow                  → the full sub-path for one turn
    generate_message_with_router()  → routed turn as an event stream
"""

from .common import RoutingServices
from .extractor import analyze_and_route, extract_routing_decision
from .fallback import execute_default_agent, execute_fallback
from .target import TARGET_FAILURE_TEMPLATE, execute_target_agent
from .validator import validate_routing
from .workflow import NO_RESPONSE_MESSAGE, RouterWorkflow, generate_message_with_router

__all__ = [
    "NO_RESPONSE_MESSAGE",
    "RouterWorkflow",
    "RoutingServices",
    "TARGET_FAILURE_TEMPLATE",
    "analyze_and_route",
    "execute_default_agent",
    "execute_fallback",
    "execute_target_agent",
    "extract_routing_decision",
    "generate_message_with_router",
    "validate_routing",
]
