"""
Agent Routing & Handoff Engine - the core agent module.

Public API:
    build_orchestrator()  → HandoffOrchestrator (fully wired, ready to chat)
    HandoffOrchestrator   → runs one turn across chained agents
    AgentRegistry         → immutable name → AgentDefinition lookup
    load_agent_registry() → registry from agents.yaml entries
    AgentEvent            → payload streamed back for a turn
"""

from .orchestrator import HandoffOrchestrator, build_orchestrator
from .registry import AgentRegistry, load_agent_registry
from .types import AgentDefinition, AgentEvent, RequestContext, ResponseType, RouterType

__all__ = [
    "AgentDefinition",
    "AgentEvent",
    "AgentRegistry",
    "HandoffOrchestrator",
    "RequestContext",
    "ResponseType",
    "RouterType",
    "build_orchestrator",
    "load_agent_registry",
]
