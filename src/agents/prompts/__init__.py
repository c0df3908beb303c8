"""
Agent prompt templates - router system prompt and instruction enrichment.

The router prompt is fetched from LangFuse Prompt Management at runtime.
Local fallbacks are defined in 'agent_prompts.py'.
"""

from .agent_prompts import (
    LANGFUSE_PROMPT_NAMES,
    build_router_system_message,
    build_sub_agent_descriptions,
    enrich_instructions,
    generate_routing_examples,
)

__all__ = [
    "LANGFUSE_PROMPT_NAMES",
    "build_router_system_message",
    "build_sub_agent_descriptions",
    "enrich_instructions",
    "generate_routing_examples",
]
