"""
Infrastructure layer - pure plumbing (DB, LLM, config, logging, tracing).

No routing logic here. Just connections, clients, and configuration loading.
"""

from .llm import get_agent_llm
from .observability import observe, flush, get_langfuse

__all__ = [
    "get_agent_llm",
    "observe",
    "flush",
    "get_langfuse",
]
