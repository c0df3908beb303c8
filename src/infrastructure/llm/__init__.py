"""
LLM provider wrappers.

  get_agent_llm(model_key)  → ChatOpenAI for a catalog entry, or None
"""

from .llm_provider import get_agent_llm

__all__ = [
    "get_agent_llm",
]
