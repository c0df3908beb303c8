"""
Chat LLM providers - catalog-driven model factory.

Agents reference models by catalog key (``config/models.yaml``). Each
entry names an OpenAI-compatible provider, a model id and defaults:

    gpt-4.1-nano:
      provider: openai
      model: gpt-4.1-nano
      temperature: 0.7

A model that cannot be resolved is reported as ``None`` so callers can
decide between a configuration error and a fallback path.
"""

from typing import Any, Mapping, Optional

from langchain_openai import ChatOpenAI
from loguru import logger

from infrastructure.config import (
    GROQ_BASE_URL,
    OPENROUTER_BASE_URL,
    get_api_key,
    get_model_catalog,
)

SUPPORTED_PROVIDERS = {"openai", "openrouter", "groq"}


def _build_llm(
    model: str,
    provider: str,
    temperature: float = 0,
    streaming: bool = False,
    max_tokens: Optional[int] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """Internal factory - builds a ChatOpenAI for any provider."""
    llm_kwargs: dict[str, Any] = dict(
        model=model,
        temperature=temperature,
        streaming=streaming,
        max_tokens=max_tokens,
        **kwargs,
    )

    if provider == "openrouter":
        llm_kwargs["openai_api_base"] = OPENROUTER_BASE_URL
        llm_kwargs["openai_api_key"] = get_api_key("openrouter")
    elif provider == "groq":
        llm_kwargs["openai_api_base"] = GROQ_BASE_URL
        llm_kwargs["openai_api_key"] = get_api_key("groq")
    elif provider == "openai":
        llm_kwargs["openai_api_key"] = get_api_key("openai")

    return ChatOpenAI(**llm_kwargs)


def get_agent_llm(
    model_key: str,
    overrides: Optional[Mapping[str, Any]] = None,
    catalog: Optional[Mapping[str, Any]] = None,
) -> Optional[ChatOpenAI]:
    """LLM for one agent, built from its catalog entry.

    Returns ``None`` when the key or provider is unknown, or when the
    client cannot be constructed (e.g. missing API key).
    """
    catalog = get_model_catalog() if catalog is None else catalog
    entry = catalog.get(model_key)
    if not isinstance(entry, Mapping):
        logger.warning("Model '{}' is not in the model catalog", model_key)
        return None

    provider = entry.get("provider", "openai")
    if provider not in SUPPORTED_PROVIDERS:
        logger.warning("Model '{}' uses unsupported provider '{}'", model_key, provider)
        return None

    options = {k: v for k, v in entry.items() if k not in {"provider", "model"}}
    options.update(overrides or {})
    try:
        return _build_llm(entry.get("model", model_key), provider, **options)
    except Exception as exc:
        logger.warning("Model '{}' could not be built: {}", model_key, exc)
        return None

