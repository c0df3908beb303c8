"""
Observability layer: LangFuse v3 tracing and prompt management.

Every routing turn becomes one trace. Agent invocations are generation
spans, routing passes and handoff hops are plain spans. The router
system prompt can be managed in LangFuse and falls back to the local
template when it is not published there.

Provides:
    get_langfuse()               singleton client, or None when disabled
    fetch_prompt()               LangFuse prompt with local fallback
    observe                      span decorator (sync and async)
    trace_request()              tag the trace with the request identity
    update_current_trace()       trace metadata and tags
    update_current_observation() span/generation I/O, model and usage
    usage_from_message()         token usage of an AI message
    flush()                      send buffered events before exit

Configuration:
    .env: LANGFUSE_SECRET_KEY, LANGFUSE_PUBLIC_KEY,
          LANGFUSE_BASE_URL (default https://us.cloud.langfuse.com)
    config/param.yaml: observability.enabled

With tracing disabled or keys missing every helper is a no-op and
``observe`` returns the function unchanged.
"""

from loguru import logger
import os
from typing import Any, Dict, Optional, Sequence

from langfuse import Langfuse
from langfuse import get_client as _get_lf_client
from langfuse import observe as _lf_observe

_ENABLED: Optional[bool] = None

_langfuse_client = None
_initialised = False


def _is_enabled() -> bool:
    global _ENABLED
    if _ENABLED is None:
        from infrastructure.config import _get_nested, _PARAMS
        configured = _get_nested(_PARAMS, "observability", "enabled", default=True)
        has_keys = bool(os.getenv("LANGFUSE_SECRET_KEY") and os.getenv("LANGFUSE_PUBLIC_KEY"))
        _ENABLED = bool(configured and has_keys)
    return _ENABLED


def _compact(**fields: Any) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def get_langfuse():
    """
    Return the singleton Langfuse client.

    Returns None if observability is disabled or the client cannot be
    created.
    """
    global _langfuse_client, _initialised
    if _initialised:
        return _langfuse_client
    _initialised = True

    if not _is_enabled():
        logger.info("Routing traces disabled (config or missing LangFuse keys)")
        return None

    base_url = os.getenv("LANGFUSE_BASE_URL", "https://us.cloud.langfuse.com")
    try:
        _langfuse_client = Langfuse(
            secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            host=base_url,
        )
        logger.info("LangFuse client initialised (host={})", base_url)
    except Exception as exc:
        logger.error("Failed to initialise LangFuse: {}", exc)
        _langfuse_client = None
    return _langfuse_client


# ── prompts ───────────────────────────────────────────────


def fetch_prompt(
    name: str,
    *,
    fallback: str,
    label: str = "production",
    cache_ttl_seconds: int = 300,
    **compile_vars: str,
) -> str:
    """
    Compile a text prompt managed in LangFuse.

    LangFuse templates use ``{{variable}}``; the local ``fallback`` uses
    ``str.format`` placeholders and is used whenever the prompt cannot be
    fetched.

    Args:
        name: Prompt name in LangFuse.
        fallback: Local template.
        label: LangFuse label to resolve (``production`` by default).
        cache_ttl_seconds: Client-side cache TTL.
        **compile_vars: Template variables.
    """
    client = get_langfuse()
    if client is not None:
        try:
            prompt = client.get_prompt(name, label=label, type="text", cache_ttl_seconds=cache_ttl_seconds)
            logger.debug("Prompt '{}' v{} loaded from LangFuse", name, getattr(prompt, "version", "?"))
            return prompt.compile(**compile_vars)
        except Exception as exc:
            logger.debug("Prompt '{}' unavailable in LangFuse ({}); using local template", name, exc)

    return fallback.format(**compile_vars) if compile_vars else fallback


# ── spans ─────────────────────────────────────────────────


def observe(*, name: Optional[str] = None, as_type: Optional[str] = None):
    """
    Wrap ``langfuse.observe``; passthrough when tracing is disabled.

    Args:
        name: Span name (defaults to the function name).
        as_type: ``"generation"`` for model calls, ``None`` for a span.
    """
    if not _is_enabled():
        return lambda fn: fn
    return _lf_observe(**_compact(name=name, as_type=as_type))


def update_current_trace(
    *,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    tags: Optional[list] = None,
) -> None:
    """Update the current trace. No-op when tracing is disabled."""
    if not _is_enabled():
        return
    try:
        _get_lf_client().update_current_trace(
            **_compact(user_id=user_id, session_id=session_id, metadata=metadata, tags=tags)
        )
    except Exception as exc:
        logger.debug("update_current_trace failed (non-critical): {}", exc)


def trace_request(context: Any, *, tags: Sequence[str] = ()) -> None:
    """
    Attach a request's identity to the current trace.

    The session is the composite thread id so every turn of a campaign
    thread groups together in LangFuse.
    """
    if context is None:
        return
    update_current_trace(
        user_id=context.user_id,
        session_id=context.composite_thread_id(),
        metadata=context.identity(),
        tags=list(tags) or None,
    )


def update_current_observation(
    *,
    input: Optional[str] = None,
    output: Optional[str] = None,
    metadata: Optional[dict] = None,
    usage: Optional[dict] = None,
    model: Optional[str] = None,
) -> None:
    """
    Update the current span, or generation when ``model``/``usage`` is given.

    No-op when tracing is disabled.
    """
    if not _is_enabled():
        return
    try:
        client = _get_lf_client()
        fields = _compact(input=input, output=output, metadata=metadata)
        if usage is not None or model is not None:
            client.update_current_generation(**fields, **_compact(model=model, usage_details=usage))
        elif fields:
            client.update_current_span(**fields)
    except Exception as exc:
        logger.debug("update_current_observation failed (non-critical): {}", exc)


def usage_from_message(message: Any) -> Optional[Dict[str, int]]:
    """Token usage reported on a LangChain AI message, in LangFuse's keys."""
    usage = getattr(message, "usage_metadata", None)
    if not usage:
        return None
    return {
        "input": usage.get("input_tokens", 0),
        "output": usage.get("output_tokens", 0),
        "total": usage.get("total_tokens", 0),
    }


def flush() -> None:
    """Flush pending LangFuse events (call before program exit)."""
    if not _is_enabled():
        return
    try:
        _get_lf_client().flush()
        logger.debug("LangFuse flushed")
    except Exception as exc:
        logger.debug("LangFuse flush failed: {}", exc)
