import pytest
from langchain_core.messages import AIMessage

from agents.execution import _total_usage
from infrastructure import observability
from infrastructure.observability import fetch_prompt, observe, trace_request, usage_from_message


@pytest.fixture
def tracing_disabled(monkeypatch):
    monkeypatch.setattr(observability, "_ENABLED", False)
    monkeypatch.setattr(observability, "_initialised", False)
    monkeypatch.setattr(observability, "_langfuse_client", None)


def _ai(input_tokens, output_tokens):
    return AIMessage(content="x", usage_metadata={
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    })


def test_fetch_prompt_uses_local_template_when_disabled(tracing_disabled):
    assert fetch_prompt("router-system", fallback="You are {name}.", name="Default Router") == (
        "You are Default Router."
    )
    assert fetch_prompt("plain", fallback="No {braces} formatting") == "No {braces} formatting"


def test_observe_is_passthrough_when_disabled(tracing_disabled):
    def handler():
        return 1

    assert observe(name="x")(handler) is handler


def test_trace_helpers_are_noops_when_disabled(tracing_disabled, context):
    trace_request(context, tags=["router"])
    trace_request(None)
    observability.update_current_observation(output="done", usage={"input": 1})
    observability.flush()
    assert observability.get_langfuse() is None


def test_usage_from_message():
    assert usage_from_message(_ai(10, 5)) == {"input": 10, "output": 5, "total": 15}
    assert usage_from_message(AIMessage(content="no usage")) is None


def test_usage_is_summed_across_invocation_messages():
    assert _total_usage([_ai(10, 5), AIMessage(content="tool"), _ai(3, 2)]) == {
        "input": 13, "output": 7, "total": 20,
    }
    assert _total_usage([AIMessage(content="none")]) is None
