import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from agents.errors import AgentConfigurationError, HandoffLimitExceededError, TurnGenerationError
from agents.orchestrator import HandoffOrchestrator
from agents.registry import AgentRegistry
from agents.schemas import HandoffRoutingResponse
from agents.types import ExecutionResult, ResponseType, RouterType

from conftest import MISSING_MODEL, make_agent, reply, routed, routing_payload


def _handoff_to(target: str) -> HandoffRoutingResponse:
    return HandoffRoutingResponse(
        targetAgent=target,
        confidence=4.0,
        reasoning="The request is about a character",
        fallbackAgent="cheapest",
        intentKeywords=["character"],
        contextFactors=[],
    )


@pytest.fixture
def agent_b():
    return make_agent("agent-b", specialization="character creation")


@pytest.fixture
def agent_a(agent_b):
    return make_agent("agent-a", router_type=RouterType.HANDOFF, sub_agents=(agent_b,))


@pytest.fixture
def handoff_registry(default_agent, agent_a, agent_b):
    return AgentRegistry([default_agent, agent_a, agent_b], "cheapest")


@pytest.fixture
def orchestrator(handoff_registry, builder, execution, checkpoints, message_store):
    return HandoffOrchestrator(
        registry=handoff_registry,
        builder=builder,
        execution=execution,
        checkpoints=checkpoints,
        message_store=message_store,
        max_hops=5,
    )


async def _collect(stream):
    return [event async for event in stream]


@pytest.mark.asyncio
async def test_handoff_persists_only_the_leaf_reply(
    orchestrator, execution, message_store, agent_a, user_messages, context,
):
    execution.responses["agent-a"] = reply("Routing you.", structured=_handoff_to("agent-b"))
    execution.responses["agent-b"] = reply("Meet Thorin, a dwarf.")

    events = await _collect(orchestrator.run_turn(agent_a, user_messages, context))

    assert execution.agents_called() == ["agent-a", "agent-b"]
    assert len(message_store.messages) == 1
    assert message_store.messages[0].content == "Meet Thorin, a dwarf."

    routing_notices = [e for e in events if e.content.startswith("🔀 Routing to")]
    assert len(routing_notices) == 1
    assert routing_notices[0].content == "🔀 Routing to agent-b..."

    kinds = [(e.response_type, e.content.split(" |")[0]) for e in events]
    assert kinds == [
        (ResponseType.DEBUG, "🔧 Agent: agent-a"),
        (ResponseType.INTERMEDIATE, "🔀 Routing to agent-b..."),
        (ResponseType.DEBUG, "🔧 Agent: agent-b"),
        (ResponseType.FINAL, "Meet Thorin, a dwarf."),
    ]
    assert events[-1].message is message_store.messages[0]


@pytest.mark.asyncio
async def test_handoff_target_gets_empty_messages_on_shared_thread(
    orchestrator, execution, agent_a, user_messages, context,
):
    execution.responses["agent-a"] = reply("Routing you.", structured=_handoff_to("agent-b"))

    await _collect(orchestrator.run_turn(agent_a, user_messages, context))

    first, second = execution.calls
    assert first.messages == user_messages
    assert second.messages == []
    assert first.thread_id == second.thread_id == "user-1:thread-1:campaign-1"


@pytest.mark.asyncio
async def test_handoff_target_is_prepared_with_the_turn_messages(
    orchestrator, builder, execution, agent_a, user_messages, context, monkeypatch,
):
    execution.responses["agent-a"] = reply("Routing you.", structured=_handoff_to("agent-b"))
    prepared_with = []
    prepare = builder.prepare

    def recording_prepare(agent, context=None, messages=()):
        prepared_with.append((agent.name, list(messages)))
        return prepare(agent, context, messages)

    monkeypatch.setattr(builder, "prepare", recording_prepare)

    await _collect(orchestrator.run_turn(agent_a, user_messages, context))

    assert prepared_with == [("agent-a", user_messages), ("agent-b", user_messages)]
    assert execution.calls[1].messages == []


@pytest.mark.asyncio
async def test_workspace_trail_is_attached(orchestrator, execution, message_store, agent_a, user_messages, context):
    execution.responses["agent-a"] = reply("Routing you.", structured=_handoff_to("agent-b"))
    execution.responses["agent-b"] = reply("Done.", tools=("calculator", "current_time"))

    await _collect(orchestrator.run_turn(agent_a, user_messages, context))

    workspace = message_store.messages[0].workspace
    assert [entry.message_type for entry in workspace] == ["debug", "routing", "debug", "tool_usage"]
    assert workspace[1].content == "Handed off to agent-b"
    assert workspace[3].content == "Tools used: calculator, current_time"


@pytest.mark.asyncio
async def test_tools_used_notice_is_aggregated_once(orchestrator, execution, default_agent, user_messages, context):
    execution.responses["cheapest"] = reply("It is 4.", tools=("calculator", "calculator", "current_time"))

    events = await _collect(orchestrator.run_turn(default_agent, user_messages, context))

    notices = [e.content for e in events if e.response_type == ResponseType.INTERMEDIATE]
    assert notices == ["🛠️ Used tools: calculator, current_time"]


@pytest.mark.asyncio
async def test_existing_checkpoint_sends_only_newest_message(
    orchestrator, execution, checkpoints, default_agent, context,
):
    await checkpoints.put_state(context.composite_thread_id(), {"messages": []})
    history = [
        HumanMessage(content="Hi"),
        AIMessage(content="Hello!"),
        HumanMessage(content="What time is it?"),
    ]

    await _collect(orchestrator.run_turn(default_agent, history, context))

    assert [m.content for m in execution.calls[0].messages] == ["What time is it?"]


@pytest.mark.asyncio
async def test_without_checkpoint_full_history_is_sent(orchestrator, execution, default_agent, context):
    history = [HumanMessage(content="Hi"), AIMessage(content="Hello!"), HumanMessage(content="And now?")]

    await _collect(orchestrator.run_turn(default_agent, history, context))

    assert len(execution.calls[0].messages) == 3


@pytest.mark.asyncio
async def test_handoff_agent_without_target_answers_directly(
    orchestrator, execution, message_store, agent_a, user_messages, context,
):
    execution.responses["agent-a"] = reply("I can answer that myself.")

    events = await _collect(orchestrator.run_turn(agent_a, user_messages, context))

    assert execution.agents_called() == ["agent-a"]
    assert message_store.messages[0].content == "I can answer that myself."
    assert not any(e.content.startswith("🔀") for e in events)


@pytest.mark.asyncio
async def test_handoff_to_unknown_agent_answers_directly(
    orchestrator, execution, message_store, agent_a, user_messages, context,
):
    execution.responses["agent-a"] = reply("Direct answer.", structured=_handoff_to("ghost"))

    await _collect(orchestrator.run_turn(agent_a, user_messages, context))

    assert execution.agents_called() == ["agent-a"]
    assert message_store.messages[0].content == "Direct answer."


@pytest.mark.asyncio
async def test_handoff_cycle_hits_hop_limit(builder, execution, checkpoints, message_store, default_agent, context, sink):
    ping = make_agent("ping", router_type=RouterType.HANDOFF)
    pong = make_agent("pong", router_type=RouterType.HANDOFF)
    registry = AgentRegistry([default_agent, ping, pong], "cheapest")
    execution.responses["ping"] = reply("to pong", structured=_handoff_to("pong"))
    execution.responses["pong"] = reply("to ping", structured=_handoff_to("ping"))
    orchestrator = HandoffOrchestrator(registry, builder, execution, checkpoints, message_store, max_hops=3)

    with pytest.raises(TurnGenerationError) as excinfo:
        await _collect(orchestrator.run_turn(ping, [HumanMessage(content="hi")], context))

    assert isinstance(excinfo.value.__cause__, HandoffLimitExceededError)
    assert execution.agents_called() == ["ping", "pong", "ping"]
    assert message_store.messages == []
    assert [e.response_type for e in sink.events] == [ResponseType.ERROR]


@pytest.mark.asyncio
async def test_controller_with_handoff_sub_agent_fails_before_invocation(
    orchestrator, execution, message_store, user_messages, context,
):
    child = make_agent("story-router", router_type=RouterType.HANDOFF)
    controller = make_agent("campaign-controller", router_type=RouterType.CONTROLLER, sub_agents=(child,))

    with pytest.raises(AgentConfigurationError) as excinfo:
        await _collect(orchestrator.run_turn(controller, user_messages, context))

    assert "campaign-controller" in str(excinfo.value)
    assert "story-router" in str(excinfo.value)
    assert execution.calls == []
    assert message_store.messages == []


@pytest.mark.asyncio
async def test_unresolvable_model_is_configuration_error(orchestrator, execution, user_messages, context):
    agent = make_agent("no-model", model=MISSING_MODEL)

    with pytest.raises(AgentConfigurationError):
        await _collect(orchestrator.run_turn(agent, user_messages, context))

    assert execution.calls == []


@pytest.mark.asyncio
async def test_execution_failure_surfaces_one_generic_error(
    orchestrator, execution, message_store, default_agent, user_messages, context, sink, error_logs,
):
    execution.responses["cheapest"] = RuntimeError("secret internal detail")

    with pytest.raises(TurnGenerationError) as excinfo:
        await _collect(orchestrator.run_turn(default_agent, user_messages, context))

    assert str(excinfo.value) == "Error generating message with agent."
    assert "secret" not in str(excinfo.value)
    assert message_store.messages == []
    assert sink.events[-1].response_type == ResponseType.ERROR
    assert len(error_logs) == 1


@pytest.mark.parametrize("agent_name, result", [
    ("cheapest", ExecutionResult()),
    ("agent-a", ExecutionResult(messages=[ToolMessage(content="ok", tool_call_id="call-1")])),
])
@pytest.mark.asyncio
async def test_missing_reply_fails_the_turn(
    orchestrator, execution, message_store, handoff_registry, user_messages, context, sink, error_logs,
    agent_name, result,
):
    execution.responses[agent_name] = result
    agent = handoff_registry.get_agent_by_name(agent_name)

    with pytest.raises(TurnGenerationError):
        await _collect(orchestrator.run_turn(agent, user_messages, context))

    assert message_store.messages == []
    assert [e.response_type for e in sink.events] == [ResponseType.ERROR]
    assert len(error_logs) == 1
    assert "No assistant response generated" in error_logs[0]


@pytest.mark.asyncio
async def test_persistence_failure_is_fatal(builder, execution, checkpoints, handoff_registry, default_agent, user_messages, context):
    class FailingStore:
        async def save(self, *args, **kwargs):
            raise ConnectionError("db unreachable")

    orchestrator = HandoffOrchestrator(handoff_registry, builder, execution, checkpoints, FailingStore())

    with pytest.raises(TurnGenerationError):
        await _collect(orchestrator.run_turn(default_agent, user_messages, context))


@pytest.mark.asyncio
async def test_route_turn_uses_routing_workflow(
    handoff_registry, builder, execution, checkpoints, message_store, router_agent, target_agent, user_messages, context,
):
    registry = AgentRegistry([*handoff_registry, router_agent, target_agent], "cheapest")
    execution.responses["router"] = routed(routing_payload("target-agent"))
    execution.responses["target-agent"] = reply("Meet Thorin.")
    orchestrator = HandoffOrchestrator(registry, builder, execution, checkpoints, message_store)

    events = await _collect(orchestrator.route_turn(router_agent, user_messages, context))

    assert events[-1].response_type == ResponseType.FINAL
    assert message_store.messages[0].content == "Meet Thorin."
    assert message_store.messages[0].routing_metadata["decision"]["targetAgent"] == "target-agent"
