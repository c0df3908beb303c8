import pytest
from langchain_core.messages import AIMessage

from agents.analysis import ConversationAnalyzer
from agents.builder import AgentBuilder
from agents.errors import AgentConfigurationError, TurnGenerationError
from agents.execution import LangChainExecutionService
from agents.routing import (
    NO_RESPONSE_MESSAGE,
    TARGET_FAILURE_TEMPLATE,
    RouterWorkflow,
    RoutingServices,
    execute_default_agent,
    execute_fallback,
    execute_target_agent,
    generate_message_with_router,
    validate_routing,
)
from agents.types import (
    ResponseType,
    RouterType,
    RouterWorkflowState,
    RoutingDecision,
    RoutingMetadata,
)
from infrastructure.config import APOLOGY_MESSAGE

from conftest import ScriptedModel, make_agent, reply, routed, routing_payload


def _decided_state(target, fallback, messages, success=True, response=""):
    decision = RoutingDecision(
        target_agent=target,
        confidence=4.0,
        reasoning="Character creation request",
        fallback_agent=fallback,
    )
    return RouterWorkflowState(
        messages=messages,
        run_id="run-1",
        routing_decision=decision,
        routing_attempts=1,
        current_response=response,
        routing_metadata=RoutingMetadata(
            decision=decision, execution_time=1.0, success=success, fallback_used=False,
        ),
    )


# ── fallback executor ─────────────────────────────────────


@pytest.mark.asyncio
async def test_fallback_failure_returns_apology(
    services, execution, default_agent, target_agent, user_messages, error_logs,
):
    execution.responses["cheapest"] = RuntimeError("provider down")
    state = _decided_state(target_agent, default_agent, user_messages, success=False)

    state = await execute_fallback(state, services)

    assert state.current_response == APOLOGY_MESSAGE
    assert state.routing_metadata.success is False
    assert state.routing_metadata.fallback_used is True
    assert state.routing_attempts == 2
    assert len(error_logs) == 1
    assert "provider down" not in state.current_response


@pytest.mark.asyncio
async def test_fallback_success_merges_additively(services, execution, default_agent, target_agent, user_messages):
    execution.responses["cheapest"] = reply("Here is a dwarf.", tools=("calculator",))
    state = _decided_state(target_agent, default_agent, user_messages, success=False)
    state.extras["campaign_note"] = "keep me"

    state = await execute_fallback(state, services)

    assert state.current_response == "Here is a dwarf."
    assert state.is_routed is True
    assert state.routing_attempts == 2
    assert state.routing_metadata.success is True
    assert state.routing_metadata.fallback_used is True
    assert state.extras["campaign_note"] == "keep me"
    assert [r.tool_name for r in state.tool_results] == ["calculator"]
    assert state.routing_decision.target_agent.name == "target-agent"


@pytest.mark.asyncio
async def test_fallback_without_decision_uses_default_agent(services, execution, user_messages):
    state = RouterWorkflowState(messages=user_messages, run_id="run-1")

    state = await execute_fallback(state, services)

    assert execution.agents_called() == ["cheapest"]
    assert state.routing_metadata.fallback_used is True


@pytest.mark.asyncio
async def test_unresolvable_fallback_model_is_swallowed(services, default_agent, target_agent, user_messages):
    broken = make_agent("broken", model="missing-model")
    state = _decided_state(target_agent, broken, user_messages, success=False)

    state = await execute_fallback(state, services)

    assert state.current_response == APOLOGY_MESSAGE
    assert state.routing_metadata.success is False


@pytest.mark.asyncio
async def test_default_agent_does_not_count_an_attempt(services, user_messages):
    state = RouterWorkflowState(messages=user_messages, run_id="run-1", routing_attempts=3)

    state = await execute_default_agent(state, services)

    assert state.routing_attempts == 3
    assert state.current_response == "answer from cheapest"
    assert state.routing_metadata.fallback_used is True


@pytest.mark.asyncio
async def test_fallback_configuration_error_propagates(services, default_agent, target_agent, user_messages):
    handoff_child = make_agent("child", router_type=RouterType.HANDOFF)
    controller = make_agent("controller", router_type=RouterType.CONTROLLER, sub_agents=(handoff_child,))
    state = _decided_state(target_agent, controller, user_messages, success=False)

    with pytest.raises(AgentConfigurationError):
        await execute_fallback(state, services)


# ── target agent ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_target_failure_sets_apology_for_that_agent(services, execution, default_agent, target_agent, user_messages):
    execution.responses["target-agent"] = RuntimeError("boom")
    state = _decided_state(target_agent, default_agent, user_messages)

    state = await execute_target_agent(state, services)

    assert state.current_response == TARGET_FAILURE_TEMPLATE.format(name="target-agent")
    assert state.routing_metadata.success is False
    assert state.routing_attempts == 1


@pytest.mark.asyncio
async def test_target_success_marks_routed(services, execution, default_agent, target_agent, user_messages):
    execution.responses["target-agent"] = reply("Meet Thorin.")
    state = _decided_state(target_agent, default_agent, user_messages)

    state = await execute_target_agent(state, services)

    assert state.current_response == "Meet Thorin."
    assert state.is_routed is True
    assert state.target_agent.name == "target-agent"
    assert execution.calls[0].thread_id is None


# ── validator ─────────────────────────────────────────────


def test_validator_is_idempotent(default_agent, target_agent):
    state = _decided_state(target_agent, default_agent, [], success=True, response="hello")

    once = validate_routing(state)
    twice = validate_routing(once)

    assert once.routing_metadata.success is True
    assert twice.routing_metadata.success == once.routing_metadata.success


def test_validator_downgrades_empty_response(default_agent, target_agent):
    state = _decided_state(target_agent, default_agent, [], success=True, response="")

    assert validate_routing(state).routing_metadata.success is False


def test_validator_never_upgrades_failure(default_agent, target_agent):
    state = _decided_state(target_agent, default_agent, [], success=False, response="something")

    validated = validate_routing(state)

    assert validated.routing_metadata.success is False
    assert validated.routing_metadata.execution_time == 1.0
    assert validated.routing_metadata.decision is state.routing_decision


def test_validator_without_metadata_checks_response_only():
    state = RouterWorkflowState(messages=[], run_id="run-1", current_response="hi")

    assert validate_routing(state).routing_metadata.success is True


# ── workflow ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_workflow_routes_to_target(services, execution, router_agent, user_messages):
    execution.responses["router"] = routed(routing_payload("target-agent"))
    execution.responses["target-agent"] = reply("Meet Thorin.")

    state = await RouterWorkflow(services).run(user_messages, router_agent, "run-1")

    assert execution.agents_called() == ["router", "target-agent"]
    assert state.current_response == "Meet Thorin."
    assert state.routing_succeeded
    assert state.routing_metadata.fallback_used is False


@pytest.mark.asyncio
async def test_workflow_falls_back_after_target_failure(services, execution, router_agent, user_messages):
    execution.responses["router"] = routed(routing_payload("target-agent"))
    execution.responses["target-agent"] = RuntimeError("boom")
    execution.responses["cheapest"] = reply("Fallback answer")

    state = await RouterWorkflow(services).run(user_messages, router_agent, "run-1")

    assert execution.agents_called() == ["router", "target-agent", "cheapest"]
    assert state.current_response == "Fallback answer"
    assert state.routing_metadata.fallback_used is True
    assert state.routing_attempts == 2


@pytest.mark.asyncio
async def test_workflow_null_router_runs_default_agent(services, execution, user_messages):
    state = await RouterWorkflow(services).run(user_messages, None, "run-1")

    assert execution.agents_called() == ["cheapest"]
    assert state.current_response == "answer from cheapest"
    assert state.routing_metadata.fallback_used is True


@pytest.mark.asyncio
async def test_workflow_retries_then_uses_default_agent(services, execution, router_agent, user_messages):
    execution.responses["router"] = reply("no tool call")

    state = await RouterWorkflow(services).run(user_messages, router_agent, "run-1")

    assert execution.agents_called() == ["router", "router", "router", "cheapest"]
    assert state.routing_attempts == 3
    assert state.current_response == "answer from cheapest"


@pytest.mark.asyncio
async def test_workflow_retries_do_not_replay_history(
    registry, telemetry, checkpoints, context, router_agent, user_messages,
):
    models = {
        "router": ScriptedModel([AIMessage(content="no tool call")] * 3),
        "cheapest": ScriptedModel([AIMessage(content="Default answer")]),
    }
    builder = AgentBuilder(ConversationAnalyzer(telemetry), model_resolver=lambda agent: models.get(agent.name))
    services = RoutingServices(
        registry=registry,
        builder=builder,
        execution=LangChainExecutionService(checkpoints),
        context=context,
        max_routing_attempts=3,
    )

    state = await RouterWorkflow(services).run(user_messages, router_agent, "run-1")

    calls = models["router"].seen + models["cheapest"].seen
    assert [sum(m.type == "human" for m in call) for call in calls] == [1, 1, 1, 1]
    assert state.current_response == "Default answer"
    assert state.routing_attempts == 3


@pytest.mark.asyncio
async def test_workflow_fallback_attempts_are_bounded(services, execution, router_agent, user_messages):
    execution.responses["router"] = routed(routing_payload("target-agent"))
    execution.responses["target-agent"] = RuntimeError("boom")
    execution.responses["cheapest"] = RuntimeError("still down")

    state = await RouterWorkflow(services).run(user_messages, router_agent, "run-1")

    assert state.current_response == APOLOGY_MESSAGE
    assert state.routing_attempts == 3
    assert state.routing_metadata.success is False


# ── routed message generation ─────────────────────────────


@pytest.mark.asyncio
async def test_generate_message_with_router_persists_one_message(
    services, execution, router_agent, user_messages, message_store,
):
    execution.responses["router"] = routed(routing_payload("target-agent", 4.25))
    execution.responses["target-agent"] = reply("Meet Thorin.")

    events = [
        event async for event in generate_message_with_router(
            router_agent, user_messages,
            services=services, message_store=message_store,
            thread_id="thread-1", run_id="run-1",
        )
    ]

    assert [e.response_type for e in events] == [
        ResponseType.DEBUG, ResponseType.INTERMEDIATE, ResponseType.FINAL,
    ]
    assert "target-agent" in events[1].content
    assert "4.25" in events[1].content
    assert len(message_store.messages) == 1
    saved = message_store.messages[0]
    assert saved.content == "Meet Thorin."
    assert saved.run_id == "run-1"
    assert saved.routing_metadata["decision"]["targetAgent"] == "target-agent"
    assert saved.routing_metadata["success"] is True
    assert [entry.message_type for entry in saved.workspace] == ["routing"]


@pytest.mark.asyncio
async def test_generate_message_with_router_empty_answer(
    services, execution, router_agent, user_messages, message_store,
):
    execution.responses["router"] = routed(routing_payload("target-agent"))
    execution.responses["target-agent"] = reply("")
    execution.responses["cheapest"] = reply("")

    events = [
        event async for event in generate_message_with_router(
            router_agent, user_messages,
            services=services, message_store=message_store,
            thread_id="thread-1", run_id="run-1",
        )
    ]

    assert events[-1].content == NO_RESPONSE_MESSAGE


@pytest.mark.asyncio
async def test_generate_message_with_router_persistence_failure(
    services, execution, router_agent, user_messages, sink,
):
    class FailingStore:
        async def save(self, *args, **kwargs):
            raise ConnectionError("db unreachable")

    with pytest.raises(TurnGenerationError) as excinfo:
        async for _ in generate_message_with_router(
            router_agent, user_messages,
            services=services, message_store=FailingStore(),
            thread_id="thread-1", run_id="run-1",
        ):
            pass

    assert str(excinfo.value) == TurnGenerationError.DEFAULT_MESSAGE
    assert [e.response_type for e in sink.events] == [ResponseType.ERROR]
