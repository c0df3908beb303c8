import json

import pytest
from pydantic import ValidationError

from agents.schemas import (
    AnalyzeConversationContextInput,
    HandoffRoutingResponse,
    RouteToAgentInput,
    RoutingDecisionPayload,
    RoutingParseFailure,
    parse_handoff_response,
    parse_routing_payload,
)

from conftest import routing_payload


def test_parse_routing_payload_from_json():
    payload = parse_routing_payload(routing_payload("target-agent", 4.25, "cheapest"))

    assert isinstance(payload, RoutingDecisionPayload)
    assert payload.targetAgent == "target-agent"
    assert payload.confidence == 4.25
    assert payload.fallbackAgent == "cheapest"


def test_parse_routing_payload_accepts_mapping():
    payload = parse_routing_payload(json.loads(routing_payload("x")))

    assert payload.targetAgent == "x"


@pytest.mark.parametrize("raw", [
    "{oops",
    "[]",
    json.dumps({"type": "something_else", "targetAgent": "x", "confidence": 1}),
    json.dumps({"type": "routing_decision", "confidence": 1}),
    routing_payload("x", confidence=-1),
    None,
])
def test_parse_routing_payload_failures_are_values(raw):
    result = parse_routing_payload(raw)

    assert isinstance(result, RoutingParseFailure)
    assert not result


def test_parse_handoff_response_validates_model_output():
    raw = {
        "targetAgent": "agent-b",
        "confidence": 3,
        "reasoning": "Character creation request",
        "fallbackAgent": "cheapest",
        "intentKeywords": [],
        "contextFactors": [],
    }

    assert parse_handoff_response(raw).targetAgent == "agent-b"
    assert parse_handoff_response(HandoffRoutingResponse(**raw)).confidence == 3


def test_parse_handoff_response_missing_fields():
    assert isinstance(parse_handoff_response(None), RoutingParseFailure)
    assert isinstance(parse_handoff_response({"targetAgent": "b"}), RoutingParseFailure)


def test_route_input_constraints():
    with pytest.raises(ValidationError):
        RouteToAgentInput(targetAgent="a", confidence=6, reasoning="long enough reasoning", intentKeywords=[])
    with pytest.raises(ValidationError):
        RouteToAgentInput(targetAgent="a", confidence=3, reasoning="short", intentKeywords=[])


def test_analyze_input_bounds():
    assert AnalyzeConversationContextInput().messageCount == 5
    assert AnalyzeConversationContextInput(messageCount=10).messageCount == 10
    with pytest.raises(ValidationError):
        AnalyzeConversationContextInput(messageCount=0)
    with pytest.raises(ValidationError):
        AnalyzeConversationContextInput(messageCount=11)
