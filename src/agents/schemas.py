"""
Strict schemas for structured routing output.

Model output is untrusted: everything the routing tool or a Handoff-mode
agent returns passes through one of the ``parse_*`` helpers, which return
either a validated model or a ``RoutingParseFailure`` value. They never
raise.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from infrastructure.config import (
    ANALYSIS_DEFAULT_MESSAGE_COUNT,
    ANALYSIS_MAX_MESSAGES,
    ANALYSIS_MIN_MESSAGES,
)


class RouteToAgentInput(BaseModel):
    """Arguments of the ``routeToAgent`` tool."""

    targetAgent: str = Field(description="Name of the target agent (must match exactly)")
    confidence: float = Field(ge=0, le=5, description="Confidence level 0-5 for routing decision")
    reasoning: str = Field(min_length=10, description="Detailed explanation for why this agent was chosen")
    fallbackAgent: Optional[str] = Field(default=None, description="Fallback agent if primary choice fails")
    intentKeywords: List[str] = Field(description="Key terms that influenced routing decision")
    contextFactors: Optional[List[str]] = Field(default=None, description="Conversation context factors considered")


class RoutingDecisionPayload(BaseModel):
    """JSON emitted by the ``routeToAgent`` tool."""

    model_config = ConfigDict(extra="ignore")

    type: str
    targetAgent: str
    confidence: float = Field(ge=0, le=5)
    reasoning: str = ""
    fallbackAgent: Optional[str] = None
    intentKeywords: List[str] = Field(default_factory=list)
    contextFactors: List[str] = Field(default_factory=list)
    timestamp: Optional[str] = None


class HandoffRoutingResponse(BaseModel):
    """Structured response requested from Handoff-mode agents."""

    targetAgent: str = Field(description="Name of the target agent (must match exactly)")
    confidence: float = Field(ge=0, le=5, description="Confidence level 0-5 for routing decision")
    reasoning: str = Field(min_length=10, description="Detailed explanation for why this agent was chosen")
    fallbackAgent: str = Field(description="Fallback agent if primary choice fails")
    intentKeywords: List[str] = Field(description="Key terms that influenced routing decision")
    contextFactors: List[str] = Field(description="Conversation context factors considered")


class AnalyzeConversationContextInput(BaseModel):
    """Arguments of the ``analyzeConversationContext`` tool."""

    messageCount: Optional[int] = Field(
        default=ANALYSIS_DEFAULT_MESSAGE_COUNT,
        ge=ANALYSIS_MIN_MESSAGES,
        le=ANALYSIS_MAX_MESSAGES,
        description="Number of recent messages to analyze",
    )


class ProgressInput(BaseModel):
    message: str = Field(
        description=(
            "User-friendly progress message to display. Examples: "
            "'Analyzing campaign assets...', 'Building character backstory...'"
        )
    )


class SubAgentRequest(BaseModel):
    request: str = Field(description="The request to pass to the sub-agent")


@dataclass(frozen=True)
class RoutingParseFailure:
    """Structured output could not be turned into a routing decision."""

    reason: str
    raw: Any = None

    def __bool__(self) -> bool:
        return False


def _load(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        return json.loads(raw)
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    return raw


def parse_routing_payload(raw: Any) -> Union[RoutingDecisionPayload, RoutingParseFailure]:
    """
    Parse the routing tool's output.

    Accepts a JSON string or an already-decoded mapping. The payload must
    carry ``type == "routing_decision"``.
    """
    try:
        data = _load(raw)
    except (ValueError, TypeError) as exc:
        return RoutingParseFailure(f"invalid JSON: {exc}", raw)

    if not isinstance(data, dict):
        return RoutingParseFailure("routing payload is not an object", raw)
    if data.get("type") != "routing_decision":
        return RoutingParseFailure(f"unexpected payload type {data.get('type')!r}", raw)

    try:
        return RoutingDecisionPayload.model_validate(data)
    except ValidationError as exc:
        return RoutingParseFailure(f"schema validation failed: {exc.error_count()} error(s)", raw)


def parse_handoff_response(raw: Any) -> Union[HandoffRoutingResponse, RoutingParseFailure]:
    """Validate a Handoff-mode agent's structured response."""
    if raw is None:
        return RoutingParseFailure("no structured response", raw)
    if isinstance(raw, HandoffRoutingResponse):
        return raw
    try:
        data = _load(raw)
        return HandoffRoutingResponse.model_validate(data)
    except (ValueError, TypeError) as exc:
        # pydantic's ValidationError is a ValueError
        return RoutingParseFailure(f"invalid handoff response: {exc}", raw)
