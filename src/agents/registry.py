"""
Agent Registry - immutable lookup of agent definitions by name.

Definitions are built once from ``config/agents.yaml``:
  - sub-agents are referenced by name and resolved dependency-first
  - unknown names, cycles, unknown tools or models are configuration errors
  - Handoff-mode agents with sub-agents get the router prompt and tools
  - Controller-mode agents are checked for Handoff-mode sub-agents
"""

from dataclasses import replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from agents.errors import AgentConfigurationError
from agents.prompts import build_router_system_message
from agents.tools.routing_tools import ANALYZE_TOOL_NAME
from agents.types import AgentDefinition, RouterType, RoutingExample
from infrastructure.config import DEFAULT_AGENT_NAME, ROUTING_TOOL_NAME
from infrastructure.llm import get_agent_llm

ROUTER_TOOL_NAMES = (ROUTING_TOOL_NAME, ANALYZE_TOOL_NAME)

_DEFAULT_ROUTER_SPECIALIZATION = "intelligent request routing and delegation"
_DEFAULT_ROUTER_DESCRIPTION = "Intelligent routing agent"


class AgentRegistry:
    """
    Read-only name → ``AgentDefinition`` mapping.

    Lookups return ``None`` for unknown names; the default agent is
    guaranteed to exist.
    """

    def __init__(self, agents: Iterable[AgentDefinition], default_agent_name: str = DEFAULT_AGENT_NAME) -> None:
        by_name: Dict[str, AgentDefinition] = {}
        for agent in agents:
            if agent.name in by_name:
                raise AgentConfigurationError(f"Duplicate agent name '{agent.name}'")
            by_name[agent.name] = agent
        if default_agent_name not in by_name:
            raise AgentConfigurationError(f"Default agent '{default_agent_name}' is not defined")

        self._agents: Mapping[str, AgentDefinition] = MappingProxyType(by_name)
        self._default_agent_name = default_agent_name

    def get_agent_by_name(self, name: Optional[str]) -> Optional[AgentDefinition]:
        if not name:
            return None
        return self._agents.get(name)

    def get_default_agent(self) -> AgentDefinition:
        return self._agents[self._default_agent_name]

    @property
    def default_agent_name(self) -> str:
        return self._default_agent_name

    def names(self) -> List[str]:
        return list(self._agents)

    def agents(self) -> Mapping[str, AgentDefinition]:
        return self._agents

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self):
        return iter(self._agents.values())


# ── validation ────────────────────────────────────────────


def validate_agent_configuration(agent: AgentDefinition) -> None:
    """
    Reject Controller-mode agents that contain Handoff-mode sub-agents.

    Checked recursively through every sub-agent.

    Raises:
        AgentConfigurationError: naming both the controller and the sub-agent.
    """
    for sub_agent in agent.sub_agents:
        if agent.router_type == RouterType.CONTROLLER and sub_agent.router_type == RouterType.HANDOFF:
            raise AgentConfigurationError(
                f"Configuration Error: Controller agent '{agent.name}' "
                f"cannot have Handoff sub-agent '{sub_agent.name}'."
            )
        validate_agent_configuration(sub_agent)


# ── router conversion ─────────────────────────────────────


def build_router_agent(agent: AgentDefinition) -> AgentDefinition:
    """
    Turn an agent with sub-agents into a routing agent.

    Leaf agents are returned unchanged. Routers get the router system
    prompt (built from their direct sub-agents only) and the routing
    and conversation-analysis tools.
    """
    if not agent.sub_agents:
        return agent

    description = agent.description or _DEFAULT_ROUTER_DESCRIPTION
    return replace(
        agent,
        system_message=build_router_system_message(agent.name, description, agent.sub_agents),
        tools=ROUTER_TOOL_NAMES,
        specialization=agent.specialization or _DEFAULT_ROUTER_SPECIALIZATION,
    )


def resolve_model(agent: Optional[AgentDefinition], catalog: Optional[Dict[str, Any]] = None):
    """Chat model for ``agent``; ``None`` when it cannot be resolved."""
    if agent is None or not agent.model:
        return None
    return get_agent_llm(agent.model, overrides=dict(agent.client_overrides), catalog=catalog)


# ── loading ───────────────────────────────────────────────


def _parse_router_type(spec: Dict[str, Any]) -> RouterType:
    raw = str(spec.get("router_type") or "none").lower()
    try:
        return RouterType(raw)
    except ValueError:
        raise AgentConfigurationError(
            f"Agent '{spec.get('name')}' has unknown router_type '{raw}'"
        ) from None


def _parse_examples(spec: Dict[str, Any]) -> tuple:
    examples = []
    for item in spec.get("routing_examples") or []:
        confidence = float(item.get("confidence", 3))
        if not 0 <= confidence <= 5:
            raise AgentConfigurationError(
                f"Agent '{spec.get('name')}' routing example confidence {confidence} is outside 0-5"
            )
        examples.append(RoutingExample(
            user_request=item["user_request"],
            confidence=confidence,
            reasoning=item.get("reasoning"),
        ))
    return tuple(examples)


def load_agent_registry(
    specs: Sequence[Dict[str, Any]],
    default_agent_name: str = DEFAULT_AGENT_NAME,
    *,
    tool_names: Optional[Iterable[str]] = None,
    model_catalog: Optional[Dict[str, Any]] = None,
) -> AgentRegistry:
    """
    Build the registry from raw agent entries.

    Args:
        specs: Entries of the ``agents`` list in ``agents.yaml``.
        default_agent_name: Agent used whenever routing cannot decide.
        tool_names: Known tool names; unknown references are rejected.
        model_catalog: Known model keys; unknown references are rejected.

    Raises:
        AgentConfigurationError: on any invalid reference or setup.
    """
    raw_by_name: Dict[str, Dict[str, Any]] = {}
    for spec in specs:
        name = spec.get("name")
        if not name:
            raise AgentConfigurationError("Agent entry without a name")
        if name in raw_by_name:
            raise AgentConfigurationError(f"Duplicate agent name '{name}'")
        raw_by_name[name] = spec

    known_tools = set(tool_names) | set(ROUTER_TOOL_NAMES) if tool_names is not None else None
    built: Dict[str, AgentDefinition] = {}

    def build(name: str, chain: List[str]) -> AgentDefinition:
        if name in built:
            return built[name]
        if name in chain:
            raise AgentConfigurationError(
                f"Sub-agent cycle detected: {' → '.join(chain + [name])}"
            )
        spec = raw_by_name.get(name)
        if spec is None:
            raise AgentConfigurationError(
                f"Agent '{chain[-1]}' references unknown sub-agent '{name}'"
            )

        model = spec.get("model") or ""
        if model_catalog is not None and model not in model_catalog:
            raise AgentConfigurationError(f"Agent '{name}' references unknown model '{model}'")

        tools = tuple(spec.get("tools") or ())
        if known_tools is not None:
            unknown = [t for t in tools if t not in known_tools]
            if unknown:
                raise AgentConfigurationError(
                    f"Agent '{name}' references unknown tool(s): {', '.join(unknown)}"
                )

        sub_agents = tuple(build(sub, chain + [name]) for sub in spec.get("sub_agents") or ())
        agent = AgentDefinition(
            name=name,
            model=model,
            description=spec.get("description") or "",
            specialization=spec.get("specialization") or "",
            system_message=spec.get("system_message") or "",
            router_type=_parse_router_type(spec),
            tools=tools,
            sub_agents=sub_agents,
            routing_examples=_parse_examples(spec),
            max_tool_calls=spec.get("max_tool_calls"),
            client_overrides=MappingProxyType(dict(spec.get("client_overrides") or {})),
        )

        if agent.router_type == RouterType.HANDOFF and agent.sub_agents:
            agent = build_router_agent(agent)
        validate_agent_configuration(agent)

        built[name] = agent
        return agent

    for name in raw_by_name:
        build(name, [])

    registry = AgentRegistry(built.values(), default_agent_name)
    logger.info(
        "Agent registry loaded: {} agents (default='{}')",
        len(registry),
        default_agent_name,
    )
    return registry
