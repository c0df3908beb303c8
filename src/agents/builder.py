"""
Agent Builder - prepares one agent for one invocation.

Resolves the chat model, collects tools (declared tools, the progress
tool, a bound conversation-analysis tool, sub-agent tools for
Controller-mode agents), picks the response schema for Handoff-mode
agents and enriches the system prompt with campaign context.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage
from langchain_core.tools import BaseTool, StructuredTool
from loguru import logger

from agents.errors import AgentConfigurationError
from agents.prompts import enrich_instructions
from agents.registry import resolve_model, validate_agent_configuration
from agents.schemas import HandoffRoutingResponse, SubAgentRequest
from agents.tools import (
    ANALYZE_TOOL_NAME,
    TOOL_CATALOG,
    build_analyze_conversation_tool,
    build_progress_tool,
)
from agents.types import AgentDefinition, RequestContext, RouterType
from infrastructure.config import DEFAULT_MAX_TOOL_CALLS


@dataclass
class PreparedAgent:
    """
    Everything the execution service needs for one invocation.

    Attributes:
        agent: The agent definition being invoked.
        llm: Resolved chat model, or ``None`` when it cannot be resolved.
        tools: LangChain tools bound for this invocation.
        system_prompt: Enriched system prompt.
        response_schema: Structured response model (Handoff-mode only).
        prompt_cache_key: Agent-scoped composite thread id.
        max_tool_calls: Upper bound on tool calls per invocation.
    """

    agent: AgentDefinition
    llm: Optional[Any]
    tools: List[BaseTool] = field(default_factory=list)
    system_prompt: str = ""
    response_schema: Optional[type] = None
    prompt_cache_key: Optional[str] = None
    max_tool_calls: int = DEFAULT_MAX_TOOL_CALLS

    @property
    def name(self) -> str:
        return self.agent.name

    @property
    def tool_map(self) -> Dict[str, BaseTool]:
        return {t.name: t for t in self.tools}


class AgentBuilder:
    """
    Builds ``PreparedAgent`` instances.

    Dependencies (injected via '__init__'):
        analyzer       - ConversationAnalyzer (for the analysis tool)
        execution      - ExecutionService (for Controller sub-agent tools;
                         may be attached after construction)
        tool_catalog   - name → static tool
        model_resolver - AgentDefinition → chat model or None
    """

    def __init__(
        self,
        analyzer: Any,
        execution: Optional[Any] = None,
        tool_catalog: Optional[Dict[str, BaseTool]] = None,
        model_resolver: Callable[[AgentDefinition], Any] = resolve_model,
    ) -> None:
        self.analyzer = analyzer
        self.execution = execution
        self.tool_catalog = TOOL_CATALOG if tool_catalog is None else tool_catalog
        self.model_resolver = model_resolver

    def prepare(
        self,
        agent: AgentDefinition,
        context: Optional[RequestContext] = None,
        messages: Sequence[Any] = (),
    ) -> PreparedAgent:
        """
        Prepare ``agent`` for one invocation.

        Raises:
            AgentConfigurationError: invalid Controller setup or unknown tool.
        """
        validate_agent_configuration(agent)

        tools: List[BaseTool] = []
        for tool_name in agent.tools:
            if tool_name == ANALYZE_TOOL_NAME:
                tools.append(build_analyze_conversation_tool(
                    self.analyzer, agent, agent.sub_agents, messages, context,
                ))
                continue
            tool = self.tool_catalog.get(tool_name)
            if tool is None:
                raise AgentConfigurationError(
                    f"Agent '{agent.name}' references unknown tool '{tool_name}'"
                )
            tools.append(tool)

        # Every agent can report progress.
        tools.append(build_progress_tool(context))

        if agent.router_type == RouterType.CONTROLLER:
            for sub_agent in agent.sub_agents:
                tools.append(self._sub_agent_tool(sub_agent, context))

        response_schema = HandoffRoutingResponse if agent.router_type == RouterType.HANDOFF else None

        prepared = PreparedAgent(
            agent=agent,
            llm=self.model_resolver(agent),
            tools=_dedupe(tools),
            system_prompt=enrich_instructions(
                agent.system_message,
                context.campaign_metadata if context else None,
            ),
            response_schema=response_schema,
            prompt_cache_key=context.composite_thread_id(agent.name) if context else None,
            max_tool_calls=agent.max_tool_calls or DEFAULT_MAX_TOOL_CALLS,
        )
        logger.debug(
            "Prepared agent '{}' ({} tools, schema={})",
            agent.name,
            len(prepared.tools),
            response_schema.__name__ if response_schema else None,
        )
        return prepared

    def _sub_agent_tool(self, sub_agent: AgentDefinition, context: Optional[RequestContext]) -> StructuredTool:
        """Expose a sub-agent as an in-turn callable tool (Controller mode)."""

        async def _call_sub_agent(request: str) -> str:
            if self.execution is None:
                raise AgentConfigurationError(
                    f"Sub-agent '{sub_agent.name}' called without an execution service"
                )
            prepared = self.prepare(sub_agent, context, [])
            if prepared.llm is None:
                raise AgentConfigurationError(f"Model for agent {sub_agent.name} not configured")
            thread_id = context.composite_thread_id(sub_agent.name) if context else sub_agent.name
            result = await self.execution.invoke(
                prepared, [HumanMessage(content=request)], thread_id, context,
            )
            return result.final_text or ""

        return StructuredTool.from_function(
            coroutine=_call_sub_agent,
            name=_tool_name(sub_agent.name),
            description=sub_agent.description or f"Delegate to {sub_agent.name}",
            args_schema=SubAgentRequest,
        )


def _tool_name(agent_name: str) -> str:
    # Function names accepted by OpenAI-compatible APIs.
    return re.sub(r"[^a-zA-Z0-9_-]", "_", agent_name)


def _dedupe(tools: List[BaseTool]) -> List[BaseTool]:
    seen = set()
    unique = []
    for tool in tools:
        if tool.name not in seen:
            seen.add(tool.name)
            unique.append(tool)
    return unique
