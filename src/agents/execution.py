"""
Execution service - runs one prepared agent against its chat model.

Flow:
  1. Load checkpointed conversation for the thread id.
  2. Send system prompt + history + new messages, with tools bound.
  3. Execute requested tool calls and feed results back, until the model
     stops calling tools or the tool-call budget is spent.
  4. Request the structured response when the agent has a schema.
  5. Write the updated conversation back to the checkpoint store.

Tool failures are returned to the model as tool output; model failures
propagate to the caller.
"""

import json
import time
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import (
    BaseMessage,
    SystemMessage,
    ToolMessage,
    messages_from_dict,
    messages_to_dict,
)
from loguru import logger

from agents.types import ExecutionResult, RequestContext, ToolCallRecord, ToolResultRecord
from infrastructure.observability import observe, update_current_observation, usage_from_message


def _tool_output_to_str(output: Any) -> str:
    if isinstance(output, str):
        return output
    content = getattr(output, "content", None)
    if isinstance(content, str):
        return content
    try:
        return json.dumps(output, default=str)
    except (TypeError, ValueError):
        return str(output)


def _total_usage(messages: Sequence[BaseMessage]) -> Optional[Dict[str, int]]:
    totals: Optional[Dict[str, int]] = None
    for message in messages:
        usage = usage_from_message(message)
        if usage is None:
            continue
        totals = totals or {"input": 0, "output": 0, "total": 0}
        for key, value in usage.items():
            totals[key] += value
    return totals


class LangChainExecutionService:
    """
    Tool-calling loop over a LangChain chat model.

    Dependencies (injected via '__init__'):
        checkpoints - CheckpointStore holding conversation state
    """

    def __init__(self, checkpoints: Any) -> None:
        self.checkpoints = checkpoints

    @observe(name="agent_invoke", as_type="generation")
    async def invoke(
        self,
        prepared: Any,
        messages: Sequence[BaseMessage],
        thread_id: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> ExecutionResult:
        """
        Run ``prepared`` on ``messages``.

        With a ``thread_id`` the checkpointed history is prepended and the
        updated conversation written back. ``None`` runs statelessly.
        """
        if prepared.llm is None:
            raise ValueError(f"Model for agent {prepared.name} not configured")

        state = await self.checkpoints.get_state(thread_id) if thread_id else None
        history: List[BaseMessage] = messages_from_dict(state.get("messages", [])) if state else []
        conversation: List[BaseMessage] = history + list(messages)

        model_name = getattr(prepared.llm, "model_name", None) or prepared.name
        update_current_observation(
            input=str(conversation[-1].content)[:1000] if conversation else "",
            model=model_name,
            metadata={"agent": prepared.name, "thread_id": thread_id},
        )

        result = ExecutionResult()
        new_messages = await self._tool_loop(prepared, conversation, result, context)
        result.messages = new_messages

        if prepared.response_schema is not None:
            result.structured_response = await self._structured_response(
                prepared, conversation + new_messages,
            )

        if thread_id:
            await self.checkpoints.put_state(thread_id, {
                "messages": messages_to_dict(conversation + new_messages),
                "agent": prepared.name,
            })

        update_current_observation(
            output=(result.final_text or "")[:500],
            model=model_name,
            usage=_total_usage(new_messages),
        )
        return result

    # helpers

    def _config(self, prepared, context: Optional[RequestContext]) -> Dict[str, Any]:
        metadata = {"agent": prepared.name, "prompt_cache_key": prepared.prompt_cache_key}
        if context is not None:
            metadata.update(context.identity())
        return {"metadata": metadata, "run_name": prepared.name}

    async def _tool_loop(self, prepared, conversation, result: ExecutionResult, context) -> List[BaseMessage]:
        system = [SystemMessage(content=prepared.system_prompt)] if prepared.system_prompt else []
        tool_map = prepared.tool_map
        model = prepared.llm.bind_tools(prepared.tools) if prepared.tools else prepared.llm
        config = self._config(prepared, context)

        new_messages: List[BaseMessage] = []
        calls_made = 0

        while True:
            ai_message = await model.ainvoke(system + conversation + new_messages, config=config)
            new_messages.append(ai_message)

            tool_calls = getattr(ai_message, "tool_calls", None) or []
            if not tool_calls:
                return new_messages

            for call in tool_calls:
                calls_made += 1
                result.tool_calls.append(ToolCallRecord(
                    tool_name=call.get("name", ""),
                    arguments=call.get("args") or {},
                    tool_call_id=call.get("id"),
                ))
                output, elapsed = await self._run_tool(tool_map, call)
                result.tool_results.append(ToolResultRecord(
                    tool_name=call.get("name", ""),
                    result=output,
                    tool_call_id=call.get("id"),
                    elapsed_time=elapsed,
                ))
                new_messages.append(ToolMessage(content=output, tool_call_id=call.get("id") or ""))

            if calls_made >= prepared.max_tool_calls:
                logger.warning(
                    "Agent '{}' reached its tool-call limit ({}); requesting final answer",
                    prepared.name,
                    prepared.max_tool_calls,
                )
                final_model = (
                    prepared.llm.bind_tools(prepared.tools, tool_choice="none")
                    if prepared.tools else prepared.llm
                )
                new_messages.append(await final_model.ainvoke(system + conversation + new_messages, config=config))
                return new_messages

    @staticmethod
    async def _run_tool(tool_map, call) -> tuple:
        name = call.get("name", "")
        tool = tool_map.get(name)
        t0 = time.perf_counter()
        if tool is None:
            logger.warning("Model requested unknown tool '{}'", name)
            return f"Error: tool '{name}' is not available", 0.0
        try:
            output = await tool.ainvoke(call.get("args") or {})
            text = _tool_output_to_str(output)
        except Exception as exc:
            # Returned to the model so it can recover.
            logger.opt(exception=exc).warning("Tool '{}' failed: {}", name, exc)
            text = f"Error executing tool '{name}': {exc}"
        elapsed = time.perf_counter() - t0
        logger.debug("Tool '{}' finished in {:.2f}s", name, elapsed)
        return text, elapsed

    @staticmethod
    async def _structured_response(prepared, conversation: List[BaseMessage]) -> Optional[Any]:
        system = [SystemMessage(content=prepared.system_prompt)] if prepared.system_prompt else []
        model = prepared.llm.with_structured_output(prepared.response_schema, method="function_calling")
        try:
            return await model.ainvoke(system + conversation)
        except Exception as exc:
            logger.warning("Structured response for '{}' failed: {}", prepared.name, exc)
            return None
