#!/usr/bin/env python3
"""
Interactive chat against the configured agents.

Usage:
    PYTHONPATH=src python scripts/chat.py
    PYTHONPATH=src python scripts/chat.py --agent "Default Router" --in-memory
    PYTHONPATH=src python scripts/chat.py --agent "Default Router" --routed
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from langchain_core.messages import AIMessage, HumanMessage
from loguru import logger

from agents import AgentEvent, RequestContext, ResponseType, build_orchestrator
from agents.errors import AgentConfigurationError, TurnGenerationError
from agents.types import CampaignMetadata
from infrastructure import config
from infrastructure.log import setup_logging
from infrastructure.observability import flush


class ConsoleEventSink:
    """Prints progress events pushed by tools while a turn runs."""

    def emit(self, event: AgentEvent) -> None:
        print(f"  … {event.content}")


def _print_event(event: AgentEvent, verbose: bool) -> None:
    if event.response_type == ResponseType.DEBUG:
        if verbose:
            print(f"  [debug] {event.content}")
    elif event.response_type == ResponseType.INTERMEDIATE:
        print(f"  {event.content}")
    elif event.response_type == ResponseType.FINAL:
        print(f"\nAssistant: {event.content}\n")


async def _chat(args) -> int:
    orchestrator = build_orchestrator(in_memory=args.in_memory)
    registry = orchestrator.registry
    agent = registry.get_agent_by_name(args.agent) if args.agent else registry.get_default_agent()
    if agent is None:
        logger.error("Unknown agent '{}'. Available: {}", args.agent, ", ".join(registry.names()))
        return 1

    campaign = None
    if args.campaign_name:
        campaign = CampaignMetadata(
            name=args.campaign_name,
            setting=args.setting,
            tone=args.tone,
            ruleset=args.ruleset,
        )

    thread_id = args.thread or uuid.uuid4().hex
    history = []
    print(f"Chatting with '{agent.name}' (thread {thread_id}). Type 'exit' to quit.\n")

    while True:
        try:
            text = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not text:
            continue
        if text.lower() in {"exit", "quit"}:
            break

        history.append(HumanMessage(content=text))
        context = RequestContext(
            user_id=args.user,
            campaign_id=args.campaign,
            thread_id=thread_id,
            run_id=uuid.uuid4().hex,
            campaign_metadata=campaign,
            event_sink=ConsoleEventSink(),
        )
        stream = (
            orchestrator.route_turn(agent, history, context)
            if args.routed else orchestrator.run_turn(agent, history, context)
        )
        try:
            async for event in stream:
                _print_event(event, args.verbose)
                if event.response_type == ResponseType.FINAL:
                    history.append(AIMessage(content=event.content))
        except AgentConfigurationError as exc:
            logger.error("Configuration error: {}", exc)
            return 1
        except TurnGenerationError as exc:
            print(f"\nAssistant: {exc}\n")

    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Chat with the configured agents")
    parser.add_argument("--agent", default=None, help="Entry agent (default: configured default agent)")
    parser.add_argument("--routed", action="store_true", help="Use the routing workflow instead of handoffs")
    parser.add_argument("--in-memory", action="store_true", help="Keep messages and checkpoints in memory")
    parser.add_argument("--user", default="local-user", help="User id")
    parser.add_argument("--campaign", default="default", help="Campaign id")
    parser.add_argument("--thread", default=None, help="Thread id to resume (default: new thread)")
    parser.add_argument("--campaign-name", default=None, help="Campaign name for instruction enrichment")
    parser.add_argument("--setting", default="", help="Campaign setting")
    parser.add_argument("--tone", default="", help="Campaign tone")
    parser.add_argument("--ruleset", default="", help="Campaign ruleset")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")
    parser.add_argument("--log-file", default=None, help="Also write logs (with turn identity) to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug events")
    parser.add_argument("--show-config", action="store_true", help="Log the active configuration first")
    args = parser.parse_args()

    setup_logging(args.log_level, log_file=args.log_file)
    if args.show_config:
        config.dump()
    try:
        config.validate()
    except (ValueError, OSError) as exc:
        logger.error(str(exc))
        return 1

    try:
        return asyncio.run(_chat(args))
    finally:
        flush()


if __name__ == "__main__":
    sys.exit(main())
