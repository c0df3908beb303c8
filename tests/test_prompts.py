from agents.prompts import (
    build_router_system_message,
    build_sub_agent_descriptions,
    enrich_instructions,
    generate_routing_examples,
)
from agents.types import CampaignMetadata, RoutingExample

from conftest import make_agent


def test_sub_agent_descriptions_mark_routers():
    leaf = make_agent("plot_agent", description="Develops plot hooks.")
    router = make_agent("story_router", description="Routes story work.", sub_agents=(leaf, leaf))

    text = build_sub_agent_descriptions([leaf, router])

    assert text.splitlines() == [
        '- "plot_agent" (Specialized Agent): Develops plot hooks.',
        '- "story_router" (Router Agent): Routes story work. (Routes to 2 sub-agents)',
    ]


def test_routing_examples_declared_and_synthesized():
    declared = make_agent(
        "location_agent",
        routing_examples=(RoutingExample("Describe the tavern", 4.0),),
    )
    leaf = make_agent("plot_agent", specialization="plot hooks")
    router = make_agent("story_router", description="story work", sub_agents=(leaf,))

    lines = generate_routing_examples([declared, leaf, router]).splitlines()

    assert lines == [
        '- "Describe the tavern" → location_agent (confidence: 4)',
        '- "Help me with plot hooks" → plot_agent (confidence: 3)',
        '- "Help me with story work" → story_router (confidence: 2)',
    ]


def test_routing_examples_without_sub_agents():
    assert generate_routing_examples([]) == "- Route based on request content and agent capabilities"


def test_router_system_message_sections():
    text = build_router_system_message("Default Router", "Routes requests", [make_agent("Cheapest")])

    assert text.startswith("You are Default Router, an intelligent routing agent.")
    for section in (
        "DESCRIPTION: Routes requests",
        "AVAILABLE AGENTS:",
        "ROUTING INSTRUCTIONS:",
        "ROUTING STRATEGY:",
        "ROUTING EXAMPLES:",
        "AMBIGUOUS REQUESTS:",
    ):
        assert section in text
    assert text.endswith("your only job is routing.")


def test_enrich_instructions_block_order():
    campaign = CampaignMetadata(name="Ashes", setting="Homebrew", tone="Grim", ruleset="D&D 5e")

    text = enrich_instructions("Be a helpful DM assistant.", campaign)

    order = [
        text.index("<application-context>"),
        text.index("<system-instructions>\nBe a helpful DM assistant.\n</system-instructions>"),
        text.index("<name>Ashes</name>"),
        text.index("<formatting-guidance>"),
        text.index("<guardrails>"),
    ]
    assert order == sorted(order)
    assert "</application-context>\n\n<system-instructions>" in text


def test_enrich_instructions_defaults():
    text = enrich_instructions()

    assert "You are an AI assistant for Oracle Engine" in text
    assert "<campaign-context>" not in text
