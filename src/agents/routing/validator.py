"""
Routing validator - gates the workflow on a usable response.
"""

from dataclasses import replace

from agents.routing.common import metadata_or_default
from agents.types import RouterWorkflowState


def validate_routing(state: RouterWorkflowState) -> RouterWorkflowState:
    """
    Success requires a non-empty response and no earlier failure.

    Never turns a failed pass into a successful one; applying it twice
    gives the same state.
    """
    metadata = metadata_or_default(state)
    prior_ok = state.routing_metadata is None or state.routing_metadata.success is not False
    success = bool(state.current_response) and prior_ok
    return replace(state, routing_metadata=replace(metadata, success=success))
