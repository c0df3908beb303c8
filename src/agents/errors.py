"""
Exceptions raised by the routing core.

Only configuration problems and the final turn failure cross component
boundaries. Parse failures are returned as values (see ``agents.schemas``).
"""


class AgentConfigurationError(Exception):
    """Invalid agent setup. Fatal, never degraded to a fallback."""


class InvalidMessageCountError(ValueError):
    """Conversation analysis window outside the allowed range."""

    def __init__(self, message_count, minimum: int, maximum: int):
        self.message_count = message_count
        super().__init__(
            f"Invalid messageCount value {message_count!r}: expected {minimum}-{maximum}"
        )


class HandoffLimitExceededError(Exception):
    """A turn handed off more times than the configured hop limit."""

    def __init__(self, hops: int, chain: list):
        self.hops = hops
        self.chain = chain
        super().__init__(f"Handoff limit of {hops} hops exceeded: {' → '.join(chain)}")


class TurnGenerationError(Exception):
    """
    The single fatal error surfaced for a failed turn.

    The message is fixed and safe to show to users.
    """

    DEFAULT_MESSAGE = "Error generating message with agent."

    def __init__(self, message: str = DEFAULT_MESSAGE):
        super().__init__(message)
