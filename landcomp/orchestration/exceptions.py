from __future__ import annotations

from typing import Iterable


class OrchestrationError(RuntimeError):
    """Base class for routing and dispatch failures."""


class NoEligibleAgentError(OrchestrationError):
    """Raised when no registered agent qualifies for an intent."""

    def __init__(self, intent_type: str, required_capabilities: Iterable[str] = ()) -> None:
        self.intent_type = intent_type
        self.required_capabilities = sorted(required_capabilities)
        required = ", ".join(self.required_capabilities) or "none"
        super().__init__(f"No agents available to handle intent: {intent_type} (required: {required})")


class AgentNotFoundError(OrchestrationError):
    """Raised when a requested agent id is not registered."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent '{agent_id}' is not registered")


__all__ = ["AgentNotFoundError", "NoEligibleAgentError", "OrchestrationError"]
