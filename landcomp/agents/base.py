from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..schemas.agents import AgentCapability, AgentRequest, AgentResponse
from ..schemas.context import RequestContext
from ..schemas.intents import Intent


@runtime_checkable
class Agent(Protocol):
    """Contract every routable handler satisfies.

    ``capabilities`` must be stable for the lifetime of the agent; the registry
    and the selector read it on every routing decision. ``execute`` never
    raises: faults come back as ``AgentResponse.failure``.
    """

    id: str
    name: str

    @property
    def capabilities(self) -> frozenset[AgentCapability]:
        ...

    async def can_handle(self, intent: Intent, context: RequestContext) -> bool:
        ...

    async def execute(self, request: AgentRequest) -> AgentResponse:
        ...

    def describe(self) -> dict[str, Any]:
        ...

    async def initialize(self) -> None:
        ...

    async def dispose(self) -> None:
        ...


def custom_capabilities_of(agent: Agent) -> frozenset[str]:
    """Raw tags an agent advertises beyond the known ``AgentCapability`` values."""
    raw = getattr(agent, "custom_capabilities", None)
    if not raw:
        return frozenset()
    return frozenset(str(tag).strip().lower() for tag in raw if str(tag).strip())


__all__ = ["Agent", "custom_capabilities_of"]
