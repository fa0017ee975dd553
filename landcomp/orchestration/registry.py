from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any, Iterable

from ..agents.base import Agent, custom_capabilities_of
from ..core.logging import get_logger
from ..core.metrics import observe_agent_execution
from ..monitoring.tracker import DEFAULT_WINDOW, ExecutionWindow, duration_ms
from ..schemas.agents import AgentCapability, capability_tags

__all__ = ["AgentRegistry", "CapabilityKey"]

logger = get_logger(name=__name__)

# Known capabilities travel as enum members, late-registered ones as raw strings.
CapabilityKey = AgentCapability | str


def _normalise(capability: CapabilityKey) -> AgentCapability | str:
    if isinstance(capability, AgentCapability):
        return capability
    parsed = AgentCapability.parse(capability)
    if parsed is AgentCapability.CUSTOM:
        return str(capability).strip().lower()
    return parsed


def _capability_set(agent: Agent) -> frozenset[AgentCapability | str]:
    known = frozenset(capability for capability in agent.capabilities if capability is not AgentCapability.CUSTOM)
    return known | custom_capabilities_of(agent)


class AgentRegistry:
    """Registered agents, keyed by id in registration order, with rolling execution metrics."""

    def __init__(self, *, window: int = DEFAULT_WINDOW) -> None:
        self._window = max(1, window)
        self._agents: dict[str, Agent] = {}
        self._metrics: dict[str, ExecutionWindow] = {}
        self._lock = threading.Lock()

    def register(self, agent: Agent) -> None:
        with self._lock:
            replaced = agent.id in self._agents
            self._agents[agent.id] = agent
            self._metrics[agent.id] = ExecutionWindow(size=self._window)
        logger.info("agent_registered", agent=agent.id, name=agent.name, replaced=replaced)

    def unregister(self, agent_id: str) -> None:
        with self._lock:
            removed = self._agents.pop(agent_id, None)
            self._metrics.pop(agent_id, None)
        if removed is not None:
            logger.info("agent_unregistered", agent=agent_id)

    def clear(self) -> None:
        with self._lock:
            self._agents.clear()
            self._metrics.clear()

    def get(self, agent_id: str) -> Agent | None:
        with self._lock:
            return self._agents.get(agent_id)

    def all(self) -> list[Agent]:
        with self._lock:
            return list(self._agents.values())

    def is_registered(self, agent_id: str) -> bool:
        with self._lock:
            return agent_id in self._agents

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._agents)

    def __len__(self) -> int:
        return self.count

    def __contains__(self, agent_id: object) -> bool:
        return isinstance(agent_id, str) and self.is_registered(agent_id)

    def by_capability(self, capability: CapabilityKey) -> list[Agent]:
        wanted = _normalise(capability)
        return [agent for agent in self.all() if wanted in _capability_set(agent)]

    def by_all_capabilities(self, capabilities: Iterable[CapabilityKey]) -> list[Agent]:
        wanted = {_normalise(capability) for capability in capabilities}
        return [agent for agent in self.all() if wanted <= _capability_set(agent)]

    def by_any_capability(self, capabilities: Iterable[CapabilityKey]) -> list[Agent]:
        wanted = {_normalise(capability) for capability in capabilities}
        return [agent for agent in self.all() if wanted & _capability_set(agent)]

    def all_capabilities(self) -> set[AgentCapability | str]:
        capabilities: set[AgentCapability | str] = set()
        for agent in self.all():
            capabilities |= _capability_set(agent)
        return capabilities

    def record_execution(self, agent_id: str, duration: float | timedelta, success: bool) -> None:
        elapsed = duration_ms(duration)
        with self._lock:
            entry = self._metrics.get(agent_id)
            if entry is None:
                return
            entry.record(elapsed, success)
        observe_agent_execution(agent=agent_id, latency=elapsed / 1000.0, success=success)

    def metrics(self, agent_id: str) -> dict[str, Any] | None:
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                return None
            snapshot = self._metrics[agent_id].snapshot()
        return {
            "agent_id": agent_id,
            "agent_name": agent.name,
            "capabilities": capability_tags(agent.capabilities, custom_capabilities_of(agent)),
            **snapshot,
        }

    def all_metrics(self) -> dict[str, Any]:
        agents: dict[str, dict[str, Any]] = {}
        for agent in self.all():
            snapshot = self.metrics(agent.id)
            if snapshot is not None:
                agents[agent.id] = snapshot
        return {
            "total_agents": len(agents),
            "total_executions": sum(item["total_executions"] for item in agents.values()),
            "agents": agents,
        }

    def success_rate(self, agent_id: str) -> float | None:
        """Lifetime success rate, ``None`` when the agent is unknown or has not run yet."""
        with self._lock:
            entry = self._metrics.get(agent_id)
            if entry is None or entry.total == 0:
                return None
            return entry.success_count / entry.total

    def clear_metrics(self) -> None:
        with self._lock:
            for entry in self._metrics.values():
                entry.clear()

    async def initialize_all(self) -> dict[str, str]:
        failures: dict[str, str] = {}
        for agent in self.all():
            try:
                await agent.initialize()
            except Exception as exc:
                failures[agent.id] = f"{type(exc).__name__}: {exc}"
                logger.warning("agent_initialize_failed", agent=agent.id, error=str(exc))
            else:
                logger.debug("agent_initialized", agent=agent.id)
        return failures

    async def dispose_all(self) -> dict[str, str]:
        failures: dict[str, str] = {}
        for agent in self.all():
            try:
                await agent.dispose()
            except Exception as exc:
                failures[agent.id] = f"{type(exc).__name__}: {exc}"
                logger.warning("agent_dispose_failed", agent=agent.id, error=str(exc))
            else:
                logger.debug("agent_disposed", agent=agent.id)
        return failures
