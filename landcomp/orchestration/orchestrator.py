from __future__ import annotations

import time
from typing import Any, Mapping, Sequence

from ..agents.base import Agent
from ..core.logging import get_logger
from ..monitoring.tracker import MetricsTracker
from ..schemas.agents import AgentRequest, AgentResponse
from ..schemas.context import Attachment, Message, RequestContext
from ..schemas.intents import Intent
from .context import ContextBuilder
from .exceptions import AgentNotFoundError
from .registry import AgentRegistry
from .routing import AgentSelector

logger = get_logger(name=__name__)

ORCHESTRATOR_COMPONENT = "orchestrator"


def agent_component(agent_id: str) -> str:
    return f"agent.{agent_id}"


class AgentOrchestrator:
    """Composition root for one request: route, execute, record.

    The registry and tracker are shared across requests; everything else is
    built per call. ``process`` never raises, failures come back as
    ``AgentResponse.failure`` and are recorded like any other outcome.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        tracker: MetricsTracker,
        context_builder: ContextBuilder | None = None,
        selector: AgentSelector | None = None,
        *,
        agents: Sequence[Agent] = (),
    ) -> None:
        self._registry = registry
        self._tracker = tracker
        self._context_builder = context_builder or ContextBuilder()
        self._selector = selector or AgentSelector()
        self._pending_agents = list(agents)
        self._initialized = False

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def tracker(self) -> MetricsTracker:
        return self._tracker

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> dict[str, str]:
        """Register the configured agents and initialise them; returns per-agent failures."""
        if self._initialized:
            return {}
        for agent in self._pending_agents:
            self._registry.register(agent)
        failures = await self._registry.initialize_all()
        self._initialized = True
        logger.info("orchestrator_initialized", agents=self._registry.count, failures=len(failures))
        return failures

    async def process(self, intent: Intent, context: RequestContext) -> AgentResponse:
        request = AgentRequest(context=context, intent=intent)
        log = logger.bind(request_id=request.request_id)
        log.info(
            "orchestrator_request",
            intent_type=intent.type.value,
            subtype=intent.subtype.value if intent.subtype else None,
            confidence=intent.confidence,
            history=context.conversation_length,
            attachments=len(context.attachments or ()),
        )

        started = time.perf_counter()
        agent: Agent | None = None
        try:
            decision = await self._selector.select(request, self._registry)
            agent = decision.agent
            response = await agent.execute(request)
        except Exception as exc:
            elapsed = time.perf_counter() - started
            self._record(agent, elapsed, success=False)
            log.warning("orchestrator_request_failed", error=str(exc), error_type=type(exc).__name__)
            return AgentResponse.failure(
                request_id=request.request_id,
                error=f"Request processing failed: {exc}",
                agent_id=agent.id if agent else None,
                agent_name=agent.name if agent else None,
                metadata={
                    "execution_time_ms": round(elapsed * 1000.0, 3),
                    "error_type": type(exc).__name__,
                },
            )

        elapsed = time.perf_counter() - started
        self._record(agent, elapsed, success=response.is_success)
        log.info(
            "orchestrator_request_completed",
            agent=agent.id,
            success=response.is_success,
            elapsed_ms=round(elapsed * 1000.0, 3),
        )
        return response.model_copy(
            update={
                "agent_id": response.agent_id or agent.id,
                "agent_name": response.agent_name or agent.name,
                "metadata": {
                    **response.metadata,
                    "execution_time_ms": round(elapsed * 1000.0, 3),
                    "selection_score": decision.scores.get(agent.id),
                },
            }
        )

    async def process_message(
        self,
        user_message: str,
        history: Sequence[Message] = (),
        attachments: Sequence[Attachment] | None = None,
        current_agent_id: str | None = None,
        intent_payload: Intent | Mapping[str, Any] | None = None,
    ) -> AgentResponse:
        context = self._context_builder.build(
            user_message=user_message,
            history=history,
            attachments=attachments,
            current_agent_id=current_agent_id,
        )
        intent = intent_payload if isinstance(intent_payload, Intent) else Intent.from_payload(intent_payload)
        if intent.image_intent is not None:
            relevant = self._context_builder.relevant_images(intent, context.conversation_history, attachments)
            context = context.model_copy(
                update={
                    "attachments": relevant or None,
                    "metadata": {
                        **context.metadata,
                        "original_attachments_count": len(attachments or ()),
                        "selected_images_count": len(relevant),
                        "image_intent": intent.image_intent.value,
                    },
                }
            )
        return await self.process(intent, context)

    def _record(self, agent: Agent | None, elapsed: float, *, success: bool) -> None:
        self._tracker.record(ORCHESTRATOR_COMPONENT, elapsed, success)
        if agent is None:
            return
        self._tracker.record(agent_component(agent.id), elapsed, success)
        self._registry.record_execution(agent.id, elapsed, success)

    def describe_agent(self, agent_id: str) -> dict[str, Any]:
        agent = self._registry.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return {**agent.describe(), "metrics": self._registry.metrics(agent_id)}

    def status(self) -> dict[str, Any]:
        return {
            "initialized": self._initialized,
            "agent_count": self._registry.count,
            "agents": [agent.id for agent in self._registry.all()],
            "metrics": self._tracker.metrics(ORCHESTRATOR_COMPONENT),
            "registry_metrics": self._registry.all_metrics(),
        }

    def performance_summary(self, *, limit: int = 5) -> dict[str, Any]:
        return {
            "orchestrator": self._tracker.metrics(ORCHESTRATOR_COMPONENT),
            "summary": self._tracker.summary(),
            "top_performers": self._tracker.top_performers(limit=limit),
            "slowest_components": self._tracker.slowest_components(limit=limit),
            "components_with_errors": self._tracker.components_with_errors(),
        }

    def reset_metrics(self) -> None:
        self._tracker.reset_all()
        self._registry.clear_metrics()
        logger.info("orchestrator_metrics_reset")

    async def dispose(self) -> dict[str, str]:
        if not self._initialized:
            return {}
        failures = await self._registry.dispose_all()
        self._initialized = False
        logger.info("orchestrator_disposed", failures=len(failures))
        return failures


__all__ = ["AgentOrchestrator", "ORCHESTRATOR_COMPONENT", "agent_component"]
