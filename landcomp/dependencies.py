from __future__ import annotations

from fastapi import HTTPException, Request, status

from .agents.adapter import SpecialistAgentAdapter
from .agents.base import Agent
from .agents.generation import GenerationAgent
from .agents.specialists import resolve_profiles
from .core.config import Settings, get_settings
from .core.logging import get_logger
from .monitoring.tracker import MetricsTracker
from .orchestration.context import ContextBuilder
from .orchestration.orchestrator import AgentOrchestrator
from .orchestration.registry import AgentRegistry
from .orchestration.routing import AgentSelector
from .services.backends import GenerationBackend, TextBackend
from .services.http import HttpGenerationBackend
from .services.llm import ChatModelTextBackend

logger = get_logger(name=__name__)


def build_agents(
    settings: Settings,
    *,
    text_backend: TextBackend | None = None,
    generation_backend: GenerationBackend,
) -> list[Agent]:
    """Specialists in configured order, then the generation agent."""
    agents: list[Agent] = []
    for profile in resolve_profiles(settings.enabled_specialists):
        if text_backend is None:
            backend: TextBackend = ChatModelTextBackend.from_settings(settings.text, system_prompt=profile.system_prompt)
        elif isinstance(text_backend, ChatModelTextBackend):
            backend = text_backend.with_system_prompt(profile.system_prompt)
        else:
            backend = text_backend
        agents.append(
            SpecialistAgentAdapter(profile, backend, default_confidence=settings.text.default_confidence)
        )
    agents.append(GenerationAgent(generation_backend, settings.orchestration))
    return agents


def build_orchestrator(
    settings: Settings | None = None,
    *,
    text_backend: TextBackend | None = None,
    generation_backend: GenerationBackend | None = None,
) -> AgentOrchestrator:
    """Wire registry, tracker, context builder and agents into one orchestrator.

    Agents are registered when the returned orchestrator is initialised.
    """
    settings = settings or get_settings()
    orchestration = settings.orchestration
    generation = generation_backend or HttpGenerationBackend.from_settings(settings.generation)
    agents = build_agents(settings, text_backend=text_backend, generation_backend=generation)
    logger.info("orchestrator_built", agents=[agent.id for agent in agents])
    return AgentOrchestrator(
        registry=AgentRegistry(window=orchestration.metrics_window),
        tracker=MetricsTracker(window=orchestration.metrics_window),
        context_builder=ContextBuilder(orchestration),
        selector=AgentSelector(),
        agents=agents,
    )


async def get_orchestrator(request: Request) -> AgentOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Orchestrator not initialised")
    return orchestrator
