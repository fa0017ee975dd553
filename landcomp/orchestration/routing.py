from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ..agents.base import Agent
from ..core.logging import get_logger
from ..core.metrics import increment_routing_miss
from ..schemas.agents import AgentCapability, AgentRequest
from ..schemas.context import RequestContext
from ..schemas.intents import ExecutionAction, ImageIntent, Intent, IntentSubtype, IntentType
from .exceptions import NoEligibleAgentError
from .registry import AgentRegistry

logger = get_logger(name=__name__)

_C = AgentCapability

BASE_SCORE = 1.0
DEFAULT_PERFORMANCE_SCORE = 0.5

_TYPE_CAPABILITIES: Mapping[IntentType, frozenset[AgentCapability]] = {
    IntentType.CONSULTATION: frozenset({_C.CONSULTATION}),
    IntentType.ANALYSIS: frozenset({_C.ANALYSIS}),
    IntentType.GENERATION: frozenset({_C.TEXT_GENERATION, _C.IMAGE_GENERATION}),
    IntentType.MODIFICATION: frozenset({_C.CONSULTATION}),
    IntentType.UNCLEAR: frozenset(capability for capability in _C if capability is not _C.CUSTOM),
}

# (capability the agent must advertise, score); ``None`` awards the score unconditionally.
_TYPE_SCORES: Mapping[IntentType, tuple[AgentCapability | None, float]] = {
    IntentType.CONSULTATION: (_C.CONSULTATION, 2.0),
    IntentType.ANALYSIS: (_C.ANALYSIS, 2.0),
    IntentType.GENERATION: (_C.TEXT_GENERATION, 2.0),
    IntentType.MODIFICATION: (_C.CONSULTATION, 1.5),
    IntentType.UNCLEAR: (None, 0.5),
}

_SUBTYPE_SCORES: Mapping[IntentSubtype, tuple[AgentCapability | None, float]] = {
    IntentSubtype.LANDSCAPE_PLANNING: (_C.LANDSCAPE_DESIGN, 1.5),
    IntentSubtype.PLANT_SELECTION: (_C.GARDENING, 1.5),
    IntentSubtype.CONSTRUCTION_ADVICE: (_C.CONSTRUCTION, 1.5),
    IntentSubtype.MAINTENANCE_ADVICE: (_C.GARDENING, 1.0),
    IntentSubtype.GENERAL_QUESTION: (None, 0.5),
    IntentSubtype.IMAGE_GENERATION: (_C.IMAGE_GENERATION, 1.0),
    IntentSubtype.TEXT_GENERATION: (_C.TEXT_GENERATION, 1.0),
    IntentSubtype.PLAN_GENERATION: (_C.PLANNING, 1.0),
    IntentSubtype.IMAGE_ANALYSIS: (_C.IMAGE_ANALYSIS, 1.0),
    IntentSubtype.SITE_ANALYSIS: (_C.ANALYSIS, 1.0),
    IntentSubtype.PROBLEM_DIAGNOSIS: (_C.ANALYSIS, 1.0),
    IntentSubtype.DESIGN_MODIFICATION: (_C.LANDSCAPE_DESIGN, 1.0),
    IntentSubtype.PLAN_ADJUSTMENT: (_C.PLANNING, 1.0),
    IntentSubtype.CONTENT_UPDATE: (None, 0.5),
    IntentSubtype.AMBIGUOUS: (None, 0.0),
    IntentSubtype.INCOMPLETE: (None, 0.0),
}

# Each keyword found in the lower-cased message adds 1.0 for agents advertising the capability.
DOMAIN_KEYWORDS: Mapping[AgentCapability, tuple[str, ...]] = {
    _C.LANDSCAPE_DESIGN: (
        "участок",
        "преобразовать",
        "дизайн",
        "планировка",
        "зонирование",
        "ландшафт",
        "территория",
        "площадь",
        "размещение",
        "организация",
        "plot",
        "transform",
        "design",
        "planning",
        "zoning",
        "landscape",
    ),
    _C.GARDENING: (
        "растение",
        "цветок",
        "дерево",
        "сад",
        "огород",
        "посадка",
        "уход",
        "полив",
        "удобрение",
        "обрезка",
        "сезон",
        "plant",
        "flower",
        "tree",
        "garden",
        "care",
        "season",
    ),
    _C.CONSTRUCTION: (
        "строительство",
        "дом",
        "фундамент",
        "материалы",
        "конструкция",
        "building",
        "construction",
        "house",
        "foundation",
        "materials",
    ),
    _C.ECOLOGY: (
        "экология",
        "экологичный",
        "устойчивый",
        "природный",
        "переработка",
        "ecology",
        "ecological",
        "sustainable",
        "natural",
        "recycling",
    ),
}


@dataclass(slots=True)
class ScoreBreakdown:
    intent: float = 0.0
    subtype: float = 0.0
    context: float = 0.0
    keywords: float = 0.0
    performance: float = DEFAULT_PERFORMANCE_SCORE
    base: float = BASE_SCORE

    @property
    def total(self) -> float:
        return self.base + self.intent + self.subtype + self.context + self.keywords + self.performance

    def as_dict(self) -> dict[str, float]:
        return {
            "base": self.base,
            "intent": self.intent,
            "subtype": self.subtype,
            "context": self.context,
            "keywords": self.keywords,
            "performance": self.performance,
            "total": self.total,
        }


@dataclass(slots=True)
class RoutingDecision:
    agent: Agent
    scores: dict[str, float] = field(default_factory=dict)
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def agent_id(self) -> str:
        return self.agent.id


class AgentSelector:
    """Picks the best eligible agent for a request.

    Candidates come from the registry's OR-capability lookup, are filtered by
    each agent's own ``can_handle`` and ranked by an additive score. Ties keep
    registration order.
    """

    def required_capabilities(self, intent: Intent) -> frozenset[AgentCapability]:
        required = set(_TYPE_CAPABILITIES.get(intent.type, ()))
        plan = intent.execution_plan
        if plan is not None and plan.action == ExecutionAction.GENERATE_IMAGE:
            required.add(_C.IMAGE_GENERATION)
        if intent.image_intent == ImageIntent.GENERATE_BASED:
            required.add(_C.IMAGE_GENERATION)
        return frozenset(required)

    async def eligible(self, intent: Intent, context: RequestContext, registry: AgentRegistry) -> list[Agent]:
        candidates = registry.by_any_capability(self.required_capabilities(intent))
        eligible: list[Agent] = []
        for agent in candidates:
            try:
                if await agent.can_handle(intent, context):
                    eligible.append(agent)
            except Exception as exc:
                logger.warning("agent_capability_check_failed", agent=agent.id, error=str(exc))
        return eligible

    def score(self, agent: Agent, request: AgentRequest, registry: AgentRegistry) -> ScoreBreakdown:
        capabilities = agent.capabilities
        intent = request.intent
        breakdown = ScoreBreakdown()

        required, value = _TYPE_SCORES.get(intent.type, (None, 0.0))
        if required is None or required in capabilities:
            breakdown.intent = value
        if intent.subtype is not None:
            required, value = _SUBTYPE_SCORES.get(intent.subtype, (None, 0.0))
            if required is None or required in capabilities:
                breakdown.subtype = value

        context = request.context
        if _C.IMAGE_ANALYSIS in capabilities:
            if context.has_images:
                breakdown.context += 1.5
            if context.has_recent_images_in_history:
                breakdown.context += 1.0
        if context.conversation_length > 0:
            breakdown.context += 0.5

        message = request.user_message.lower()
        for capability, keywords in DOMAIN_KEYWORDS.items():
            if capability in capabilities:
                breakdown.keywords += sum(1.0 for keyword in keywords if keyword in message)

        success_rate = registry.success_rate(agent.id)
        breakdown.performance = DEFAULT_PERFORMANCE_SCORE if success_rate is None else success_rate
        return breakdown

    async def select(self, request: AgentRequest, registry: AgentRegistry) -> RoutingDecision:
        intent = request.intent
        eligible = await self.eligible(intent, request.context, registry)
        if not eligible:
            required = self.required_capabilities(intent)
            increment_routing_miss(intent_type=intent.type.value)
            logger.warning("routing_miss", intent_type=intent.type.value, request_id=request.request_id)
            raise NoEligibleAgentError(intent.type.value, (capability.value for capability in required))

        breakdowns = {agent.id: self.score(agent, request, registry) for agent in eligible}
        # sorted() is stable, so equal scores keep registration order.
        ranked = sorted(eligible, key=lambda agent: breakdowns[agent.id].total, reverse=True)
        selected = ranked[0]
        scores = {agent.id: breakdowns[agent.id].total for agent in ranked}
        logger.info(
            "agent_selected",
            agent=selected.id,
            score=scores[selected.id],
            candidates=len(eligible),
            request_id=request.request_id,
        )
        return RoutingDecision(
            agent=selected,
            scores=scores,
            reason="capability_scoring",
            metadata={
                "eligible_agents": [agent.id for agent in eligible],
                "score_breakdown": {agent_id: item.as_dict() for agent_id, item in breakdowns.items()},
            },
        )


__all__ = ["AgentSelector", "DOMAIN_KEYWORDS", "RoutingDecision", "ScoreBreakdown"]
