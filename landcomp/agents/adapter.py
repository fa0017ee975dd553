from __future__ import annotations

from functools import cached_property
from typing import Any

from ..core.logging import get_logger
from ..schemas.agents import AgentCapability, AgentRequest, AgentResponse, capability_tags
from ..schemas.context import RequestContext
from ..schemas.intents import Intent, IntentSubtype, IntentType
from ..services.backends import BackendError, TextBackend
from .specialists import SpecialistProfile

logger = get_logger(name=__name__)

_C = AgentCapability

_GARDENING = frozenset({_C.GARDENING})
_DESIGN = frozenset({_C.LANDSCAPE_DESIGN, _C.PLANNING})
_CONSTRUCTION = frozenset({_C.CONSTRUCTION})
_ECOLOGY = frozenset({_C.ECOLOGY})
_IMAGE_ANALYSIS = frozenset({_C.IMAGE_ANALYSIS})
_IMAGE_GENERATION = frozenset({_C.IMAGE_GENERATION})

# Keyed by lower-cased expertise area. Unknown areas contribute nothing.
EXPERTISE_CAPABILITIES: dict[str, frozenset[AgentCapability]] = {
    "plant selection": _GARDENING,
    "garden care": _GARDENING,
    "seasonal work": _GARDENING,
    "pest control": _GARDENING,
    "organic farming": _GARDENING,
    "gardening": _GARDENING,
    "plants": _GARDENING,
    "flowers": _GARDENING,
    "trees": _GARDENING,
    "site planning": _DESIGN,
    "zoning": _DESIGN,
    "garden paths": _DESIGN,
    "recreation areas": _DESIGN,
    "landscape materials": _DESIGN,
    "landscape design": _DESIGN,
    "planning": _DESIGN,
    "design": _DESIGN,
    "foundations": _CONSTRUCTION,
    "walls and floors": _CONSTRUCTION,
    "roofing": _CONSTRUCTION,
    "utilities": _CONSTRUCTION,
    "cost estimation": _CONSTRUCTION,
    "construction": _CONSTRUCTION,
    "building": _CONSTRUCTION,
    "materials": _CONSTRUCTION,
    "eco materials": _ECOLOGY,
    "energy saving": _ECOLOGY,
    "waste recycling": _ECOLOGY,
    "water conservation": _ECOLOGY,
    "ecosystems": _ECOLOGY,
    "ecology": _ECOLOGY,
    "sustainability": _ECOLOGY,
    "environmental": _ECOLOGY,
    "image analysis": _IMAGE_ANALYSIS,
    "visual analysis": _IMAGE_ANALYSIS,
    "photo analysis": _IMAGE_ANALYSIS,
    "image generation": _IMAGE_GENERATION,
    "visual generation": _IMAGE_GENERATION,
    "photo generation": _IMAGE_GENERATION,
}

# Legacy: display-name keywords (English and Russian) kept for profiles whose
# expertise areas predate the table above. Do not add entries here; extend
# EXPERTISE_CAPABILITIES instead.
LEGACY_NAME_KEYWORDS: tuple[tuple[tuple[str, ...], frozenset[AgentCapability]], ...] = (
    (("landscape", "дизайн"), _DESIGN),
    (("gardener", "садовник"), _GARDENING),
    (("builder", "строитель"), _CONSTRUCTION),
    (("ecologist", "эколог"), _ECOLOGY),
)

COMMON_CAPABILITIES = frozenset({_C.TEXT_GENERATION, _C.CONSULTATION, _C.ANALYSIS})

# ``None`` means the intent type passes without a capability check.
TYPE_REQUIREMENTS: dict[IntentType, AgentCapability | None] = {
    IntentType.CONSULTATION: _C.CONSULTATION,
    IntentType.ANALYSIS: _C.ANALYSIS,
    IntentType.GENERATION: _C.TEXT_GENERATION,
    IntentType.MODIFICATION: _C.CONSULTATION,
    IntentType.UNCLEAR: None,
}

# Any one of the listed capabilities satisfies the subtype. Unlisted subtypes pass.
SUBTYPE_REQUIREMENTS: dict[IntentSubtype, frozenset[AgentCapability]] = {
    IntentSubtype.LANDSCAPE_PLANNING: frozenset({_C.LANDSCAPE_DESIGN, _C.PLANNING}),
    IntentSubtype.PLANT_SELECTION: frozenset({_C.GARDENING}),
    IntentSubtype.CONSTRUCTION_ADVICE: frozenset({_C.CONSTRUCTION}),
    IntentSubtype.IMAGE_ANALYSIS: frozenset({_C.IMAGE_ANALYSIS}),
    IntentSubtype.IMAGE_GENERATION: frozenset({_C.IMAGE_GENERATION}),
    IntentSubtype.PLAN_GENERATION: frozenset({_C.PLANNING}),
}


def capabilities_from_expertise(areas: tuple[str, ...] | list[str]) -> set[AgentCapability]:
    derived: set[AgentCapability] = set()
    for area in areas:
        derived.update(EXPERTISE_CAPABILITIES.get(area.strip().lower(), ()))
    return derived


def capabilities_from_name(name: str) -> set[AgentCapability]:
    lowered = name.lower()
    derived: set[AgentCapability] = set()
    for keywords, capabilities in LEGACY_NAME_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            derived.update(capabilities)
    return derived


class SpecialistAgentAdapter:
    """Exposes a statically configured specialist through the agent contract."""

    execution_method = "text_backend"

    def __init__(
        self,
        profile: SpecialistProfile,
        backend: TextBackend,
        *,
        default_confidence: float = 0.8,
    ) -> None:
        self._profile = profile
        self._backend = backend
        self._default_confidence = default_confidence
        self.id = profile.id
        self.name = profile.name

    @property
    def profile(self) -> SpecialistProfile:
        return self._profile

    @cached_property
    def capabilities(self) -> frozenset[AgentCapability]:
        derived = capabilities_from_expertise(self._profile.expertise_areas)
        derived |= capabilities_from_name(self._profile.name)
        derived |= COMMON_CAPABILITIES
        capabilities = frozenset(derived)
        logger.debug("agent_capabilities_built", agent=self.id, capabilities=capability_tags(capabilities))
        return capabilities

    async def can_handle(self, intent: Intent, context: RequestContext) -> bool:
        # Attachments never gate eligibility; image support only matters for scoring.
        required = TYPE_REQUIREMENTS.get(intent.type)
        if required is not None and required not in self.capabilities:
            return False
        if intent.subtype is None:
            return True
        accepted = SUBTYPE_REQUIREMENTS.get(intent.subtype)
        if accepted is None:
            return True
        return bool(accepted & self.capabilities)

    async def execute(self, request: AgentRequest) -> AgentResponse:
        logger.info(
            "specialist_execute",
            agent=self.id,
            request_id=request.request_id,
            history_length=len(request.conversation_history),
            attachments=len(request.context.attachments or ()),
        )
        try:
            result = await self._backend.complete(
                request.user_message,
                request.conversation_history,
                request.context.attachments,
            )
        except BackendError as exc:
            logger.warning("specialist_backend_failed", agent=self.id, error=str(exc))
            return AgentResponse.failure(
                request_id=request.request_id,
                error=str(exc) or "Unknown error from text backend",
                agent_id=self.id,
                agent_name=self.name,
                metadata={"execution_method": self.execution_method, "error_type": type(exc).__name__},
            )
        except Exception as exc:
            logger.exception("specialist_execute_failed", agent=self.id)
            return AgentResponse.failure(
                request_id=request.request_id,
                error=f"Agent execution failed: {exc}",
                agent_id=self.id,
                agent_name=self.name,
                metadata={"execution_method": self.execution_method, "error_type": type(exc).__name__},
            )

        return AgentResponse.success(
            request_id=request.request_id,
            message=result.text,
            agent_id=self.id,
            agent_name=self.name,
            metadata={
                "confidence": result.confidence if result.confidence is not None else self._default_confidence,
                "execution_method": self.execution_method,
                "has_images": request.has_images,
                "history_length": len(request.conversation_history),
            },
        )

    def describe(self) -> dict[str, Any]:
        return {
            "agent_id": self.id,
            "agent_name": self.name,
            "description": self._profile.description,
            "capabilities": capability_tags(self.capabilities),
            "expertise_areas": list(self._profile.expertise_areas),
            "quick_start_suggestions": list(self._profile.quick_start_suggestions),
            "is_active": self._profile.is_active,
        }

    async def initialize(self) -> None:
        return None

    async def dispose(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"SpecialistAgentAdapter(id={self.id!r})"


__all__ = [
    "COMMON_CAPABILITIES",
    "EXPERTISE_CAPABILITIES",
    "LEGACY_NAME_KEYWORDS",
    "SpecialistAgentAdapter",
    "capabilities_from_expertise",
    "capabilities_from_name",
]
