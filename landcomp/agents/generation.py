from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..core.config import OrchestrationSettings
from ..core.logging import get_logger
from ..core.metrics import increment_generation_fallback
from ..orchestration.planning import build_default_plan, select_images, simplify_prompt, validate_plan
from ..schemas.agents import AgentCapability, AgentRequest, AgentResponse, capability_tags
from ..schemas.context import Attachment, RequestContext
from ..schemas.intents import ExecutionAction, ExecutionPlan, ImageIntent, Intent, IntentSubtype, IntentType
from ..services.backends import BackendError, GenerationBackend
from ..services.language import detect_generation_language

logger = get_logger(name=__name__)

GENERATION_AGENT_ID = "generation_agent"
DEFAULT_SUCCESS_TEXT = "Image generated successfully"
FALLBACK_SUFFIX = " (Generated with fallback method)"
DEFAULT_IMAGE_MIME = "image/png"


@dataclass(slots=True)
class GenerationOutcome:
    text: str
    images: list[Attachment] = field(default_factory=list)


class GenerationAgent:
    """Runs image generation from an execution plan, degrading through a fallback chain.

    Lifecycle of one request: acquire plan, validate it, select images, call the
    backend. A backend failure triggers one retry with a simplified prompt and
    at most one input image; if that also fails the caller still receives a
    successful response asking the user to describe the design in words.
    Faults before the backend call are reported as failures and never retried.
    """

    id = GENERATION_AGENT_ID
    name = "Image Generation Agent"

    def __init__(self, backend: GenerationBackend, settings: OrchestrationSettings | None = None) -> None:
        self._backend = backend
        self._settings = settings or OrchestrationSettings()

    @property
    def capabilities(self) -> frozenset[AgentCapability]:
        return frozenset({AgentCapability.IMAGE_GENERATION, AgentCapability.TEXT_GENERATION})

    @property
    def target_api(self) -> str:
        return self._backend.backend_id

    async def can_handle(self, intent: Intent, context: RequestContext) -> bool:
        plan = intent.execution_plan
        if plan is not None and plan.action == ExecutionAction.GENERATE_IMAGE:
            return True
        if intent.type == IntentType.GENERATION and intent.subtype == IntentSubtype.IMAGE_GENERATION:
            return True
        return intent.image_intent == ImageIntent.GENERATE_BASED

    def prepare(self, request: AgentRequest) -> tuple[ExecutionPlan, list[Attachment]]:
        """Plan acquisition, validation and image selection, in that order."""
        plan = request.intent.execution_plan or build_default_plan(request.context, self.target_api)
        validated = validate_plan(
            plan,
            request.context,
            self.target_api,
            default_prompt=self._settings.default_fallback_prompt,
        )
        selected = select_images(
            validated.image_selection,
            request.context,
            max_images=self._settings.max_selected_images,
            recent_window=self._settings.recent_message_window,
            recent_limit=self._settings.recent_image_limit,
        )
        return validated, selected

    async def execute(self, request: AgentRequest) -> AgentResponse:
        try:
            plan, selected = self.prepare(request)
        except Exception as exc:
            logger.exception("generation_plan_failed", request_id=request.request_id)
            return AgentResponse.failure(
                request_id=request.request_id,
                error=f"Generation failed: {exc}",
                agent_id=self.id,
                agent_name=self.name,
                metadata={"agent_id": self.id, "agent_name": self.name, "error_type": type(exc).__name__},
            )

        logger.info(
            "generation_plan_ready",
            request_id=request.request_id,
            target=plan.target_api,
            images_selected=len(selected),
            image_count=plan.expected_outputs.image_count,
        )
        try:
            outcome = await self._generate(plan.enhanced_prompt, selected, plan.expected_outputs.image_count, request)
        except Exception as exc:
            logger.warning("generation_primary_failed", request_id=request.request_id, error=str(exc))
            return await self._fallback(plan, selected, request, primary_error=exc)

        return AgentResponse.success(
            request_id=request.request_id,
            message=outcome.text,
            agent_id=self.id,
            agent_name=self.name,
            generated_attachments=outcome.images,
            metadata={
                "execution_plan": plan.to_payload(),
                "images_used": len(selected),
                "images_generated": len(outcome.images),
                "agent_id": self.id,
                "agent_name": self.name,
            },
        )

    async def _generate(
        self,
        prompt: str,
        images: Sequence[Attachment],
        image_count: int,
        request: AgentRequest,
    ) -> GenerationOutcome:
        image_bytes = [attachment.data for attachment in images if attachment.data]
        language = detect_generation_language(
            request.user_message,
            request.conversation_history,
            default=self._settings.default_language,
        )
        result = await self._backend.generate(prompt, image_bytes, language, image_count)
        if not result.has_images:
            detail = f": {result.text}" if result.text else ""
            raise BackendError(f"Generation returned no images{detail}")

        timestamp = int(time.time() * 1000)
        generated: list[Attachment] = []
        for index, data in enumerate(result.images):
            mime_type = result.mime_types[index] if index < len(result.mime_types) else DEFAULT_IMAGE_MIME
            generated.append(
                Attachment.image(
                    id=f"generated_{timestamp}_{index}",
                    name=f"generated_{timestamp}_{index}.png",
                    data=data,
                    mime_type=mime_type or DEFAULT_IMAGE_MIME,
                )
            )
        return GenerationOutcome(text=result.text or DEFAULT_SUCCESS_TEXT, images=generated)

    async def _fallback(
        self,
        plan: ExecutionPlan,
        selected: Sequence[Attachment],
        request: AgentRequest,
        *,
        primary_error: Exception,
    ) -> AgentResponse:
        base_metadata: dict[str, Any] = {
            "execution_plan": plan.to_payload(),
            "fallback_used": True,
            "error_type": type(primary_error).__name__,
            "agent_id": self.id,
            "agent_name": self.name,
        }

        increment_generation_fallback(stage="simplified_prompt")
        simplified = simplify_prompt(
            plan.enhanced_prompt,
            max_chars=self._settings.fallback_prompt_max_chars,
            default=self._settings.default_fallback_prompt,
        )
        try:
            outcome = await self._generate(simplified, list(selected)[:1], 1, request)
        except Exception as exc:
            logger.warning("generation_fallback_failed", request_id=request.request_id, error=str(exc))
        else:
            return AgentResponse.success(
                request_id=request.request_id,
                message=f"{outcome.text}{FALLBACK_SUFFIX}",
                agent_id=self.id,
                agent_name=self.name,
                generated_attachments=outcome.images,
                metadata={
                    **base_metadata,
                    "images_used": len(selected),
                    "images_generated": len(outcome.images),
                },
            )

        increment_generation_fallback(stage="consultation")
        logger.info("generation_consultation_redirect", request_id=request.request_id)
        return AgentResponse.success(
            request_id=request.request_id,
            message=self._settings.consultation_redirect_message,
            agent_id=self.id,
            agent_name=self.name,
            metadata={**base_metadata, "fallback_type": "consultation"},
        )

    def describe(self) -> dict[str, Any]:
        return {
            "agent_id": self.id,
            "agent_name": self.name,
            "capabilities": capability_tags(self.capabilities),
            "is_specialized": True,
            "generation_type": "image_generation",
            "target_api": self.target_api,
        }

    async def initialize(self) -> None:
        logger.debug("generation_agent_initialized", target=self.target_api)

    async def dispose(self) -> None:
        logger.debug("generation_agent_disposed")


__all__ = ["GENERATION_AGENT_ID", "GenerationAgent", "GenerationOutcome"]
