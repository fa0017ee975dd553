from __future__ import annotations

import pytest

from landcomp.agents.generation import FALLBACK_SUFFIX, GenerationAgent
from landcomp.core.config import OrchestrationSettings
from landcomp.schemas.intents import (
    ExecutionAction,
    ExecutionPlan,
    ImageIntent,
    ImageSelectionPlan,
    Intent,
    IntentSubtype,
    IntentType,
)
from landcomp.services.backends import BackendError, BackendTimeoutError, GenerationResult
from tests.helpers.stubs import (
    PNG_BYTES,
    StubGenerationBackend,
    make_context,
    make_image,
    make_message,
    make_request,
)


def _generation_intent(**overrides) -> Intent:
    fields = {
        "type": IntentType.GENERATION,
        "subtype": IntentSubtype.IMAGE_GENERATION,
        "confidence": 0.9,
        "image_intent": ImageIntent.GENERATE_BASED,
    }
    fields.update(overrides)
    return Intent(**fields)


@pytest.mark.asyncio
async def test_can_handle_rules() -> None:
    agent = GenerationAgent(StubGenerationBackend())
    context = make_context()

    plan_intent = Intent(
        type=IntentType.CONSULTATION,
        execution_plan=ExecutionPlan(action=ExecutionAction.GENERATE_IMAGE),
    )
    legacy_intent = Intent(type=IntentType.GENERATION, subtype=IntentSubtype.IMAGE_GENERATION)
    image_intent = Intent(type=IntentType.MODIFICATION, image_intent=ImageIntent.GENERATE_BASED)
    text_intent = Intent(type=IntentType.GENERATION, subtype=IntentSubtype.TEXT_GENERATION)
    analysis_plan = Intent(
        type=IntentType.ANALYSIS,
        execution_plan=ExecutionPlan(action=ExecutionAction.ANALYZE_IMAGE),
    )

    assert await agent.can_handle(plan_intent, context)
    assert await agent.can_handle(legacy_intent, context)
    assert await agent.can_handle(image_intent, context)
    assert not await agent.can_handle(text_intent, context)
    assert not await agent.can_handle(analysis_plan, context)


def test_default_plan_is_synthesized_when_intent_has_none() -> None:
    backend = StubGenerationBackend(backend_id="gemini")
    agent = GenerationAgent(backend)
    context = make_context("Add a pergola", attachments=[make_image("yard")])

    plan, selected = agent.prepare(make_request(_generation_intent(), context))

    assert plan.expected_outputs.image_count == 1
    assert plan.image_selection.all_from_user_message is True
    assert plan.target_api == "gemini"
    assert plan.enhanced_prompt == "Add a pergola"
    assert [image.id for image in selected] == ["yard"]


def test_default_plan_without_attachments_drops_all_from_user_message() -> None:
    agent = GenerationAgent(StubGenerationBackend())

    plan, selected = agent.prepare(make_request(_generation_intent(), make_context("Draw a garden")))

    assert plan.image_selection.all_from_user_message is False
    assert selected == []


@pytest.mark.asyncio
async def test_successful_generation_wraps_images() -> None:
    backend = StubGenerationBackend(
        [GenerationResult(text="", images=[PNG_BYTES, PNG_BYTES], mime_types=["image/jpeg"])]
    )
    agent = GenerationAgent(backend)
    context = make_context("Render my yard", attachments=[make_image("yard")])

    response = await agent.execute(make_request(_generation_intent(), context))

    assert response.is_success
    assert response.message == "Image generated successfully"
    assert response.agent_id == "generation_agent"
    attachments = response.generated_attachments or []
    assert len(attachments) == 2
    assert attachments[0].mime_type == "image/jpeg"
    assert attachments[1].mime_type == "image/png"
    assert attachments[0].id != attachments[1].id
    assert all(item.id.startswith("generated_") for item in attachments)
    assert response.metadata["images_used"] == 1
    assert response.metadata["images_generated"] == 2
    assert "fallback_used" not in response.metadata

    call = backend.calls[0]
    assert call["prompt"] == "Render my yard"
    assert call["images"] == [PNG_BYTES]
    assert call["language"] == "en"
    assert call["image_count"] == 1


@pytest.mark.asyncio
async def test_language_hint_comes_from_history() -> None:
    backend = StubGenerationBackend()
    agent = GenerationAgent(backend)
    history = [make_message("m1", "Хочу сад с прудом")]

    await agent.execute(make_request(_generation_intent(), make_context("render please", history=history)))

    assert backend.calls[0]["language"] == "ru"


@pytest.mark.asyncio
async def test_simplified_retry_success_is_annotated() -> None:
    backend = StubGenerationBackend([BackendTimeoutError("slow"), GenerationResult(text="Done", images=[PNG_BYTES])])
    agent = GenerationAgent(backend)
    plan = ExecutionPlan(
        enhanced_prompt="Japanese garden!!! with koi -- and maples",
        image_selection=ImageSelectionPlan(all_from_user_message=True),
    )
    context = make_context("go", attachments=[make_image("a"), make_image("b")])

    response = await agent.execute(make_request(_generation_intent(execution_plan=plan), context))

    assert response.is_success
    assert response.message == f"Done{FALLBACK_SUFFIX}"
    assert response.metadata["fallback_used"] is True
    assert response.metadata["error_type"] == "BackendTimeoutError"
    retry = backend.calls[1]
    assert retry["prompt"] == "Japanese garden with koi and maples"
    assert len(retry["images"]) == 1
    assert retry["image_count"] == 1


@pytest.mark.asyncio
async def test_double_failure_redirects_to_consultation() -> None:
    backend = StubGenerationBackend([BackendError("primary down"), BackendError("retry down")])
    settings = OrchestrationSettings()
    agent = GenerationAgent(backend, settings)

    response = await agent.execute(make_request(_generation_intent(), make_context("Design my plot")))

    assert response.is_success
    assert response.message == settings.consultation_redirect_message
    assert response.metadata["fallback_used"] is True
    assert response.metadata["fallback_type"] == "consultation"
    assert response.generated_attachments is None
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_empty_backend_result_enters_fallback() -> None:
    backend = StubGenerationBackend([GenerationResult(text="no images today")])
    agent = GenerationAgent(backend)

    response = await agent.execute(make_request(_generation_intent(), make_context("Design my plot")))

    assert response.is_success
    assert response.metadata["fallback_type"] == "consultation"


@pytest.mark.asyncio
async def test_plan_stage_fault_is_reported_without_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    backend = StubGenerationBackend()
    agent = GenerationAgent(backend)

    def broken_prepare(request):
        raise ValueError("selection exploded")

    monkeypatch.setattr(agent, "prepare", broken_prepare)

    response = await agent.execute(make_request(_generation_intent(), make_context("Design my plot")))

    assert not response.is_success
    assert response.error == "Generation failed: selection exploded"
    assert response.metadata["error_type"] == "ValueError"
    assert backend.calls == []


def test_describe_reports_target_backend() -> None:
    agent = GenerationAgent(StubGenerationBackend(backend_id="gemini"))

    description = agent.describe()

    assert description["target_api"] == "gemini"
    assert description["capabilities"] == ["image_generation", "text_generation"]
