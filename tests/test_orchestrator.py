from __future__ import annotations

import pytest

from landcomp.agents.generation import GenerationAgent
from landcomp.dependencies import build_orchestrator
from landcomp.core.config import get_settings
from landcomp.monitoring.tracker import MetricsTracker
from landcomp.orchestration.exceptions import AgentNotFoundError
from landcomp.orchestration.orchestrator import AgentOrchestrator, ORCHESTRATOR_COMPONENT, agent_component
from landcomp.orchestration.registry import AgentRegistry
from landcomp.schemas.agents import AgentCapability
from landcomp.schemas.intents import ImageIntent, Intent, IntentSubtype, IntentType
from landcomp.services.backends import BackendError
from tests.helpers.stubs import (
    StubAgent,
    StubGenerationBackend,
    StubTextBackend,
    make_context,
    make_image,
    make_message,
)

_C = AgentCapability


async def _orchestrator(*agents) -> AgentOrchestrator:
    orchestrator = AgentOrchestrator(AgentRegistry(), MetricsTracker(), agents=agents)
    await orchestrator.initialize()
    return orchestrator


@pytest.mark.asyncio
async def test_initialize_registers_agents_once() -> None:
    agent = StubAgent("helper", {_C.CONSULTATION})
    orchestrator = await _orchestrator(agent)

    assert orchestrator.is_initialized
    assert await orchestrator.initialize() == {}
    assert orchestrator.registry.count == 1
    assert agent.initialized


@pytest.mark.asyncio
async def test_process_fills_agent_identity_and_records_metrics() -> None:
    orchestrator = await _orchestrator(StubAgent("helper", {_C.CONSULTATION}))

    response = await orchestrator.process(Intent(type=IntentType.CONSULTATION), make_context("hello"))

    assert response.is_success
    assert response.agent_id == "helper"
    assert response.agent_name == "Helper"
    assert "execution_time_ms" in response.metadata
    assert response.metadata["selection_score"] is not None
    assert orchestrator.tracker.metrics(ORCHESTRATOR_COMPONENT)["success_count"] == 1
    assert orchestrator.tracker.metrics(agent_component("helper"))["success_count"] == 1
    assert orchestrator.registry.metrics("helper")["success_count"] == 1


@pytest.mark.asyncio
async def test_routing_miss_becomes_failure_response() -> None:
    orchestrator = await _orchestrator(StubAgent("painter", {_C.IMAGE_GENERATION}))

    response = await orchestrator.process(Intent(type=IntentType.ANALYSIS), make_context("look"))

    assert not response.is_success
    assert response.error is not None and "No agents available to handle intent: analysis" in response.error
    assert response.metadata["error_type"] == "NoEligibleAgentError"
    assert orchestrator.tracker.metrics(ORCHESTRATOR_COMPONENT)["error_count"] == 1


@pytest.mark.asyncio
async def test_agent_crash_is_recorded_against_the_agent() -> None:
    orchestrator = await _orchestrator(StubAgent("crashy", {_C.CONSULTATION}, fail_with=RuntimeError("kaput")))

    response = await orchestrator.process(Intent(type=IntentType.CONSULTATION), make_context("hello"))

    assert not response.is_success
    assert response.error == "Request processing failed: kaput"
    assert response.agent_id == "crashy"
    assert orchestrator.registry.metrics("crashy")["error_count"] == 1


@pytest.mark.asyncio
async def test_process_message_parses_intent_payload_and_selects_images() -> None:
    backend = StubGenerationBackend()
    orchestrator = await _orchestrator(GenerationAgent(backend))
    attachments = [make_image("a"), make_image("b")]

    response = await orchestrator.process_message(
        "Render this yard",
        history=[make_message("m1", "Hi")],
        attachments=attachments,
        intent_payload={
            "type": "generation",
            "subtype": "imageGeneration",
            "confidence": 0.9,
            "imageIntent": "generateBased",
        },
    )

    assert response.is_success
    assert response.agent_id == "generation_agent"
    # generateBased keeps only the first current image
    assert backend.calls[0]["images"] == [attachments[0].data]


@pytest.mark.asyncio
async def test_process_message_tolerates_malformed_intent_numbers() -> None:
    agent = StubAgent("helper", {_C.CONSULTATION, _C.GARDENING})
    orchestrator = await _orchestrator(agent)

    response = await orchestrator.process_message(
        "Which shrubs handle frost?",
        intent_payload={
            "type": "consultation",
            "subtype": "plantSelection",
            "confidence": 10**400,
            "imagesNeeded": "--5",
            "referencedImageIndices": ["\u00b2"],
        },
    )

    assert response.is_success
    assert response.agent_id == "helper"
    assert len(agent.executed) == 1


@pytest.mark.asyncio
async def test_generation_double_failure_still_succeeds_end_to_end() -> None:
    backend = StubGenerationBackend([BackendError("down"), BackendError("still down")])
    orchestrator = await _orchestrator(GenerationAgent(backend))
    intent = Intent(
        type=IntentType.GENERATION,
        subtype=IntentSubtype.IMAGE_GENERATION,
        image_intent=ImageIntent.GENERATE_BASED,
    )

    response = await orchestrator.process_message("Design my plot", intent_payload=intent)

    assert response.is_success
    assert response.metadata["fallback_type"] == "consultation"
    assert orchestrator.registry.metrics("generation_agent")["success_count"] == 1


@pytest.mark.asyncio
async def test_describe_agent_and_status() -> None:
    orchestrator = await _orchestrator(StubAgent("helper", {_C.CONSULTATION}))

    description = orchestrator.describe_agent("helper")
    status = orchestrator.status()

    assert description["agent_id"] == "helper"
    assert description["metrics"]["total_executions"] == 0
    assert status["agents"] == ["helper"]
    assert status["initialized"] is True
    with pytest.raises(AgentNotFoundError):
        orchestrator.describe_agent("ghost")


@pytest.mark.asyncio
async def test_performance_summary_and_reset() -> None:
    orchestrator = await _orchestrator(StubAgent("helper", {_C.CONSULTATION}))
    await orchestrator.process(Intent(type=IntentType.CONSULTATION), make_context("hello"))

    summary = orchestrator.performance_summary()
    assert summary["summary"]["total_executions"] == 2
    assert {item["component"] for item in summary["top_performers"]} == {"orchestrator", "agent.helper"}

    orchestrator.reset_metrics()

    assert orchestrator.performance_summary()["summary"]["total_executions"] == 0
    assert orchestrator.registry.metrics("helper")["total_executions"] == 0


@pytest.mark.asyncio
async def test_dispose_fans_out_to_agents() -> None:
    agent = StubAgent("helper", {_C.CONSULTATION})
    orchestrator = await _orchestrator(agent)

    await orchestrator.dispose()

    assert agent.disposed
    assert not orchestrator.is_initialized


@pytest.mark.asyncio
async def test_build_orchestrator_wires_specialists_then_generation() -> None:
    settings = get_settings({"enabled_specialists": ["gardener", "builder"]})
    orchestrator = build_orchestrator(
        settings,
        text_backend=StubTextBackend(),
        generation_backend=StubGenerationBackend(),
    )

    await orchestrator.initialize()

    assert [agent.id for agent in orchestrator.registry.all()] == ["gardener", "builder", "generation_agent"]
