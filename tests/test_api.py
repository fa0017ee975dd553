from __future__ import annotations

import base64

import httpx
import pytest

from landcomp.dependencies import build_orchestrator, get_orchestrator
from landcomp.core.config import get_settings
from tests.helpers.stubs import PNG_BYTES, StubGenerationBackend, StubTextBackend


def _stub_orchestrator(generation_backend: StubGenerationBackend | None = None):
    settings = get_settings({"enabled_specialists": ["gardener", "landscape_designer", "builder", "ecologist"]})
    return build_orchestrator(
        settings,
        text_backend=StubTextBackend(),
        generation_backend=generation_backend or StubGenerationBackend(),
    )


@pytest.mark.asyncio
async def test_lifespan_initializes_and_disposes_orchestrator(monkeypatch: pytest.MonkeyPatch) -> None:
    from landcomp import main

    orchestrator = _stub_orchestrator()
    monkeypatch.setattr(main, "build_orchestrator", lambda settings, **kwargs: orchestrator)

    transport = httpx.ASGITransport(app=main.app)
    async with main.app.router.lifespan_context(main.app):
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get(f"{main.settings.api_v1_prefix}/health")
            assert response.status_code == 200
            assert response.json() == {"status": "ok", "initialized": True, "agents": 5}
    await transport.aclose()

    assert not orchestrator.is_initialized
    assert main.app.state.orchestrator is None


@pytest.mark.asyncio
async def test_orchestrate_and_introspection_routes() -> None:
    from landcomp import main

    generation_backend = StubGenerationBackend()
    orchestrator = _stub_orchestrator(generation_backend)
    await orchestrator.initialize()
    main.app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    prefix = main.settings.api_v1_prefix

    transport = httpx.ASGITransport(app=main.app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            agents = await client.get(f"{prefix}/agents")
            gardener = await client.get(f"{prefix}/agents/gardener")
            missing = await client.get(f"{prefix}/agents/astronaut")
            consult = await client.post(
                f"{prefix}/orchestrate",
                json={
                    "message": "Which flowers grow in shade?",
                    "history": [{"role": "user", "content": "Hi there"}],
                    "intent": {"type": "consultation", "subtype": "plantSelection", "confidence": 0.9},
                },
            )
            generate = await client.post(
                f"{prefix}/orchestrate",
                json={
                    "message": "Render my yard with a pond",
                    "attachments": [{"id": "yard", "data": base64.b64encode(PNG_BYTES).decode()}],
                    "intent": {
                        "type": "generation",
                        "subtype": "imageGeneration",
                        "imageIntent": "generateBased",
                        "confidence": 0.95,
                    },
                },
            )
            invalid = await client.post(
                f"{prefix}/orchestrate",
                json={"message": "hi", "attachments": [{"id": "bad", "data": "%%%"}]},
            )
            status = await client.get(f"{prefix}/status")
            summary = await client.get(f"{prefix}/metrics/summary")
            agent_metrics = await client.get(f"{prefix}/metrics/agents")
            reset = await client.post(f"{prefix}/metrics/reset")
            after_reset = await client.get(f"{prefix}/metrics/summary")
    finally:
        main.app.dependency_overrides.clear()
        await transport.aclose()

    assert agents.status_code == 200
    assert [item["agent_id"] for item in agents.json()][-1] == "generation_agent"
    assert gardener.json()["agent_id"] == "gardener"
    assert missing.status_code == 404

    consult_body = consult.json()
    assert consult_body["is_success"] is True
    assert consult_body["agent_id"] == "gardener"
    assert consult_body["message"] == "stub answer"

    generate_body = generate.json()
    assert generate_body["agent_id"] == "generation_agent"
    generated = generate_body["generated_attachments"]
    assert len(generated) == 1
    assert base64.b64decode(generated[0]["data"]) == PNG_BYTES
    assert generation_backend.calls[0]["images"] == [PNG_BYTES]

    assert invalid.status_code == 422
    assert status.json()["agent_count"] == 5
    assert summary.json()["summary"]["total_executions"] == 4
    assert agent_metrics.json()["total_executions"] == 2
    assert reset.status_code == 204
    assert after_reset.json()["summary"]["total_executions"] == 0


@pytest.mark.asyncio
async def test_routes_report_unavailable_without_orchestrator() -> None:
    from landcomp import main

    main.app.state.orchestrator = None
    transport = httpx.ASGITransport(app=main.app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get(f"{main.settings.api_v1_prefix}/agents")
    finally:
        await transport.aclose()

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_orchestration_series() -> None:
    from landcomp import main
    from landcomp.core.metrics import increment_generation_fallback, increment_routing_miss

    increment_generation_fallback(stage="consultation")
    increment_routing_miss(intent_type="analysis")

    transport = httpx.ASGITransport(app=main.app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get("/metrics")
    finally:
        await transport.aclose()

    assert response.status_code == 200
    assert response.headers.get("content-type", "").startswith("text/plain")
    body = response.text
    assert 'landcomp_generation_fallback_total{stage="consultation"}' in body
    assert 'landcomp_routing_miss_total{intent_type="analysis"}' in body
