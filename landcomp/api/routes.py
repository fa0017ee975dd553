from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.logging import get_logger
from ..dependencies import get_orchestrator
from ..orchestration.exceptions import AgentNotFoundError
from ..orchestration.orchestrator import AgentOrchestrator
from ..schemas.tasks import OrchestrateRequest

logger = get_logger(name=__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
async def healthcheck(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return {
        "status": "ok",
        "initialized": orchestrator.is_initialized,
        "agents": orchestrator.registry.count,
    }


@router.get("/status", tags=["orchestration"])
async def orchestrator_status(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return orchestrator.status()


@router.get("/agents", tags=["agents"])
async def list_agents(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> list[dict[str, Any]]:
    return [agent.describe() for agent in orchestrator.registry.all()]


@router.get("/agents/{agent_id}", tags=["agents"])
async def get_agent(agent_id: str, orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    try:
        return orchestrator.describe_agent(agent_id)
    except AgentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/orchestrate", tags=["orchestration"])
async def orchestrate(
    payload: OrchestrateRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    response = await orchestrator.process_message(
        payload.message,
        history=[item.to_message() for item in payload.history],
        attachments=[item.to_attachment() for item in payload.attachments] or None,
        current_agent_id=payload.current_agent_id,
        intent_payload=payload.intent,
    )
    logger.info(
        "orchestrate_completed",
        request_id=response.request_id,
        agent=response.agent_id,
        success=response.is_success,
    )
    return response.model_dump(mode="json")


@router.get("/metrics/summary", tags=["observability"])
async def metrics_summary(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return orchestrator.performance_summary()


@router.get("/metrics/agents", tags=["observability"])
async def agent_metrics(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return orchestrator.registry.all_metrics()


@router.post("/metrics/reset", status_code=status.HTTP_204_NO_CONTENT, tags=["observability"])
async def reset_metrics(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> None:
    orchestrator.reset_metrics()
