"""API endpoints for variable queries, history and system status."""

from __future__ import annotations

import os
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException
from prometheus_client import generate_latest
from starlette.responses import Response as StarletteResponse

from agent.models import QueryHistoryItem, QueryOutcome, QueryRequest
from agent.prompts import FETCH_ALL_LABEL, SUGGESTIONS
from agent.sorting import sort_variables
from api.deps import get_query_service

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1")
metrics_router = APIRouter()


def _sorted_for_display(
    outcome: QueryOutcome,
    field: str = "name",
    direction: str = "asc",
) -> QueryOutcome:
    if outcome.result is None or not outcome.result.variables:
        return outcome
    result = outcome.result.model_copy(
        update={"variables": sort_variables(outcome.result.variables, field, direction)},  # type: ignore[arg-type]
    )
    return outcome.model_copy(update={"result": result})


@router.post("/query", response_model=QueryOutcome)
async def run_query(body: QueryRequest) -> QueryOutcome:
    """Send a natural-language query to the agent and return normalized variables."""
    service = get_query_service()
    try:
        outcome = await service.run_query(body.query)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info("api_query_complete", status=outcome.status)
    return _sorted_for_display(outcome, body.sort_field, body.sort_direction)


@router.post("/query/all", response_model=QueryOutcome)
async def fetch_all_variables() -> QueryOutcome:
    """List every environment variable the agent can see."""
    service = get_query_service()
    outcome = await service.fetch_all()
    return _sorted_for_display(outcome)


@router.get("/history", response_model=list[QueryHistoryItem])
async def list_history() -> list[QueryHistoryItem]:
    """Previously run queries, newest first."""
    return get_query_service().history.items()


@router.delete("/history")
async def clear_history() -> dict[str, int]:
    """Drop every history entry."""
    cleared = get_query_service().clear_history()
    return {"cleared": cleared}


@router.post("/history/{item_id}/rerun", response_model=QueryOutcome)
async def rerun_history_item(item_id: str) -> QueryOutcome:
    """Run a previous query again."""
    service = get_query_service()
    try:
        outcome = await service.rerun(item_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"History item {item_id} not found") from e
    return _sorted_for_display(outcome)


@router.get("/suggestions")
async def list_suggestions() -> dict[str, Any]:
    """Quick suggestion chips for the query box."""
    return {"suggestions": SUGGESTIONS, "fetch_all_label": FETCH_ALL_LABEL}


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Service health check."""
    service = get_query_service()
    return {
        "status": "healthy",
        "agent_provider": os.environ.get("AGENT_PROVIDER", "http"),
        "agent_id": f"{service.agent_id[:8]}...",
        "history_entries": len(service.history),
    }


@metrics_router.get("/metrics")
async def prometheus_metrics() -> StarletteResponse:
    """Expose Prometheus metrics."""
    return StarletteResponse(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
