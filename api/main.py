"""FastAPI application — main entrypoint for the EnvFetch API."""

from __future__ import annotations

import os
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.responses import Response

from agent.client import DEFAULT_AGENT_ID, create_client
from agent.core import EnvQueryService
from agent.history import QueryHistory
from api.deps import init_query_service
from api.routes import metrics_router, router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # noqa: ARG001
    """Startup and shutdown events."""
    # Configure structured logging before anything else
    from monitoring.logging import configure_logging

    configure_logging()

    logger.info("envfetch_starting")

    history_file = os.environ.get("HISTORY_FILE")
    history = QueryHistory(path=history_file)
    logger.info("history_loaded", persisted=history_file is not None, entries=len(history))

    client = create_client()
    service = EnvQueryService(
        client=client,
        history=history,
        agent_id=os.environ.get("AGENT_ID", DEFAULT_AGENT_ID),
    )
    init_query_service(service)
    logger.info("query_service_initialized", client=type(client).__name__)

    yield

    logger.info("envfetch_shutdown")


app = FastAPI(
    title="EnvFetch",
    description="Natural-language lookup of environment variables through an external agent",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next: Any) -> Response:
    start = time.perf_counter()
    response: Response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round(duration_ms, 2),
    )
    return response


# Error handling
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
            "path": request.url.path,
        },
    )


# Include routers
app.include_router(router)
app.include_router(metrics_router)
