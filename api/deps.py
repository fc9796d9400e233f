"""Shared application state and dependency injection for the API."""

from __future__ import annotations

from agent.core import EnvQueryService

_query_service: EnvQueryService | None = None


def init_query_service(service: EnvQueryService) -> None:
    global _query_service
    _query_service = service


def get_query_service() -> EnvQueryService:
    assert _query_service is not None, "EnvQueryService not initialized"
    return _query_service
