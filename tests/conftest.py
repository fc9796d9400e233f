"""Shared test fixtures for EnvFetch tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from agent.client import MockAgentClient
from agent.core import EnvQueryService
from agent.history import QueryHistory

# ---------------------------------------------------------------------------
# Pre-scripted agent payloads
# ---------------------------------------------------------------------------


def database_payload() -> dict[str, Any]:
    return {
        "query_interpretation": "Database connection settings",
        "variables": [
            {"name": "DB_USER", "value": "app", "confidence": "high"},
            {"name": "DATABASE_URL", "value": "postgres://db:5432/app", "confidence": "high"},
            {"name": "PGPORT", "value": "5432", "confidence": "medium"},
        ],
        "total_found": 3,
        "message": "",
    }


def success_envelope(result: Any, **extra: Any) -> dict[str, Any]:
    return {
        "success": True,
        "response": {"status": "success", "result": result, "message": ""},
        **extra,
    }


def text_envelope(payload: dict[str, Any]) -> dict[str, Any]:
    """Envelope where the payload only exists as JSON text under ``result.text``."""
    return success_envelope({"text": json.dumps(payload)})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_payload() -> dict[str, Any]:
    return database_payload()


@pytest.fixture
def mock_agent_client() -> MockAgentClient:
    """MockAgentClient pre-loaded with one database lookup."""
    return MockAgentClient(envelopes=[success_envelope(database_payload())])


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "history" / "envfetch_query_history.json"


@pytest.fixture
def query_service(mock_agent_client: MockAgentClient) -> EnvQueryService:
    """Service wired to the mock client with an in-memory history."""
    return EnvQueryService(client=mock_agent_client, history=QueryHistory())
