"""Tests for the query service and agent clients using MockAgentClient."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from agent.client import (
    AnthropicAgentClient,
    HttpAgentClient,
    MockAgentClient,
    create_client,
    failure_envelope,
    strip_code_fences,
)
from agent.core import EnvQueryService
from agent.history import QueryHistory
from agent.normalizer import normalize_response
from agent.prompts import FETCH_ALL_LABEL, FETCH_ALL_QUERY
from tests.conftest import database_payload, success_envelope, text_envelope

# ---------------------------------------------------------------------------
# Query service — outcome classification
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_successful_query_is_recorded(query_service: EnvQueryService):
    outcome = await query_service.run_query("  database credentials  ")

    assert outcome.status == "success"
    assert outcome.strategy == "primary_result"
    assert outcome.result is not None
    assert [v.name for v in outcome.result.variables] == ["DB_USER", "DATABASE_URL", "PGPORT"]

    items = query_service.history.items()
    assert len(items) == 1
    assert items[0].query == "database credentials"
    assert items[0].result_count == 3
    assert outcome.history_item == items[0]


@pytest.mark.asyncio
async def test_query_is_trimmed_before_sending(
    query_service: EnvQueryService, mock_agent_client: MockAgentClient,
):
    await query_service.run_query("\tAPI keys\n")

    assert mock_agent_client.call_history == [
        {"message": "API keys", "agent_id": query_service.agent_id},
    ]


@pytest.mark.asyncio
async def test_empty_query_rejected(
    query_service: EnvQueryService, mock_agent_client: MockAgentClient,
):
    with pytest.raises(ValueError):
        await query_service.run_query("   ")

    assert mock_agent_client.call_history == []


@pytest.mark.asyncio
async def test_empty_variables_and_message_is_no_match():
    client = MockAgentClient([success_envelope({"variables": [], "message": ""})])
    service = EnvQueryService(client)

    outcome = await service.run_query("kubernetes tokens")

    assert outcome.status == "no_match"
    assert outcome.result is not None
    assert outcome.history_item is None
    assert len(service.history) == 0


@pytest.mark.asyncio
async def test_message_only_result_is_success():
    client = MockAgentClient([
        success_envelope({"variables": [], "message": "No cloud credentials are configured."}),
    ])
    service = EnvQueryService(client)

    outcome = await service.run_query("AWS credentials")

    assert outcome.status == "success"
    assert outcome.history_item is not None
    assert outcome.history_item.result_count == 0


@pytest.mark.asyncio
async def test_transport_failure_surfaces_agent_error():
    client = MockAgentClient([{"success": False, "error": "timeout"}])
    service = EnvQueryService(client)

    outcome = await service.run_query("Redis config")

    assert outcome.status == "error"
    assert outcome.error == "timeout"
    assert outcome.result is None
    assert len(service.history) == 0


@pytest.mark.asyncio
async def test_shape_miss_surfaces_response_message():
    client = MockAgentClient([
        {"success": True, "response": {"result": {}, "message": "Agent is warming up"}},
    ])
    service = EnvQueryService(client)

    outcome = await service.run_query("Port configs")

    assert outcome.status == "error"
    assert outcome.error == "Agent is warming up"


@pytest.mark.asyncio
async def test_client_exception_becomes_error_outcome():
    client = MockAgentClient()
    client.call = AsyncMock(side_effect=RuntimeError("connection reset"))  # type: ignore[method-assign]
    service = EnvQueryService(client)

    outcome = await service.run_query("Database vars")

    assert outcome.status == "error"
    assert outcome.error == "connection reset"


@pytest.mark.asyncio
async def test_client_exception_without_text_gets_generic_error():
    client = MockAgentClient()
    client.call = AsyncMock(side_effect=RuntimeError())  # type: ignore[method-assign]
    service = EnvQueryService(client)

    outcome = await service.run_query("Database vars")

    assert outcome.error == "An unexpected error occurred"


@pytest.mark.asyncio
async def test_stringified_payload_through_service():
    client = MockAgentClient([text_envelope(database_payload())])
    service = EnvQueryService(client)

    outcome = await service.run_query("database")

    assert outcome.status == "success"
    assert outcome.result is not None
    assert outcome.result.query_interpretation == "Database connection settings"


# ---------------------------------------------------------------------------
# Query service — fetch-all, rerun, history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_all_records_friendly_label(
    query_service: EnvQueryService, mock_agent_client: MockAgentClient,
):
    outcome = await query_service.fetch_all()

    assert outcome.status == "success"
    assert mock_agent_client.call_history[0]["message"] == FETCH_ALL_QUERY
    assert query_service.history.items()[0].query == FETCH_ALL_LABEL


@pytest.mark.asyncio
async def test_rerun_sends_the_same_query():
    client = MockAgentClient([
        success_envelope(database_payload()),
        success_envelope(database_payload()),
    ])
    service = EnvQueryService(client)
    first = await service.run_query("database credentials")
    assert first.history_item is not None

    second = await service.rerun(first.history_item.id)

    assert second.status == "success"
    assert [c["message"] for c in client.call_history] == [
        "database credentials",
        "database credentials",
    ]
    assert len(service.history) == 2


@pytest.mark.asyncio
async def test_rerun_of_fetch_all_sends_full_query():
    client = MockAgentClient([
        success_envelope(database_payload()),
        success_envelope(database_payload()),
    ])
    service = EnvQueryService(client)
    first = await service.fetch_all()
    assert first.history_item is not None

    await service.rerun(first.history_item.id)

    assert client.call_history[1]["message"] == FETCH_ALL_QUERY


@pytest.mark.asyncio
async def test_rerun_unknown_id_raises(query_service: EnvQueryService):
    with pytest.raises(KeyError):
        await query_service.rerun("missing")


@pytest.mark.asyncio
async def test_history_keeps_fifty_newest():
    client = MockAgentClient([success_envelope(database_payload()) for _ in range(55)])
    service = EnvQueryService(client)

    for i in range(55):
        await service.run_query(f"query {i}")

    items = service.history.items()
    assert len(items) == 50
    assert items[0].query == "query 54"
    assert items[-1].query == "query 5"


@pytest.mark.asyncio
async def test_clear_history(query_service: EnvQueryService):
    await query_service.run_query("database")

    assert query_service.clear_history() == 1
    assert query_service.history.items() == []


@pytest.mark.asyncio
async def test_agent_id_forwarded():
    client = MockAgentClient()
    service = EnvQueryService(client, agent_id="agent-123")

    await service.run_query("anything")

    assert client.call_history[0]["agent_id"] == "agent-123"


@pytest.mark.asyncio
async def test_history_persists_through_service(history_path):
    client = MockAgentClient([success_envelope(database_payload())])
    service = EnvQueryService(client, history=QueryHistory(path=history_path))

    await service.run_query("database")

    reloaded = QueryHistory(path=history_path)
    assert [i.query for i in reloaded.items()] == ["database"]


@pytest.mark.asyncio
async def test_message_only_result_records_zero_count_despite_total():
    client = MockAgentClient([
        success_envelope({"variables": [], "total_found": 4, "message": "Values are hidden."}),
    ])
    service = EnvQueryService(client)

    outcome = await service.run_query("secrets")

    assert outcome.status == "success"
    assert outcome.result is not None
    assert outcome.result.total_found == 4
    assert outcome.history_item is not None
    assert outcome.history_item.result_count == 0


# ---------------------------------------------------------------------------
# MockAgentClient
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_mock_client_default_envelope_is_empty_success():
    client = MockAgentClient()

    envelope = await client.call("hello", "agent")
    result = normalize_response(envelope)

    assert result is not None
    assert result.variables == []


@pytest.mark.asyncio
async def test_mock_client_add_envelope():
    client = MockAgentClient()
    client.add_envelope({"success": False, "error": "nope"})

    assert (await client.call("q", "a"))["error"] == "nope"


# ---------------------------------------------------------------------------
# HttpAgentClient
# ---------------------------------------------------------------------------


def _http_client(handler) -> HttpAgentClient:
    return HttpAgentClient(
        base_url="http://agent.test/",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_http_client_posts_query_and_returns_envelope():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=success_envelope(database_payload()))

    envelope = await _http_client(handler).call("database", "agent-1")

    assert seen["url"] == "http://agent.test/api/agent"
    assert seen["body"] == {"message": "database", "agent_id": "agent-1"}
    assert envelope["success"] is True
    assert normalize_response(envelope) is not None


@pytest.mark.asyncio
async def test_http_client_status_error_becomes_failure_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    envelope = await _http_client(handler).call("q", "a")

    assert envelope["success"] is False
    assert "502" in envelope["error"]


@pytest.mark.asyncio
async def test_http_client_connect_error_becomes_failure_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    envelope = await _http_client(handler).call("q", "a")

    assert envelope["success"] is False
    assert "connection refused" in envelope["error"]


@pytest.mark.asyncio
async def test_http_client_invalid_json_becomes_failure_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    envelope = await _http_client(handler).call("q", "a")

    assert envelope["success"] is False
    assert normalize_response(envelope) is None


@pytest.mark.asyncio
async def test_http_client_non_object_body_becomes_failure_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    envelope = await _http_client(handler).call("q", "a")

    assert envelope == failure_envelope("Agent returned an unexpected response")


# ---------------------------------------------------------------------------
# AnthropicAgentClient
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_anthropic_client_wraps_model_text():
    client = AnthropicAgentClient(api_key="test-key", model="mock-model")
    api_response = SimpleNamespace(
        content=[SimpleNamespace(type="text", text=json.dumps(database_payload()))],
        usage=SimpleNamespace(input_tokens=120, output_tokens=80),
    )
    create = AsyncMock(return_value=api_response)
    client._client = SimpleNamespace(messages=SimpleNamespace(create=create))  # type: ignore[assignment]

    envelope = await client.call("database", "agent-1")

    assert envelope["success"] is True
    assert envelope["raw_response"] == json.dumps(database_payload())
    assert create.await_args.kwargs["messages"] == [{"role": "user", "content": "database"}]
    result = normalize_response(envelope)
    assert result is not None
    assert len(result.variables) == 3


# ---------------------------------------------------------------------------
# create_client
# ---------------------------------------------------------------------------


def test_create_client_mock():
    assert isinstance(create_client("mock"), MockAgentClient)


def test_create_client_http_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("AGENT_PROVIDER", "http")
    assert isinstance(create_client(), HttpAgentClient)


def test_create_client_unknown_provider():
    with pytest.raises(ValueError, match="Unknown agent provider"):
        create_client("carrier-pigeon")


@pytest.mark.asyncio
async def test_anthropic_client_strips_code_fences():
    client = AnthropicAgentClient(api_key="test-key", model="mock-model")
    fenced = "```json\n" + json.dumps(database_payload()) + "\n```"
    api_response = SimpleNamespace(
        content=[SimpleNamespace(type="text", text=fenced)],
        usage=SimpleNamespace(input_tokens=120, output_tokens=80),
    )
    client._client = SimpleNamespace(  # type: ignore[assignment]
        messages=SimpleNamespace(create=AsyncMock(return_value=api_response)),
    )

    envelope = await client.call("database", "agent-1")

    assert envelope["raw_response"] == fenced
    result = normalize_response(envelope)
    assert result is not None
    assert [v.name for v in result.variables] == ["DB_USER", "DATABASE_URL", "PGPORT"]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('{"a": 1}', '{"a": 1}'),
    ],
)
def test_strip_code_fences(text, expected):
    assert strip_code_fences(text) == expected
