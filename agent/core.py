"""Query service — sends a query to the agent, normalizes the reply, keeps history."""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timezone

import structlog

from agent.client import DEFAULT_AGENT_ID, AgentClient, failure_envelope
from agent.history import QueryHistory
from agent.models import AgentEnvelope, NormalizedResult, QueryHistoryItem, QueryOutcome
from agent.normalizer import build_result, describe_failure, locate_payload
from agent.prompts import FETCH_ALL_LABEL, FETCH_ALL_QUERY
from monitoring.metrics import (
    envfetch_active_queries,
    envfetch_history_size,
    record_agent_call,
    record_query_outcome,
)

logger = structlog.get_logger()

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class EnvQueryService:
    """Runs natural-language variable lookups against the agent, one at a time."""

    def __init__(
        self,
        client: AgentClient,
        history: QueryHistory | None = None,
        agent_id: str = DEFAULT_AGENT_ID,
    ) -> None:
        self._client = client
        self._history = history if history is not None else QueryHistory()
        self._agent_id = agent_id
        self._lock = asyncio.Lock()
        envfetch_history_size.set(len(self._history))

    @property
    def history(self) -> QueryHistory:
        return self._history

    @property
    def agent_id(self) -> str:
        return self._agent_id

    async def run_query(self, query: str, display_query: str | None = None) -> QueryOutcome:
        """Submit *query* and classify what came back.

        *display_query* is what gets recorded in history, when it should differ
        from the text sent to the agent.
        """
        text = query.strip()
        if not text:
            raise ValueError("query must not be empty")

        async with self._lock:
            outcome = await self._run(text, display_query or text)

        record_query_outcome(outcome)
        return outcome

    async def fetch_all(self) -> QueryOutcome:
        """List every variable the agent knows about."""
        return await self.run_query(FETCH_ALL_QUERY, display_query=FETCH_ALL_LABEL)

    async def rerun(self, item_id: str) -> QueryOutcome:
        """Run a history entry's query again. Unknown ids raise ``KeyError``."""
        item = self._history.get(item_id)
        if item.query == FETCH_ALL_LABEL:
            return await self.fetch_all()
        return await self.run_query(item.query)

    def clear_history(self) -> int:
        cleared = self._history.clear()
        envfetch_history_size.set(0)
        logger.info("history_cleared", count=cleared)
        return cleared

    async def _run(self, text: str, display_query: str) -> QueryOutcome:
        logger.info("query_started", agent_id=self._agent_id, query_length=len(text))

        envelope = await self._call_agent(text)
        match = locate_payload(envelope)
        if match is None:
            error = describe_failure(envelope)
            logger.warning(
                "query_failed",
                success=bool(envelope.get("success")),
                response_status=_response_status(envelope),
                error=error,
            )
            return QueryOutcome(status="error", query=display_query, error=error)

        result = build_result(match.payload)
        if not result.has_data:
            logger.info("query_no_match", strategy=match.strategy)
            return QueryOutcome(
                status="no_match",
                query=display_query,
                result=result,
                strategy=match.strategy,
            )

        item = self._record(display_query, result)
        logger.info(
            "query_complete",
            strategy=match.strategy,
            variables=len(result.variables),
            total_found=result.total_found,
        )
        return QueryOutcome(
            status="success",
            query=display_query,
            result=result,
            strategy=match.strategy,
            history_item=item,
        )

    async def _call_agent(self, text: str) -> AgentEnvelope:
        """Call the agent, turning a raised exception into a failure envelope."""
        envfetch_active_queries.inc()
        start = time.perf_counter()
        try:
            envelope = await self._client.call(text, self._agent_id)
        except Exception as e:
            record_agent_call(time.perf_counter() - start, failed=True)
            logger.error("agent_call_failed", agent_id=self._agent_id, error=str(e))
            return failure_envelope(str(e) or UNEXPECTED_ERROR_MESSAGE)
        finally:
            envfetch_active_queries.dec()

        record_agent_call(time.perf_counter() - start)
        if not isinstance(envelope, dict):
            return failure_envelope(UNEXPECTED_ERROR_MESSAGE)
        return envelope

    def _record(self, display_query: str, result: NormalizedResult) -> QueryHistoryItem:
        item = QueryHistoryItem(
            id=uuid.uuid4().hex[:12],
            query=display_query,
            timestamp=datetime.now(timezone.utc).isoformat(),
            result_count=result.total_found if result.variables else 0,
        )
        self._history.append(item)
        envfetch_history_size.set(len(self._history))
        return item


def _response_status(envelope: AgentEnvelope) -> str | None:
    response = envelope.get("response")
    if isinstance(response, dict) and isinstance(response.get("status"), str):
        return response["status"]
    return None
