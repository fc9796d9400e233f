"""Agent call layer with HTTP, Anthropic and mock implementations.

Every client returns the raw agent envelope. Shaping it into something usable
is the normalizer's job, not the client's.
"""

from __future__ import annotations

import os
import re
from typing import Any, Protocol, runtime_checkable

import anthropic
import httpx
import structlog

from agent.models import AgentEnvelope
from agent.prompts import ENV_AGENT_SYSTEM_PROMPT

logger = structlog.get_logger()

DEFAULT_AGENT_ID = "69a0810b6e827eaf7ecbd044"


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) around a model reply."""
    return re.sub(r"```(?:json)?\s*", "", text).strip().rstrip("`")


def failure_envelope(error: str) -> AgentEnvelope:
    """Envelope describing a failed agent call."""
    return {
        "success": False,
        "error": error,
        "response": {"status": "error", "result": {}, "message": error},
    }


@runtime_checkable
class AgentClient(Protocol):
    """Protocol defining the interface for agent clients."""

    async def call(self, message: str, agent_id: str) -> AgentEnvelope: ...


class HttpAgentClient:
    """Agent client that forwards the query to an agent HTTP endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or os.environ.get("AGENT_API_URL", "http://localhost:3000")).rstrip("/")
        self._timeout = timeout or float(os.environ.get("AGENT_TIMEOUT_SECONDS", "60"))
        self._transport = transport

    async def call(self, message: str, agent_id: str) -> AgentEnvelope:
        url = f"{self._base_url}/api/agent"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(url, json={"message": message, "agent_id": agent_id})
                r.raise_for_status()
                body = r.json()
        except httpx.HTTPStatusError as e:
            logger.warning("agent_http_error", url=url, status=e.response.status_code)
            return failure_envelope(f"Agent returned HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning("agent_transport_error", url=url, error=str(e))
            return failure_envelope(f"Agent request failed: {e}")
        except ValueError:
            logger.warning("agent_invalid_json", url=url)
            return failure_envelope("Agent returned a response that is not valid JSON")

        if not isinstance(body, dict):
            logger.warning("agent_unexpected_body", url=url, body_type=type(body).__name__)
            return failure_envelope("Agent returned an unexpected response")

        logger.info("agent_http_call", url=url, success=body.get("success"))
        return body


class AnthropicAgentClient:
    """Agent client backed by a Claude model that answers in JSON."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        self._api_key = api_key or os.environ["ANTHROPIC_API_KEY"]
        self._model = model or os.environ.get("LLM_MODEL", "claude-sonnet-4-20250514")
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    async def call(self, message: str, agent_id: str) -> AgentEnvelope:
        try:
            api_response = await self._client.messages.create(
                model=self._model,
                max_tokens=4096,
                system=ENV_AGENT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": message}],
            )
        except anthropic.APIError as e:
            logger.warning("anthropic_api_error", model=self._model, error=str(e))
            return failure_envelope(str(e))

        content_text = "".join(
            block.text for block in api_response.content if block.type == "text"
        )

        logger.info(
            "anthropic_api_call",
            model=self._model,
            agent_id=agent_id,
            input_tokens=api_response.usage.input_tokens,
            output_tokens=api_response.usage.output_tokens,
        )

        return {
            "success": True,
            "response": {
                "status": "success",
                "result": {"text": strip_code_fences(content_text)},
                "message": "",
            },
            "raw_response": content_text,
        }


class MockAgentClient:
    """Mock agent client that returns pre-scripted envelopes for testing."""

    def __init__(self, envelopes: list[AgentEnvelope] | None = None) -> None:
        self._envelopes: list[AgentEnvelope] = envelopes or []
        self._call_index: int = 0
        self.call_history: list[dict[str, Any]] = []

    def add_envelope(self, envelope: AgentEnvelope) -> None:
        self._envelopes.append(envelope)

    async def call(self, message: str, agent_id: str) -> AgentEnvelope:
        self.call_history.append({"message": message, "agent_id": agent_id})

        if self._call_index < len(self._envelopes):
            envelope = self._envelopes[self._call_index]
            self._call_index += 1
            return envelope

        return {
            "success": True,
            "response": {
                "status": "success",
                "result": {"variables": [], "total_found": 0},
                "message": "",
            },
        }


def create_client(provider: str | None = None) -> AgentClient:
    """Factory function to create the appropriate agent client based on config."""
    provider = provider or os.environ.get("AGENT_PROVIDER", "http")

    if provider == "http":
        return HttpAgentClient()
    elif provider == "anthropic":
        return AnthropicAgentClient()
    elif provider == "mock":
        return MockAgentClient()
    else:
        raise ValueError(f"Unknown agent provider: {provider}")
