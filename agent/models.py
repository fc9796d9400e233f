"""Pydantic models for the EnvFetch query pipeline."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Confidence = Literal["high", "medium", "low"]

# The agent's reply is an untyped JSON tree; nothing about it is guaranteed.
AgentEnvelope = dict[str, Any]


class VariableRecord(BaseModel):
    """A single environment variable returned by the agent."""

    name: str
    value: str = "not set"
    confidence: Confidence = "low"


class NormalizedResult(BaseModel):
    """Canonical, fully typed view of an agent response."""

    query_interpretation: str = ""
    variables: list[VariableRecord] = Field(default_factory=list)
    total_found: int = Field(default=0, ge=0)
    message: str = ""

    @property
    def has_data(self) -> bool:
        return bool(self.variables) or bool(self.message)


class QueryHistoryItem(BaseModel):
    """Immutable record of a previously run query."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    query: str
    timestamp: str
    result_count: int = Field(alias="resultCount", ge=0)


class QueryOutcome(BaseModel):
    """Result of submitting one query through the service."""

    status: Literal["success", "no_match", "error"]
    query: str
    result: NormalizedResult | None = None
    error: str | None = None
    strategy: str | None = None
    history_item: QueryHistoryItem | None = None


class QueryRequest(BaseModel):
    """Body of ``POST /api/v1/query``."""

    query: str
    sort_field: Literal["name", "confidence"] = "name"
    sort_direction: Literal["asc", "desc"] = "asc"
