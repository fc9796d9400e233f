"""Agent response normalizer — turns loosely shaped agent replies into typed results.

The agent's wire contract is not firmly typed. The list of variables may sit
directly under ``response.result``, be wrapped under a well-known key, be
JSON-encoded inside a string, or only show up in the ``raw_response`` echo.
Every function here is pure: no I/O, no logging, no retained state.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from typing import Any, NamedTuple

from agent.models import AgentEnvelope, NormalizedResult, VariableRecord

# Wrapper keys searched for an embedded payload. First match wins.
CANDIDATE_KEYS = ("text", "response", "result", "data", "content", "output")

INTERPRETATION_KEYS = ("query_interpretation", "queryInterpretation", "interpretation")

CONFIDENCE_LEVELS = frozenset({"high", "medium", "low"})

RAW_RESPONSE_MAX_DEPTH = 3

DEFAULT_VALUE = "not set"

TRANSPORT_FAILURE_MESSAGE = "Agent request failed. Please try again."
EMPTY_RESULT_MESSAGE = (
    "No matching variables found. The agent returned an empty result. "
    "Try a more specific query."
)
NON_TEXT_FAILURE_MESSAGE = "No results returned. Try a different query."


class PayloadMatch(NamedTuple):
    """The object that carries the variables, and the strategy that found it."""

    strategy: str
    payload: dict[str, Any]


# ---------------------------------------------------------------------------
# Scalar coercion and candidate extraction
# ---------------------------------------------------------------------------


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def is_present(value: Any) -> bool:
    """JSON truthiness: null, false, 0 and '' are absent; empty containers are not."""
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and value == 0:
        return False
    return True


def coerce_json_scalar(value: Any) -> Any:
    """Parse *value* if it is a string that looks like a JSON object or array.

    Anything else, and any string that fails to parse, is returned unchanged.
    """
    if not isinstance(value, str):
        return value

    trimmed = value.strip()
    looks_like_json = (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    )
    if not looks_like_json:
        return value

    try:
        return json.loads(trimmed, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return value


def is_target_shape(value: Any) -> bool:
    """True for an object exposing a list-valued ``variables`` field."""
    return isinstance(value, dict) and isinstance(value.get("variables"), list)


def extract_candidate(obj: Any) -> Any:
    """Find the target shape in *obj* or one of its wrapper keys.

    Returns *obj* itself when nothing matches; callers re-check the shape.
    """
    if not isinstance(obj, dict):
        return obj
    if is_target_shape(obj):
        return obj

    for key in CANDIDATE_KEYS:
        if key not in obj:
            continue
        candidate = coerce_json_scalar(obj[key])
        if is_target_shape(candidate):
            return candidate

    return obj


# ---------------------------------------------------------------------------
# Extraction strategies
# ---------------------------------------------------------------------------


def _response_field(envelope: AgentEnvelope) -> Any:
    return envelope.get("response")


def _result_field(envelope: AgentEnvelope) -> Any:
    response = _response_field(envelope)
    if isinstance(response, dict):
        return response.get("result")
    return None


def _from_primary_result(envelope: AgentEnvelope) -> dict[str, Any] | None:
    data = coerce_json_scalar(_result_field(envelope))
    if isinstance(data, dict) and not is_target_shape(data):
        data = extract_candidate(data)
    return data if is_target_shape(data) else None


def _from_response_level(envelope: AgentEnvelope) -> dict[str, Any] | None:
    response = _response_field(envelope)
    if is_target_shape(response):
        return response

    result = _result_field(envelope)
    if isinstance(result, dict):
        extracted = extract_candidate(result)
        if is_target_shape(extracted):
            return extracted
    return None


def _from_raw_response(envelope: AgentEnvelope) -> dict[str, Any] | None:
    current = envelope.get("raw_response")
    if not is_present(current):
        return None

    for _ in range(RAW_RESPONSE_MAX_DEPTH):
        current = coerce_json_scalar(current)
        if not isinstance(current, dict):
            return None
        if is_target_shape(current):
            return current

        if is_present(current.get("response")):
            inner = coerce_json_scalar(current["response"])
            if is_target_shape(inner):
                return inner
            current = current["response"]
            continue

        extracted = extract_candidate(current)
        return extracted if is_target_shape(extracted) else None

    return None


def _from_deep_string_scan(envelope: AgentEnvelope) -> dict[str, Any] | None:
    # Any string mentioning "variables" is a candidate, prose included.
    result = _result_field(envelope)
    if not isinstance(result, dict):
        return None

    for value in result.values():
        if isinstance(value, str) and "variables" in value:
            parsed = coerce_json_scalar(value)
            if is_target_shape(parsed):
                return parsed
    return None


Strategy = Callable[[AgentEnvelope], dict[str, Any] | None]

STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("primary_result", _from_primary_result),
    ("response_level", _from_response_level),
    ("raw_response", _from_raw_response),
    ("deep_string_scan", _from_deep_string_scan),
)


def locate_payload(envelope: Any) -> PayloadMatch | None:
    """Run the strategies in order and return the first target-shaped object."""
    if not isinstance(envelope, dict):
        return None
    if not envelope.get("success") or not is_present(envelope.get("response")):
        return None

    for name, strategy in STRATEGIES:
        payload = strategy(envelope)
        if payload is not None:
            return PayloadMatch(strategy=name, payload=payload)
    return None


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _to_text(value: Any) -> str:
    """Render a JSON scalar or container as text, the way JSON would spell it."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _coerce_variable(raw: Any) -> VariableRecord:
    fields = raw if isinstance(raw, dict) else {}

    name = fields.get("name")
    value = fields.get("value")
    confidence = fields.get("confidence")

    return VariableRecord(
        name="" if name is None else _to_text(name),
        value=DEFAULT_VALUE if value is None else _to_text(value),
        confidence=(
            confidence
            if isinstance(confidence, str) and confidence in CONFIDENCE_LEVELS
            else "low"
        ),
    )


def _coerce_total(raw: Any, fallback: int) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return fallback
    if not math.isfinite(raw) or raw < 0:
        return fallback
    return int(raw)


def build_result(payload: dict[str, Any]) -> NormalizedResult:
    """Coerce a target-shaped object into a :class:`NormalizedResult`."""
    interpretation = next(
        (payload[key] for key in INTERPRETATION_KEYS if payload.get(key) is not None),
        "",
    )

    raw_variables = payload.get("variables")
    variables = (
        [_coerce_variable(item) for item in raw_variables]
        if isinstance(raw_variables, list)
        else []
    )

    message = payload.get("message")

    return NormalizedResult(
        query_interpretation=_to_text(interpretation),
        variables=variables,
        total_found=_coerce_total(payload.get("total_found"), len(variables)),
        message="" if message is None else _to_text(message),
    )


def normalize_response(envelope: Any) -> NormalizedResult | None:
    """Normalize an agent envelope, or return ``None`` if it holds no usable data."""
    match = locate_payload(envelope)
    if match is None:
        return None
    return build_result(match.payload)


def describe_failure(envelope: Any) -> str:
    """User-facing error text for an envelope that produced no result."""
    if not isinstance(envelope, dict):
        return TRANSPORT_FAILURE_MESSAGE

    response = envelope.get("response")
    response = response if isinstance(response, dict) else {}

    if not envelope.get("success"):
        error = envelope.get("error")
        if error is None:
            error = response.get("message")
        if error is None:
            return TRANSPORT_FAILURE_MESSAGE
        return _to_text(error)

    result = response.get("result")
    result = result if isinstance(result, dict) else {}

    for candidate in (
        response.get("message"),
        result.get("text"),
        result.get("message"),
        envelope.get("error"),
    ):
        if candidate is not None:
            return candidate if isinstance(candidate, str) else NON_TEXT_FAILURE_MESSAGE

    return EMPTY_RESULT_MESSAGE
