"""Display ordering for returned variables."""

from __future__ import annotations

from typing import Literal

from agent.models import VariableRecord

CONFIDENCE_RANK = {"high": 3, "medium": 2, "low": 1}


def sort_variables(
    variables: list[VariableRecord],
    field: Literal["name", "confidence"] = "name",
    direction: Literal["asc", "desc"] = "asc",
) -> list[VariableRecord]:
    """Return a sorted copy of *variables*; ties keep their original order."""
    if field == "name":
        ordered = sorted(variables, key=lambda v: v.name.casefold(), reverse=direction == "desc")
    elif field == "confidence":
        ordered = sorted(
            variables,
            key=lambda v: CONFIDENCE_RANK.get(v.confidence, 0),
            reverse=direction == "desc",
        )
    else:
        raise ValueError(f"Unknown sort field: {field}")
    return ordered
