"""Streamlit dashboard — query box, sortable variable table and query history."""

from __future__ import annotations

import os
from datetime import datetime

import httpx
import pandas as pd
import streamlit as st

API_BASE = os.environ.get("ENVFETCH_API_BASE", "http://localhost:8000")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CONFIDENCE_COLORS = {
    "high": "green",
    "medium": "orange",
    "low": "gray",
}


def _api_get(path: str, **kwargs) -> dict | list | None:
    try:
        r = httpx.get(f"{API_BASE}{path}", timeout=30, **kwargs)
        r.raise_for_status()
        return r.json()
    except httpx.HTTPError:
        return None


def _api_post(path: str, payload: dict | None = None, **kwargs) -> dict | None:
    try:
        r = httpx.post(f"{API_BASE}{path}", json=payload, timeout=120, **kwargs)
        r.raise_for_status()
        return r.json()
    except httpx.HTTPError as e:
        st.error(f"API error: {e}")
        return None


def _api_delete(path: str) -> dict | None:
    try:
        r = httpx.delete(f"{API_BASE}{path}", timeout=30)
        r.raise_for_status()
        return r.json()
    except httpx.HTTPError as e:
        st.error(f"API error: {e}")
        return None


def _confidence_badge(confidence: str) -> str:
    color = CONFIDENCE_COLORS.get(confidence, "gray")
    return f":{color}[**{confidence.upper()}**]"


def _relative_time(timestamp: str) -> str:
    try:
        then = datetime.fromisoformat(timestamp)
    except ValueError:
        return timestamp
    seconds = int((datetime.now(then.tzinfo) - then).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return then.strftime("%Y-%m-%d")


def _submit(path: str, payload: dict | None = None) -> None:
    with st.spinner("Asking the agent..."):
        outcome = _api_post(path, payload)
    st.session_state.last_outcome = outcome
    st.rerun()


# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="EnvFetch",
    page_icon="🔎",
    layout="wide",
)

# ---------------------------------------------------------------------------
# Session state defaults
# ---------------------------------------------------------------------------

if "last_outcome" not in st.session_state:
    st.session_state.last_outcome = None
if "sort_field" not in st.session_state:
    st.session_state.sort_field = "name"
if "sort_direction" not in st.session_state:
    st.session_state.sort_direction = "asc"

# ---------------------------------------------------------------------------
# Sidebar — history
# ---------------------------------------------------------------------------

with st.sidebar:
    st.title("🔎 EnvFetch")
    st.caption("Describe the variables you need")

    st.divider()

    history = _api_get("/api/v1/history") or []
    header_left, header_right = st.columns([3, 1])
    header_left.subheader("History")
    if history and header_right.button("Clear", key="clear_history"):
        _api_delete("/api/v1/history")
        st.rerun()

    if not history:
        st.caption("No queries yet.")
    for item in history:
        label = f"{item['query']}  \n{item['resultCount']} found · {_relative_time(item['timestamp'])}"
        if st.button(label, key=f"hist_{item['id']}", use_container_width=True):
            _submit(f"/api/v1/history/{item['id']}/rerun")

# ---------------------------------------------------------------------------
# Main area — query form
# ---------------------------------------------------------------------------

suggestions = _api_get("/api/v1/suggestions") or {}

with st.form("query_form"):
    query = st.text_input(
        "What are you looking for?",
        placeholder='e.g. "database credentials" or "AWS region config"',
    )
    submitted = st.form_submit_button("Search", type="primary")

if submitted and query.strip():
    _submit("/api/v1/query", {"query": query})

chip_columns = st.columns(len(suggestions.get("suggestions", [])) + 1)
for column, suggestion in zip(chip_columns, suggestions.get("suggestions", [])):
    if column.button(suggestion, key=f"chip_{suggestion}"):
        _submit("/api/v1/query", {"query": suggestion})
if chip_columns[-1].button(suggestions.get("fetch_all_label", "Show all"), type="secondary"):
    _submit("/api/v1/query/all")

st.divider()

# ---------------------------------------------------------------------------
# Main area — results
# ---------------------------------------------------------------------------

outcome: dict | None = st.session_state.last_outcome

if outcome is None:
    st.info("Run a query to see matching environment variables.")
elif outcome["status"] == "error":
    st.error(outcome.get("error") or "Agent request failed. Please try again.")
elif outcome["status"] == "no_match":
    st.warning(
        "No matching variables found. Try a different description, for example: "
        '"database credentials", "all API keys", or "AWS region config".'
    )
else:
    result = outcome["result"]
    if result.get("query_interpretation"):
        st.markdown(f"**Interpreted as:** {result['query_interpretation']}")
    if result.get("message"):
        st.caption(result["message"])

    m1, m2 = st.columns(2)
    m1.metric("Total found", result["total_found"])
    m2.metric("Shown", len(result["variables"]))

    sort_left, sort_right = st.columns(2)
    st.session_state.sort_field = sort_left.radio(
        "Sort by", ["name", "confidence"], horizontal=True,
        index=["name", "confidence"].index(st.session_state.sort_field),
    )
    st.session_state.sort_direction = sort_right.radio(
        "Direction", ["asc", "desc"], horizontal=True,
        index=["asc", "desc"].index(st.session_state.sort_direction),
    )

    if result["variables"]:
        df = pd.DataFrame(result["variables"])
        if st.session_state.sort_field == "confidence":
            rank = {"high": 3, "medium": 2, "low": 1}
            df = df.assign(_rank=df["confidence"].map(rank)).sort_values(
                "_rank", ascending=st.session_state.sort_direction == "asc", kind="stable",
            ).drop(columns="_rank")
        else:
            df = df.sort_values(
                "name", key=lambda s: s.str.casefold(),
                ascending=st.session_state.sort_direction == "asc", kind="stable",
            )
        df["confidence"] = df["confidence"].str.upper()
        st.dataframe(df, use_container_width=True, hide_index=True)

        for variable in df.to_dict("records"):
            with st.expander(variable["name"]):
                st.code(variable["value"], language=None)
                st.markdown(_confidence_badge(variable["confidence"].lower()))
