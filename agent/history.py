"""Query history — a bounded, newest-first list of previously run queries."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from agent.models import QueryHistoryItem

logger = structlog.get_logger()

HISTORY_CAPACITY = 50

_items_adapter = TypeAdapter(list[QueryHistoryItem])


class QueryHistory:
    """Newest-first query history backed by a JSON file or memory.

    When *path* is provided the history is loaded from it on construction and
    the file is rewritten after every change. When *path* is ``None`` the
    history lives only in memory.
    """

    def __init__(self, path: str | Path | None = None, capacity: int = HISTORY_CAPACITY) -> None:
        self._path = Path(path) if path is not None else None
        self._capacity = capacity
        self._items: list[QueryHistoryItem] = []
        if self._path is not None:
            self._items = self._load()[: self._capacity]

    def append(self, item: QueryHistoryItem) -> None:
        """Add *item* as the newest entry, evicting the oldest beyond capacity."""
        self._items = [item, *self._items][: self._capacity]
        self._save()

    def items(self) -> list[QueryHistoryItem]:
        return list(self._items)

    def get(self, item_id: str) -> QueryHistoryItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    def clear(self) -> int:
        """Remove every entry and return how many were dropped."""
        count = len(self._items)
        self._items = []
        if self._path is not None:
            self._path.unlink(missing_ok=True)
        return count

    def __len__(self) -> int:
        return len(self._items)

    def _load(self) -> list[QueryHistoryItem]:
        assert self._path is not None
        if not self._path.exists():
            return []
        try:
            return _items_adapter.validate_json(self._path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("history_load_failed", path=str(self._path), error=str(e))
            return []

    def _save(self) -> None:
        if self._path is None:
            return
        payload = [item.model_dump(by_alias=True) for item in self._items]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2))
        except OSError as e:
            logger.warning("history_save_failed", path=str(self._path), error=str(e))
