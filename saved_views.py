"""Saved list views (named filter sets) behind a swappable key-value store."""

from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Protocol


View = Dict[str, Any]

_logger = logging.getLogger("crmforms.views")


def default_views_path() -> Path:
    return Path(os.getenv("CRM_SAVED_VIEWS_PATH", "storage/saved_views.json"))


class ViewStore(Protocol):
    def get(self, scope: str) -> List[View]: ...

    def set(self, scope: str, views: List[View]) -> None: ...


class MemoryViewStore:
    def __init__(self) -> None:
        self._views: Dict[str, List[View]] = {}

    def get(self, scope: str) -> List[View]:
        return copy.deepcopy(self._views.get(scope, []))

    def set(self, scope: str, views: List[View]) -> None:
        self._views[scope] = copy.deepcopy(views)


class FileViewStore:
    """All scopes in one JSON document; unreadable files read as empty."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else default_views_path()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _logger.warning("saved_views_read_failed path=%s error=%s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, scope: str) -> List[View]:
        views = self._read_all().get(scope)
        return views if isinstance(views, list) else []

    def set(self, scope: str, views: List[View]) -> None:
        data = self._read_all()
        data[scope] = views
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(",", ":")),
                encoding="utf-8",
            )
        except (OSError, TypeError, ValueError) as exc:
            _logger.warning("saved_views_write_failed path=%s error=%s", self.path, exc)


class SavedViews:
    def __init__(self, store: ViewStore) -> None:
        self._store = store

    def list(self, module: str) -> List[View]:
        return self._store.get(module)

    def save(self, module: str, name: str, filters: dict | None) -> View:
        name = (name or "").strip()
        if not name:
            raise ValueError("view name is required")
        view = {"id": uuid.uuid4().hex[:8], "name": name, "filters": copy.deepcopy(filters or {})}
        views = self._store.get(module)
        views.append(view)
        self._store.set(module, views)
        return copy.deepcopy(view)

    def delete(self, module: str, view_id: str) -> bool:
        views = self._store.get(module)
        remaining = [v for v in views if v.get("id") != view_id]
        if len(remaining) == len(views):
            return False
        self._store.set(module, remaining)
        return True

    def find(self, module: str, view_id: str) -> View | None:
        for view in self._store.get(module):
            if view.get("id") == view_id:
                return view
        return None
