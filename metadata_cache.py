"""Per module + view type metadata cache with explicit invalidation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from field_normalize import normalize_fields, normalize_layout
from field_order import resolve_order


Metadata = Dict[str, Any]

_logger = logging.getLogger("crmforms.metadata")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class MetadataFetchError(Exception):
    module: str
    message: str
    view_type: str | None = None
    code: str = "METADATA_FETCH_FAILED"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message} (module={self.module})"


def split_raw_fields(payload: Any) -> Tuple[List[dict], List[dict]]:
    """Split a metadata payload into raw system and custom field lists."""
    if isinstance(payload, dict):
        system = payload.get("systemFields") or payload.get("system_fields") or []
        custom = payload.get("customFields") or payload.get("custom_fields") or []
        return (list(system), list(custom))
    if isinstance(payload, list):
        system, custom = [], []
        for raw in payload:
            if isinstance(raw, dict) and (raw.get("isSystem") is True or raw.get("isCustom") is False):
                system.append(raw)
            else:
                custom.append(raw)
        return (system, custom)
    return ([], [])


def build_metadata(module: str, view_type: str, payload: Any, raw_layout: Any, fallback: List[dict] | None = None) -> Metadata:
    raw_system, raw_custom = split_raw_fields(payload)
    system_fields = normalize_fields(raw_system, is_custom=False)
    custom_fields = normalize_fields(raw_custom, is_custom=True)
    if not system_fields and not custom_fields and fallback:
        system_fields = normalize_fields(fallback, is_custom=False)
    layout = normalize_layout(raw_layout, module=module, view_type=view_type)
    fields = resolve_order(system_fields, custom_fields, layout)
    return {
        "module": module,
        "view_type": view_type,
        "system_fields": system_fields,
        "custom_fields": custom_fields,
        "layout": layout,
        "fields": fields,
        "by_api_name": {f["api_name"]: f for f in fields},
        "fetched_at": _now(),
    }


class MetadataCache:
    """Caches normalized metadata until ``invalidate`` is called.

    ``source`` provides async ``get_fields_for_module(module)`` and
    ``get_active_layout(module, view_type)``. Concurrent ``get`` calls for
    the same key share one fetch.
    """

    def __init__(self, source, fallback_fields: Callable[[str], List[dict]] | None = None) -> None:
        self._source = source
        self._fallback = fallback_fields
        self._entries: Dict[Tuple[str, str], Metadata] = {}
        self._inflight: Dict[Tuple[str, str], asyncio.Task] = {}

    async def get(self, module: str, view_type: str = "edit") -> Metadata:
        key = (module, view_type)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(module, view_type))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._drop_inflight(k, t))
        return await asyncio.shield(task)

    async def _fetch(self, module: str, view_type: str) -> Metadata:
        try:
            payload = await self._source.get_fields_for_module(module)
        except Exception as exc:
            _logger.warning("metadata_fields_failed module=%s error=%s", module, exc)
            raise MetadataFetchError(module, "no fields available", view_type) from exc
        try:
            raw_layout = await self._source.get_active_layout(module, view_type)
        except Exception as exc:
            _logger.warning("metadata_layout_failed module=%s view=%s error=%s", module, view_type, exc)
            raw_layout = None
        fallback = self._fallback(module) if self._fallback else None
        metadata = build_metadata(module, view_type, payload, raw_layout, fallback)
        key = (module, view_type)
        if self._inflight.get(key) is not asyncio.current_task():
            # invalidated while fetching
            _logger.debug("metadata_result_stale module=%s view=%s", module, view_type)
            return metadata
        self._entries[key] = metadata
        _logger.info("metadata_loaded module=%s view=%s fields=%s", module, view_type, len(metadata["fields"]))
        return metadata

    def invalidate(self, module: str, view_type: str | None = None) -> None:
        for key in list(self._entries):
            if key[0] == module and (view_type is None or key[1] == view_type):
                del self._entries[key]
        for key in list(self._inflight):
            if key[0] == module and (view_type is None or key[1] == view_type):
                del self._inflight[key]

    def _drop_inflight(self, key: Tuple[str, str], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def cached(self, module: str, view_type: str = "edit") -> Metadata | None:
        return self._entries.get((module, view_type))
