"""Debounced search-and-resolve adapter for reference/lookup fields."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, List

from field_types import reference_target


FieldDescriptor = Dict[str, Any]
Candidate = Dict[str, Any]

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 10

_logger = logging.getLogger("crmforms.reference")


def default_debounce() -> float:
    raw = (os.getenv("CRM_REFERENCE_DEBOUNCE_MS") or "300").strip()
    try:
        return max(float(raw), 0.0) / 1000.0
    except ValueError:
        return 0.3


def record_id(record: dict) -> Any:
    return record.get("_id") if record.get("_id") is not None else record.get("id")


def candidate_label(record: dict, display_field: str | None) -> str:
    for key in (display_field, "fullName", "name", "subject", "email"):
        if key and record.get(key):
            return str(record[key])
    return str(record_id(record) or "")


class ReferenceResolver:
    """Search state for one reference field instance.

    Every ``search``/``select``/``clear`` bumps a generation counter; a
    response is applied only if its generation is still current, so an
    older, slower response never replaces newer results or a selection.
    """

    def __init__(self, client, field: FieldDescriptor, debounce: float | None = None, limit: int = DEFAULT_LIMIT) -> None:
        target = reference_target(field)
        self._client = client
        self.api_name = field.get("api_name")
        self.target_module: str | None = target["target_module"]
        self.display_field: str = target["display_field"]
        self.debounce = default_debounce() if debounce is None else debounce
        self.limit = limit
        self.generation = 0
        self.candidates: List[Candidate] = []
        self.loading = False
        self.value: Any = None
        self.label: str | None = None
        self._labels: Dict[Any, str] = {}

    def _bump(self) -> int:
        self.generation += 1
        return self.generation

    async def search(self, query: str | None, limit: int | None = None) -> List[Candidate]:
        generation = self._bump()
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH or not self.target_module:
            self.candidates = []
            self.loading = False
            return []

        if self.debounce:
            await asyncio.sleep(self.debounce)
        if generation != self.generation:
            _logger.debug("reference_search_coalesced field=%s generation=%s", self.api_name, generation)
            return []

        self.loading = True
        try:
            records = await self._client.search(self.target_module, text, limit or self.limit)
        except Exception:
            _logger.warning(
                "reference_search_failed field=%s module=%s",
                self.api_name,
                self.target_module,
                exc_info=True,
            )
            records = []

        if generation != self.generation:
            _logger.debug("reference_search_stale field=%s generation=%s current=%s", self.api_name, generation, self.generation)
            return []

        candidates = []
        for record in records or []:
            if not isinstance(record, dict) or record_id(record) is None:
                continue
            candidate = {"id": record_id(record), "label": candidate_label(record, self.display_field)}
            self._labels[candidate["id"]] = candidate["label"]
            candidates.append(candidate)
        self.candidates = candidates
        self.loading = False
        return candidates

    def select(self, candidate: Candidate) -> Any:
        self._bump()
        self.value = candidate.get("id")
        self.label = candidate.get("label") or str(self.value)
        self._labels[self.value] = self.label
        self.candidates = []
        self.loading = False
        return self.value

    def clear(self) -> None:
        self._bump()
        self.value = None
        self.label = None
        self.candidates = []
        self.loading = False

    async def resolve_label(self, value: Any) -> str:
        if value is None or value == "":
            return ""
        if value in self._labels:
            return self._labels[value]
        if not self.target_module:
            return str(value)
        try:
            record = await self._client.get_by_id(self.target_module, value)
        except Exception:
            _logger.warning("reference_label_failed module=%s id=%s", self.target_module, value, exc_info=True)
            return str(value)
        label = candidate_label(record, self.display_field) if isinstance(record, dict) else str(value)
        self._labels[value] = label
        return label
