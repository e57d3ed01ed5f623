"""In-memory record store and metadata source for local runs and tests."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List
from datetime import datetime, timezone

from app.crm_client import CrmApiError, normalize_list_response
from builtin_fields import builtin_fields


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _matches(record: dict, query: str) -> bool:
    needle = query.lower()
    for value in record.values():
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


class InMemoryRecordStore:
    """Async record store keyed by module; ids listed in ``failing_ids`` raise on write."""

    def __init__(self, records: Dict[str, List[dict]] | None = None) -> None:
        self._records: Dict[str, Dict[str, dict]] = {}
        self.failing_ids: set = set()
        for module, items in (records or {}).items():
            for item in items:
                record = copy.deepcopy(item)
                record_id = str(record.get("_id") or record.get("id") or uuid.uuid4())
                record["_id"] = record_id
                self._bucket(module)[record_id] = record

    def _bucket(self, module: str) -> Dict[str, dict]:
        return self._records.setdefault(module, {})

    def _check(self, record_id: Any) -> None:
        if record_id in self.failing_ids:
            raise CrmApiError(f"write rejected for {record_id}", 500)

    async def list(self, module: str, filters: dict | None = None) -> dict:
        filters = filters or {}
        items = list(self._bucket(module).values())
        search = filters.get("search")
        if isinstance(search, str) and search.strip():
            items = [r for r in items if _matches(r, search.strip())]
        limit = int(filters.get("limit") or 20)
        page = int(filters.get("page") or 1)
        window = items[(page - 1) * limit : page * limit]
        body = {
            "data": [copy.deepcopy(r) for r in window],
            "pagination": {
                "page": page,
                "limit": limit,
                "totalDocs": len(items),
                "totalPages": max((len(items) + limit - 1) // limit, 1),
                "hasNextPage": page * limit < len(items),
                "hasPrevPage": page > 1,
            },
        }
        return normalize_list_response(body, module)

    async def get_by_id(self, module: str, record_id: Any) -> dict:
        record = self._bucket(module).get(str(record_id))
        if record is None:
            raise CrmApiError("record not found", 404)
        return copy.deepcopy(record)

    async def create(self, module: str, payload: dict) -> dict:
        record_id = str(uuid.uuid4())
        record = copy.deepcopy(payload)
        record["_id"] = record_id
        record["created_at"] = _now()
        self._bucket(module)[record_id] = record
        return copy.deepcopy(record)

    async def update(self, module: str, record_id: Any, payload: dict) -> dict:
        self._check(record_id)
        record = self._bucket(module).get(str(record_id))
        if record is None:
            raise CrmApiError("record not found", 404)
        record.update(copy.deepcopy(payload))
        record["_id"] = str(record_id)
        record["updated_at"] = _now()
        return copy.deepcopy(record)

    async def remove(self, module: str, record_id: Any) -> Any:
        self._check(record_id)
        bucket = self._bucket(module)
        if str(record_id) not in bucket:
            raise CrmApiError("record not found", 404)
        del bucket[str(record_id)]
        return record_id

    async def search(self, module: str, query: str, limit: int = 10) -> List[dict]:
        result = await self.list(module, {"search": query, "limit": limit})
        return result["records"]


class InMemoryMetadataSource:
    """Serves raw field and layout payloads; an empty module falls back to built-in fields."""

    def __init__(self, fields: Dict[str, Any] | None = None, layouts: Dict[str, dict] | None = None) -> None:
        self._fields = copy.deepcopy(fields or {})
        self._layouts = copy.deepcopy(layouts or {})
        self.unavailable: set = set()
        self.calls = 0

    def set_fields(self, module: str, payload: Any) -> None:
        self._fields[module] = copy.deepcopy(payload)

    def set_layout(self, module: str, view_type: str, layout: dict) -> None:
        self._layouts[f"{module}:{view_type}"] = copy.deepcopy(layout)

    async def get_fields_for_module(self, module: str) -> Any:
        self.calls += 1
        if module in self.unavailable:
            raise CrmApiError("metadata unavailable", 503)
        payload = self._fields.get(module)
        if payload is None:
            return {"systemFields": builtin_fields(module), "customFields": []}
        return copy.deepcopy(payload)

    async def get_active_layout(self, module: str, view_type: str) -> dict:
        return copy.deepcopy(self._layouts.get(f"{module}:{view_type}") or {"sections": []})
