"""Async REST client for the CRM record store, reference search and metadata."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List

import httpx


_logger = logging.getLogger("crmforms.client")

ENTITY_PATHS = {
    "leads": "leads",
    "contacts": "crm/contacts",
    "accounts": "crm/accounts",
    "deals": "crm/deals",
    "activities": "crm/activities",
}


def _api_url() -> str:
    return (os.getenv("CRM_API_URL") or "http://localhost:5000/api").strip().rstrip("/")


def _api_token() -> str:
    return (os.getenv("CRM_API_TOKEN") or "").strip()


def _api_timeout() -> float:
    try:
        return float(os.getenv("CRM_API_TIMEOUT", "30"))
    except ValueError:
        return 30.0


@dataclass
class CrmApiError(Exception):
    message: str
    status_code: int | None = None
    detail: Any = None
    code: str = "CRM_API_ERROR"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message} (status={self.status_code})"


def clean_params(params: dict | None) -> dict:
    cleaned = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, str) and value.strip() == "":
            continue
        cleaned[key] = value
    return cleaned


def normalize_list_response(body: Any, key: str = "items") -> dict:
    payload = body.get("data") if isinstance(body, dict) else None
    if isinstance(payload, list):
        records, data = payload, {}
    else:
        data = payload if isinstance(payload, dict) else {}
        records = data.get(key) or data.get("items") or data.get("records") or data.get("results") or []
    if not isinstance(records, list):
        records = []
    raw = (body.get("pagination") if isinstance(body, dict) else None) or data.get("pagination") or {}
    return {
        "records": records,
        "pagination": {
            "page": raw.get("page") or 1,
            "limit": raw.get("limit") or 20,
            "total_docs": raw.get("totalDocs", raw.get("total", len(records))),
            "total_pages": raw.get("totalPages", raw.get("pages", 1)),
            "has_next_page": raw.get("hasNextPage"),
            "has_prev_page": raw.get("hasPrevPage"),
        },
    }


def extract_entity(data: Any, singular: str = "item") -> Any:
    if not isinstance(data, dict):
        return data
    return data.get(singular) or data.get("item") or data.get("data") or data


class CrmClient:
    """Record store, reference resolver and metadata source over HTTP."""

    def __init__(self, base_url: str | None = None, token: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        headers = {"Accept": "application/json"}
        token = _api_token() if token is None else token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or _api_url(),
            headers=headers,
            timeout=_api_timeout(),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CrmClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _entity_path(self, module: str) -> str:
        path = ENTITY_PATHS.get(module)
        if path is None:
            raise CrmApiError(f"Unknown module: {module}")
        return path

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        res = await self._client.request(method, path, **kwargs)
        if res.status_code >= 400:
            try:
                detail = res.json()
            except ValueError:
                detail = res.text
            message = detail.get("message") if isinstance(detail, dict) else None
            _logger.warning("crm_api_error method=%s path=%s status=%s", method, path, res.status_code)
            raise CrmApiError(message or f"{method} {path} failed", res.status_code, detail)
        if res.status_code == 204 or not res.content:
            return None
        return res.json()

    async def list(self, module: str, filters: dict | None = None) -> dict:
        body = await self._request("GET", f"/{self._entity_path(module)}", params=clean_params(filters))
        return normalize_list_response(body, module)

    async def get_by_id(self, module: str, record_id: Any) -> dict:
        body = await self._request("GET", f"/{self._entity_path(module)}/{record_id}")
        return extract_entity((body or {}).get("data"), module[:-1])

    async def create(self, module: str, payload: dict) -> dict:
        body = await self._request("POST", f"/{self._entity_path(module)}", json=payload)
        return extract_entity((body or {}).get("data"), module[:-1])

    async def update(self, module: str, record_id: Any, payload: dict) -> dict:
        body = await self._request("PUT", f"/{self._entity_path(module)}/{record_id}", json=payload)
        return extract_entity((body or {}).get("data"), module[:-1])

    async def remove(self, module: str, record_id: Any) -> Any:
        await self._request("DELETE", f"/{self._entity_path(module)}/{record_id}")
        return record_id

    async def search(self, module: str, query: str, limit: int = 10) -> List[dict]:
        result = await self.list(module, {"search": query, "limit": limit})
        return result["records"]

    async def get_fields_for_module(self, module: str) -> List[dict]:
        body = await self._request("GET", f"/crm/metadata/fields/module/{module}")
        data = (body or {}).get("data")
        return data if isinstance(data, list) else []

    async def get_active_layout(self, module: str, view_type: str) -> Dict[str, Any]:
        try:
            body = await self._request("GET", f"/crm/metadata/layouts/active/{module}/{view_type}")
        except CrmApiError as exc:
            _logger.info("crm_layout_missing module=%s view=%s status=%s", module, view_type, exc.status_code)
            return {"sections": []}
        return (body or {}).get("data") or {"sections": []}
