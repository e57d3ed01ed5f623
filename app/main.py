"""FastAPI adapter exposing form metadata, validation and submission."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.crm_client import CrmApiError, CrmClient
from app.stores import InMemoryMetadataSource, InMemoryRecordStore
from app.template_render import render_success_message
from builtin_fields import builtin_fields, record_display_name
from bulk_ops import bulk_remove
from field_normalize import VIEW_TYPES
from field_order import group_by_section
from field_types import get_field_type
from field_visibility import filter_visible
from form_definition import apply_form_definition, normalize_form_definition
from form_session import FormSession, FormSessionError, validate_all
from metadata_cache import MetadataCache, MetadataFetchError
from saved_views import FileViewStore, SavedViews


app = FastAPI(title="CRM Forms")
logger = logging.getLogger("crmforms.api")
logging.basicConfig(level=logging.INFO)

_backend: Dict[str, Any] = {}


def _use_remote_backend() -> bool:
    return bool((os.getenv("CRM_API_URL") or "").strip())


def configure_backend(store=None, metadata_source=None, views: SavedViews | None = None) -> None:
    """Swap the record store, metadata source and saved views in place."""
    if store is None:
        if _use_remote_backend():
            store = CrmClient()
        else:
            store = InMemoryRecordStore()
    if metadata_source is None:
        metadata_source = store if isinstance(store, CrmClient) else InMemoryMetadataSource()
    _backend["store"] = store
    _backend["metadata"] = MetadataCache(metadata_source, fallback_fields=builtin_fields)
    _backend["views"] = views or SavedViews(FileViewStore())


def _get(name: str) -> Any:
    if not _backend:
        configure_backend()
    return _backend[name]


def _error_response(code: str, message: str, path: str | None = None, detail: Any = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _field_errors_response(errors: Dict[str, str]) -> JSONResponse:
    body = {
        "ok": False,
        "field_errors": errors,
        "errors": [
            {"code": "FIELD_INVALID", "message": message, "path": api_name, "detail": None}
            for api_name, message in errors.items()
        ],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=422)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@app.exception_handler(MetadataFetchError)
async def metadata_fetch_error_handler(request: Request, exc: MetadataFetchError):
    return _error_response(exc.code, "no fields available", "module", detail={"module": exc.module}, status=503)


@app.exception_handler(CrmApiError)
async def crm_api_error_handler(request: Request, exc: CrmApiError):
    if exc.status_code == 404:
        return _error_response("RECORD_NOT_FOUND", exc.message, "record_id", status=404)
    return _error_response(exc.code, exc.message, detail={"status_code": exc.status_code, "detail": exc.detail}, status=502)


@app.exception_handler(FormSessionError)
async def form_session_error_handler(request: Request, exc: FormSessionError):
    return _error_response(exc.code, exc.message, exc.path, status=400)


async def _effective_fields(module: str, view_type: str, form: Any) -> tuple:
    metadata = await _get("metadata").get(module, view_type)
    fields = metadata["fields"]
    form_def = None
    if isinstance(form, dict):
        form_def = normalize_form_definition(form)
        fields = apply_form_definition(fields, form_def)
    return fields, metadata, form_def


def _with_input(field: dict) -> dict:
    return {**field, "input": get_field_type(field.get("field_type")).input_shape(field)}


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/forms/{module}/fields")
async def form_fields(module: str, role: str | None = None, view: str = "edit"):
    if view not in VIEW_TYPES:
        return _error_response("VIEW_TYPE_INVALID", f"view must be one of {', '.join(VIEW_TYPES)}", "view")
    metadata = await _get("metadata").get(module, view)
    visible = [_with_input(f) for f in filter_visible(metadata["fields"], role)]
    sections = [
        {**section, "fields": [f["api_name"] for f in section["fields"]]}
        for section in group_by_section(visible, metadata["layout"])
    ]
    return _ok_response({"module": module, "view_type": view, "fields": visible, "sections": sections})


@app.post("/forms/{module}/validate")
async def form_validate(module: str, request: Request):
    body = await _json_body(request)
    fields, _metadata, _form_def = await _effective_fields(module, "edit", body.get("form"))
    values = body.get("values") if isinstance(body.get("values"), dict) else {}
    errors = validate_all(fields, values, body.get("role"))
    return JSONResponse(jsonable_encoder({"ok": not errors, "errors": errors}))


@app.post("/forms/{module}/records")
async def form_submit(module: str, request: Request):
    body = await _json_body(request)
    fields, _metadata, form_def = await _effective_fields(module, "edit", body.get("form"))
    store = _get("store")
    record_id = body.get("record_id")
    existing = await store.get_by_id(module, record_id) if record_id else None

    async def _persist(payload: dict) -> dict:
        if record_id:
            return await store.update(module, record_id, payload)
        return await store.create(module, payload)

    session = FormSession(fields, current_role=body.get("role"), submit=_persist)
    session.initialize(existing_record=existing)
    values = body.get("values") if isinstance(body.get("values"), dict) else {}
    known = {f.get("api_name") for f in fields}
    for api_name, value in values.items():
        if api_name in known:
            session.set_value(api_name, value)

    outcome = await session.submit()
    if not outcome["ok"]:
        return _field_errors_response(outcome["errors"])
    logger.info("form_record_saved module=%s record_id=%s", module, record_id or "new")
    record = outcome["result"] if isinstance(outcome["result"], dict) else None
    payload = {"record": outcome["result"], "display_name": record_display_name(module, record)}
    if form_def is not None:
        payload["message"] = render_success_message(form_def["settings"], outcome["payload"])
    return _ok_response(payload, status=200 if record_id else 201)


@app.post("/forms/{module}/bulk_delete")
async def form_bulk_delete(module: str, request: Request):
    body = await _json_body(request)
    ids = body.get("ids")
    if not isinstance(ids, list) or not ids:
        return _error_response("IDS_REQUIRED", "ids must be a non-empty list", "ids")
    result = await bulk_remove(_get("store"), module, ids)
    warnings = [
        {"code": f["code"], "message": f["message"], "path": str(f["id"]), "detail": None}
        for f in result["failed"]
    ]
    return _ok_response({"removed": result["removed"], "failed": result["failed"]}, warnings=warnings)


@app.get("/views/{module}")
async def list_views(module: str):
    return _ok_response({"views": _get("views").list(module)})


@app.post("/views/{module}")
async def save_view(module: str, request: Request):
    body = await _json_body(request)
    try:
        view = _get("views").save(module, body.get("name"), body.get("filters"))
    except ValueError as exc:
        return _error_response("VIEW_NAME_REQUIRED", str(exc), "name")
    return _ok_response({"view": view}, status=201)


@app.delete("/views/{module}/{view_id}")
async def delete_view(module: str, view_id: str):
    if not _get("views").delete(module, view_id):
        return _error_response("VIEW_NOT_FOUND", "Saved view not found", "view_id", status=404)
    return _ok_response({"deleted": view_id})


@app.post("/metadata/{module}/invalidate")
async def invalidate_metadata(module: str):
    _get("metadata").invalidate(module)
    return _ok_response({"module": module})
