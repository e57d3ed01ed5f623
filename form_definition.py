"""Form definitions: per-field overrides for public and embeddable forms."""

from __future__ import annotations

import copy
import math
from typing import Any, Dict, List

from field_normalize import SORT_LAST, normalize_field
from field_types import FIELD_TYPES, to_number


FieldDescriptor = Dict[str, Any]
FormDefinition = Dict[str, Any]


def _pick(raw: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return default


def _sort_key(value: Any) -> float:
    num = to_number(value) if value is not None else math.nan
    return num if math.isfinite(num) else 0


def normalize_mapping(raw: dict) -> dict:
    override = _pick(raw, "overrideType", "override_type")
    return {
        "field_api_name": _pick(raw, "fieldApiName", "field_api_name", "apiName"),
        "label": raw.get("label") or None,
        "is_required": _pick(raw, "isRequired", "is_required"),
        "placeholder": raw.get("placeholder") or None,
        "help_text": _pick(raw, "helpText", "help_text") or None,
        "sort_order": _sort_key(_pick(raw, "sortOrder", "sort_order")),
        "is_hidden": bool(_pick(raw, "isHidden", "is_hidden", default=False)),
        "default_value": _pick(raw, "defaultValue", "default_value"),
        "override_type": override if override in FIELD_TYPES else None,
    }


def normalize_form_definition(raw: Any) -> FormDefinition:
    if not isinstance(raw, dict):
        raw = {}
    mappings = _pick(raw, "fieldMappings", "field_mappings", "mappings", default=[])
    settings = raw.get("settings") if isinstance(raw.get("settings"), dict) else {}
    return {
        "id": _pick(raw, "id", "_id"),
        "name": raw.get("name"),
        "api_name": _pick(raw, "apiName", "api_name"),
        "module": _pick(raw, "moduleApiName", "module"),
        "mappings": [
            normalize_mapping(m)
            for m in (mappings if isinstance(mappings, list) else [])
            if isinstance(m, dict) and _pick(m, "fieldApiName", "field_api_name", "apiName")
        ],
        "settings": {
            "submit_label": _pick(settings, "submitLabel", "submit_label", default="Submit"),
            "success_message": _pick(settings, "successMessage", "success_message"),
            "theme": settings.get("theme") or "light",
        },
    }


def apply_form_definition(fields: List[FieldDescriptor], form_def: FormDefinition | None) -> List[FieldDescriptor]:
    """Return the effective field list a form definition renders."""
    mappings = (form_def or {}).get("mappings") or []
    if not mappings:
        active = [f for f in fields if f.get("is_active") is not False]
        return sorted(active, key=lambda f: f.get("sort_order", SORT_LAST))

    by_name = {f.get("api_name"): f for f in fields}
    visible = sorted((m for m in mappings if not m.get("is_hidden")), key=lambda m: m.get("sort_order") or 0)
    effective = []
    for mapping in visible:
        api_name = mapping["field_api_name"]
        base = by_name.get(api_name)
        field = copy.deepcopy(base) if base else normalize_field({"apiName": api_name}, is_custom=True)
        field["label"] = mapping.get("label") or field.get("label") or api_name
        field["field_type"] = mapping.get("override_type") or field.get("field_type") or "text"
        if mapping.get("is_required") is not None:
            field["is_required"] = mapping["is_required"] is True
        else:
            field["is_required"] = field.get("is_required") is True
        field["placeholder"] = mapping.get("placeholder") or field.get("placeholder") or ""
        field["help_text"] = mapping.get("help_text") or field.get("help_text") or ""
        if mapping.get("default_value") is not None:
            field["default_value"] = mapping["default_value"]
        field["sort_order"] = mapping.get("sort_order") or 0
        effective.append(field)
    return effective
