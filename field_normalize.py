"""Field descriptor normalization for legacy static config and metadata-service shapes."""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from typing import Any, Dict, List

from field_types import FIELD_TYPES, to_number


FieldDescriptor = Dict[str, Any]
Layout = Dict[str, Any]

SORT_LAST = sys.maxsize
VIEW_TYPES = ("detail", "edit", "create", "list", "kanban")

_logger = logging.getLogger("crmforms.metadata")

_LEGACY_TYPES = {"textarea", "date", "number", "select", "email"}


@dataclass
class FieldSchemaError(Exception):
    message: str
    path: str | None = None
    code: str = "FIELD_SCHEMA_ERROR"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def _pick(raw: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return default


def normalize_options(options: Any) -> list[dict]:
    if not isinstance(options, list):
        return []
    normalized = []
    for opt in options:
        if isinstance(opt, dict):
            normalized.append(
                {
                    "value": _pick(opt, "value", "id", "label", default=""),
                    "label": _pick(opt, "label", "value", "id", default=""),
                }
            )
        elif opt is not None:
            normalized.append({"value": opt, "label": str(opt)})
    return normalized


def normalize_rules(rules: Any) -> list[dict]:
    if not isinstance(rules, list):
        return []
    normalized = []
    for rule in rules:
        if not isinstance(rule, dict):
            continue
        normalized.append(
            {
                "field": rule.get("field"),
                "operator": str(_pick(rule, "operator", "op", default="")).strip().lower(),
                "value": rule.get("value"),
            }
        )
    return normalized


def _sort_order(raw: dict, position: int | None) -> float | int:
    value = _pick(raw, "sortOrder", "sort_order", "order")
    if value is None:
        return position if position is not None else SORT_LAST
    num = to_number(value)
    if not math.isfinite(num):
        return SORT_LAST
    return int(num) if num.is_integer() else num


def _target_config(config: Any) -> dict | None:
    if not isinstance(config, dict):
        return None
    return {
        "target_module": _pick(config, "targetModule", "target_module"),
        "display_field": _pick(config, "displayField", "display_field", default="name"),
    }


def _number_config(raw: dict) -> dict:
    config = _pick(raw, "numberConfig", "number_config", default={})
    if not isinstance(config, dict):
        config = {}
    return {
        "min": config.get("min"),
        "max": config.get("max"),
        "precision": config.get("precision"),
    }


def _validation(raw: dict) -> dict:
    bundle = raw.get("validation")
    if not isinstance(bundle, dict):
        bundle = {}
    # fieldValidation-era descriptors carried min/max/regex at the top level
    return {
        "min": _pick(bundle, "min", default=raw.get("min")),
        "max": _pick(bundle, "max", default=raw.get("max")),
        "regex": _pick(bundle, "regex", default=raw.get("regex")) or None,
        "regex_message": _pick(bundle, "regexMessage", "regex_message"),
        "conditional_required": normalize_rules(
            _pick(bundle, "conditionalRequired", "conditional_required")
        ),
    }


def _roles(raw: dict) -> list[str]:
    roles = _pick(raw, "visibleToRoles", "visible_to_roles", default=[])
    if not isinstance(roles, (list, tuple, set, frozenset)):
        return []
    return list(dict.fromkeys(str(r) for r in roles if r is not None))


def _is_legacy(raw: dict) -> bool:
    return "name" in raw and "apiName" not in raw and "api_name" not in raw


def _field_type(raw: dict, legacy: bool) -> str:
    value = _pick(raw, "fieldType", "field_type", "type", default="text")
    ftype = str(value).strip().lower()
    if legacy:
        return ftype if ftype in _LEGACY_TYPES else "text"
    return ftype if ftype in FIELD_TYPES else "text"


def normalize_field(raw: Any, is_custom: bool = False, position: int | None = None) -> FieldDescriptor:
    """Map one raw field descriptor onto the canonical field shape.

    ``position`` is the descriptor's index in its source list; legacy static
    fields have no explicit order and sort by it.
    """
    if not isinstance(raw, dict):
        raise FieldSchemaError("field descriptor must be an object")
    legacy = _is_legacy(raw)
    api_name = _pick(raw, "apiName", "api_name", "name", "key")
    if not isinstance(api_name, str) or not api_name:
        raise FieldSchemaError("field descriptor has no api name", "apiName")

    is_required = _pick(raw, "isRequired", "is_required")
    if legacy:
        is_required = bool(is_required)
    else:
        is_required = is_required is True

    visibility_rules = _pick(raw, "visibilityRules", "visibility_rules")
    if visibility_rules is None and isinstance(raw.get("validation"), dict):
        visibility_rules = raw["validation"].get("conditionalVisible")

    return {
        "id": _pick(raw, "id", "_id", default=api_name),
        "api_name": api_name,
        "label": _pick(raw, "label", default=api_name) or api_name,
        "field_type": _field_type(raw, legacy),
        "is_required": is_required,
        "is_custom": bool(is_custom),
        "is_active": _pick(raw, "isActive", "is_active", default=True) is not False,
        "sort_order": _sort_order(raw, position if legacy else None),
        "visible_to_roles": _roles(raw),
        "options": normalize_options(raw.get("options")),
        "options_key": _pick(raw, "optionsKey", "options_key"),
        "number_config": _number_config(raw),
        "validation": _validation(raw),
        "visibility_rules": normalize_rules(visibility_rules),
        "reference_config": _target_config(_pick(raw, "referenceConfig", "reference_config")),
        "lookup_config": _target_config(_pick(raw, "lookupConfig", "lookup_config")),
        "default_value": _pick(raw, "defaultValue", "default_value"),
        "placeholder": raw.get("placeholder"),
        "help_text": _pick(raw, "helpText", "help_text"),
        "currency_symbol": _pick(raw, "currencySymbol", "currency_symbol"),
        "full_width": bool(_pick(raw, "fullWidth", "full_width", default=False)),
    }


def normalize_fields(raw_fields: Any, is_custom: bool = False) -> List[FieldDescriptor]:
    if not isinstance(raw_fields, list):
        return []
    fields = []
    for idx, raw in enumerate(raw_fields):
        try:
            fields.append(normalize_field(raw, is_custom, position=idx))
        except FieldSchemaError as exc:
            _logger.warning("field_descriptor_skipped index=%s reason=%s", idx, exc.message)
    return fields


def normalize_layout(raw: Any, module: str | None = None, view_type: str = "edit") -> Layout:
    layout = {"module": module, "view_type": view_type, "sections": []}
    if not isinstance(raw, dict):
        return layout
    layout["module"] = _pick(raw, "moduleApiName", "module", default=module)
    layout["view_type"] = _pick(raw, "layoutType", "viewType", "view_type", default=view_type)
    sections = raw.get("sections")
    if not isinstance(sections, list):
        return layout
    for section in sections:
        if not isinstance(section, dict):
            continue
        fields = section.get("fields")
        if not isinstance(fields, list):
            continue
        api_names = [f for f in fields if isinstance(f, str) and f]
        if not api_names:
            continue
        layout["sections"].append(
            {
                "title": section.get("title") or "Details",
                "fields": api_names,
                "columns": section.get("columns") or 1,
            }
        )
    return layout
