"""Role-based field visibility for forms, submission and detail views."""

from __future__ import annotations

import json
import math
from datetime import date, datetime
from typing import Any, Dict, List

from field_types import is_empty, to_number


FieldDescriptor = Dict[str, Any]

EMPTY_DISPLAY = "—"


def is_visible(field: FieldDescriptor, current_role: str | None) -> bool:
    roles = field.get("visible_to_roles") or []
    if not roles:
        return True
    if current_role is None:
        return False
    return current_role in roles


def filter_visible(fields: List[FieldDescriptor], current_role: str | None) -> List[FieldDescriptor]:
    return [f for f in fields if is_visible(f, current_role)]


def is_visible_in_detail(
    field: FieldDescriptor,
    current_role: str | None,
    record: dict | None,
    hide_empty_custom: bool = True,
) -> bool:
    if not is_visible(field, current_role):
        return False
    if not hide_empty_custom or not field.get("is_custom"):
        return True
    value = (record or {}).get(field.get("api_name"))
    return bool(field.get("is_required")) or not is_empty(value)


def detail_fields(
    fields: List[FieldDescriptor],
    current_role: str | None,
    record: dict | None,
    hide_empty_custom: bool = True,
) -> List[FieldDescriptor]:
    return [f for f in fields if is_visible_in_detail(f, current_role, record, hide_empty_custom)]


def format_detail_value(field: FieldDescriptor, value: Any) -> str:
    if value is None or value == "":
        return EMPTY_DISPLAY
    ftype = field.get("field_type")
    if ftype == "date":
        if isinstance(value, (date, datetime)):
            return value.isoformat()[:10]
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            return str(value)
    if ftype == "currency":
        amount = to_number(value)
        if not math.isfinite(amount):
            return str(value)
        symbol = field.get("currency_symbol") or "$"
        text = f"{amount:,.0f}" if amount.is_integer() else f"{amount:,.2f}"
        return f"{symbol}{text}"
    if ftype == "boolean":
        return "Yes" if value else "No"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return str(value.get("name") or value.get("label") or json.dumps(value, sort_keys=True))
    return str(value)
