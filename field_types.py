"""Field type registry: per-type format checks, payload coercion and input shapes."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field as dc_field
from datetime import date, datetime
from typing import Any, Callable, Dict, List
from urllib.parse import urlsplit


FieldDescriptor = Dict[str, Any]

NUMERIC_TYPES = ("number", "currency", "percent")
REFERENCE_TYPES = ("reference", "lookup", "user_lookup")

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PHONE_RE = re.compile(r"\+?[\d\s\-()]{7,20}", re.ASCII)
_NUMERIC_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?|[+-]?Infinity")
_RADIX_RE = re.compile(r"0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+")
_HOST_SCHEMES = {"http", "https", "ftp", "ws", "wss"}


def is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, list) and len(value) == 0


def to_number(value: Any) -> float:
    """Coerce like JavaScript's ``Number()``; anything unparseable is NaN."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if _RADIX_RE.fullmatch(text):
            return float(int(text, 0))
        if not _NUMERIC_RE.fullmatch(text):
            return math.nan
        return float(text.replace("Infinity", "inf"))
    return math.nan


def format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def unwrap_ref(value: Any) -> Any:
    if isinstance(value, dict):
        for key in ("_id", "id", "value"):
            if value.get(key) is not None:
                return value[key]
        return None
    return value


def _number_config(field: FieldDescriptor) -> dict:
    config = field.get("number_config")
    return config if isinstance(config, dict) else {}


def _no_check(field: FieldDescriptor, value: Any) -> str | None:
    return None


def _passthrough(field: FieldDescriptor, value: Any) -> Any:
    return value


def _check_email(field: FieldDescriptor, value: Any) -> str | None:
    if not _EMAIL_RE.fullmatch(str(value)):
        return "Invalid email address"
    return None


def _check_url(field: FieldDescriptor, value: Any) -> str | None:
    text = str(value).strip()
    try:
        parts = urlsplit(text)
    except ValueError:
        return "Invalid URL"
    scheme = parts.scheme.lower()
    if not scheme or not re.fullmatch(r"[a-z][a-z0-9+.\-]*", scheme):
        return "Invalid URL"
    if scheme in _HOST_SCHEMES:
        if not parts.hostname or any(ch.isspace() for ch in parts.netloc):
            return "Invalid URL"
    elif not text[len(scheme) + 1 :]:
        return "Invalid URL"
    return None


def _check_phone(field: FieldDescriptor, value: Any) -> str | None:
    if not _PHONE_RE.fullmatch(str(value)):
        return "Invalid phone number"
    return None


def _check_number(field: FieldDescriptor, value: Any) -> str | None:
    num = to_number(value)
    if not math.isfinite(num):
        return "Must be a number"
    config = _number_config(field)
    if config.get("min") is not None and num < to_number(config["min"]):
        return f"Min: {format_number(config['min'])}"
    if config.get("max") is not None and num > to_number(config["max"]):
        return f"Max: {format_number(config['max'])}"
    return None


def _check_date(field: FieldDescriptor, value: Any) -> str | None:
    if isinstance(value, date):
        return None
    text = str(value)
    try:
        date.fromisoformat(text)
    except ValueError:
        # stored values come back as full ISO timestamps
        if _check_datetime(field, text):
            return "Invalid date"
    return None


def _check_datetime(field: FieldDescriptor, value: Any) -> str | None:
    if isinstance(value, datetime):
        return None
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return "Invalid date and time"
    return None


def _coerce_number(field: FieldDescriptor, value: Any) -> Any:
    if value is None or value == "":
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    num = to_number(value)
    if not math.isfinite(num):
        return value
    return int(num) if num.is_integer() else num


def _coerce_ref(field: FieldDescriptor, value: Any) -> Any:
    return unwrap_ref(value)


def _coerce_multi(field: FieldDescriptor, value: Any) -> Any:
    if isinstance(value, list):
        return [unwrap_ref(item) for item in value]
    return value


def _shape_basic(kind: str) -> Callable[[FieldDescriptor], dict]:
    def _shape(field: FieldDescriptor) -> dict:
        return {"input": kind, "placeholder": field.get("placeholder")}

    return _shape


def _shape_number(field: FieldDescriptor) -> dict:
    config = _number_config(field)
    precision = config.get("precision")
    step = 10 ** -int(precision) if isinstance(precision, int) and precision > 0 else 1
    shape = {
        "input": "number",
        "min": config.get("min"),
        "max": config.get("max"),
        "step": step,
        "placeholder": field.get("placeholder"),
    }
    if field.get("field_type") == "currency":
        symbol = field.get("currency_symbol") or "$"
        shape["prefix"] = symbol
        shape["placeholder"] = field.get("placeholder") or f"{symbol}0.00"
    elif field.get("field_type") == "percent":
        shape["suffix"] = "%"
    return shape


def _shape_select(field: FieldDescriptor) -> dict:
    return {
        "input": "select",
        "multiple": field.get("field_type") == "multiselect",
        "options": list(field.get("options") or []),
        "options_key": field.get("options_key"),
        "placeholder": field.get("placeholder") or "Select an option",
    }


def _shape_reference(field: FieldDescriptor) -> dict:
    config = reference_target(field)
    return {
        "input": "reference",
        "target_module": config["target_module"],
        "display_field": config["display_field"],
        "min_query_length": 2,
    }


def reference_target(field: FieldDescriptor) -> dict:
    for key in ("reference_config", "lookup_config"):
        config = field.get(key)
        if isinstance(config, dict) and config.get("target_module"):
            return {
                "target_module": config["target_module"],
                "display_field": config.get("display_field") or "name",
            }
    target = "users" if field.get("field_type") == "user_lookup" else None
    return {"target_module": target, "display_field": "name"}


@dataclass
class FieldType:
    name: str
    validate: Callable[[FieldDescriptor, Any], str | None] = _no_check
    normalize_value: Callable[[FieldDescriptor, Any], Any] = _passthrough
    input_shape: Callable[[FieldDescriptor], dict] = dc_field(default_factory=lambda: _shape_basic("text"))
    empty: Callable[[], Any] = lambda: ""

    def empty_value(self) -> Any:
        return self.empty()


FIELD_TYPES: Dict[str, FieldType] = {}


def register_field_type(field_type: FieldType) -> None:
    FIELD_TYPES[field_type.name] = field_type


def get_field_type(name: str | None) -> FieldType:
    return FIELD_TYPES.get(name or "text") or FIELD_TYPES["text"]


def known_field_types() -> List[str]:
    return list(FIELD_TYPES.keys())


for _ft in (
    FieldType("text"),
    FieldType("textarea", input_shape=_shape_basic("textarea")),
    FieldType("number", _check_number, _coerce_number, _shape_number),
    FieldType("currency", _check_number, _coerce_number, _shape_number),
    FieldType("percent", _check_number, _coerce_number, _shape_number),
    FieldType("date", _check_date, input_shape=_shape_basic("date")),
    FieldType("datetime", _check_datetime, input_shape=_shape_basic("datetime-local")),
    FieldType("email", _check_email, input_shape=_shape_basic("email")),
    FieldType("phone", _check_phone, input_shape=_shape_basic("tel")),
    FieldType("url", _check_url, input_shape=_shape_basic("url")),
    FieldType("boolean", input_shape=lambda f: {"input": "checkbox"}, empty=lambda: False),
    FieldType("select", normalize_value=_coerce_ref, input_shape=_shape_select),
    FieldType("multiselect", normalize_value=_coerce_multi, input_shape=_shape_select, empty=list),
    FieldType("reference", normalize_value=_coerce_ref, input_shape=_shape_reference),
    FieldType("lookup", normalize_value=_coerce_ref, input_shape=_shape_reference),
    FieldType("user_lookup", normalize_value=_coerce_ref, input_shape=_shape_reference),
    FieldType("auto_number", input_shape=lambda f: {"input": "text", "read_only": True}),
):
    register_field_type(_ft)
