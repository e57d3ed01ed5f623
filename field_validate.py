"""Single-field validation: required, type format, then the generic rule bundle."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from field_types import format_number, get_field_type, is_empty, to_number
from rule_eval import is_conditionally_required


FieldDescriptor = Dict[str, Any]

_logger = logging.getLogger("crmforms.validate")


def _label(field: FieldDescriptor) -> str:
    return field.get("label") or field.get("api_name") or "This field"


def _check_bundle(field: FieldDescriptor, value: Any) -> str | None:
    bundle = field.get("validation")
    if not isinstance(bundle, dict):
        return None
    num = to_number(value)
    if bundle.get("min") is not None and num < to_number(bundle["min"]):
        return f"Minimum value is {format_number(bundle['min'])}"
    if bundle.get("max") is not None and num > to_number(bundle["max"]):
        return f"Maximum value is {format_number(bundle['max'])}"
    pattern = bundle.get("regex")
    if pattern and isinstance(value, str):
        try:
            compiled = re.compile(pattern)
        except (re.error, TypeError) as exc:
            _logger.warning(
                "validation_regex_invalid field=%s regex=%r error=%s",
                field.get("api_name"),
                pattern,
                exc,
            )
            return None
        if not compiled.search(value):
            return bundle.get("regex_message") or "Does not match required pattern"
    return None


def validate(
    field: FieldDescriptor,
    value: Any,
    draft: dict | None = None,
    equality: str | None = None,
) -> str | None:
    """Return the first failing check's message for ``value``, or None.

    Empty values only ever fail the required check; format and bundle
    checks run for non-empty values.
    """
    if is_empty(value):
        if field.get("is_required") is True:
            return f"{_label(field)} is required"
        if is_conditionally_required(field, draft or {}, equality):
            return f"{_label(field)} is required based on current values"
        return None

    message = get_field_type(field.get("field_type")).validate(field, value)
    if message:
        return message
    return _check_bundle(field, value)
