"""Form session: draft values, validation and submission for one create/edit."""

from __future__ import annotations

import copy
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

from field_types import get_field_type, unwrap_ref
from field_validate import validate
from field_visibility import filter_visible, is_visible
from rule_eval import is_conditionally_visible


FieldDescriptor = Dict[str, Any]
SubmitCallback = Callable[[dict], Awaitable[Any]]

IDLE = "idle"
EDITING = "editing"
VALIDATING = "validating"
SUBMITTED = "submitted"
CLOSED = "closed"

_UNWRAP_TYPES = {"select", "reference", "lookup", "user_lookup"}

_logger = logging.getLogger("crmforms.session")


@dataclass
class FormSessionError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def initial_value(field: FieldDescriptor, existing: dict | None) -> Any:
    api_name = field.get("api_name")
    value = (existing or {}).get(api_name)
    if value is None:
        value = field.get("default_value")
    if value is None:
        return get_field_type(field.get("field_type")).empty_value()
    ftype = field.get("field_type")
    if ftype in _UNWRAP_TYPES and isinstance(value, dict):
        return unwrap_ref(value)
    if ftype == "multiselect" and isinstance(value, list):
        return [unwrap_ref(item) for item in value]
    return copy.deepcopy(value)


def build_defaults(fields: List[FieldDescriptor], existing: dict | None = None) -> dict:
    return {f.get("api_name"): initial_value(f, existing) for f in fields}


def validate_all(
    fields: List[FieldDescriptor],
    draft: dict,
    current_role: str | None,
    equality: str | None = None,
) -> Dict[str, str]:
    """Validate every field the role can see; hidden fields are never required."""
    errors: Dict[str, str] = {}
    for field in fields:
        if not is_visible(field, current_role):
            continue
        if not is_conditionally_visible(field, draft, equality):
            continue
        api_name = field.get("api_name")
        message = validate(field, draft.get(api_name), draft, equality)
        if message:
            errors[api_name] = message
    return errors


def build_payload(fields: List[FieldDescriptor], draft: dict) -> dict:
    payload = {}
    for field in fields:
        api_name = field.get("api_name")
        if api_name not in draft:
            continue
        handler = get_field_type(field.get("field_type"))
        payload[api_name] = handler.normalize_value(field, copy.deepcopy(draft[api_name]))
    return payload


class FormSession:
    """State for one create/edit interaction.

    idle -> editing (set_value) -> validating (submit) -> idle with errors
    or submitted. Submitted is terminal; start a new session for more edits.
    """

    def __init__(
        self,
        fields: List[FieldDescriptor],
        current_role: str | None = None,
        submit: SubmitCallback | None = None,
        equality: str | None = None,
    ) -> None:
        self.fields: List[FieldDescriptor] = list(fields)
        self.current_role = current_role
        self.equality = equality
        self._submit = submit
        self._draft: dict = {}
        self.errors: Dict[str, str] = {}
        self.state = IDLE
        self.submitting = False

    @property
    def values(self) -> dict:
        return copy.deepcopy(self._draft)

    def _field_names(self) -> set:
        return {f.get("api_name") for f in self.fields}

    def _ensure_open(self) -> None:
        if self.state == CLOSED:
            raise FormSessionError("SESSION_CLOSED", "form session has been closed")
        if self.state == SUBMITTED:
            raise FormSessionError("SESSION_SUBMITTED", "form session was already submitted")

    def initialize(
        self,
        ordered_fields: List[FieldDescriptor] | None = None,
        existing_record: dict | None = None,
    ) -> dict:
        self._ensure_open()
        if ordered_fields is not None:
            self.fields = list(ordered_fields)
        self._draft = build_defaults(self.fields, existing_record)
        self.errors = {}
        self.state = IDLE
        return self.values

    def set_value(self, api_name: str, value: Any) -> None:
        self._ensure_open()
        if api_name not in self._field_names():
            raise FormSessionError("UNKNOWN_FIELD", f"Unknown field: {api_name}", api_name)
        self._draft[api_name] = value
        self.errors.pop(api_name, None)
        self.state = EDITING

    def validate(self) -> Dict[str, str]:
        self.errors = validate_all(self.fields, self._draft, self.current_role, self.equality)
        return dict(self.errors)

    def visible_fields(self) -> List[FieldDescriptor]:
        return [
            f
            for f in filter_visible(self.fields, self.current_role)
            if is_conditionally_visible(f, self._draft, self.equality)
        ]

    async def submit(self, callback: SubmitCallback | None = None) -> dict:
        self._ensure_open()
        if self.submitting:
            raise FormSessionError("SESSION_BUSY", "a submit is already in flight")
        callback = callback or self._submit
        if callback is None:
            raise FormSessionError("SUBMIT_CALLBACK_MISSING", "no submit callback supplied")

        self.state = VALIDATING
        errors = self.validate()
        if errors:
            self.state = IDLE
            _logger.info("form_session_rejected fields=%s", sorted(errors))
            return {"ok": False, "errors": errors, "payload": None, "result": None}

        payload = build_payload(filter_visible(self.fields, self.current_role), self._draft)
        self.submitting = True
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            if self.state != CLOSED:
                self.state = IDLE
            raise
        finally:
            self.submitting = False

        if self.state == CLOSED:
            _logger.debug("form_session_result_ignored reason=closed")
        else:
            self.state = SUBMITTED
            self._draft = {}
        return {"ok": True, "errors": {}, "payload": payload, "result": result}

    def close(self) -> None:
        self._draft = {}
        self.errors = {}
        self.state = CLOSED
