from __future__ import annotations

import logging
from typing import Any

from jinja2 import TemplateError, Undefined, meta
from jinja2.sandbox import ImmutableSandboxedEnvironment

_ALLOWED_FILTERS = {
    "default",
    "lower",
    "upper",
    "title",
    "trim",
    "replace",
    "round",
    "length",
}

_ALLOWED_TESTS = {
    "defined",
    "undefined",
    "none",
}

_logger = logging.getLogger("crmforms.templates")


class _LockedSandbox(ImmutableSandboxedEnvironment):
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False

    def is_safe_callable(self, obj) -> bool:
        return False


def _env() -> _LockedSandbox:
    env = _LockedSandbox(autoescape=False, undefined=Undefined)
    env.globals = {}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    env.tests = {key: val for key, val in env.tests.items() if key in _ALLOWED_TESTS}
    return env


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _plain(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(val) for val in value]
    return str(value)


def message_variables(text: str | None) -> set[str]:
    if not text:
        return set()
    return set(meta.find_undeclared_variables(_env().parse(text)))


def render_message(text: str | None, values: dict[str, Any] | None) -> str:
    tmpl = _env().from_string(text or "")
    return tmpl.render(_plain(values or {}) or {})


def render_success_message(settings: dict | None, payload: dict | None) -> str | None:
    """Render a form's success message against the submitted values.

    Unknown variables render empty. A message that fails to parse or render
    is returned as written.
    """
    text = (settings or {}).get("success_message")
    if not text:
        return None
    try:
        return render_message(text, payload)
    except TemplateError as exc:
        _logger.warning("success_message_render_failed error=%s", exc)
        return text
