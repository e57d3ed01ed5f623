"""Field ordering: system fields, layout-ordered custom fields, then orphans."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from field_normalize import SORT_LAST


FieldDescriptor = Dict[str, Any]


def _by_sort_order(fields: Iterable[FieldDescriptor]) -> List[FieldDescriptor]:
    # sorted() is stable; ties keep their incoming order
    return sorted(fields, key=lambda f: f.get("sort_order", SORT_LAST))


def layout_field_order(layout: dict | None) -> List[str]:
    """Flatten a layout's sections into first-occurrence api name order."""
    if not isinstance(layout, dict):
        return []
    seen: Dict[str, None] = {}
    for section in layout.get("sections") or []:
        if not isinstance(section, dict):
            continue
        for api_name in section.get("fields") or []:
            if isinstance(api_name, str) and api_name not in seen:
                seen[api_name] = None
    return list(seen)


def resolve_order(
    system_fields: List[FieldDescriptor],
    custom_fields: List[FieldDescriptor],
    layout: dict | None = None,
) -> List[FieldDescriptor]:
    layout_order = layout_field_order(layout)
    if not layout_order:
        return _by_sort_order([*system_fields, *custom_fields])

    custom_by_name: Dict[str, FieldDescriptor] = {}
    for field in custom_fields:
        custom_by_name.setdefault(field.get("api_name"), field)

    ordered_custom = [custom_by_name[name] for name in layout_order if name in custom_by_name]
    placed = {f.get("api_name") for f in ordered_custom}
    orphans = _by_sort_order(f for f in custom_fields if f.get("api_name") not in placed)

    return [*_by_sort_order(system_fields), *ordered_custom, *orphans]


def group_by_section(fields: List[FieldDescriptor], layout: dict | None) -> List[dict]:
    """Group already-ordered fields under their layout sections.

    System fields lead in a ``Details`` section; custom fields missing from
    every layout section trail in an ``Other`` section.
    """
    custom_by_name = {f.get("api_name"): f for f in fields if f.get("is_custom")}
    claimed: set = set()
    sections = []
    for section in (layout or {}).get("sections") or []:
        members = []
        for api_name in section.get("fields") or []:
            if api_name in custom_by_name and api_name not in claimed:
                claimed.add(api_name)
                members.append(custom_by_name[api_name])
        if members:
            sections.append(
                {
                    "title": section.get("title") or "Details",
                    "columns": section.get("columns") or 1,
                    "fields": members,
                }
            )
    system = [f for f in fields if not f.get("is_custom")]
    orphans = [f for f in fields if f.get("is_custom") and f.get("api_name") not in claimed]
    if system:
        sections.insert(0, {"title": "Details", "columns": 1, "fields": system})
    if orphans:
        sections.append({"title": "Other", "columns": 1, "fields": orphans})
    return sections
