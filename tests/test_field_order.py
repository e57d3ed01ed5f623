import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from field_order import group_by_section, layout_field_order, resolve_order


def _f(api_name: str, sort_order: int, is_custom: bool = True) -> dict:
    return {"api_name": api_name, "sort_order": sort_order, "is_custom": is_custom}


def _names(fields) -> list:
    return [f["api_name"] for f in fields]


class TestResolveOrder(unittest.TestCase):
    def test_layout_orders_custom_fields(self) -> None:
        custom = [_f("a", 1), _f("b", 2), _f("c", 3)]
        layout = {"sections": [{"fields": ["c", "a"]}]}
        self.assertEqual(_names(resolve_order([], custom, layout)), ["c", "a", "b"])

    def test_orphan_appended_after_layout_fields(self) -> None:
        system = [_f("a", 0, False)]
        custom = [_f("b", 5), _f("c", 1)]
        layout = {"sections": [{"title": "Main", "fields": ["b"]}]}
        self.assertEqual(_names(resolve_order(system, custom, layout)), ["a", "b", "c"])

    def test_system_fields_lead(self) -> None:
        system = [_f("email", 2, False), _f("firstName", 1, False)]
        custom = [_f("budget", 5), _f("region", 1)]
        layout = {"sections": [{"fields": ["region"]}, {"fields": ["budget", "region"]}]}
        self.assertEqual(_names(resolve_order(system, custom, layout)), ["firstName", "email", "region", "budget"])

    def test_layout_ignores_system_and_unknown_names(self) -> None:
        system = [_f("email", 1, False)]
        custom = [_f("budget", 1)]
        layout = {"sections": [{"fields": ["ghost", "email", "budget"]}]}
        self.assertEqual(_names(resolve_order(system, custom, layout)), ["email", "budget"])

    def test_without_layout_sorts_everything(self) -> None:
        system = [_f("email", 3, False)]
        custom = [_f("budget", 1), _f("region", 3)]
        self.assertEqual(_names(resolve_order(system, custom, None)), ["budget", "email", "region"])
        self.assertEqual(_names(resolve_order(system, custom, {"sections": []})), ["budget", "email", "region"])

    def test_ties_keep_input_order(self) -> None:
        custom = [_f("x", 1), _f("y", 1), _f("z", 1)]
        self.assertEqual(_names(resolve_order([], custom)), ["x", "y", "z"])

    def test_idempotent(self) -> None:
        system = [_f("email", 2, False), _f("firstName", 1, False)]
        custom = [_f("a", 1), _f("b", 2), _f("c", 3)]
        layout = {"sections": [{"fields": ["c", "a"]}]}
        once = resolve_order(system, custom, layout)
        twice = resolve_order(
            [f for f in once if not f["is_custom"]],
            [f for f in once if f["is_custom"]],
            layout,
        )
        self.assertEqual(_names(once), _names(twice))

    def test_layout_field_order_dedupes(self) -> None:
        layout = {"sections": [{"fields": ["a", "b"]}, {"fields": ["b", "c"]}, "junk"]}
        self.assertEqual(layout_field_order(layout), ["a", "b", "c"])
        self.assertEqual(layout_field_order(None), [])


class TestGroupBySection(unittest.TestCase):
    def test_groups(self) -> None:
        fields = [_f("email", 1, False), _f("c", 3), _f("a", 1), _f("b", 2)]
        layout = {"sections": [{"title": "Extra", "fields": ["c", "a"], "columns": 2}]}
        sections = group_by_section(fields, layout)
        self.assertEqual([s["title"] for s in sections], ["Details", "Extra", "Other"])
        self.assertEqual(_names(sections[0]["fields"]), ["email"])
        self.assertEqual(_names(sections[1]["fields"]), ["c", "a"])
        self.assertEqual(sections[1]["columns"], 2)
        self.assertEqual(_names(sections[2]["fields"]), ["b"])


if __name__ == "__main__":
    unittest.main()
