import os
import sys
import unittest
from datetime import date


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from field_visibility import detail_fields, filter_visible, format_detail_value, is_visible


class TestRoleVisibility(unittest.TestCase):
    def setUp(self) -> None:
        self.open_field = {"api_name": "name", "visible_to_roles": []}
        self.admin_field = {"api_name": "margin", "visible_to_roles": ["admin"]}

    def test_empty_roles_visible_to_everyone(self) -> None:
        self.assertTrue(is_visible(self.open_field, None))
        self.assertTrue(is_visible(self.open_field, "sales"))

    def test_restricted_field(self) -> None:
        self.assertTrue(is_visible(self.admin_field, "admin"))
        self.assertFalse(is_visible(self.admin_field, "sales"))
        self.assertFalse(is_visible(self.admin_field, None))

    def test_filter_preserves_order(self) -> None:
        fields = [self.admin_field, self.open_field]
        self.assertEqual(filter_visible(fields, "admin"), fields)
        self.assertEqual(filter_visible(fields, "sales"), [self.open_field])


class TestDetailVisibility(unittest.TestCase):
    def test_empty_custom_fields_hidden(self) -> None:
        fields = [
            {"api_name": "firstName", "is_custom": False},
            {"api_name": "region", "is_custom": True},
            {"api_name": "budget", "is_custom": True, "is_required": True},
            {"api_name": "tier", "is_custom": True},
        ]
        record = {"tier": "gold"}
        names = [f["api_name"] for f in detail_fields(fields, "sales", record)]
        self.assertEqual(names, ["firstName", "budget", "tier"])
        names = [f["api_name"] for f in detail_fields(fields, "sales", record, hide_empty_custom=False)]
        self.assertEqual(names, ["firstName", "region", "budget", "tier"])

    def test_format_detail_value(self) -> None:
        self.assertEqual(format_detail_value({"field_type": "text"}, None), "—")
        self.assertEqual(format_detail_value({"field_type": "date"}, "2024-03-05T10:00:00Z"), "2024-03-05")
        self.assertEqual(format_detail_value({"field_type": "date"}, date(2024, 1, 2)), "2024-01-02")
        self.assertEqual(format_detail_value({"field_type": "currency"}, 1500000), "$1,500,000")
        self.assertEqual(format_detail_value({"field_type": "currency", "currency_symbol": "€"}, "12.5"), "€12.50")
        self.assertEqual(format_detail_value({"field_type": "boolean"}, False), "No")
        self.assertEqual(format_detail_value({"field_type": "multiselect"}, ["a", "b"]), "a, b")
        self.assertEqual(format_detail_value({"field_type": "reference"}, {"_id": "1", "name": "Acme"}), "Acme")


if __name__ == "__main__":
    unittest.main()
