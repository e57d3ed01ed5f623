import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from field_normalize import (
    SORT_LAST,
    FieldSchemaError,
    normalize_field,
    normalize_fields,
    normalize_layout,
    normalize_options,
)


class TestNormalizeField(unittest.TestCase):
    def test_legacy_shape(self) -> None:
        field = normalize_field({"name": "notes", "label": "Notes", "type": "textarea", "isRequired": 1}, position=4)
        self.assertEqual(field["api_name"], "notes")
        self.assertEqual(field["field_type"], "textarea")
        self.assertTrue(field["is_required"])
        self.assertFalse(field["is_custom"])
        self.assertEqual(field["sort_order"], 4)
        self.assertEqual(field["visible_to_roles"], [])

    def test_legacy_limits_types(self) -> None:
        field = normalize_field({"name": "site", "type": "url"})
        self.assertEqual(field["field_type"], "text")

    def test_metadata_shape(self) -> None:
        raw = {
            "_id": "f1",
            "apiName": "budget",
            "label": "Budget",
            "fieldType": "currency",
            "isRequired": "yes",
            "sortOrder": "3",
            "visibleToRoles": ["admin", "admin", "sales"],
            "numberConfig": {"min": 0, "precision": 2},
            "validation": {"regex": "^\\d+$", "regexMessage": "Digits only"},
            "currencySymbol": "€",
        }
        field = normalize_field(raw, is_custom=True)
        self.assertEqual(field["id"], "f1")
        self.assertEqual(field["field_type"], "currency")
        self.assertFalse(field["is_required"])
        self.assertEqual(field["sort_order"], 3)
        self.assertEqual(field["visible_to_roles"], ["admin", "sales"])
        self.assertEqual(field["number_config"], {"min": 0, "max": None, "precision": 2})
        self.assertEqual(field["validation"]["regex"], "^\\d+$")
        self.assertEqual(field["validation"]["regex_message"], "Digits only")
        self.assertEqual(field["validation"]["conditional_required"], [])
        self.assertEqual(field["currency_symbol"], "€")
        self.assertTrue(field["is_custom"])

    def test_unknown_type_and_missing_sort_order(self) -> None:
        field = normalize_field({"apiName": "x", "fieldType": "hologram"})
        self.assertEqual(field["field_type"], "text")
        self.assertEqual(field["sort_order"], SORT_LAST)
        self.assertEqual(field["label"], "x")

    def test_conditional_rules_and_reference_config(self) -> None:
        field = normalize_field(
            {
                "apiName": "partnerRef",
                "fieldType": "reference",
                "referenceConfig": {"targetModule": "accounts"},
                "validation": {
                    "conditionalRequired": [{"field": "accountMode", "op": "EQ", "value": "Partner"}],
                    "conditionalVisible": [{"field": "accountMode", "operator": "exists"}],
                },
            }
        )
        self.assertEqual(
            field["validation"]["conditional_required"],
            [{"field": "accountMode", "operator": "eq", "value": "Partner"}],
        )
        self.assertEqual(field["visibility_rules"][0]["operator"], "exists")
        self.assertEqual(field["reference_config"], {"target_module": "accounts", "display_field": "name"})

    def test_top_level_bounds_fold_into_bundle(self) -> None:
        field = normalize_field({"apiName": "qty", "fieldType": "number", "min": 1, "max": 5})
        self.assertEqual(field["validation"]["min"], 1)
        self.assertEqual(field["validation"]["max"], 5)

    def test_rejects_bad_descriptors(self) -> None:
        with self.assertRaises(FieldSchemaError):
            normalize_field("budget")
        with self.assertRaises(FieldSchemaError) as ctx:
            normalize_field({"label": "No name"})
        self.assertEqual(ctx.exception.code, "FIELD_SCHEMA_ERROR")

    def test_normalize_fields_skips_bad_entries(self) -> None:
        with self.assertLogs("crmforms.metadata", level="WARNING") as logs:
            fields = normalize_fields([{"apiName": "a"}, None, {"label": "x"}, {"apiName": "b"}], is_custom=True)
        self.assertEqual([f["api_name"] for f in fields], ["a", "b"])
        self.assertTrue(any("field_descriptor_skipped" in line for line in logs.output))
        self.assertEqual(normalize_fields(None), [])

    def test_normalize_is_idempotent_on_ordering_inputs(self) -> None:
        raw = {"apiName": "a", "sortOrder": 2, "visibleToRoles": ["x"]}
        self.assertEqual(normalize_field(raw), normalize_field(dict(raw)))


class TestNormalizeOptions(unittest.TestCase):
    def test_mixed_options(self) -> None:
        self.assertEqual(
            normalize_options(["New", {"id": 2, "label": "Two"}, {"value": "v"}, None]),
            [
                {"value": "New", "label": "New"},
                {"value": 2, "label": "Two"},
                {"value": "v", "label": "v"},
            ],
        )
        self.assertEqual(normalize_options("bad"), [])


class TestNormalizeLayout(unittest.TestCase):
    def test_sections(self) -> None:
        layout = normalize_layout(
            {
                "moduleApiName": "deals",
                "sections": [
                    {"title": "Money", "fields": ["budget", "", 3], "columns": 2},
                    {"fields": ["region"]},
                    {"title": "Empty", "fields": []},
                    "junk",
                ],
            },
            view_type="edit",
        )
        self.assertEqual(layout["module"], "deals")
        self.assertEqual(
            layout["sections"],
            [
                {"title": "Money", "fields": ["budget"], "columns": 2},
                {"title": "Details", "fields": ["region"], "columns": 1},
            ],
        )

    def test_missing_layout(self) -> None:
        self.assertEqual(normalize_layout(None, module="leads")["sections"], [])


if __name__ == "__main__":
    unittest.main()
