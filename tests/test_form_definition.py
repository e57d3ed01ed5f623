import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app.template_render import message_variables, render_success_message
from field_normalize import normalize_fields
from form_definition import apply_form_definition, normalize_form_definition
from form_session import build_defaults


def _fields() -> list:
    return normalize_fields(
        [
            {"apiName": "firstName", "label": "First Name", "sortOrder": 2},
            {"apiName": "email", "label": "Email", "fieldType": "email", "sortOrder": 1},
            {"apiName": "legacy", "label": "Legacy", "isActive": False, "sortOrder": 0},
            {"apiName": "optIn", "label": "Opt in", "fieldType": "boolean", "sortOrder": 3},
        ]
    )


class TestFormDefinition(unittest.TestCase):
    def test_normalize_defaults(self) -> None:
        form = normalize_form_definition({"_id": "f1", "name": "Signup", "moduleApiName": "leads"})
        self.assertEqual(form["id"], "f1")
        self.assertEqual(form["module"], "leads")
        self.assertEqual(form["mappings"], [])
        self.assertEqual(form["settings"], {"submit_label": "Submit", "success_message": None, "theme": "light"})
        self.assertEqual(normalize_form_definition(None)["mappings"], [])

    def test_invalid_override_type_dropped(self) -> None:
        form = normalize_form_definition({"fieldMappings": [{"fieldApiName": "email", "overrideType": "hologram"}]})
        self.assertIsNone(form["mappings"][0]["override_type"])

    def test_without_mappings_uses_active_fields(self) -> None:
        fields = apply_form_definition(_fields(), normalize_form_definition({}))
        self.assertEqual([f["api_name"] for f in fields], ["email", "firstName", "optIn"])

    def test_mappings_override_base_fields(self) -> None:
        form = normalize_form_definition(
            {
                "fieldMappings": [
                    {"fieldApiName": "email", "label": "Work email", "isRequired": True, "sortOrder": 2},
                    {"fieldApiName": "firstName", "sortOrder": 1, "placeholder": "Your name"},
                    {"fieldApiName": "optIn", "isHidden": True},
                    {"fieldApiName": "source", "sortOrder": 3, "defaultValue": "web"},
                ]
            }
        )
        fields = apply_form_definition(_fields(), form)
        self.assertEqual([f["api_name"] for f in fields], ["firstName", "email", "source"])
        by_name = {f["api_name"]: f for f in fields}
        self.assertEqual(by_name["email"]["label"], "Work email")
        self.assertTrue(by_name["email"]["is_required"])
        self.assertEqual(by_name["email"]["field_type"], "email")
        self.assertEqual(by_name["firstName"]["placeholder"], "Your name")
        self.assertFalse(by_name["firstName"]["is_required"])
        self.assertEqual(by_name["source"]["field_type"], "text")
        self.assertEqual(build_defaults(fields)["source"], "web")

    def test_unmapped_default_falls_back_to_type_empty(self) -> None:
        form = normalize_form_definition({"fieldMappings": [{"fieldApiName": "optIn"}]})
        fields = apply_form_definition(_fields(), form)
        self.assertIs(build_defaults(fields)["optIn"], False)

    def test_base_fields_untouched(self) -> None:
        base = _fields()
        form = normalize_form_definition({"fieldMappings": [{"fieldApiName": "email", "label": "Changed"}]})
        apply_form_definition(base, form)
        self.assertEqual(base[1]["label"], "Email")


class TestSuccessMessage(unittest.TestCase):
    def test_interpolates_payload(self) -> None:
        settings = {"success_message": "Thanks {{ firstName }}!"}
        self.assertEqual(render_success_message(settings, {"firstName": "Ada"}), "Thanks Ada!")

    def test_unknown_variables_render_empty(self) -> None:
        settings = {"success_message": "Thanks {{ nickname }}."}
        self.assertEqual(render_success_message(settings, {}), "Thanks .")

    def test_broken_template_returned_as_written(self) -> None:
        settings = {"success_message": "Thanks {{ firstName"}
        with self.assertLogs("crmforms.templates", level="WARNING"):
            self.assertEqual(render_success_message(settings, {"firstName": "Ada"}), "Thanks {{ firstName")

    def test_sandbox_blocks_attribute_access(self) -> None:
        settings = {"success_message": "{{ firstName.__class__ }}"}
        self.assertEqual(render_success_message(settings, {"firstName": "Ada"}), "")

    def test_no_message(self) -> None:
        self.assertIsNone(render_success_message({"success_message": None}, {}))
        self.assertEqual(message_variables("Hi {{ a }} {{ b|upper }}"), {"a", "b"})


if __name__ == "__main__":
    unittest.main()
