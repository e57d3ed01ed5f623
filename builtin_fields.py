"""Built-in (system) field sets per CRM module, in the legacy static shape."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from field_visibility import EMPTY_DISPLAY


_OWNER = {"name": "ownerId", "label": "Owner", "type": "select", "optionsKey": "owners", "isRequired": True}

BUILTIN_MODULES: Dict[str, Dict[str, Any]] = {
    "leads": {
        "label": "Leads",
        "singular": "Lead",
        "name_key": "fullName",
        "fields": [
            {"name": "firstName", "label": "First Name", "isRequired": True},
            {"name": "lastName", "label": "Last Name"},
            {"name": "email", "label": "Email", "type": "email", "isRequired": True},
            {"name": "phone", "label": "Phone"},
            {"name": "status", "label": "Status", "type": "select", "optionsKey": "status"},
            {"name": "assignedTo", "label": "Assigned To", "type": "select", "optionsKey": "owners"},
            {"name": "notes", "label": "Notes", "type": "textarea", "fullWidth": True},
        ],
    },
    "contacts": {
        "label": "Contacts",
        "singular": "Contact",
        "name_key": "fullName",
        "fields": [
            {"name": "firstName", "label": "First Name", "isRequired": True},
            {"name": "lastName", "label": "Last Name"},
            {"name": "email", "label": "Email", "type": "email"},
            {"name": "phone", "label": "Phone"},
            _OWNER,
            {"name": "description", "label": "Description", "type": "textarea", "fullWidth": True},
        ],
    },
    "accounts": {
        "label": "Accounts",
        "singular": "Account",
        "name_key": "name",
        "fields": [
            {"name": "name", "label": "Account Name", "isRequired": True},
            {"name": "industry", "label": "Industry"},
            {"name": "website", "label": "Website"},
            {"name": "phone", "label": "Phone"},
            _OWNER,
            {"name": "description", "label": "Description", "type": "textarea", "fullWidth": True},
        ],
    },
    "deals": {
        "label": "Deals",
        "singular": "Deal",
        "name_key": "name",
        "fields": [
            {"name": "name", "label": "Deal Name", "isRequired": True},
            {"name": "amount", "label": "Amount", "type": "number"},
            {"name": "closingDate", "label": "Closing Date", "type": "date"},
            {"name": "stage", "label": "Stage", "type": "select", "optionsKey": "status"},
            _OWNER,
            {"name": "description", "label": "Description", "type": "textarea", "fullWidth": True},
        ],
    },
    "activities": {
        "label": "Activities",
        "singular": "Activity",
        "name_key": "subject",
        "fields": [
            {"name": "subject", "label": "Subject", "isRequired": True},
            {"name": "type", "label": "Type", "type": "select", "optionsKey": "activityType", "isRequired": True},
            {"name": "status", "label": "Status", "type": "select", "optionsKey": "status"},
            {"name": "dueDate", "label": "Due Date", "type": "date"},
            {"name": "ownerId", "label": "Owner", "type": "select", "optionsKey": "owners"},
            {"name": "description", "label": "Description", "type": "textarea", "fullWidth": True},
        ],
    },
}


def builtin_fields(module: str) -> List[dict]:
    config = BUILTIN_MODULES.get(module)
    return copy.deepcopy(config["fields"]) if config else []


def record_display_name(module: str, record: dict | None) -> str:
    if not record:
        return EMPTY_DISPLAY
    config = BUILTIN_MODULES.get(module)
    if not config:
        return record.get("name") or record.get("fullName") or record.get("subject") or EMPTY_DISPLAY
    return record.get(config["name_key"]) or EMPTY_DISPLAY
