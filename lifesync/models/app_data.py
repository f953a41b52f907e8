"""
Default Application Data

Factories for the initial payload of a fresh install and a helper that
fills in modules or keys missing from older records.

The sync engine treats the payload as opaque. These helpers exist for
import and for consumers that want a complete tree to render.
"""

from copy import deepcopy
from typing import Any, Iterator, Optional


_SCALAR_TYPES = (str, int, float, bool, type(None))

_DEFAULT_SETTINGS: dict[str, Any] = {
    "theme": "dark",
    "userName": "User",
    "email": "",
    "backup": {
        "autoBackupEnabled": False,
        "frequency": "weekly",
        "lastBackupTime": None,
        "maxBackups": 5,
    },
}

_DEFAULT_FINANCE_SETTINGS: dict[str, Any] = {
    "defaultCurrency": "USD",
    "monthStartDay": 1,
    "showCents": True,
    "enableBudgetAlerts": True,
    "budgetWarningThreshold": 80,
    "enableInstallmentReminders": True,
    "installmentReminderDays": 3,
    "enableInsights": True,
    "weeklyReportEnabled": False,
    "monthlyReportEnabled": True,
}

_DEFAULT_FREELANCER_PROFILE: dict[str, Any] = {
    "name": "",
    "title": "",
    "email": "",
    "phone": "",
    "portfolioUrl": "",
    "cvVersions": [],
    "platforms": [],
}

# Nested objects that are merged one level deeper than the module itself
_NESTED_OBJECTS = (
    ("freelancing", "profile"),
    ("finance", "settings"),
)


def create_default_app_data() -> dict[str, Any]:
    """Complete default payload with every module and empty collections."""
    return {
        "university": {
            "subjects": [],
            "tasks": [],
            "exams": [],
            "gradeEntries": [],
            "academicYears": [],
            "terms": [],
            "currentYearId": None,
            "currentTermId": None,
        },
        "freelancing": {
            "profile": deepcopy(_DEFAULT_FREELANCER_PROFILE),
            "applications": [],
            "projects": [],
            "projectTasks": [],
            "standaloneTasks": [],
        },
        "programming": {
            "learningItems": [],
            "skills": [],
            "tools": [],
            "projects": [],
        },
        "finance": {
            "accounts": [],
            "transfers": [],
            "incomes": [],
            "expenses": [],
            "categories": [],
            "incomeCategories": [],
            "installments": [],
            "budgets": [],
            "goals": [],
            "alerts": [],
            "settings": deepcopy(_DEFAULT_FINANCE_SETTINGS),
        },
        "home": {
            "tasks": [],
            "goals": [],
            "habits": [],
        },
        "misc": {
            "notes": [],
            "bookmarks": [],
            "quickCaptures": [],
        },
        "settings": deepcopy(_DEFAULT_SETTINGS),
        "notificationSettings": {
            "dismissedNotifications": [],
            "neverShowAgain": [],
        },
    }


def merge_with_defaults(partial: Optional[dict[str, Any]]) -> dict[str, Any]:
    """
    Fill a possibly incomplete payload with defaults.

    Present values always win. Unknown modules are kept as they are.
    """
    partial = partial or {}
    merged = create_default_app_data()

    for module, default_value in merged.items():
        value = partial.get(module)
        if isinstance(value, dict) and isinstance(default_value, dict):
            merged[module] = {**default_value, **deepcopy(value)}

    for module, key in _NESTED_OBJECTS:
        value = (partial.get(module) or {}).get(key)
        if isinstance(value, dict):
            merged[module][key] = {**create_default_app_data()[module][key], **deepcopy(value)}

    for module, value in partial.items():
        if module not in merged:
            merged[module] = deepcopy(value)

    return merged


def is_entity_list(items: list) -> bool:
    """True if every item is an object carrying an id."""
    return all(isinstance(item, dict) and "id" in item for item in items)


def is_identifier_list(items: list) -> bool:
    """True if every item is a plain scalar value."""
    return all(isinstance(item, _SCALAR_TYPES) for item in items)


def iter_collections(payload: dict[str, Any]) -> Iterator[tuple[str, list]]:
    """
    Yield (path, list) for every list field inside a module.

    Nested objects such as freelancing.profile are walked too, so
    profile.cvVersions is reported as "freelancing.profile.cvVersions".
    Lists are not descended into.
    """
    for module_name, module in payload.items():
        if isinstance(module, dict):
            yield from _iter_object_lists(module, module_name)


def _iter_object_lists(obj: dict[str, Any], path: str) -> Iterator[tuple[str, list]]:
    for field_name, value in obj.items():
        child = f"{path}.{field_name}"
        if isinstance(value, list):
            yield child, value
        elif isinstance(value, dict):
            yield from _iter_object_lists(value, child)


def has_meaningful_data(payload: Optional[dict[str, Any]]) -> bool:
    """
    True if any module holds at least one entity.

    Preference lists of plain ids (dismissed notifications etc.) are not
    user data and do not count.
    """
    if not payload:
        return False
    for _, items in iter_collections(payload):
        if any(isinstance(item, dict) for item in items):
            return True
    return False
