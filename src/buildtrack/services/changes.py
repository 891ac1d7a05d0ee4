"""
buildtrack.services.changes

Field-level change tracking for audit entries.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from typing import Any


def _plain(value: Any) -> Any:
    # Audit `changes` is a JSON column; keep values JSON-native.
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def apply_changes(target: Any, updates: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """
    Set each attribute in `updates` on `target` and return
    `{field: {"old_value": ..., "new_value": ...}}` for the ones that actually changed.
    """

    changes: dict[str, dict[str, Any]] = {}
    for name, new_value in updates.items():
        old_value = getattr(target, name)
        if old_value == new_value:
            continue
        setattr(target, name, new_value)
        changes[name] = {"old_value": _plain(old_value), "new_value": _plain(new_value)}
    return changes


def snapshot(target: Any, fields: list[str] | tuple[str, ...]) -> dict[str, Any]:
    return {name: _plain(getattr(target, name)) for name in fields}


# --- Module Notes -----------------------------------------------------------
# Values are converted to JSON-safe forms (enum values, ISO dates, string UUIDs)
# before they reach `AuditLog.changes`.
