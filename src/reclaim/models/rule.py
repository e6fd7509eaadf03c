"""Cleanup rule definition."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class CatalogError(ValueError):
    """Raised when a rule mapping cannot be turned into a Rule."""


class RuleType(enum.StrEnum):
    """How a rule locates its targets."""

    PATH = "path"
    PATTERN = "pattern"
    SPECIAL = "special"
    REGISTRY = "registry"
    APP_RESIDUE = "app_residue"


class Action(enum.StrEnum):
    """What cleaning does with a matched target."""

    DELETE = "delete"
    RECYCLE = "recycle"
    TOOL_CALL = "tool_call"


def _coerce(enum_cls: type[enum.Enum], value: Any) -> Any:
    """Return the enum member for *value*, or the raw string if unrecognised.

    Unknown types are kept so evaluation can report them instead of the
    whole catalog failing to load.
    """
    try:
        return enum_cls(value)
    except ValueError:
        return str(value)


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise CatalogError(f"Rule field '{key}' must be an integer, got {value!r}") from exc


@dataclass(frozen=True, slots=True)
class Rule:
    """A declarative description of one cleanup target.

    ``path`` may contain ``%NAME%`` environment placeholders. ``pattern`` is a
    glob matched against paths relative to ``path``. Thresholds are in
    megabytes and days respectively.
    """

    id: str
    title: str
    category: str
    rule_type: RuleType | str
    action: Action | str = Action.DELETE
    risk: str = "safe"
    sort_order: int = 50
    path: str | None = None
    pattern: str | None = None
    size_threshold_mb: int | None = None
    age_threshold_days: int | None = None
    requires_admin: bool = False
    enabled: bool = True
    tool_cmd: str | None = None
    description: str = ""
    scope: str = "user"
    default_checked: bool = False
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rule:
        """Build a rule from a catalog mapping."""
        for key in ("id", "title", "category", "rule_type"):
            if not data.get(key):
                raise CatalogError(f"Rule is missing required field '{key}'")

        sort_order = _optional_int(data, "sort_order")

        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            category=str(data["category"]),
            rule_type=_coerce(RuleType, data["rule_type"]),
            action=_coerce(Action, data.get("action", Action.DELETE.value)),
            risk=str(data.get("risk", "safe")),
            sort_order=50 if sort_order is None else sort_order,
            path=data.get("path") or None,
            pattern=data.get("pattern") or None,
            size_threshold_mb=_optional_int(data, "size_threshold_mb"),
            age_threshold_days=_optional_int(data, "age_threshold_days"),
            requires_admin=bool(data.get("requires_admin", False)),
            enabled=bool(data.get("enabled", True)),
            tool_cmd=data.get("tool_cmd") or None,
            description=str(data.get("description", "")),
            scope=str(data.get("scope", "user")),
            default_checked=bool(data.get("default_checked", False)),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to a catalog mapping."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "risk": self.risk,
            "default_checked": self.default_checked,
            "requires_admin": self.requires_admin,
            "rule_type": str(self.rule_type),
            "scope": self.scope,
            "path": self.path,
            "pattern": self.pattern,
            "size_threshold_mb": self.size_threshold_mb,
            "age_threshold_days": self.age_threshold_days,
            "action": str(self.action),
            "tool_cmd": self.tool_cmd,
            "enabled": self.enabled,
            "sort_order": self.sort_order,
            "notes": self.notes,
        }
