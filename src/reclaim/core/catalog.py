"""Rule catalog: built-in defaults and JSON-backed user rules."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from reclaim.models.rule import CatalogError, Rule
from reclaim.utils import xdg_config_home

log = logging.getLogger(__name__)

_CATALOG_DIR = "reclaim"
_CATALOG_FILE = "rules.json"

DEFAULT_RULES: list[dict[str, Any]] = [
    {
        "id": "user_temp",
        "title": "User temporary files",
        "description": "Files in the per-user temp folder untouched for a day.",
        "category": "Temporary files",
        "risk": "safe",
        "default_checked": True,
        "rule_type": "path",
        "path": "%TEMP%",
        "age_threshold_days": 1,
        "action": "delete",
        "sort_order": 10,
    },
    {
        "id": "windows_temp",
        "title": "Windows temporary files",
        "description": "System-wide temp folder.",
        "category": "Temporary files",
        "risk": "safe",
        "default_checked": True,
        "requires_admin": True,
        "rule_type": "path",
        "scope": "system",
        "path": "%SystemRoot%\\Temp",
        "age_threshold_days": 1,
        "action": "delete",
        "sort_order": 11,
    },
    {
        "id": "crash_dumps",
        "title": "Application crash dumps",
        "description": "Minidumps written by crashing applications.",
        "category": "Logs and dumps",
        "risk": "safe",
        "default_checked": True,
        "rule_type": "pattern",
        "path": "%LOCALAPPDATA%\\CrashDumps",
        "pattern": "*.dmp",
        "action": "delete",
        "sort_order": 20,
    },
    {
        "id": "error_reports",
        "title": "Windows error reports",
        "description": "Queued and archived Windows Error Reporting data.",
        "category": "Logs and dumps",
        "risk": "safe",
        "default_checked": True,
        "requires_admin": True,
        "rule_type": "path",
        "scope": "system",
        "path": "%ProgramData%\\Microsoft\\Windows\\WER",
        "action": "delete",
        "sort_order": 21,
    },
    {
        "id": "thumbnail_cache",
        "title": "Explorer thumbnail cache",
        "description": "Thumbnail databases; Explorer rebuilds them on demand.",
        "category": "Caches",
        "risk": "low",
        "rule_type": "pattern",
        "path": "%LOCALAPPDATA%\\Microsoft\\Windows\\Explorer",
        "pattern": "thumbcache_*.db",
        "action": "delete",
        "sort_order": 30,
    },
    {
        "id": "chrome_cache",
        "title": "Chrome browser cache",
        "description": "Cached web content of the default Chrome profile.",
        "category": "Caches",
        "risk": "safe",
        "default_checked": True,
        "rule_type": "path",
        "path": "%LOCALAPPDATA%\\Google\\Chrome\\User Data\\Default\\Cache",
        "action": "delete",
        "sort_order": 31,
    },
    {
        "id": "update_downloads",
        "title": "Windows Update downloads",
        "description": "Downloaded update payloads older than two weeks.",
        "category": "System",
        "risk": "low",
        "requires_admin": True,
        "rule_type": "path",
        "scope": "system",
        "path": "%SystemRoot%\\SoftwareDistribution\\Download",
        "age_threshold_days": 14,
        "action": "delete",
        "sort_order": 40,
    },
    {
        "id": "component_cleanup",
        "title": "Component store cleanup",
        "description": "Runs DISM to remove superseded components.",
        "category": "System",
        "risk": "medium",
        "requires_admin": True,
        "rule_type": "special",
        "scope": "system",
        "action": "tool_call",
        "tool_cmd": "Dism.exe /Online /Cleanup-Image /StartComponentCleanup",
        "sort_order": 41,
    },
    {
        "id": "old_downloads",
        "title": "Large old downloads",
        "description": "Downloads over 100 MB not touched for 90 days, moved to the Recycle Bin.",
        "category": "User files",
        "risk": "medium",
        "rule_type": "path",
        "path": "%USERPROFILE%\\Downloads",
        "size_threshold_mb": 100,
        "age_threshold_days": 90,
        "action": "recycle",
        "sort_order": 50,
    },
    {
        "id": "orphan_uninstall_keys",
        "title": "Orphaned uninstall entries",
        "description": "Uninstall records with no install location and incomplete metadata.",
        "category": "Registry",
        "risk": "high",
        "requires_admin": True,
        "rule_type": "registry",
        "scope": "system",
        "action": "delete",
        "sort_order": 60,
        "notes": "Registry deletion cannot be undone.",
    },
    {
        "id": "app_residue",
        "title": "Leftover application folders",
        "description": "Install-root folders not linked to any uninstall record, older than 180 days.",
        "category": "Residue",
        "risk": "high",
        "requires_admin": True,
        "rule_type": "app_residue",
        "scope": "system",
        "age_threshold_days": 180,
        "action": "delete",
        "sort_order": 61,
        "notes": "Portable applications may be misidentified.",
    },
]


@dataclass(frozen=True, slots=True)
class RuleView:
    """A rule annotated with whether the current privileges allow it."""

    rule: Rule
    blocked: bool
    blocked_reason: str | None = None


def _sort_key(rule: Rule) -> tuple[int, str, str]:
    return (rule.sort_order, rule.category, rule.title)


class RuleCatalog:
    """Ordered collection of rules keyed by id."""

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self._rules: dict[str, Rule] = {}
        for rule in rules or []:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        """Add a rule; a duplicate id keeps the first definition."""
        if rule.id in self._rules:
            log.warning("Rule '%s' already registered, skipping duplicate", rule.id)
            return
        self._rules[rule.id] = rule
        log.debug("Registered rule: %s (%s)", rule.id, rule.title)

    def get(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    def get_all(self) -> list[Rule]:
        """Every rule sorted by sort order, category and title."""
        return sorted(self._rules.values(), key=_sort_key)

    def get_enabled(self) -> list[Rule]:
        """Enabled rules only, in catalog order."""
        return [rule for rule in self.get_all() if rule.enabled]

    def get_by_category(self, category: str) -> list[Rule]:
        return [rule for rule in self.get_all() if rule.category == category]

    def views(self, is_admin: bool) -> list[RuleView]:
        """Enabled rules with their privilege gate resolved."""
        views = []
        for rule in self.get_enabled():
            if rule.requires_admin and not is_admin:
                views.append(RuleView(rule, True, "Requires administrator privileges"))
            else:
                views.append(RuleView(rule, False))
        return views

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.get_all())

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules


def default_catalog_path() -> Path:
    return xdg_config_home() / _CATALOG_DIR / _CATALOG_FILE


def rules_from_data(data: Any) -> list[Rule]:
    """Parse a list of rule mappings (or ``{"rules": [...]}``), skipping bad entries."""
    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        raise CatalogError("Rule catalog must be a list of rule objects")

    rules: list[Rule] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            log.warning("Skipping rule #%d: not an object", index)
            continue
        try:
            rules.append(Rule.from_dict(raw))
        except CatalogError as exc:
            log.warning("Skipping rule #%d: %s", index, exc)
    return rules


def load_catalog(path: Path | None = None) -> RuleCatalog:
    """Load rules from *path* (default: the user catalog file).

    Falls back to the built-in rules when the file is missing or unreadable.
    """
    path = path or default_catalog_path()
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            rules = rules_from_data(data)
            log.info("Loaded %d rules from %s", len(rules), path)
            return RuleCatalog(rules)
        except (json.JSONDecodeError, OSError, CatalogError) as e:
            log.warning("Could not load rule catalog from %s: %s", path, e)

    return RuleCatalog(rules_from_data(DEFAULT_RULES))
