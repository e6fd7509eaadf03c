"""Rule evaluation engine: scan and clean orchestration."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Callable

from reclaim.core.actions import TrashFunc, remove_tree, run_tool
from reclaim.core.cancel import CancelToken
from reclaim.core.matcher import Matcher
from reclaim.core.registration import RegistrationStore, default_store, find_orphans
from reclaim.core.residue import find_residue
from reclaim.core.summary import summarize
from reclaim.core.thresholds import Thresholds
from reclaim.core.walker import measure_tree, walk
from reclaim.models.report import ItemReport, Report, Status
from reclaim.models.rule import Action, Rule, RuleType
from reclaim.utils import drive_from_path, expand_env

log = logging.getLogger(__name__)

ProgressCallback = Callable[[Rule], None]

BLOCKED_MESSAGE = "Requires administrator privileges"
REGISTRY_CAUTION = (
    "Only orphan uninstall keys with missing InstallLocation are affected. "
    "Portable apps may be misdetected; review carefully."
)
RESIDUE_CAUTION = (
    "Old folders not linked to uninstall records are affected. "
    "Portable apps may be misdetected; review carefully."
)


class _ScanCancelled(Exception):
    """Raised inside a rule when the cancel token fires mid-walk."""


class ReclaimEngine:
    """Evaluates cleanup rules in scan (dry-run) or clean mode.

    The engine keeps no state between requests; every call builds fresh
    reports. Rules are evaluated one at a time in request order.
    """

    def __init__(
        self,
        store: RegistrationStore | None = None,
        trash: TrashFunc | None = None,
        residue_roots: Sequence[Path | str] | None = None,
        max_workers: int = 4,
    ) -> None:
        self.store = store if store is not None else default_store()
        self._trash = trash
        self._residue_roots = residue_roots
        self._max_workers = max_workers

    def scan(
        self,
        rules: Iterable[Rule],
        is_admin: bool,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[ItemReport]:
        """Measure what each rule would reclaim without modifying anything.

        Cancellation is checked before every rule and periodically during
        walks; a cancelled scan returns the reports of the rules it finished.
        """
        results: list[ItemReport] = []
        for rule in rules:
            if cancel is not None and cancel.cancelled:
                log.info("Scan cancelled after %d rule(s)", len(results))
                break
            self._notify(on_progress, rule)
            try:
                results.append(self._evaluate(rule, is_admin, clean=False, cancel=cancel))
            except _ScanCancelled:
                log.info("Scan cancelled during rule '%s'", rule.id)
                break
        return results

    def clean(self, rules: Iterable[Rule], selected_ids: Sequence[str], is_admin: bool) -> Report:
        """Apply the selected rules' actions and summarize what was removed.

        Items appear in the order of *selected_ids*; unknown ids are skipped.
        """
        by_id = {rule.id: rule for rule in rules}
        items: list[ItemReport] = []
        seen: set[str] = set()

        for rule_id in selected_ids:
            if rule_id in seen:
                continue
            seen.add(rule_id)
            rule = by_id.get(rule_id)
            if rule is None:
                log.warning("Rule '%s' not found, skipping", rule_id)
                continue
            items.append(self.evaluate(rule, is_admin, clean=True))

        return Report(items=items, summary=summarize(items))

    def evaluate(self, rule: Rule, is_admin: bool, clean: bool = False) -> ItemReport:
        """Evaluate a single rule and return its terminal report."""
        return self._evaluate(rule, is_admin, clean=clean, cancel=None)

    def _evaluate(
        self,
        rule: Rule,
        is_admin: bool,
        clean: bool,
        cancel: CancelToken | None,
    ) -> ItemReport:
        report = ItemReport.for_rule(rule)

        if rule.requires_admin and not is_admin:
            report.status = Status.BLOCKED
            report.message = BLOCKED_MESSAGE
            log.info("Rule '%s' blocked: requires administrator privileges", rule.id)
            return report

        try:
            match rule.rule_type:
                case RuleType.PATH | RuleType.PATTERN:
                    self._path_rule(rule, report, clean, cancel)
                case RuleType.SPECIAL:
                    self._tool_rule(rule, report, clean)
                case RuleType.REGISTRY:
                    self._registry_rule(report, clean)
                case RuleType.APP_RESIDUE:
                    self._residue_rule(rule, report, clean, cancel)
                case _:
                    report.status = Status.UNKNOWN
                    report.message = "Unknown rule type"
        except _ScanCancelled:
            raise
        except Exception as exc:
            log.exception("Rule '%s' failed during evaluation", rule.id)
            report.status = Status.ERROR
            report.message = str(exc) or type(exc).__name__

        log.debug(
            "Rule '%s' -> %s (%d bytes, %d files)",
            rule.id, report.status, report.total_bytes, report.file_count,
        )
        return report

    # ── rule types ────────────────────────────────────────────────────────

    def _path_rule(
        self,
        rule: Rule,
        report: ItemReport,
        clean: bool,
        cancel: CancelToken | None,
    ) -> None:
        if not rule.path:
            report.status = Status.MISSING_PATH
            report.message = "No path configured"
            return

        base = Path(expand_env(rule.path))
        if not os.path.exists(base):
            report.status = Status.MISSING
            return
        report.drive = drive_from_path(base)

        result = walk(
            base,
            Matcher.compile(rule.pattern),
            Thresholds.from_rule(rule),
            action=rule.action if clean else None,
            trash=self._trash,
            cancel=cancel,
            max_workers=self._max_workers,
        )
        if result.cancelled:
            raise _ScanCancelled(rule.id)

        report.add(result.bytes, result.files)
        report.status = Status.PARTIAL if result.had_error else Status.OK

    def _tool_rule(self, rule: Rule, report: ItemReport, clean: bool) -> None:
        if not clean:
            report.status = Status.UNSUPPORTED
            report.message = "Tool rules only run during clean"
            return
        if rule.action != Action.TOOL_CALL:
            report.status = Status.SKIPPED
            report.message = "Action not supported for special rule"
            return
        if not rule.tool_cmd:
            report.status = Status.ERROR
            report.message = "Missing tool command"
            return

        try:
            code = run_tool(rule.tool_cmd)
        except OSError as exc:
            report.status = Status.ERROR
            report.message = str(exc)
            return

        if code == 0:
            report.status = Status.OK
        else:
            report.status = Status.ERROR
            report.message = f"Tool exit code: {code}"

    def _registry_rule(self, report: ItemReport, clean: bool) -> None:
        if not self.store.supported:
            report.status = Status.UNSUPPORTED
            report.message = "Registry cleanup is only supported on Windows"
            return

        orphans = find_orphans(self.store)
        had_error = False
        removed = 0

        if clean:
            for registration in orphans:
                try:
                    self.store.delete(registration)
                    removed += 1
                except OSError as exc:
                    had_error = True
                    log.warning("Cannot delete registry key %s: %s", registration.key, exc)
        else:
            removed = len(orphans)

        report.add(0, removed)
        report.status = Status.PARTIAL if had_error else Status.OK
        report.message = REGISTRY_CAUTION

    def _residue_rule(
        self,
        rule: Rule,
        report: ItemReport,
        clean: bool,
        cancel: CancelToken | None,
    ) -> None:
        if not self.store.supported:
            report.status = Status.UNSUPPORTED
            report.message = "Residue detection is only supported on Windows"
            return

        candidates = find_residue(
            self.store,
            roots=self._residue_roots,
            cutoff_days=rule.age_threshold_days,
        )
        thresholds = Thresholds.from_rule(rule)
        had_error = False

        for directory in candidates:
            # Clean removes whole trees; scan previews only old and large enough files.
            if clean:
                measured = measure_tree(directory, cancel=cancel)
            else:
                measured = walk(directory, None, thresholds, cancel=cancel, max_workers=self._max_workers)
            if measured.cancelled:
                raise _ScanCancelled(rule.id)
            report.add(measured.bytes, measured.files)
            had_error = had_error or measured.had_error
            if not clean:
                continue
            try:
                remove_tree(directory)
                log.info("Removed residue folder %s", directory)
            except OSError as exc:
                had_error = True
                log.warning("Cannot remove residue folder %s: %s", directory, exc)

        report.status = Status.PARTIAL if had_error else Status.OK
        report.message = RESIDUE_CAUTION

    @staticmethod
    def _notify(on_progress: ProgressCallback | None, rule: Rule) -> None:
        if on_progress is None:
            return
        try:
            on_progress(rule)
        except Exception:
            log.exception("Progress callback failed for rule '%s'", rule.id)
