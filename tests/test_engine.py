"""Tests for the rule evaluation engine."""

from __future__ import annotations

import sys

import pytest

from reclaim.core.cancel import CancelToken
from reclaim.core.engine import REGISTRY_CAUTION, RESIDUE_CAUTION, ReclaimEngine
from reclaim.core.registration import NullRegistrationStore, Registration
from reclaim.models.report import Status
from helpers import FakeRegistrationStore, age_dir, make_rule, write_file

ALL_TYPES = ["path", "pattern", "special", "registry", "app_residue", "bogus"]


@pytest.fixture
def temp_dir(tmp_path, monkeypatch):
    """A %TEMP% with one old and one recent log file."""
    temp = tmp_path / "Temp"
    write_file(temp / "old.log", 2048, age_days=10)
    write_file(temp / "new.log", 5120, age_days=1)
    monkeypatch.setenv("TEMP", str(temp))
    return temp


@pytest.fixture
def engine(fake_store, fake_trash):
    return ReclaimEngine(store=fake_store, trash=fake_trash, residue_roots=[])


def _log_rule(rule_id="logs", **overrides):
    fields = {
        "rule_type": "pattern",
        "path": "%TEMP%",
        "pattern": "*.log",
        "size_threshold_mb": 0,
        "age_threshold_days": 7,
    }
    fields.update(overrides)
    return make_rule(rule_id, **fields)


class TestPathRules:
    def test_scan_scenario(self, engine, temp_dir):
        [item] = engine.scan([_log_rule()], is_admin=False)
        assert (item.total_bytes, item.file_count, item.status) == (2048, 1, Status.OK)
        assert (temp_dir / "old.log").exists()

    def test_missing_path(self, engine):
        [item] = engine.scan([make_rule("nopath")], is_admin=False)
        assert item.status is Status.MISSING_PATH

    def test_missing_directory(self, engine, tmp_path):
        [item] = engine.scan([make_rule("gone", path=str(tmp_path / "absent"))], is_admin=False)
        assert item.status is Status.MISSING
        assert (item.total_bytes, item.file_count) == (0, 0)

    def test_unset_placeholder_is_missing(self, engine, monkeypatch):
        monkeypatch.delenv("RECLAIM_UNSET_DIR", raising=False)
        [item] = engine.scan([make_rule("unset", path="%RECLAIM_UNSET_DIR%")], is_admin=False)
        assert item.status is Status.MISSING

    def test_single_file_target(self, engine, temp_dir):
        rule = make_rule("one", path=str(temp_dir / "new.log"))
        [item] = engine.scan([rule], is_admin=False)
        assert (item.total_bytes, item.file_count) == (5120, 1)

    def test_clean_deletes_and_reports(self, engine, temp_dir):
        report = engine.clean([_log_rule()], ["logs"], is_admin=False)
        [item] = report.items
        assert (item.total_bytes, item.file_count, item.status) == (2048, 1, Status.OK)
        assert not (temp_dir / "old.log").exists()
        assert (temp_dir / "new.log").exists()

    def test_clean_recycle_uses_trash(self, engine, temp_dir, fake_trash):
        engine.clean([_log_rule(action="recycle")], ["logs"], is_admin=False)
        assert [p.endswith("old.log") for p in fake_trash.paths] == [True]

    def test_clean_is_idempotent(self, engine, temp_dir):
        rules = [_log_rule()]
        engine.clean(rules, ["logs"], is_admin=False)
        second = engine.clean(rules, ["logs"], is_admin=False)
        [item] = second.items
        assert (item.total_bytes, item.file_count, item.status) == (0, 0, Status.OK)

    def test_drive_set_for_drive_letter_paths(self, engine, temp_dir, monkeypatch):
        monkeypatch.setattr("reclaim.core.engine.drive_from_path", lambda path: "C:")
        [item] = engine.scan([_log_rule()], is_admin=False)
        assert item.drive == "C:"

    def test_malformed_pattern_counts_every_file(self, engine, tmp_path):
        base = tmp_path / "mixed"
        write_file(base / "x.log", 100)
        write_file(base / "y.tmp", 50)
        rule = make_rule("mixed", rule_type="pattern", path=str(base), pattern="[abc")

        [item] = engine.scan([rule], is_admin=False)

        assert (item.total_bytes, item.file_count, item.status) == (150, 2, Status.OK)

    def test_rule_is_not_mutated(self, engine, temp_dir):
        rule = _log_rule()
        before = rule.to_dict()
        engine.clean([rule], ["logs"], is_admin=False)
        assert rule.to_dict() == before


class TestAdminGate:
    @pytest.mark.parametrize("rule_type", ALL_TYPES)
    def test_blocked_for_every_type(self, engine, temp_dir, rule_type):
        rule = make_rule("gated", rule_type=rule_type, path="%TEMP%", requires_admin=True)
        [item] = engine.scan([rule], is_admin=False)
        assert item.status is Status.BLOCKED
        assert item.blocked
        assert (item.total_bytes, item.file_count) == (0, 0)

    def test_admin_passes_gate(self, engine, temp_dir):
        [item] = engine.scan([_log_rule(requires_admin=True)], is_admin=True)
        assert item.status is Status.OK

    def test_clean_with_one_blocked_rule(self, engine, temp_dir):
        rules = [_log_rule("logs"), _log_rule("system_logs", requires_admin=True)]
        report = engine.clean(rules, ["system_logs", "logs"], is_admin=False)

        assert [i.id for i in report.items] == ["system_logs", "logs"]
        assert [i.status for i in report.items] == [Status.BLOCKED, Status.OK]
        assert report.summary.total_bytes == 2048
        assert report.summary.total_files == 1


class TestToolRules:
    def test_wrong_action_skipped(self, engine):
        rule = make_rule("tool", rule_type="special", action="delete", tool_cmd="true")
        report = engine.clean([rule], ["tool"], is_admin=False)
        assert report.items[0].status is Status.SKIPPED

    def test_scan_does_not_run_tool(self, engine, monkeypatch):
        monkeypatch.setattr("reclaim.core.engine.run_tool", lambda cmd: pytest.fail("tool ran"))
        rule = make_rule("tool", rule_type="special", action="tool_call", tool_cmd="true")
        [item] = engine.scan([rule], is_admin=False)
        assert item.status is Status.UNSUPPORTED

    def test_missing_command(self, engine):
        rule = make_rule("tool", rule_type="special", action="tool_call")
        report = engine.clean([rule], ["tool"], is_admin=False)
        assert report.items[0].status is Status.ERROR
        assert report.items[0].message == "Missing tool command"

    def test_success(self, engine, monkeypatch):
        monkeypatch.setattr("reclaim.core.engine.run_tool", lambda cmd: 0)
        rule = make_rule("tool", rule_type="special", action="tool_call", tool_cmd="cleanup.exe")
        report = engine.clean([rule], ["tool"], is_admin=False)
        assert report.items[0].status is Status.OK

    def test_nonzero_exit(self, engine, monkeypatch):
        monkeypatch.setattr("reclaim.core.engine.run_tool", lambda cmd: 3)
        rule = make_rule("tool", rule_type="special", action="tool_call", tool_cmd="cleanup.exe")
        [item] = engine.clean([rule], ["tool"], is_admin=False).items
        assert item.status is Status.ERROR
        assert item.message == "Tool exit code: 3"

    def test_spawn_failure(self, engine, monkeypatch):
        def _missing(cmd):
            raise FileNotFoundError("No such file or directory: 'sh'")

        monkeypatch.setattr("reclaim.core.engine.run_tool", _missing)
        rule = make_rule("tool", rule_type="special", action="tool_call", tool_cmd="cleanup.exe")
        [item] = engine.clean([rule], ["tool"], is_admin=False).items
        assert item.status is Status.ERROR
        assert "No such file" in item.message

    @pytest.mark.skipif(sys.platform == "win32", reason="uses sh")
    def test_real_shell_exit_code(self, engine):
        rule = make_rule("tool", rule_type="special", action="tool_call", tool_cmd="exit 4")
        [item] = engine.clean([rule], ["tool"], is_admin=False).items
        assert item.message == "Tool exit code: 4"


class TestRegistryRules:
    def _store(self, fail_keys=None):
        return FakeRegistrationStore(
            [
                Registration(key=r"HKLM\X\Orphan1"),
                Registration(key=r"HKLM\X\Orphan2", display_name="Half"),
                Registration(key=r"HKLM\X\Healthy", display_name="Ok", uninstall_string="u.exe"),
            ],
            fail_keys=fail_keys,
        )

    def test_unsupported_platform(self):
        engine = ReclaimEngine(store=NullRegistrationStore())
        [item] = engine.scan([make_rule("reg", rule_type="registry")], is_admin=True)
        assert item.status is Status.UNSUPPORTED

    def test_scan_counts_orphans_without_deleting(self):
        store = self._store()
        [item] = ReclaimEngine(store=store).scan([make_rule("reg", rule_type="registry")], is_admin=True)
        assert (item.file_count, item.status) == (2, Status.OK)
        assert item.message == REGISTRY_CAUTION
        assert store.deleted == []

    def test_clean_deletes_orphans(self):
        store = self._store()
        report = ReclaimEngine(store=store).clean([make_rule("reg", rule_type="registry")], ["reg"], is_admin=True)
        [item] = report.items
        assert (item.file_count, item.status) == (2, Status.OK)
        assert store.deleted == [r"HKLM\X\Orphan1", r"HKLM\X\Orphan2"]

    def test_partial_failure_still_attempts_all(self):
        store = self._store(fail_keys={r"HKLM\X\Orphan1"})
        report = ReclaimEngine(store=store).clean([make_rule("reg", rule_type="registry")], ["reg"], is_admin=True)
        [item] = report.items
        assert (item.file_count, item.status) == (1, Status.PARTIAL)
        assert store.deleted == [r"HKLM\X\Orphan2"]
        assert item.message == REGISTRY_CAUTION


class TestResidueRules:
    @pytest.fixture
    def root(self, tmp_path):
        root = tmp_path / "Program Files"
        write_file(root / "OldApp" / "a.bin", 300)
        write_file(root / "OldApp" / "sub" / "b.bin", 200)
        write_file(root / "Current" / "c.bin", 1000)
        age_dir(root / "OldApp", 365)
        age_dir(root / "Current", 365)
        return root

    def _store(self, root):
        return FakeRegistrationStore([
            Registration(key=r"HKLM\X\Current", install_location=str(root / "Current"), display_name="C"),
        ])

    def test_scan_measures_candidates(self, root):
        engine = ReclaimEngine(store=self._store(root), residue_roots=[root])
        [item] = engine.scan([make_rule("res", rule_type="app_residue")], is_admin=True)
        assert (item.total_bytes, item.file_count, item.status) == (500, 2, Status.OK)
        assert item.message == RESIDUE_CAUTION
        assert (root / "OldApp").exists()

    def test_clean_removes_candidate_trees(self, root):
        engine = ReclaimEngine(store=self._store(root), residue_roots=[root])
        report = engine.clean([make_rule("res", rule_type="app_residue")], ["res"], is_admin=True)
        [item] = report.items
        assert (item.total_bytes, item.file_count, item.status) == (500, 2, Status.OK)
        assert not (root / "OldApp").exists()
        assert (root / "Current" / "c.bin").exists()

    def test_removal_failure_is_partial(self, root, monkeypatch):
        def _fail(path):
            raise OSError("in use")

        monkeypatch.setattr("reclaim.core.engine.remove_tree", _fail)
        engine = ReclaimEngine(store=self._store(root), residue_roots=[root])
        [item] = engine.clean([make_rule("res", rule_type="app_residue")], ["res"], is_admin=True).items
        assert item.status is Status.PARTIAL
        assert item.message == RESIDUE_CAUTION

    def test_scan_applies_rule_thresholds(self, tmp_path):
        root = tmp_path / "Program Files"
        write_file(root / "Old" / "stale.bin", 300, age_days=400)
        write_file(root / "Old" / "fresh.bin", 200, age_days=1)
        age_dir(root / "Old", 400)
        engine = ReclaimEngine(store=FakeRegistrationStore(), residue_roots=[root])
        rule = make_rule("res", rule_type="app_residue", age_threshold_days=180)

        [item] = engine.scan([rule], is_admin=True)

        assert (item.total_bytes, item.file_count) == (300, 1)
        assert (root / "Old" / "fresh.bin").exists()

    def test_clean_removes_whole_tree_regardless_of_thresholds(self, tmp_path):
        root = tmp_path / "Program Files"
        write_file(root / "Old" / "stale.bin", 300, age_days=400)
        write_file(root / "Old" / "fresh.bin", 200, age_days=1)
        age_dir(root / "Old", 400)
        engine = ReclaimEngine(store=FakeRegistrationStore(), residue_roots=[root])
        rule = make_rule("res", rule_type="app_residue", age_threshold_days=180)

        [item] = engine.clean([rule], ["res"], is_admin=True).items

        assert (item.total_bytes, item.file_count) == (500, 2)
        assert not (root / "Old").exists()

    def test_rule_cutoff_overrides_default(self, root):
        engine = ReclaimEngine(store=self._store(root), residue_roots=[root])
        rule = make_rule("res", rule_type="app_residue", age_threshold_days=400)
        [item] = engine.scan([rule], is_admin=True)
        assert (item.file_count, item.status) == (0, Status.OK)

    def test_unsupported_platform(self, root):
        engine = ReclaimEngine(store=NullRegistrationStore(), residue_roots=[root])
        [item] = engine.scan([make_rule("res", rule_type="app_residue")], is_admin=True)
        assert item.status is Status.UNSUPPORTED


class TestDispatch:
    def test_unknown_type(self, engine):
        [item] = engine.scan([make_rule("weird", rule_type="bogus")], is_admin=True)
        assert item.status is Status.UNKNOWN

    def test_crash_is_contained(self, engine, temp_dir, monkeypatch):
        def _explode(*args, **kwargs):
            raise RuntimeError("walker exploded")

        monkeypatch.setattr("reclaim.core.engine.walk", _explode)
        rules = [_log_rule("first"), make_rule("second", rule_type="bogus")]
        results = engine.scan(rules, is_admin=True)
        assert [r.status for r in results] == [Status.ERROR, Status.UNKNOWN]
        assert results[0].message == "walker exploded"

    def test_clean_uses_selection_order_and_skips_unknown_ids(self, engine, temp_dir):
        rules = [_log_rule("a"), _log_rule("b"), _log_rule("c")]
        report = engine.clean(rules, ["c", "missing", "a", "c"], is_admin=True)
        assert [i.id for i in report.items] == ["c", "a"]

    def test_reports_are_fresh_per_request(self, engine, temp_dir):
        first = engine.scan([_log_rule()], is_admin=True)
        second = engine.scan([_log_rule()], is_admin=True)
        assert first[0] is not second[0]
        assert first[0].total_bytes == second[0].total_bytes == 2048


class TestScanProgressAndCancel:
    def test_progress_before_each_rule(self, engine, temp_dir):
        seen = []
        engine.scan([_log_rule("a"), _log_rule("b")], is_admin=True, on_progress=lambda r: seen.append(r.id))
        assert seen == ["a", "b"]

    def test_failing_progress_sink_does_not_stop_scan(self, engine, temp_dir):
        def _sink(rule):
            raise RuntimeError("ui gone")

        results = engine.scan([_log_rule("a")], is_admin=True, on_progress=_sink)
        assert results[0].status is Status.OK

    def test_cancel_between_rules_returns_completed(self, engine, temp_dir):
        token = CancelToken()

        def _cancel_after_first(rule):
            if rule.id == "b":
                token.cancel()

        rules = [_log_rule("a"), _log_rule("b"), _log_rule("c")]
        results = engine.scan(rules, is_admin=True, on_progress=_cancel_after_first, cancel=token)
        assert [r.id for r in results] == ["a"]

    def test_precancelled_scan_is_empty(self, engine, temp_dir):
        token = CancelToken()
        token.cancel()
        assert engine.scan([_log_rule()], is_admin=True, cancel=token) == []
