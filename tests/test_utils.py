"""Tests for shared helpers."""

from __future__ import annotations

import pytest

from reclaim.utils import bytes_to_human, drive_from_path, expand_env


class TestExpandEnv:
    ENV = {"TEMP": r"C:\Users\me\AppData\Local\Temp", "HOME": "/home/me", "LOOP": "%HOME%"}

    def test_expands_set_variable(self):
        assert expand_env(r"%TEMP%\cache", self.ENV) == r"C:\Users\me\AppData\Local\Temp\cache"

    def test_unset_variable_left_untouched(self):
        assert expand_env(r"%NOPE%\cache", self.ENV) == r"%NOPE%\cache"

    def test_double_percent_collapses(self):
        assert expand_env("100%%", self.ENV) == "100%"

    def test_unterminated_placeholder_kept(self):
        assert expand_env("%HOME", self.ENV) == "%HOME"

    def test_no_recursive_expansion(self):
        assert expand_env("%LOOP%", self.ENV) == "%HOME%"

    def test_multiple_placeholders(self):
        assert expand_env("%HOME%:%TEMP%", self.ENV) == r"/home/me:C:\Users\me\AppData\Local\Temp"

    def test_unset_consumes_both_delimiters(self):
        # "%A%" is one placeholder; the trailing "B%" has no opening delimiter left.
        assert expand_env("%A%B%", self.ENV) == "%A%B%"

    def test_uses_process_environment_by_default(self, monkeypatch):
        monkeypatch.setenv("RECLAIM_TEST_DIR", "/srv/cache")
        assert expand_env("%RECLAIM_TEST_DIR%/x") == "/srv/cache/x"


class TestDriveFromPath:
    @pytest.mark.parametrize(
        "path, expected",
        [
            (r"C:\Windows\Temp", "C:"),
            ("d:/data", "D:"),
            ("/var/tmp", None),
            ("relative", None),
            ("", None),
        ],
    )
    def test_drive(self, path, expected):
        assert drive_from_path(path) == expected


class TestBytesToHuman:
    def test_zero(self):
        assert bytes_to_human(0) == "0 B"

    def test_bytes(self):
        assert bytes_to_human(512) == "512 B"

    def test_kilobytes(self):
        assert bytes_to_human(2048) == "2.0 KB"

    def test_megabytes(self):
        assert bytes_to_human(5 * 1024 * 1024) == "5.0 MB"
