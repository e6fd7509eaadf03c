"""Fakes and filesystem helpers shared by the test modules."""

from __future__ import annotations

import os
import time
from pathlib import Path

from reclaim.core.registration import Registration, RegistrationStore
from reclaim.models.rule import Rule

DAY = 24 * 60 * 60


class FakeRegistrationStore(RegistrationStore):
    """In-memory registration store; keys in *fail_keys* refuse deletion."""

    def __init__(self, registrations: list[Registration] | None = None, fail_keys: set[str] | None = None):
        self._registrations = list(registrations or [])
        self.fail_keys = fail_keys or set()
        self.deleted: list[str] = []

    @property
    def supported(self) -> bool:
        return True

    def registrations(self) -> list[Registration]:
        return list(self._registrations)

    def delete(self, registration: Registration) -> None:
        if registration.key in self.fail_keys:
            raise PermissionError(f"Access denied: {registration.key}")
        self._registrations = [r for r in self._registrations if r.key != registration.key]
        self.deleted.append(registration.key)


class FakeTrash:
    """Collects trashed paths and removes them from disk."""

    def __init__(self) -> None:
        self.paths: list[str] = []

    def __call__(self, path: str) -> None:
        self.paths.append(path)
        os.remove(path)


def write_file(path: Path, size: int, age_days: float = 0) -> Path:
    """Create *path* with *size* bytes and an mtime *age_days* in the past."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    if age_days:
        stamp = time.time() - age_days * DAY
        os.utime(path, (stamp, stamp))
    return path


def age_dir(path: Path, age_days: float) -> Path:
    stamp = time.time() - age_days * DAY
    os.utime(path, (stamp, stamp))
    return path


def make_rule(rule_id: str = "rule", **overrides) -> Rule:
    fields = {
        "id": rule_id,
        "title": f"Rule {rule_id}",
        "category": "Temporary files",
        "rule_type": "path",
    }
    fields.update(overrides)
    return Rule.from_dict(fields)
