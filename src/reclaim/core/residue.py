"""Leftover application folders in well-known install roots."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable, Mapping
from pathlib import Path

from reclaim.core.registration import RegistrationStore

log = logging.getLogger(__name__)

DEFAULT_CUTOFF_DAYS = 180

# Environment variables naming program-files and application-data roots.
_ROOT_VARIABLES = (
    "ProgramFiles",
    "ProgramFiles(x86)",
    "ProgramData",
    "LOCALAPPDATA",
    "APPDATA",
)


def residue_roots(environ: Mapping[str, str] | None = None) -> list[Path]:
    """Install roots named by the environment, without duplicates."""
    env = os.environ if environ is None else environ
    roots: list[Path] = []
    for name in _ROOT_VARIABLES:
        value = env.get(name)
        if value and Path(value) not in roots:
            roots.append(Path(value))
    return roots


def _normalize(path: Path | str) -> str:
    text = str(path).strip().strip('"').replace("\\", "/").rstrip("/")
    return text.lower()


def installed_locations(store: RegistrationStore) -> list[str]:
    """Normalized install locations of every current registration."""
    locations: list[str] = []
    for registration in store.registrations():
        if registration.install_location.strip():
            locations.append(_normalize(registration.install_location))
    return locations


def is_under(path: Path | str, locations: Iterable[str]) -> bool:
    """True when *path* equals or is nested beneath any normalized location.

    The comparison respects path segments: ``C:/Program Files/Foo`` does not
    cover ``C:/Program Files/Foobar``.
    """
    candidate = _normalize(path)
    for location in locations:
        if not location:
            continue
        if candidate == location or candidate.startswith(location + "/"):
            return True
    return False


def find_residue(
    store: RegistrationStore,
    roots: Iterable[Path | str] | None = None,
    cutoff_days: int | None = None,
    now: float | None = None,
) -> list[Path]:
    """Top-level directories in *roots* not tied to any registration and older than the cutoff.

    A directory whose modification time cannot be read, or lies in the
    future, is never a candidate. Returns nothing for an unsupported store.
    """
    if not store.supported:
        return []

    root_list = residue_roots() if roots is None else [Path(r) for r in roots]
    days = DEFAULT_CUTOFF_DAYS if cutoff_days is None or cutoff_days < 0 else cutoff_days
    cutoff = days * 24 * 60 * 60
    now = time.time() if now is None else now
    installed = installed_locations(store)

    candidates: list[Path] = []
    for root in root_list:
        try:
            entries = sorted(os.scandir(root), key=lambda e: e.name)
        except OSError as exc:
            log.debug("Cannot read install root %s: %s", root, exc)
            continue

        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=False) or entry.is_junction():
                    continue
                mtime = entry.stat(follow_symlinks=False).st_mtime
            except OSError as exc:
                log.debug("Cannot inspect %s: %s", entry.path, exc)
                continue
            if is_under(entry.path, installed):
                continue
            age = now - mtime
            if age < 0 or age < cutoff:
                continue
            candidates.append(Path(entry.path))

    log.info("Found %d residue candidate(s) in %d root(s)", len(candidates), len(root_list))
    return candidates
