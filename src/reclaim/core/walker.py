"""Directory tree walking with matching, thresholds and optional removal."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from reclaim.core.actions import TrashFunc, delete_file, trash_file
from reclaim.core.cancel import CancelToken
from reclaim.core.matcher import Matcher
from reclaim.core.thresholds import NO_THRESHOLDS, Thresholds
from reclaim.models.rule import Action

log = logging.getLogger(__name__)

# Cancellation is checked after every batch of this many files.
_BATCH_SIZE = 256
_DEFAULT_WORKERS = 4


@dataclass(slots=True)
class WalkResult:
    """Aggregate of one walk."""

    bytes: int = 0
    files: int = 0
    had_error: bool = False
    cancelled: bool = False


class _Tally:
    """Lock-guarded running totals shared by walker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.result = WalkResult()

    def add(self, size: int) -> None:
        with self._lock:
            self.result.bytes += size
            self.result.files += 1

    def error(self) -> None:
        with self._lock:
            self.result.had_error = True


class _Visitor:
    """Per-file logic: match, stat, filter, count and (in clean mode) remove."""

    def __init__(
        self,
        base: str,
        matcher: Matcher | None,
        thresholds: Thresholds,
        now: float,
        action: Action | str | None,
        trash: TrashFunc | None,
        tally: _Tally,
    ) -> None:
        self.base = base
        self.matcher = matcher
        self.thresholds = thresholds
        self.now = now
        self.action = action
        self.trash = trash
        self.tally = tally

    def visit_entry(self, entry: os.DirEntry[str]) -> None:
        if self.matcher is not None:
            relative = os.path.relpath(entry.path, self.base)
            if not self.matcher.matches(relative):
                return
        try:
            st = entry.stat(follow_symlinks=False)
        except FileNotFoundError:
            return
        except OSError as exc:
            log.debug("Cannot stat %s: %s", entry.path, exc)
            self.tally.error()
            return
        self._consider(entry.path, st)

    def visit_file(self, path: str) -> None:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            log.debug("Cannot stat %s: %s", path, exc)
            self.tally.error()
            return
        self._consider(path, st)

    def _consider(self, path: str, st: os.stat_result) -> None:
        if not self.thresholds.include(st.st_size, st.st_mtime, self.now):
            return
        self.tally.add(st.st_size)
        if self.action is None:
            return
        try:
            if self.action == Action.RECYCLE:
                trash_file(path, self.trash)
            else:
                delete_file(path)
        except OSError as exc:
            log.debug("Cannot remove %s: %s", path, exc)
            self.tally.error()


def walk(
    base: Path | str,
    matcher: Matcher | None = None,
    thresholds: Thresholds = NO_THRESHOLDS,
    now: float | None = None,
    action: Action | str | None = None,
    *,
    trash: TrashFunc | None = None,
    cancel: CancelToken | None = None,
    max_workers: int = _DEFAULT_WORKERS,
) -> WalkResult:
    """Measure (and with *action*, remove) the files under *base*.

    A single-file *base* is checked against the thresholds only. Directories
    are walked without following symlinks or junctions; the matcher sees each
    file's path relative to *base*. Unreadable directories and failed stats
    or removals set ``had_error`` but never stop the walk.
    """
    base_str = os.fspath(base)
    now = time.time() if now is None else now
    tally = _Tally()
    visitor = _Visitor(base_str, matcher, thresholds, now, action, trash, tally)

    if not os.path.lexists(base_str):
        return tally.result

    if not os.path.isdir(base_str):
        visitor.visit_file(base_str)
        return tally.result

    stack = [base_str]
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        while stack:
            if cancel is not None and cancel.cancelled:
                tally.result.cancelled = True
                break
            files = _read_dir(stack.pop(), stack, tally)
            for start in range(0, len(files), _BATCH_SIZE):
                # Consume the iterator so every worker finishes before the check.
                list(pool.map(visitor.visit_entry, files[start:start + _BATCH_SIZE]))
                if cancel is not None and cancel.cancelled:
                    tally.result.cancelled = True
                    break
            if tally.result.cancelled:
                break

    return tally.result


def _read_dir(current: str, stack: list[str], tally: _Tally) -> list[os.DirEntry[str]]:
    """List regular files in *current*, pushing real subdirectories onto *stack*."""
    files: list[os.DirEntry[str]] = []
    try:
        with os.scandir(current) as it:
            for entry in it:
                try:
                    if entry.is_symlink() or entry.is_junction():
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        stack.append(entry.path)
                    elif entry.is_file(follow_symlinks=False):
                        files.append(entry)
                except OSError as exc:
                    log.debug("Cannot inspect %s: %s", entry.path, exc)
                    tally.error()
    except OSError as exc:
        log.debug("Cannot read %s: %s", current, exc)
        tally.error()
    return files


def measure_tree(path: Path | str, cancel: CancelToken | None = None) -> WalkResult:
    """Total size and file count of a tree, without filters."""
    return walk(path, cancel=cancel)
