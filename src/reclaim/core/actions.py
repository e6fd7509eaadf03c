"""Destructive primitives used by clean mode.

All functions raise ``OSError`` on failure and treat an already-missing
target as success, so repeating a clean is harmless.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import subprocess
import sys
from pathlib import Path
from typing import Callable

from send2trash import send2trash

log = logging.getLogger(__name__)

TrashFunc = Callable[[str], None]


def delete_file(path: Path | str) -> None:
    """Permanently delete a single file, clearing a read-only flag if needed."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except PermissionError:
        os.chmod(path, stat.S_IWRITE)
        os.remove(path)


def trash_file(path: Path | str, trash: TrashFunc | None = None) -> None:
    """Move a file to the platform trash / recycle bin."""
    if not os.path.lexists(path):
        return
    (trash or send2trash)(os.fspath(path))


def remove_tree(path: Path | str) -> None:
    """Delete a whole directory tree.

    Read-only entries are made writable and retried once. Raises ``OSError``
    if anything is left behind.
    """
    if not os.path.lexists(path):
        return

    def _on_error(func, failed_path, exc):
        if isinstance(exc, FileNotFoundError):
            return
        try:
            os.chmod(failed_path, stat.S_IWRITE)
            func(failed_path)
        except OSError as retry_exc:
            log.debug("Cannot remove %s: %s", failed_path, retry_exc)

    shutil.rmtree(path, onexc=_on_error)
    if os.path.lexists(path):
        raise OSError(f"Could not fully remove {path}")


def run_tool(command: str) -> int:
    """Run *command* through the platform shell and return its exit code.

    There is no timeout: a tool that never exits blocks the caller.
    """
    if sys.platform == "win32":
        argv = ["cmd", "/C", command]
    else:
        argv = ["sh", "-c", command]
    log.info("Running cleanup tool: %s", command)
    proc = subprocess.run(argv, check=False)
    return proc.returncode
