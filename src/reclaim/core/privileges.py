"""Elevation probe for admin-gated rules."""

from __future__ import annotations

import ctypes
import logging
import os
import sys

log = logging.getLogger(__name__)


def is_admin() -> bool:
    """Check whether the current process is elevated.

    Windows asks the shell for the administrator token; elsewhere root
    counts as admin. The answer is a point-in-time snapshot.
    """
    if sys.platform == "win32":
        try:
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (AttributeError, OSError):
            log.debug("IsUserAnAdmin unavailable, assuming not elevated")
            return False
    return os.geteuid() == 0
