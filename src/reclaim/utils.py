"""Shared utility functions."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path

_PLACEHOLDER = re.compile(r"%([^%]*)%")


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def expand_env(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Expand ``%NAME%`` placeholders in a single left-to-right pass.

    Unset variables are left untouched including their delimiters, ``%%``
    collapses to a literal ``%`` and substituted values are not re-scanned.
    An unterminated trailing ``%`` is kept as-is.
    """
    env = os.environ if environ is None else environ

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if not name:
            return "%"
        value = env.get(name)
        return match.group(0) if value is None else value

    return _PLACEHOLDER.sub(_replace, text)


def drive_from_path(path: Path | str) -> str | None:
    """Return the ``X:`` volume of a drive-letter path, or None."""
    text = str(path)
    if len(text) >= 2 and text[1] == ":" and text[0].isalpha():
        return f"{text[0].upper()}:"
    return None


def bytes_to_human(size_bytes: int) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return f"-{bytes_to_human(-size_bytes)}"
    if size_bytes == 0:
        return "0 B"

    units = ("B", "KB", "MB", "GB", "TB")
    value = float(size_bytes)
    for unit in units[:-1]:
        if abs(value) < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} {units[-1]}"
