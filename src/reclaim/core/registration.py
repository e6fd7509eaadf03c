"""Uninstall registration store and orphan detection.

On Windows the store reads the per-machine and per-user ``Uninstall`` keys
(including the 32-bit ``WOW6432Node`` mirror). Every other platform gets a
permanently empty store that reports itself as unsupported.
"""

from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger(__name__)

UNINSTALL_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"
UNINSTALL_KEY_WOW64 = r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"


@dataclass(frozen=True, slots=True)
class Registration:
    """One uninstall record.

    ``key`` is the full key path including hive, e.g.
    ``HKLM\\SOFTWARE\\...\\Uninstall\\Foo``. Missing values are empty strings.
    """

    key: str
    install_location: str = ""
    display_name: str = ""
    uninstall_string: str = ""


class RegistrationStore(ABC):
    """Enumerate and delete uninstall registrations."""

    @property
    @abstractmethod
    def supported(self) -> bool:
        """Whether this platform has a registration store at all."""

    @abstractmethod
    def registrations(self) -> list[Registration]:
        """All current registrations, in enumeration order."""

    @abstractmethod
    def delete(self, registration: Registration) -> None:
        """Remove the registration's whole key subtree. Raises OSError on failure."""


class NullRegistrationStore(RegistrationStore):
    """Store for platforms without uninstall registrations."""

    @property
    def supported(self) -> bool:
        return False

    def registrations(self) -> list[Registration]:
        return []

    def delete(self, registration: Registration) -> None:
        raise OSError("Registration store not supported on this platform")


class WindowsRegistrationStore(RegistrationStore):
    """Registry-backed store using ``winreg``."""

    def __init__(self) -> None:
        import winreg

        self._winreg = winreg
        self._hives = {
            "HKLM": winreg.HKEY_LOCAL_MACHINE,
            "HKCU": winreg.HKEY_CURRENT_USER,
        }
        self._roots = [
            ("HKLM", UNINSTALL_KEY),
            ("HKLM", UNINSTALL_KEY_WOW64),
            ("HKCU", UNINSTALL_KEY),
        ]

    @property
    def supported(self) -> bool:
        return True

    def registrations(self) -> list[Registration]:
        found: list[Registration] = []
        for hive_name, key_path in self._roots:
            found.extend(self._enumerate(hive_name, key_path))
        return found

    def _enumerate(self, hive_name: str, key_path: str) -> list[Registration]:
        winreg = self._winreg
        found: list[Registration] = []
        try:
            with winreg.OpenKey(self._hives[hive_name], key_path) as root:
                subkey_count = winreg.QueryInfoKey(root)[0]
                for i in range(subkey_count):
                    try:
                        name = winreg.EnumKey(root, i)
                        with winreg.OpenKey(root, name) as subkey:
                            found.append(Registration(
                                key=f"{hive_name}\\{key_path}\\{name}",
                                install_location=self._read_string(subkey, "InstallLocation"),
                                display_name=self._read_string(subkey, "DisplayName"),
                                uninstall_string=self._read_string(subkey, "UninstallString"),
                            ))
                    except OSError as exc:
                        log.debug("Cannot read uninstall entry %d under %s: %s", i, key_path, exc)
        except OSError:
            log.debug("Uninstall root not present: %s\\%s", hive_name, key_path)
        return found

    def _read_string(self, key, value_name: str) -> str:
        winreg = self._winreg
        try:
            value, reg_type = winreg.QueryValueEx(key, value_name)
        except OSError:
            return ""
        if reg_type in (winreg.REG_SZ, winreg.REG_EXPAND_SZ):
            return str(value)
        return ""

    def delete(self, registration: Registration) -> None:
        hive_name, _, sub_path = registration.key.partition("\\")
        hive = self._hives.get(hive_name)
        if hive is None or not sub_path:
            raise OSError(f"Unrecognised registry key: {registration.key}")
        self._delete_tree(hive, sub_path)

    def _delete_tree(self, parent, sub_path: str) -> None:
        winreg = self._winreg
        try:
            key = winreg.OpenKey(parent, sub_path, 0, winreg.KEY_ALL_ACCESS)
        except FileNotFoundError:
            return
        with key:
            while True:
                try:
                    child = winreg.EnumKey(key, 0)
                except OSError:
                    break
                self._delete_tree(key, child)
        winreg.DeleteKey(parent, sub_path)


def default_store() -> RegistrationStore:
    """Return the registration store for the running platform."""
    if sys.platform == "win32":
        return WindowsRegistrationStore()
    return NullRegistrationStore()


def _blank(value: str | None) -> bool:
    return not value or not value.strip()


def is_orphan(registration: Registration, exists: Callable[[str], bool] = os.path.exists) -> bool:
    """Flag a record with no verifiable install location and weak metadata.

    A record with both a display name and an uninstall command is never an
    orphan, even when its install location is stale.
    """
    location = registration.install_location
    location_missing = _blank(location) or not exists(location.strip())
    weak_metadata = _blank(registration.display_name) or _blank(registration.uninstall_string)
    return location_missing and weak_metadata


def find_orphans(store: RegistrationStore) -> list[Registration]:
    """Return orphan registrations in enumeration order."""
    if not store.supported:
        return []
    return [reg for reg in store.registrations() if is_orphan(reg)]
