"""Shared test fixtures."""

from __future__ import annotations

import pytest

from helpers import FakeRegistrationStore, FakeTrash


@pytest.fixture
def fake_store():
    return FakeRegistrationStore()


@pytest.fixture
def fake_trash():
    return FakeTrash()


@pytest.fixture
def isolate_config(tmp_path, monkeypatch):
    """Point XDG_CONFIG_HOME at a temp directory."""
    config_home = tmp_path / "config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home
