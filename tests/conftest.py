"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import pytest

from storage.store import JsonFileStore


@pytest.fixture
def store(tmp_path):
    """JsonFileStore rooted in a fresh temporary directory."""
    return JsonFileStore(str(tmp_path))


@pytest.fixture(autouse=True)
def no_dry_run_env(monkeypatch):
    """Keep NOTIFICATION_DRY_RUN from leaking into channel factory tests."""
    monkeypatch.delenv("NOTIFICATION_DRY_RUN", raising=False)
