# Userup Python SDK
# File: tests/conftest.py
# Version: v1

from __future__ import annotations

import os

import pytest

from userup.mock import reset_shared_mock_service


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Start every test from a clean USERUP_* environment and a fresh mock."""
    for name in list(os.environ):
        if name.startswith("USERUP_"):
            monkeypatch.delenv(name, raising=False)
    reset_shared_mock_service()
    yield
    reset_shared_mock_service()
