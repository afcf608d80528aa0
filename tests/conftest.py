# tests/conftest.py

from __future__ import annotations

from typing import Dict

import pytest
from fastapi.testclient import TestClient

from dispatch import database
from dispatch.main import app

from .fakes import signup


@pytest.fixture()
def db_engine():
    """Fresh in-memory database per test."""
    engine = database.configure("sqlite://")
    yield engine
    engine.dispose()
    database.engine = None


@pytest.fixture()
def api(db_engine) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def auth(api: TestClient) -> Dict[str, str]:
    return signup(api)


@pytest.fixture()
def other_auth(api: TestClient) -> Dict[str, str]:
    return signup(api, name="Grace")
