"""Pytest configuration and fixtures."""

import os
import tempfile

import pytest

# The module-level app opens a store from settings on import; keep it out of the repo.
os.environ.setdefault("HOLARCHY_DATA_DIR", tempfile.mkdtemp(prefix="holarchy-test-"))

from app.config import Settings  # noqa: E402
from app.main import create_app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402


@pytest.fixture(params=["sqlite", "json"])
def storage_backend(request):
    return request.param


@pytest.fixture
def api_app(tmp_path, storage_backend):
    """A fresh app with its own store under tmp_path."""
    return create_app(Settings(data_dir=tmp_path, storage_backend=storage_backend))


@pytest.fixture
def client(api_app):
    """Create a test client."""
    return TestClient(api_app)


@pytest.fixture
def events(api_app, monkeypatch):
    """Capture broadcast payloads instead of framing them for subscribers."""
    sent = []
    monkeypatch.setattr(api_app.state.broadcaster, "broadcast", lambda payload: sent.append(payload) or 0)
    return sent
