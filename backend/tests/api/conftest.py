"""API-specific test fixtures."""

import pytest
from fastapi.testclient import TestClient

from vision_builder.api.routes.interview import get_text_generator
from vision_builder.core.config import get_settings
from vision_builder.generation.fake import FakeTextGenerator


@pytest.fixture
def api_fake_generator():
    return FakeTextGenerator(scenario="happy_path")


@pytest.fixture
def api_client(tmp_path, monkeypatch, api_fake_generator):
    """FastAPI test client backed by a throwaway SQLite database.

    The real lifespan runs inside the TestClient's own event loop, so
    init_db creates the engine there. The TextGenerator dependency is
    overridden with a FakeTextGenerator.
    """
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("TEXT_BACKEND", "fake")
    monkeypatch.setenv("ANALYSIS_TIMEOUT_SECONDS", "1")
    monkeypatch.setenv("ANALYSIS_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("REWRITE_TIMEOUT_SECONDS", "1")
    get_settings.cache_clear()

    from vision_builder.main import create_app

    app = create_app()
    app.dependency_overrides[get_text_generator] = lambda: api_fake_generator

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    get_settings.cache_clear()
