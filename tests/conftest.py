"""Pytest configuration and fixtures."""

import os
import uuid

import pytest

# Required settings must exist before app modules read them
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("HELPDESK_ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["HELPDESK_ENV"] = "test"
    os.environ.pop("LANGSMITH_API_KEY", None)
    os.environ.pop("TAVILY_API_KEY", None)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings and tracker so per-test env changes apply."""
    from app.core.config import get_settings
    from app.core.run_tracking import get_run_tracker

    get_settings.cache_clear()
    get_run_tracker.cache_clear()
    yield
    get_settings.cache_clear()
    get_run_tracker.cache_clear()


class FakeRun:
    """Records lifecycle calls made on a trace run."""

    def __init__(self, name: str, parent_id: str | None = None):
        self.id = str(uuid.uuid4())
        self.name = name
        self.parent_id = parent_id
        self.updates: list[tuple] = []
        self.ended_with: dict | None = None
        self.end_metadata: dict | None = None
        self.failed_with: BaseException | str | None = None

    async def update(self, status, outputs=None, metadata=None):
        self.updates.append((status, outputs, metadata))

    async def end(self, outputs=None, metadata=None):
        self.ended_with = outputs or {}
        self.end_metadata = metadata

    async def fail(self, error):
        self.failed_with = error


class FakeRunFactory:
    """Stand-in for create_and_track_run that keeps every run it opened."""

    def __init__(self):
        self.runs: list[FakeRun] = []

    async def __call__(self, name, run_type, inputs, project=None, parent_id=None):
        run = FakeRun(name, parent_id)
        self.runs.append(run)
        return run

    def named(self, name: str) -> FakeRun:
        return next(r for r in self.runs if r.name == name)


@pytest.fixture
def fake_runs() -> FakeRunFactory:
    return FakeRunFactory()
