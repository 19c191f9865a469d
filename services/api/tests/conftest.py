import os

# Keep the module-level app in socialgraph.main off the network: no OTLP
# exporter, and a throwaway SQLite URL instead of the MySQL default.
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from fastapi.testclient import TestClient

from socialgraph.config import Settings
from socialgraph.database import build_engine, build_session_factory, init_db
from socialgraph.dependencies import memory_repositories
from socialgraph.main import create_app
from socialgraph.repositories import InMemoryStore

TEST_SECRET = "test-secret"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        secret_key=TEST_SECRET,
        token_ttl_seconds=3600,
        tracing_enabled=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'social_graph.db'}",
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def client(test_settings, store):
    app = create_app(test_settings, provider=memory_repositories(store))
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def session_factory(test_settings):
    engine = build_engine(test_settings)
    await init_db(engine)
    yield build_session_factory(engine)
    await engine.dispose()
