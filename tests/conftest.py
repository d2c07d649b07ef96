from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from enggist.config import Settings, get_settings
from enggist.db import Database
from enggist.main import create_app

SECRET = "test-secret"


@pytest.fixture
def db(tmp_path) -> Database:
    # file-backed so worker threads each get their own connection
    database = Database(f"sqlite:///{tmp_path / 'enggist.db'}")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def session(db: Database):
    with db.session() as s:
        yield s


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        ingest_secret=SECRET,
        llm_api_key="llm-key",
        summarize_retry_delay_seconds=0,
        _env_file=None,
    )


@pytest.fixture
def client(db: Database, settings: Settings) -> TestClient:
    app = create_app(settings=settings, database=db)
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {SECRET}"}
