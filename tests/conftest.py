import os
from datetime import datetime, timezone

import aiosqlite
import pytest
import pytest_asyncio

os.environ["CARDWISE_LOG_LEVEL"] = "warning"

T0 = datetime(2026, 1, 24, 9, 30, tzinfo=timezone.utc)
USER = "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def t0():
    return T0


@pytest_asyncio.fixture
async def db(tmp_path):
    """A fresh SQLite database with the Cardwise schema."""
    from cardwise.config import settings
    from cardwise.db.sqlite import init_sqlite, prepare_connection

    await init_sqlite(tmp_path)
    async with aiosqlite.connect(tmp_path / settings.sqlite_filename) as conn:
        await prepare_connection(conn)
        yield conn


@pytest.fixture
def app(tmp_path, monkeypatch):
    from cardwise import create_app
    from cardwise.config import settings

    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")
    return create_app()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app, headers={"X-User-Id": USER}) as test_client:
        yield test_client
