"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool stays valid across the session. Tests are
skipped when the migrated database is not reachable.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from config.settings import settings
from src.main import app
from src.rb_common.database import engine

ADMIN_TOKEN = "integration-admin-token"


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client with the admin token configured."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM obligations LIMIT 1"))
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"migrated database not available: {exc}")

    previous = settings.ADMIN_API_TOKEN
    settings.ADMIN_API_TOKEN = ADMIN_TOKEN
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    settings.ADMIN_API_TOKEN = previous
    await engine.dispose()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN}
