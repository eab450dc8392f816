from __future__ import annotations

import pytest
from sqlalchemy import text

from app.core.integration_db_safety import require_test_database
from app.db.session import engine

TRUNCATE_TABLES = (
    "credit_transactions",
    "recharge_requests",
    "accounts",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} RESTART IDENTITY CASCADE"


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # Pooled asyncpg connections are bound to the loop that opened them.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    require_test_database(str(engine.url), purpose="run destructive TRUNCATE")

    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
