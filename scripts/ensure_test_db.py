from __future__ import annotations

import argparse
import asyncio

import asyncpg
from alembic import command
from alembic.config import Config
from sqlalchemy.engine import make_url

from app.core.config import get_settings
from app.core.integration_db_safety import require_test_database


async def _ensure_database_exists(database_url: str) -> bool:
    check = require_test_database(database_url, purpose="create a test database")
    parsed = make_url(database_url)
    if parsed.username is None:
        raise RuntimeError("DATABASE_URL username is required.")

    conn = await asyncpg.connect(
        host=parsed.host or "localhost",
        port=int(parsed.port or 5432),
        user=parsed.username,
        password=parsed.password,
        database="postgres",
    )
    try:
        exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", check.database_name)
        if exists:
            return False
        await conn.execute(f'CREATE DATABASE "{check.database_name}"')
        return True
    finally:
        await conn.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the integration test database and migrate it.")
    parser.add_argument("--skip-migrations", action="store_true")
    parser.add_argument("--alembic-config", default="alembic.ini")
    args = parser.parse_args()

    database_url = get_settings().database_url
    created = asyncio.run(_ensure_database_exists(database_url))
    print(f"ensure_test_db: {'created' if created else 'exists'} db={make_url(database_url).database}")  # noqa: T201

    if not args.skip_migrations:
        command.upgrade(Config(args.alembic_config), "head")
        print("ensure_test_db: migrations applied")  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
