from __future__ import annotations

import asyncio
import logging
import pathlib

import asyncpg

from app.settings import settings

_LOG = logging.getLogger("campus.migrations")

MIGRATIONS_DIR = pathlib.Path(__file__).resolve().parent.parent / "infra" / "migrations"


async def wait_for_db(retries: int = 30, delay: float = 2.0) -> asyncpg.Connection:
    for attempt in range(1, retries + 1):
        try:
            return await asyncpg.connect(settings.postgres_url, ssl="require" if settings.postgres_ssl else None)
        except (OSError, asyncpg.CannotConnectNowError) as exc:
            _LOG.info("database not ready (%s), retrying in %ss (%d/%d)", exc, delay, attempt, retries)
            await asyncio.sleep(delay)
    raise SystemExit("Could not connect to database after multiple retries")


async def apply(migrations_dir: pathlib.Path = MIGRATIONS_DIR) -> list[str]:
    paths = sorted(migrations_dir.glob("*.sql"))
    if not paths:
        raise SystemExit("no migration files found")

    conn = await wait_for_db()
    applied_now: list[str] = []
    try:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        applied = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
        for path in paths:
            version = path.name.split("_", 1)[0]
            if version in applied:
                continue
            async with conn.transaction():
                await conn.execute(path.read_text())
                await conn.execute(
                    """
                    INSERT INTO schema_migrations (version)
                    VALUES ($1)
                    ON CONFLICT (version) DO UPDATE SET applied_at = NOW()
                    """,
                    version,
                )
            _LOG.info("applied %s", path.name)
            applied_now.append(path.name)
    finally:
        await conn.close()
    return applied_now


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(apply())


if __name__ == "__main__":
    main()
