"""Apply pending SQL migrations from backend/migrations in filename order.

Applied versions are recorded in schema_migrations; the readiness probe reads
the latest one.
"""

import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.append(str(BACKEND_ROOT))

from app.infra.postgres import close_pool, get_pool
from app.obs import logging as obs_logging

MIGRATIONS_DIR = BACKEND_ROOT / "migrations"

logger = obs_logging.get_logger("groups.migrations")


async def apply_all() -> int:
    files = sorted(path for path in MIGRATIONS_DIR.glob("*.sql"))
    pool = await get_pool()
    applied = 0
    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        done = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
        for path in files:
            version = path.stem.split("_", 1)[0]
            if version in done:
                continue
            logger.info("migration_apply", extra={"version": version, "file": path.name})
            async with conn.transaction():
                await conn.execute(path.read_text(encoding="utf-8"))
                await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", version)
            applied += 1
    return applied


async def main() -> None:
    obs_logging.configure_logging()
    try:
        applied = await apply_all()
        logger.info("migrations_done", extra={"applied": applied})
    finally:
        await close_pool()


if __name__ == "__main__":
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())
