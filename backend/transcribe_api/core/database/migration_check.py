"""Migration status checker.

Called during application startup so a missing or outdated schema fails fast
instead of surfacing as errors on the first transcript insert.
"""

from pathlib import Path
from typing import Any

from alembic import script
from alembic.config import Config
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

from transcribe_api.core.logging import get_logger

logger = get_logger(__name__)

ALEMBIC_INI_PATH = Path(__file__).parent.parent.parent.parent / "alembic.ini"


def get_head_revision(alembic_ini_path: Path = ALEMBIC_INI_PATH) -> str | None:
    """Return the newest revision available in the migration scripts."""
    if not alembic_ini_path.exists():
        logger.error("alembic_ini_not_found", path=str(alembic_ini_path))
        return None

    alembic_cfg = Config(str(alembic_ini_path))
    script_dir = script.ScriptDirectory.from_config(alembic_cfg)
    return script_dir.get_current_head()


async def check_migration_status(
    engine: AsyncEngine,
    alembic_ini_path: Path = ALEMBIC_INI_PATH,
) -> dict[str, Any]:
    """Check if database migrations are up to date.

    Args:
        engine: SQLAlchemy async engine
        alembic_ini_path: Location of alembic.ini

    Returns:
        Dictionary with migration status information:
        - alembic_table_exists: bool - whether alembic_version table exists
        - current_revision: Optional[str] - current database revision
        - head_revision: Optional[str] - latest available revision
        - is_up_to_date: bool - whether database is at latest revision
    """
    result: dict[str, Any] = {
        "alembic_table_exists": False,
        "current_revision": None,
        "head_revision": None,
        "is_up_to_date": False,
    }

    async with engine.connect() as conn:
        table_exists = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table("alembic_version")
        )
        result["alembic_table_exists"] = bool(table_exists)

        if not table_exists:
            logger.warning("alembic_version_table_missing")
            return result

        current_rev = await conn.scalar(text("SELECT version_num FROM alembic_version"))
        result["current_revision"] = current_rev

    head_revision = get_head_revision(alembic_ini_path)
    result["head_revision"] = head_revision

    if current_rev == head_revision:
        result["is_up_to_date"] = True
        logger.info("migrations_up_to_date", revision=current_rev)
    else:
        logger.warning(
            "migrations_out_of_date",
            current_revision=current_rev,
            head_revision=head_revision,
        )

    return result


async def require_migrations(
    engine: AsyncEngine, fail_on_outdated: bool = True
) -> None:
    """Check migration status and optionally fail if not up to date.

    Args:
        engine: SQLAlchemy async engine
        fail_on_outdated: If True, raises RuntimeError when migrations are outdated
                         If False, only logs a warning

    Raises:
        RuntimeError: If migrations are not up to date and fail_on_outdated=True
    """
    status = await check_migration_status(engine)

    if not status["alembic_table_exists"]:
        error_msg = (
            "Database not initialized: the alembic_version table does not exist.\n"
            "Run:\n"
            "  cd backend && alembic upgrade head\n"
        )
    elif not status["is_up_to_date"]:
        error_msg = (
            f"Database migrations out of date.\n"
            f"Current revision: {status['current_revision']}\n"
            f"Head revision: {status['head_revision']}\n"
            f"Run:\n"
            f"  cd backend && alembic upgrade head\n"
        )
    else:
        return

    logger.error("migration_check_failed", detail=error_msg)
    if fail_on_outdated:
        raise RuntimeError(error_msg)
