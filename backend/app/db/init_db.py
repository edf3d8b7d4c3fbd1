import logging

from sqlalchemy import inspect

from app.core.config import get_settings
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)


def missing_tables() -> list[str]:
    existing = set(inspect(engine).get_table_names())
    return sorted(name for name in Base.metadata.tables if name not in existing)


def init_db() -> None:
    cfg = get_settings()
    missing = missing_tables()
    if not missing:
        return
    # Local demo mode: create the schema so the app can boot against a fresh SQLite file.
    # Elsewhere the schema is owned by the hosted store and must already exist.
    if cfg.is_local_dev and str(cfg.database_url).startswith("sqlite"):
        logger.info("Creating %d missing tables for local development", len(missing))
        Base.metadata.create_all(bind=engine)
        return
    raise RuntimeError(
        "Database schema is missing tables: " + ", ".join(missing)
    )


if __name__ == "__main__":
    init_db()
