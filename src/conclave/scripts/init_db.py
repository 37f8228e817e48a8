"""Create the configured database and its tables.

Usage::

    python -m conclave.scripts.init_db [--drop-tables] [--url URL]
"""
from __future__ import annotations

import argparse
import logging
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql
from sqlalchemy.exc import SQLAlchemyError

from conclave.core.logging import configure_logging
from conclave.core.settings import Settings
from conclave.db.session import Database

logger = logging.getLogger(__name__)


def to_psycopg_url(uri: str) -> str:
    """Return a Postgres URI suitable for psycopg.connect().

    SQLAlchemy driver suffixes (``postgresql+psycopg``) are stripped.
    """
    parts = urlsplit(uri.strip())
    scheme = "postgresql" if parts.scheme.startswith("postgresql") else parts.scheme
    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))


def ensure_postgres_database(db_url: str) -> None:
    """Create the target Postgres database if it is missing."""
    parts = urlsplit(to_psycopg_url(db_url))
    target_db = parts.path.lstrip("/") or "postgres"
    admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))

    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is None:
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
            logger.info("Created database %s", target_db)
        else:
            logger.info("Database %s already exists", target_db)


def init_db(database: Database, *, drop_tables: bool = False) -> None:
    if drop_tables:
        database.drop_tables()
        logger.info("Dropped all tables")
    database.create_tables()
    logger.info("Tables are up to date")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the configured database and tables")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every table before creating them again.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.log_level)
    url = args.url or settings.database_url_sync

    database = Database(url, echo=settings.sql_debug)
    try:
        if url.startswith("postgresql"):
            ensure_postgres_database(url)
        init_db(database, drop_tables=args.drop_tables)
    except (psycopg.Error, SQLAlchemyError, OSError, ValueError) as exc:
        logger.error("Database initialisation failed: %s", exc)
        return 1
    finally:
        database.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
