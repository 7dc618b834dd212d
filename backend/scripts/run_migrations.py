"""Apply or verify the career store schema before the API starts serving sessions.

``--check`` exits non-zero when the database is behind the newest revision,
which lets deploys fail fast instead of serving against a stale schema.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

LOGGER = logging.getLogger("careerai.migrations")
URL_PLACEHOLDER = "%(CAREERAI_DATABASE_URL)s"
SCRIPT_DIR = Path(__file__).resolve().parent
BACKEND_ROOT = SCRIPT_DIR.parent


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply career store migrations once the database answers.")
    parser.add_argument(
        "--revision",
        default=os.getenv("CAREERAI_DB_MIGRATION_REVISION", "head"),
        help="Revision to upgrade to (default: head).",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=int(os.getenv("CAREERAI_DB_MIGRATION_TIMEOUT", "60")),
        help="Seconds to wait for the database to accept connections.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=float(os.getenv("CAREERAI_DB_MIGRATION_POLL_INTERVAL", "3")),
        help="Seconds between readiness probes.",
    )
    parser.add_argument(
        "--config",
        default=str(BACKEND_ROOT / "alembic.ini"),
        help="Path to alembic.ini.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report whether the database is at the newest revision.",
    )
    return parser.parse_args(argv)


def load_config(config_path: str) -> Config:
    config = Config(config_path)
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    """Prefer an explicit ``sqlalchemy.url``; otherwise read ``CAREERAI_DATABASE_URL``."""
    url = config.get_main_option("sqlalchemy.url")
    if url and url != URL_PLACEHOLDER:
        return url
    env_url = os.getenv("CAREERAI_DATABASE_URL")
    if not env_url:
        raise RuntimeError("CAREERAI_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url)
    return env_url


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    deadline = time.monotonic() + timeout
    engine: Optional[Engine] = None
    last_error: Optional[Exception] = None
    attempts = 0

    try:
        engine = create_engine(database_url, future=True, pool_pre_ping=True)
        while True:
            attempts += 1
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                LOGGER.info("Database reachable after %d probe(s).", attempts)
                return
            except OperationalError as exc:
                last_error = exc
                LOGGER.warning("Database not ready (probe %d): %s", attempts, exc)
            except SQLAlchemyError as exc:
                last_error = exc
                LOGGER.error("Database rejected the readiness probe: %s", exc)
                break
            if time.monotonic() >= deadline:
                break
            time.sleep(poll_interval)
    finally:
        if engine is not None:
            engine.dispose()

    raise RuntimeError(f"Database was not reachable within {timeout}s.") from last_error


def current_revision(database_url: str) -> Optional[str]:
    engine = create_engine(database_url, future=True)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def head_revision(config: Config) -> Optional[str]:
    return ScriptDirectory.from_config(config).get_current_head()


def check_schema(config: Config) -> bool:
    database_url = resolve_database_url(config)
    current = current_revision(database_url)
    head = head_revision(config)
    if current == head:
        LOGGER.info("Schema is current at %s.", head)
        return True
    LOGGER.warning("Schema is at %s but the newest revision is %s.", current or "<empty>", head)
    return False


def run_migrations(
    revision: str,
    *,
    timeout: int,
    poll_interval: float,
    config: Optional[Config] = None,
) -> None:
    config = config or load_config(str(BACKEND_ROOT / "alembic.ini"))
    database_url = resolve_database_url(config)
    LOGGER.info("Upgrading career store to %s (timeout=%ss poll=%ss)", revision, timeout, poll_interval)
    wait_for_database(database_url, timeout=timeout, poll_interval=poll_interval)
    command.upgrade(config, revision)
    LOGGER.info("Career store migrations complete.")


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("CAREERAI_DB_MIGRATION_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        config = load_config(args.config)
        if args.check:
            return 0 if check_schema(config) else 2
        run_migrations(
            args.revision,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            config=config,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
