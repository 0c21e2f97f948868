"""Deployment-time schema migration runner built on Alembic.

Revisions live in ``backend/alembic/versions`` and are named by their creation
timestamp, so the chain is also ordered by id. Each revision runs in its own
transaction (see ``alembic/env.py``): a failure rolls that revision back,
leaves ``alembic_version`` untouched and stops the run.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, pool

from .config import settings

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
ALEMBIC_INI = BACKEND_DIR / "alembic.ini"
SCRIPT_LOCATION = BACKEND_DIR / "alembic"


class MigrationError(RuntimeError):
    """A revision failed; it was rolled back and later revisions were not attempted."""


def build_alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("script_location", str(SCRIPT_LOCATION))
    url = database_url or settings.database_url
    # ConfigParser interpolation: a literal % in a password must be doubled.
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def revision_ids(config: Config) -> list[str]:
    """All revision ids, oldest first."""
    script = ScriptDirectory.from_config(config)
    return [script_revision.revision for script_revision in reversed(list(script.walk_revisions()))]


def current_revision(config: Config) -> str | None:
    engine = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()


def pending_revisions(config: Config, current: str | None) -> list[str]:
    ids = revision_ids(config)
    if current is None:
        return ids
    if current not in ids:
        raise MigrationError(f"Database is at unknown revision {current!r}")
    return ids[ids.index(current) + 1:]


def upgrade(config: Config, target: str = "head") -> None:
    try:
        command.upgrade(config, target)
    except Exception as exc:
        logger.exception("Migration run halted while upgrading to %s", target)
        raise MigrationError(f"Upgrade to {target} failed: {exc}") from exc


def downgrade_latest(config: Config) -> None:
    """Revert the most recently applied revision only."""
    try:
        command.downgrade(config, "-1")
    except Exception as exc:
        logger.exception("Reverting the latest revision failed")
        raise MigrationError(f"Downgrade failed: {exc}") from exc


def status(config: Config) -> tuple[str | None, list[str]]:
    current = current_revision(config)
    return current, pending_revisions(config, current)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="migrate.py", description="Apply or revert schema migrations")
    parser.add_argument("--database-url", default=None, help="override DATABASE_URL / DB_* settings")
    sub = parser.add_subparsers(dest="command", required=True)

    upgrade_parser = sub.add_parser("upgrade", help="apply pending revisions")
    upgrade_parser.add_argument("target", nargs="?", default="head")
    sub.add_parser("downgrade", help="revert the most recent revision")
    sub.add_parser("status", help="show the current and pending revisions")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    config = build_alembic_config(args.database_url)

    try:
        if args.command == "upgrade":
            upgrade(config, args.target)
        elif args.command == "downgrade":
            downgrade_latest(config)
        else:
            current, pending = status(config)
            print(f"Current revision: {current or '<none>'}")
            if pending:
                print("Pending revisions:")
                for revision in pending:
                    print(f"  {revision}")
            else:
                print("Database is up to date")
    except MigrationError as exc:
        logger.error("%s", exc)
        return 1
    return 0
