"""Script to run the scheduling schema migrations.

Usage:
    python scripts/migrate.py                    # upgrade to head
    python scripts/migrate.py downgrade <rev>    # downgrade to a revision
    python scripts/migrate.py create <message>   # autogenerate a revision
"""

import sys

import structlog

from alembic import command
from alembic.config import Config

logger = structlog.get_logger()

ALEMBIC_INI = "alembic.ini"


def run_migrations(revision: str = "head") -> None:
    """Upgrade the schema to ``revision``."""
    command.upgrade(Config(ALEMBIC_INI), revision)
    logger.info("migrations_applied", revision=revision)


def rollback(revision: str) -> None:
    """Downgrade the schema to ``revision``."""
    command.downgrade(Config(ALEMBIC_INI), revision)
    logger.info("migrations_rolled_back", revision=revision)


def create_migration(message: str) -> None:
    """Autogenerate a new revision from ``app.models.metadata``."""
    command.revision(Config(ALEMBIC_INI), message=message, autogenerate=True)
    logger.info("migration_created", message=message)


def main(argv: list[str]) -> int:
    try:
        if not argv:
            run_migrations()
        elif argv[0] == "downgrade" and len(argv) == 2:
            rollback(argv[1])
        elif argv[0] == "create" and len(argv) > 1:
            create_migration(" ".join(argv[1:]))
        else:
            print(__doc__)
            return 2
    except Exception as e:
        logger.error("migration_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
