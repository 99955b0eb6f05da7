"""Database migration runner with automatic tracking.

Handles both fresh installs and existing databases:
- Fresh install: creates tables via SQLAlchemy, baselines all migrations
- Existing install: runs pending migrations, tracks them in schema_migrations

Usage:
    from foldervault.core.migrator import run_migrations, MigrationError

    try:
        result = run_migrations(engine, Base)
    except MigrationError as e:
        logger.critical(f"Migration failed: {e}")
        raise SystemExit(1)
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, text, inspect
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when a migration fails to apply."""
    pass


@dataclass
class Migration:
    """A discovered migration file."""
    version: str        # "001"
    name: str           # "backfill_display_names"
    file_path: Path
    dialect: Optional[str] = None  # None = universal

    def __lt__(self, other: "Migration") -> bool:
        return int(self.version) < int(other.version)


@dataclass
class MigrationResult:
    """Result of running migrations."""
    applied: int = 0
    skipped: int = 0
    baselined: int = 0


# "001_backfill_display_names.sql"
_MIGRATION_PATTERN = re.compile(r"^(\d{3})_(.+)\.sql$")

# First-line dialect marker: "-- dialect: postgresql"
_DIALECT_PATTERN = re.compile(r"^--\s*dialect:\s*(sqlite|postgresql)\s*$")


def _get_migrations_dir() -> Path:
    return Path(__file__).parent.parent / "migrations"


def _discover_migration_files(migrations_dir: Optional[Path] = None) -> list[Migration]:
    """Scan the migrations directory for versioned .sql files, sorted by version."""
    migrations_dir = migrations_dir or _get_migrations_dir()

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return []

    migrations = []
    for file_path in sorted(migrations_dir.glob("*.sql")):
        match = _MIGRATION_PATTERN.match(file_path.name)
        if not match:
            logger.debug(f"Skipping non-migration file: {file_path.name}")
            continue

        dialect = None
        first_line = file_path.read_text().split("\n", 1)[0]
        dialect_match = _DIALECT_PATTERN.match(first_line)
        if dialect_match:
            dialect = dialect_match.group(1)

        migrations.append(
            Migration(version=match.group(1), name=match.group(2), file_path=file_path, dialect=dialect)
        )

    return sorted(migrations)


def _is_fresh_install(engine: Engine) -> bool:
    """No folders table means nothing has been created yet."""
    return "folders" not in inspect(engine).get_table_names()


def _schema_migrations_exists(engine: Engine) -> bool:
    return "schema_migrations" in inspect(engine).get_table_names()


def _ensure_migrations_table(engine: Engine) -> None:
    if _schema_migrations_exists(engine):
        return

    logger.info("Creating schema_migrations table")

    with engine.connect() as conn:
        conn.execute(text("""
            CREATE TABLE schema_migrations (
                version VARCHAR(10) PRIMARY KEY,
                name VARCHAR(255) NOT NULL,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """))
        conn.commit()


def _get_applied_versions(engine: Engine) -> set[str]:
    if not _schema_migrations_exists(engine):
        return set()

    with engine.connect() as conn:
        result = conn.execute(text("SELECT version FROM schema_migrations"))
        return {row[0] for row in result}


def _record_migration(engine: Engine, migration: Migration) -> None:
    with engine.connect() as conn:
        conn.execute(
            text("INSERT INTO schema_migrations (version, name) VALUES (:version, :name)"),
            {"version": migration.version, "name": migration.name}
        )
        conn.commit()


def _split_statements(sql_content: str) -> list[str]:
    """Split a migration into statements. SQLite executes one at a time."""
    lines = [line for line in sql_content.splitlines() if not line.strip().startswith("--")]
    return [stmt.strip() for stmt in "\n".join(lines).split(";") if stmt.strip()]


def _apply_migration(engine: Engine, migration: Migration) -> None:
    """Execute a migration in one transaction and record it. Raises MigrationError."""
    statements = _split_statements(migration.file_path.read_text())

    with engine.connect() as conn:
        try:
            for statement in statements:
                conn.execute(text(statement))
            conn.commit()
        except SQLAlchemyError as e:
            conn.rollback()
            raise MigrationError(f"Failed to apply {migration.version}_{migration.name}: {e}") from e

    _record_migration(engine, migration)


def run_migrations(engine: Engine, base: type, migrations_dir: Optional[Path] = None) -> MigrationResult:
    """Run all pending migrations. Idempotent.

    Args:
        engine: SQLAlchemy engine
        base: SQLAlchemy declarative base (for create_all on fresh install)
        migrations_dir: Override for the bundled migrations directory

    Raises:
        MigrationError: If a migration fails to apply
    """
    logger.info("Starting migration check")

    all_migrations = _discover_migration_files(migrations_dir)
    dialect = engine.dialect.name
    migrations = [m for m in all_migrations if m.dialect is None or m.dialect == dialect]
    skipped = len(all_migrations) - len(migrations)
    if skipped:
        logger.info(f"Skipped {skipped} migration(s) for other dialects")

    if _is_fresh_install(engine):
        logger.info("Fresh install detected - creating tables from models")
        base.metadata.create_all(bind=engine)

        _ensure_migrations_table(engine)
        for migration in migrations:
            _record_migration(engine, migration)

        logger.info(f"Baselined {len(migrations)} migrations")
        return MigrationResult(baselined=len(migrations))

    logger.info("Existing install detected")
    # Tables added to the models since the install are created without touching existing ones.
    base.metadata.create_all(bind=engine)
    _ensure_migrations_table(engine)

    applied_versions = _get_applied_versions(engine)
    pending = [m for m in migrations if m.version not in applied_versions]

    if not pending:
        logger.info("No pending migrations")
        return MigrationResult(skipped=len(migrations))

    logger.info(f"Found {len(pending)} pending migration(s)")
    for migration in pending:
        logger.info(f"Applying migration {migration.version}: {migration.name}")
        _apply_migration(engine, migration)

    logger.info(f"Applied {len(pending)} migration(s) successfully")
    return MigrationResult(applied=len(pending))
