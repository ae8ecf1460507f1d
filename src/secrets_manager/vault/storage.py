# Vault - Encrypted Storage
#
# Opens (or creates) the SQLCipher vault file with a derived key and brings
# its schema up to date.
#
# Migrations live in vault/migrations/NNNN_description.sql. The integer
# prefix is the version; the stored version is PRAGMA user_version. All
# pending scripts run inside one transaction, so a failing script leaves the
# database exactly as it was before the batch.

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import sqlcipher3
import structlog

from ..core.db import connect as db_connect, enable_foreign_keys, transaction
from ..core.exceptions import StorageError, WrongPassword
from .encryption import MasterKey

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


@dataclass(frozen=True)
class Migration:
    """One versioned schema script."""

    version: int
    name: str
    script: str


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> List[Migration]:
    """
    Load every ``NNNN_name.sql`` file in ``directory``, sorted by version.

    Files without a numeric prefix are ignored.

    Raises:
        StorageError: If two files share the same version number
    """
    migrations = []
    seen = {}
    for path in sorted(directory.glob("*.sql")):
        prefix = path.name.split("_", 1)[0]
        if not prefix.isdigit():
            continue
        version = int(prefix)
        if version in seen:
            raise StorageError(
                f"Duplicate migration version {version}: {seen[version]} and {path.name}"
            )
        seen[version] = path.name
        migrations.append(
            Migration(version=version, name=path.stem, script=path.read_text(encoding="utf-8"))
        )
    return sorted(migrations, key=lambda m: m.version)


def _has_sql(text: str) -> bool:
    return any(
        line.strip() and not line.strip().startswith("--")
        for line in text.splitlines()
    )


def split_statements(script: str) -> List[str]:
    """
    Split a migration script into single statements (one per execute()).

    Blank and comment-only lines between statements are dropped; comments
    inside a statement are kept.
    """
    statements = []
    buffer = ""
    for line in script.splitlines(keepends=True):
        if not buffer and not _has_sql(line):
            continue
        buffer += line
        if sqlcipher3.complete_statement(buffer):
            if _has_sql(buffer):
                statements.append(buffer.strip())
            buffer = ""
    if _has_sql(buffer):
        statements.append(buffer.strip())
    return statements


def get_schema_version(conn) -> int:
    """Read the stored schema version (PRAGMA user_version)."""
    return conn.execute("PRAGMA user_version").fetchone()[0]


def open_or_create(path: Union[str, Path], key: MasterKey):
    """
    Open the encrypted database at ``path``, creating it when absent.

    The key is applied before any schema access. A read of sqlite_master follows
    immediately; if it fails the key does not match the one the file was
    created with.

    Args:
        path: Database file path
        key: Derived master key (borrowed, not retained)

    Returns:
        Keyed sqlcipher3 connection with foreign keys enabled

    Raises:
        WrongPassword: If the first read after keying fails
        StorageError: If the file cannot be opened at all
    """
    try:
        conn = db_connect(path, key.key)
    except sqlcipher3.Error as e:
        raise StorageError(f"Could not open vault database: {e}") from e

    try:
        conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    except sqlcipher3.DatabaseError as e:
        conn.close()
        raise WrongPassword() from e

    try:
        enable_foreign_keys(conn)
    except sqlcipher3.Error as e:
        conn.close()
        raise StorageError(f"Could not configure vault database: {e}") from e

    return conn


def run_migrations(conn, migrations: Optional[Iterable[Migration]] = None) -> int:
    """
    Apply every migration newer than the stored schema version.

    Scripts run in ascending version order inside one transaction, and
    user_version is advanced after each script. Nothing is committed unless
    the whole batch succeeds.

    Args:
        conn: Open, keyed connection
        migrations: Migrations to consider (default: discover_migrations())

    Returns:
        Number of migrations applied (0 when already up to date)

    Raises:
        StorageError: If any script fails (the batch is rolled back)
    """
    if migrations is None:
        migrations = discover_migrations()
    ordered = sorted(migrations, key=lambda m: m.version)

    try:
        current_version = get_schema_version(conn)
    except sqlcipher3.Error as e:
        raise StorageError(f"Could not read schema version: {e}") from e

    pending = [m for m in ordered if m.version > current_version]
    if not pending:
        logger.debug("schema_up_to_date", version=current_version)
        return 0

    logger.info(
        "migrating_schema",
        from_version=current_version,
        to_version=pending[-1].version,
        pending=len(pending),
    )

    try:
        with transaction(conn, immediate=True):
            for migration in pending:
                logger.debug("applying_migration", version=migration.version, name=migration.name)
                for statement in split_statements(migration.script):
                    conn.execute(statement)
                # PRAGMA does not accept bound parameters
                conn.execute(f"PRAGMA user_version = {int(migration.version)}")
    except sqlcipher3.Error as e:
        logger.error("migration_failed", error=str(e))
        raise StorageError(f"Migration failed: {e}") from e

    logger.info("schema_migrated", version=pending[-1].version, applied=len(pending))
    return len(pending)


def initialize_database(path: Union[str, Path], key: MasterKey):
    """
    Open the vault database and migrate it to the current schema.

    Returns:
        Ready-to-use connection

    Raises:
        WrongPassword: If the key is rejected
        StorageError: On open or migration failure
    """
    conn = open_or_create(path, key)
    try:
        run_migrations(conn)
    except BaseException:
        conn.close()
        raise
    return conn
