# Core Module - Encrypted SQLite Connection Helper
#
# Every vault database connection is opened through `connect()` so that:
#
#   - the SQLCipher key is applied before anything touches the schema
#   - foreign_keys enforcement is on for every connection
#   - the connection runs in autocommit mode and multi-step writes use
#     `transaction()` explicitly (DDL included, which the implicit
#     transaction handling of the DB-API driver would not cover)
#
# The file stays in rollback-journal mode. WAL would add -wal/-shm side files
# next to the single encrypted vault file.

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

import sqlcipher3


def connect(
    db_path: Union[str, Path],
    raw_key: Union[bytes, bytearray],
    *,
    row_factory: bool = True,
    check_same_thread: bool = False,
) -> "sqlcipher3.Connection":
    """Open a SQLCipher connection keyed with a raw 32-byte key.

    Args:
        db_path: Path to the database file (created when absent).
        raw_key: Raw key bytes; passed as a hex blob literal so SQLCipher
                 skips its own passphrase KDF.
        row_factory: If True, set conn.row_factory = sqlcipher3.Row.
        check_same_thread: Passed to sqlcipher3.connect(). Defaults to False
                 because callers serialize access with their own lock.

    Returns:
        Keyed connection in autocommit mode. The key is not verified here;
        the first read fails if it is wrong.
    """
    conn = sqlcipher3.connect(
        str(db_path),
        check_same_thread=check_same_thread,
        isolation_level=None,
    )
    # PRAGMA key does not accept bound parameters.
    conn.execute(f"PRAGMA key = \"x'{bytes(raw_key).hex()}'\"")
    if row_factory:
        conn.row_factory = sqlcipher3.Row
    return conn


def enable_foreign_keys(conn) -> None:
    """Turn on foreign key enforcement (needs a successfully keyed file)."""
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")


@contextmanager
def transaction(conn, immediate: bool = False) -> Iterator:
    """Run a block inside one transaction.

    Commits when the block finishes, rolls back on any exception and
    re-raises it.

    Usage:
        with transaction(conn):
            conn.execute(...)
            conn.execute(...)
    """
    conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield conn
    except BaseException:
        # SQLite may already have rolled back on its own (e.g. SQLITE_FULL)
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")
