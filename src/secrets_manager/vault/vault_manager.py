# Vault Manager - Lock/Unlock State Machine
#
# States:
#   Uninitialized  no vault.meta in the data directory
#   Locked         vault.meta exists, no open connection
#   Unlocked       connection (and the key that opened it) held in memory
#
# One threading.Lock guards the session. Every storage operation, including
# setup/unlock/lock themselves, runs while holding it, so all access to the
# encrypted database is serialized.

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from ..core.config import VaultPaths, default_data_dir
from ..core.exceptions import (
    AlreadyExists,
    InvalidFormat,
    InvalidPassword,
    NoVaultFound,
    StorageError,
    VaultClosed,
    WrongPassword,
)
from .encryption import (
    DEFAULT_KDF,
    KdfParameters,
    MasterKey,
    derive_key,
    generate_salt,
    validate_salt,
    verify_master_password,
)
from .storage import initialize_database

logger = structlog.get_logger(__name__)


class VaultManager:
    """
    Owns the vault session: the single live database connection.

    Security:
    - Master password never stored (only the salt, in vault.meta)
    - The whole database file is encrypted by SQLCipher with the derived key
    - A wrong password is detected by the store rejecting the first read
    - The key is zeroed on lock() and on every failed setup/unlock

    Entity operations never touch the connection directly; they enter
    ``session()``, which blocks on the lock and raises VaultClosed when the
    vault is locked.
    """

    def __init__(
        self,
        paths: Optional[VaultPaths] = None,
        kdf_params: KdfParameters = DEFAULT_KDF,
    ):
        """
        Initialize vault manager.

        Args:
            paths: Location of vault.meta / vault.db
                   If None, uses ~/.secrets-manager/vaults
            kdf_params: Argon2id cost parameters
        """
        self.paths = paths or VaultPaths.from_dir(default_data_dir())
        self.kdf_params = kdf_params

        self._lock = threading.Lock()
        self._conn = None
        self._key: Optional[MasterKey] = None

    # ── State ────────────────────────────────────────────────────────

    def check_status(self) -> bool:
        """Return True once a vault has been created here."""
        return self.paths.meta_path.exists()

    @property
    def is_unlocked(self) -> bool:
        return self._conn is not None

    def read_salt(self) -> str:
        """
        Read the persisted salt from vault.meta.

        Raises:
            NoVaultFound: If no vault has been created
            InvalidFormat: If the file does not hold a valid salt
            StorageError: If the file cannot be read
        """
        meta_path = self.paths.meta_path
        if not meta_path.exists():
            raise NoVaultFound()
        try:
            salt = meta_path.read_text(encoding="ascii").strip()
        except UnicodeDecodeError:
            raise InvalidFormat("Vault metadata is corrupted") from None
        except OSError as e:
            raise StorageError(f"Could not read vault metadata: {e}") from e
        return validate_salt(salt)

    def derive_key(self, password: str) -> MasterKey:
        """Derive a key from ``password`` and this vault's salt."""
        return derive_key(password, self.read_salt(), self.kdf_params)

    # ── Transitions ──────────────────────────────────────────────────

    def setup(self, password: str) -> str:
        """
        Create a new vault and unlock it.

        Order matters: vault.meta is written first, then any stale database
        file is removed and a fresh one created. If anything after the
        metadata write fails the vault is left Locked; unlock() with the same
        password finishes the job.

        Returns:
            Success message

        Raises:
            InvalidPassword: If the password is too short
            AlreadyExists: If vault.meta already exists
            StorageError / DerivationFailed: On I/O or hashing failure
        """
        with self._lock:
            if self.paths.meta_path.exists():
                raise AlreadyExists()

            is_valid, error_msg = verify_master_password(password)
            if not is_valid:
                raise InvalidPassword(error_msg)

            salt = generate_salt()
            try:
                self.paths.ensure()
                self.paths.meta_path.write_text(salt, encoding="ascii")
                self._remove_stale_database()
            except OSError as e:
                raise StorageError(f"Could not create vault files: {e}") from e

            key = derive_key(password, salt, self.kdf_params)
            try:
                conn = initialize_database(self.paths.db_path, key)
            except BaseException:
                key.wipe()
                logger.error("vault_setup_failed", exc_info=True)
                raise

            self._replace_session(conn, key)

        logger.info("vault_created", data_dir=str(self.paths.data_dir))
        return "Vault created successfully!"

    def unlock(self, password: str) -> str:
        """
        Unlock the vault with the master password.

        Also valid while already unlocked: on success the previous session is
        replaced, on failure it is left untouched.

        Returns:
            Success message

        Raises:
            NoVaultFound: If vault.meta does not exist
            WrongPassword: If the store rejects the derived key
            InvalidFormat: If vault.meta is corrupted
            StorageError: On open/migration failure
        """
        with self._lock:
            key = self.derive_key(password)
            try:
                conn = initialize_database(self.paths.db_path, key)
            except WrongPassword:
                key.wipe()
                logger.warning("vault_unlock_failed", reason="wrong_password")
                raise
            except BaseException:
                key.wipe()
                logger.error("vault_unlock_failed", exc_info=True)
                raise

            self._replace_session(conn, key)

        logger.info("vault_unlocked")
        return "Vault unlocked!"

    def lock(self) -> str:
        """Lock vault (close database connection, wipe key). Idempotent."""
        with self._lock:
            was_unlocked = self._conn is not None
            self._close_session()

        if was_unlocked:
            logger.info("vault_locked")
        return "Vault locked."

    # ── Session access ───────────────────────────────────────────────

    @contextmanager
    def session(self) -> Iterator:
        """
        Hold the vault lock and yield the live connection.

        Usage:
            with vault.session() as conn:
                conn.execute(...)

        Raises:
            VaultClosed: If the vault is locked
        """
        with self._lock:
            if self._conn is None:
                raise VaultClosed()
            yield self._conn

    # ── Internals (caller holds self._lock) ──────────────────────────

    def _remove_stale_database(self) -> None:
        db_path = self.paths.db_path
        for stale in (db_path, db_path.with_name(db_path.name + "-journal")):
            if stale.exists():
                logger.warning("removing_stale_database", path=str(stale))
                stale.unlink()

    def _replace_session(self, conn, key: MasterKey) -> None:
        self._close_session()
        self._conn = conn
        self._key = key

    def _close_session(self) -> None:
        conn, key = self._conn, self._key
        self._conn = None
        self._key = None
        try:
            if conn is not None:
                conn.close()
        finally:
            if key is not None:
                key.wipe()
