"""Backup manager: export and import encrypted vault backups.

A backup file holds the active secrets serialized as JSON (UTF-8) and
encrypted with AES-256-GCM (see backup_crypto.py). The key is derived from
the export password and the salt of the vault doing the export/import, so a
file can only be read back by a vault sharing that salt.

Import merges instead of replacing: secrets whose (title, username,
password) triple already exists are skipped.
"""

import json
from pathlib import Path
from typing import List, Union

import structlog

from ..core.exceptions import InvalidFormat, StorageError
from ..store.models import Secret
from ..store.repositories import (
    SecretRepository,
    insert_secrets,
    select_secret_identities,
    storage_errors,
)
from .backup_crypto import BackupCrypto
from .import_merger import MergeResult, merge

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


def serialize_secrets(secrets: List[Secret]) -> bytes:
    return json.dumps([s.to_dict() for s in secrets]).encode("utf-8")


def parse_secrets(payload: bytes) -> List[Secret]:
    """Parse a decrypted payload.

    Raises:
        InvalidFormat: Not UTF-8 JSON, or not a list of secret objects.
    """
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise InvalidFormat() from None
    if not isinstance(data, list):
        raise InvalidFormat()
    try:
        return [Secret.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError):
        raise InvalidFormat() from None


def export_vault(vault, path: PathLike, password: str) -> int:
    """Write the active secrets to an encrypted backup file.

    Args:
        vault: Unlocked VaultManager.
        path: Destination file (overwritten).
        password: Export password; combined with the vault salt.

    Returns:
        Number of secrets exported.

    Raises:
        VaultClosed: Vault is locked.
        StorageError: Could not read the vault or write the file.
    """
    secrets = SecretRepository(vault).list_active()
    key = vault.derive_key(password)
    try:
        envelope = BackupCrypto.encrypt_bytes(serialize_secrets(secrets), key)
    finally:
        key.wipe()

    try:
        Path(path).write_bytes(envelope)
    except OSError as e:
        raise StorageError(f"Could not write backup file: {e}") from e

    logger.info("vault_exported", count=len(secrets))
    return len(secrets)


def import_vault(vault, path: PathLike, password: str) -> MergeResult:
    """Merge the secrets of a backup file into the vault.

    Only title/username/password are imported; new rows get fresh ids and
    timestamps and no project.

    Returns:
        MergeResult with inserted/skipped counts.

    Raises:
        StorageError: Could not read the file or write the vault.
        InvalidFormat: File too short or payload not a list of secrets.
        AuthenticationFailed: Wrong password or tampered file.
        VaultClosed: Vault is locked.
    """
    try:
        envelope = Path(path).read_bytes()
    except OSError as e:
        raise StorageError(f"Could not read backup file: {e}") from e

    key = vault.derive_key(password)
    try:
        payload = BackupCrypto.decrypt_bytes(envelope, key)
    finally:
        key.wipe()

    incoming = parse_secrets(payload)

    with vault.session() as conn, storage_errors("import secrets"):
        result = merge(select_secret_identities(conn), incoming)
        insert_secrets(conn, result.accepted)

    logger.info("vault_imported", inserted=result.inserted, skipped=result.skipped)
    return result
