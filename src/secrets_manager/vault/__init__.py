# Vault Module - Encrypted Credential Store
#
# SQLCipher database encrypted end-to-end with a key derived from the
# master password (Argon2id). The salt is kept in vault.meta next to it.

from .encryption import MasterKey, KdfParameters, derive_key, generate_salt
from .storage import initialize_database, open_or_create, run_migrations
from .vault_manager import VaultManager

__all__ = [
    "VaultManager",
    "MasterKey",
    "KdfParameters",
    "derive_key",
    "generate_salt",
    "open_or_create",
    "run_migrations",
    "initialize_database",
]
