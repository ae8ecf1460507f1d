"""Secrets Manager - Encrypted backup export/import."""

from .backup_crypto import BackupCrypto, decrypt, encrypt
from .backup_manager import export_vault, import_vault
from .import_merger import MergeResult, merge

__all__ = [
    "BackupCrypto",
    "encrypt",
    "decrypt",
    "export_vault",
    "import_vault",
    "MergeResult",
    "merge",
]
