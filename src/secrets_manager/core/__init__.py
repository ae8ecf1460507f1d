# Core Module - Shared Utilities
#
# Core module provides shared functionality across all Secrets Manager modules:
# - Configuration (data directory, API bind address, logging)
# - Structured logging setup
# - Exception taxonomy
# - Encrypted database connection helper

from .config import Settings, VaultPaths, default_data_dir
from .exceptions import (
    AlreadyExists,
    AuthenticationFailed,
    DerivationFailed,
    InvalidFormat,
    InvalidPassword,
    InvalidSalt,
    NoVaultFound,
    NotFound,
    StorageError,
    VaultClosed,
    VaultError,
    WrongPassword,
)
from .log_config import configure_logging

__all__ = [
    # Configuration
    "Settings",
    "VaultPaths",
    "default_data_dir",
    "configure_logging",
    # Errors
    "VaultError",
    "AlreadyExists",
    "NoVaultFound",
    "WrongPassword",
    "AuthenticationFailed",
    "VaultClosed",
    "InvalidFormat",
    "InvalidSalt",
    "InvalidPassword",
    "DerivationFailed",
    "StorageError",
    "NotFound",
]
