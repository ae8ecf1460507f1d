"""
Vault Exception Classes

Every error carries a human-readable default message. The API layer renders
``str(exc)`` as the response detail, so messages must never include key
material, salts or stored passwords.
"""


class VaultError(Exception):
    """Base exception for vault operations"""

    default_message = "Vault operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class AlreadyExists(VaultError):
    """Raised when setup is attempted on a machine that already has a vault"""

    default_message = "A vault already exists on this computer."


class NoVaultFound(VaultError):
    """Raised when unlocking without vault metadata"""

    default_message = "No vault found. Create one first."


class WrongPassword(VaultError):
    """Raised when the derived key is rejected by the store"""

    default_message = "Wrong password"


class AuthenticationFailed(WrongPassword):
    """Raised when an AEAD tag does not verify (wrong password or tampering)"""

    default_message = "Wrong password or corrupted file"


class VaultClosed(VaultError):
    """Raised when an entity operation runs while the vault is locked"""

    default_message = "Vault is locked. Unlock the vault first."


class InvalidFormat(VaultError):
    """Raised for malformed backup envelopes, payloads or metadata"""

    default_message = "Invalid or corrupted file"


class InvalidSalt(InvalidFormat):
    """Raised when the persisted salt cannot be parsed"""

    default_message = "Invalid vault salt"


class InvalidPassword(VaultError):
    """Raised when a new master password does not meet the minimum rules"""

    default_message = "Master password is too short"


class DerivationFailed(VaultError):
    """Raised when the password hash itself fails"""

    default_message = "Key derivation failed"


class StorageError(VaultError):
    """Raised for I/O or schema failures not caused by a key mismatch"""

    default_message = "Storage error"


class NotFound(VaultError):
    """Raised when a requested record does not exist"""

    default_message = "Record not found"
