# Vault - Key Derivation
#
# Master password + persisted salt -> 32-byte master key (Argon2id)
# The salt is a PHC-style salt string (unpadded base64 of 16 random bytes);
# its ASCII bytes are fed to Argon2 as the salt.
# The derived key lives in a MasterKey, which zeroes its buffer when wiped.

import base64
import binascii
import os
import re
from dataclasses import dataclass

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from ..core.exceptions import DerivationFailed, InvalidSalt


KEY_LENGTH = 32  # 256 bits for AES-256 / SQLCipher raw key
SALT_LENGTH = 16  # random bytes before encoding
MIN_PASSWORD_LENGTH = 6

_SALT_PATTERN = re.compile(r"^[A-Za-z0-9+/]{4,64}$")


class MasterKey:
    """
    Holds a derived 32-byte key in a mutable buffer.

    The buffer is overwritten with zeros by ``wipe()``, when the key is used
    as a context manager, and when the object is garbage collected. Copying
    and pickling are refused so the key is never duplicated by accident;
    pass the instance itself to the single operation that needs it.

    Python cannot guarantee that no other copy of the bytes ever existed
    (the hash function returns an immutable bytes object), so this narrows
    the window rather than closing it.
    """

    __slots__ = ("_key",)

    def __init__(self, key_bytes):
        if len(key_bytes) != KEY_LENGTH:
            raise ValueError(f"Master key must be {KEY_LENGTH} bytes, got {len(key_bytes)}")
        self._key = bytearray(key_bytes)

    @property
    def key(self) -> bytearray:
        """Live key buffer. Raises if the key was already wiped."""
        if self.is_wiped:
            raise ValueError("Master key has been wiped")
        return self._key

    @property
    def is_wiped(self) -> bool:
        return not any(self._key)

    def wipe(self) -> None:
        """Overwrite the key buffer with zeros in place."""
        self._key[:] = bytes(len(self._key))

    def __enter__(self) -> "MasterKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __del__(self):
        try:
            self.wipe()
        except AttributeError:
            pass  # __init__ failed before the buffer existed

    def __copy__(self):
        raise TypeError("MasterKey cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("MasterKey cannot be copied")

    def __reduce__(self):
        raise TypeError("MasterKey cannot be pickled")

    def __repr__(self) -> str:
        return "MasterKey(<wiped>)" if self.is_wiped else "MasterKey(<redacted>)"


@dataclass(frozen=True)
class KdfParameters:
    """
    Argon2id cost parameters.

    Defaults use the RFC 9106 low-memory size (64 MiB) with extra passes so
    one derivation takes well over 100ms on a current desktop CPU.

    The parameters are not stored in vault.meta: a vault can only be opened
    with the parameters it was created with, so changing these defaults
    makes existing vaults unreadable.
    """

    time_cost: int = 6
    memory_cost: int = 65536  # KiB
    parallelism: int = 1


DEFAULT_KDF = KdfParameters()


def generate_salt() -> str:
    """Generate a random salt string (22 chars, unpadded base64)."""
    raw = os.urandom(SALT_LENGTH)
    return base64.b64encode(raw).decode("ascii").rstrip("=")


def validate_salt(salt: str) -> str:
    """
    Check that ``salt`` is a well-formed salt string.

    Returns:
        The salt unchanged

    Raises:
        InvalidSalt: If the salt is not 4-64 characters of unpadded base64
    """
    if not isinstance(salt, str) or not _SALT_PATTERN.match(salt):
        raise InvalidSalt()
    # Unpadded base64 never has a length of 1 (mod 4)
    try:
        base64.b64decode(salt + "=" * (-len(salt) % 4), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidSalt() from None
    return salt


def derive_key(
    password: str,
    salt: str,
    params: KdfParameters = DEFAULT_KDF,
) -> MasterKey:
    """
    Derive the master key from a password and salt string using Argon2id.

    Deterministic: the same password, salt and parameters always yield the
    same key.

    Args:
        password: User's master password
        salt: Salt string from generate_salt() (stored with the vault)
        params: Argon2id cost parameters

    Returns:
        MasterKey holding 32 bytes

    Raises:
        InvalidSalt: If the salt cannot be parsed
        DerivationFailed: If the Argon2 hash fails
    """
    validate_salt(salt)

    try:
        raw = hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=salt.encode("ascii"),
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=KEY_LENGTH,
            type=Type.ID,
        )
    except HashingError as e:
        raise DerivationFailed(f"Key derivation failed: {e}") from e

    return MasterKey(raw)


def verify_master_password(password: str):
    """
    Check the minimum rules for a new master password.

    Returns:
        (is_valid, error_message)
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Master password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return True, ""
