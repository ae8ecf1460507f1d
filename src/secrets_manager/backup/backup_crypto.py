"""Backup encryption using AES-256-GCM with a vault-derived key.

The key comes from vault/encryption.py (Argon2id over the export password and
the vault salt), so this module only does the authenticated encryption:
- AES-256-GCM, no associated data
- Random 12-byte nonce per file

Envelope format: nonce(12) + ciphertext+tag
"""

import os
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import AuthenticationFailed, InvalidFormat
from ..vault.encryption import MasterKey

KeyLike = Union[MasterKey, bytes, bytearray]


def _raw_key(key: KeyLike) -> bytes:
    if isinstance(key, MasterKey):
        return bytes(key.key)
    return bytes(key)


class BackupCrypto:
    """Encrypt/decrypt backup payloads with a 32-byte key."""

    KEY_LENGTH = 32              # 256 bits for AES-256
    NONCE_LENGTH = 12            # 96-bit nonce for GCM

    @staticmethod
    def encrypt_bytes(data: bytes, key: KeyLike) -> bytes:
        """Encrypt data with AES-256-GCM.

        Returns: nonce(12) + ciphertext_with_tag
        """
        nonce = os.urandom(BackupCrypto.NONCE_LENGTH)
        ciphertext = AESGCM(_raw_key(key)).encrypt(nonce, data, None)
        return nonce + ciphertext

    @staticmethod
    def decrypt_bytes(blob: bytes, key: KeyLike) -> bytes:
        """Decrypt an envelope produced by encrypt_bytes.

        Raises:
            InvalidFormat: Blob too short to contain the nonce.
            AuthenticationFailed: Wrong key or tampered data (indistinguishable).
        """
        if len(blob) < BackupCrypto.NONCE_LENGTH:
            raise InvalidFormat()
        nonce = blob[: BackupCrypto.NONCE_LENGTH]
        ciphertext = blob[BackupCrypto.NONCE_LENGTH :]
        try:
            return AESGCM(_raw_key(key)).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise AuthenticationFailed() from None


def encrypt(plaintext: bytes, key: KeyLike) -> bytes:
    return BackupCrypto.encrypt_bytes(plaintext, key)


def decrypt(envelope: bytes, key: KeyLike) -> bytes:
    return BackupCrypto.decrypt_bytes(envelope, key)
