"""
Secrets Manager - Local encrypted credential vault.

A single-user vault: secrets, projects and file attachments kept in one
SQLCipher database keyed by an Argon2id-derived master key, with encrypted
backup export and merge-on-import.
"""

__version__ = "0.1.0"
