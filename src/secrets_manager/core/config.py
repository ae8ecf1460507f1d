# Core Module - Runtime Configuration
#
# Settings come from environment variables (optionally from a .env file):
#   SECRETS_MANAGER_HOME       data directory for vault.meta / vault.db
#   SECRETS_MANAGER_HOST       API bind host (default 127.0.0.1)
#   SECRETS_MANAGER_PORT       API port (default 8000)
#   SECRETS_MANAGER_LOG_LEVEL  DEBUG / INFO / WARNING (default INFO)
#   SECRETS_MANAGER_LOG_JSON   "1"/"true" renders JSON log lines

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

META_FILENAME = "vault.meta"
DB_FILENAME = "vault.db"

_TRUTHY = {"1", "true", "yes", "on"}


def default_data_dir() -> Path:
    """Per-user data directory (~/.secrets-manager/vaults)."""
    return Path.home() / ".secrets-manager" / "vaults"


@dataclass(frozen=True)
class VaultPaths:
    """Locations of the vault metadata and database files."""

    data_dir: Path

    @property
    def meta_path(self) -> Path:
        return self.data_dir / META_FILENAME

    @property
    def db_path(self) -> Path:
        return self.data_dir / DB_FILENAME

    def ensure(self) -> "VaultPaths":
        """Create the data directory if it does not exist yet."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self

    @classmethod
    def from_dir(cls, data_dir: Union[str, Path]) -> "VaultPaths":
        return cls(Path(data_dir).expanduser()).ensure()


@dataclass
class Settings:
    """Validated application settings."""

    data_dir: Path
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def paths(self) -> VaultPaths:
        return VaultPaths.from_dir(self.data_dir)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "Settings":
        """Create Settings from the environment.

        Args:
            env_file: Optional .env file. When None, python-dotenv searches
                      for one starting at the current directory.

        Returns:
            Populated Settings instance.

        Raises:
            ValueError: If SECRETS_MANAGER_PORT is not an integer.
        """
        load_dotenv(env_file)

        home = os.environ.get("SECRETS_MANAGER_HOME")
        data_dir = Path(home).expanduser() if home else default_data_dir()

        return cls(
            data_dir=data_dir,
            host=os.environ.get("SECRETS_MANAGER_HOST", "127.0.0.1"),
            port=int(os.environ.get("SECRETS_MANAGER_PORT", "8000")),
            log_level=os.environ.get("SECRETS_MANAGER_LOG_LEVEL", "INFO").upper(),
            log_json=os.environ.get("SECRETS_MANAGER_LOG_JSON", "").lower() in _TRUTHY,
        )
