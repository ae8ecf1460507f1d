"""
Shared pytest fixtures for the Secrets Manager test suite.

Every fixture works in a temporary data directory and uses cheap Argon2id
parameters, so no test touches ~/.secrets-manager or spends real KDF time.
"""

import pytest

from secrets_manager.core.config import VaultPaths
from secrets_manager.vault.encryption import KdfParameters

MASTER_PASSWORD = "correct horse"
SESSION_TOKEN = "test-session-token"
AUTH = {"X-Session-Token": SESSION_TOKEN}


@pytest.fixture
def fast_kdf():
    """Minimum Argon2id cost (argon2 requires memory_cost >= 8 * parallelism)."""
    return KdfParameters(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def vault_paths(tmp_path):
    return VaultPaths.from_dir(tmp_path / "vaults")


@pytest.fixture
def vault(vault_paths, fast_kdf):
    """A freshly created, unlocked vault. Locked again on teardown."""
    from secrets_manager.vault import VaultManager

    mgr = VaultManager(vault_paths, kdf_params=fast_kdf)
    mgr.setup(MASTER_PASSWORD)
    yield mgr
    mgr.lock()


@pytest.fixture
def client(vault_paths, fast_kdf):
    """
    FastAPI TestClient with the API pointed at an uninitialized vault.

    The client sends the current session token by default; use
    ``vault_transition`` for setup/unlock/lock so the header follows the
    rotated token.
    """
    from fastapi.testclient import TestClient
    from secrets_manager.api import security, vault_routes
    from secrets_manager.api.main import app
    from secrets_manager.vault import VaultManager

    mgr = VaultManager(vault_paths, kdf_params=fast_kdf)

    old_mgr = vault_routes._vault_manager
    vault_routes._vault_manager = mgr

    old_token = security.session_tokens._token
    security.session_tokens._token = SESSION_TOKEN

    test_client = TestClient(app)
    test_client.headers.update(AUTH)
    yield test_client

    mgr.lock()
    vault_routes._vault_manager = old_mgr
    security.session_tokens._token = old_token


def _transition(client, action, password=None):
    body = None if password is None else {"password": password}
    resp = client.post(f"/api/vault/{action}", json=body)
    if resp.status_code == 200:
        client.headers["X-Session-Token"] = resp.json()["session_token"]
    return resp


@pytest.fixture
def vault_transition(client):
    """POST /api/vault/<action> and switch the client to the returned token."""
    return lambda action, password=None: _transition(client, action, password)


@pytest.fixture
def unlocked_client(client):
    resp = _transition(client, "setup", MASTER_PASSWORD)
    assert resp.status_code == 200
    return client
