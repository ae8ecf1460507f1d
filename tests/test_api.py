"""
Tests for the REST API.

Covers: session token enforcement and rotation, vault lifecycle endpoints and
their error status codes, secrets/projects/attachments CRUD, trash,
export/import, the vault manager singleton.
"""

import threading
import time

import pytest

from secrets_manager.api import attachment_routes, security, vault_routes
from secrets_manager.api.security import SessionTokens
from secrets_manager.vault import VaultManager

MASTER_PASSWORD = "correct horse"
TEST_TOKEN = "test-session-token"

PEM_UPLOAD = {"file": ("id_ed25519", b"-----BEGIN KEY-----", "application/x-pem-file")}


class TestSessionTokens:

    def test_not_issued(self):
        tokens = SessionTokens()
        assert not tokens.issued
        assert not tokens.matches("anything")
        with pytest.raises(RuntimeError):
            tokens.current()

    def test_rotate_replaces_token(self):
        tokens = SessionTokens()
        first = tokens.rotate()
        second = tokens.rotate()
        assert first != second
        assert tokens.current() == second
        assert tokens.matches(second)
        assert not tokens.matches(first)

    def test_non_ascii_candidate_rejected(self):
        tokens = SessionTokens()
        tokens.rotate()
        assert tokens.matches("jeton-é") is False


class TestSessionToken:

    def test_status_is_unprotected(self, client):
        del client.headers["X-Session-Token"]
        resp = client.get("/api/vault/status")
        assert resp.status_code == 200
        assert resp.json() == {"vault_exists": False, "is_unlocked": False}

    def test_missing_token(self, client):
        del client.headers["X-Session-Token"]
        resp = client.post("/api/vault/setup", json={"password": MASTER_PASSWORD})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Missing X-Session-Token header"

    def test_invalid_token(self, client):
        resp = client.get("/api/secrets", headers={"X-Session-Token": "nope"})
        assert resp.status_code == 401

    def test_token_not_issued(self, client):
        security.session_tokens._token = None
        resp = client.get("/api/secrets")
        assert resp.status_code == 503

    def test_session_endpoint_returns_token(self, client):
        resp = client.get("/api/session")
        assert resp.json() == {"session_token": TEST_TOKEN}

    def test_session_endpoint_follows_rotation(self, client, vault_transition):
        token = vault_transition("setup", MASTER_PASSWORD).json()["session_token"]
        assert client.get("/api/session").json() == {"session_token": token}

    def test_transitions_return_new_tokens(self, client, vault_transition):
        seen = {TEST_TOKEN}
        for action, password in (("setup", MASTER_PASSWORD), ("lock", None), ("unlock", MASTER_PASSWORD)):
            resp = vault_transition(action, password)
            assert resp.status_code == 200
            token = resp.json()["session_token"]
            assert token not in seen
            seen.add(token)

    def test_token_from_unlocked_session_rejected_after_lock(self, unlocked_client, vault_transition):
        stale = unlocked_client.headers["X-Session-Token"]
        assert unlocked_client.get("/api/secrets").status_code == 200

        vault_transition("lock")
        resp = unlocked_client.get("/api/secrets", headers={"X-Session-Token": stale})
        assert resp.status_code == 401
        resp = unlocked_client.post(
            "/api/vault/unlock", json={"password": MASTER_PASSWORD}, headers={"X-Session-Token": stale}
        )
        assert resp.status_code == 401

    def test_failed_unlock_keeps_token(self, unlocked_client, vault_transition):
        vault_transition("lock")
        token = unlocked_client.headers["X-Session-Token"]
        assert vault_transition("unlock", "wrong one").status_code == 401
        assert security.session_tokens.matches(token)


class TestVaultRoutes:

    def test_setup_lock_unlock(self, client, vault_transition):
        resp = vault_transition("setup", MASTER_PASSWORD)
        assert resp.status_code == 200
        body = resp.json()
        assert (body["success"], body["message"]) == (True, "Vault created successfully!")
        assert client.get("/api/vault/status").json() == {"vault_exists": True, "is_unlocked": True}

        resp = vault_transition("lock")
        assert resp.json()["message"] == "Vault locked."
        assert client.get("/api/vault/status").json()["is_unlocked"] is False

        resp = vault_transition("unlock", MASTER_PASSWORD)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Vault unlocked!"

    def test_setup_twice_conflict(self, unlocked_client, vault_transition):
        resp = vault_transition("setup", "other pass")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "A vault already exists on this computer."

    def test_setup_twice_with_short_password_conflict(self, unlocked_client, vault_transition):
        assert vault_transition("setup", "123").status_code == 409

    def test_short_password(self, client, vault_transition):
        resp = vault_transition("setup", "123")
        assert resp.status_code == 400

    def test_unlock_without_vault(self, client, vault_transition):
        resp = vault_transition("unlock", MASTER_PASSWORD)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "No vault found. Create one first."

    def test_wrong_password(self, unlocked_client, vault_transition):
        vault_transition("lock")
        resp = vault_transition("unlock", "wrong one")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Wrong password"

    def test_locked_vault_returns_423(self, unlocked_client, vault_transition):
        vault_transition("lock")
        resp = unlocked_client.get("/api/secrets")
        assert resp.status_code == 423
        assert resp.json()["detail"] == "Vault is locked. Unlock the vault first."


class TestVaultManagerSingleton:

    def test_concurrent_first_use_creates_one_manager(self, monkeypatch, tmp_path):
        created = []

        class SlowVaultManager(VaultManager):
            def __init__(self, *args, **kwargs):
                created.append(self)
                time.sleep(0.05)
                super().__init__(*args, **kwargs)

        monkeypatch.setenv("SECRETS_MANAGER_HOME", str(tmp_path / "vaults"))
        monkeypatch.setattr(vault_routes, "VaultManager", SlowVaultManager)
        monkeypatch.setattr(vault_routes, "_vault_manager", None)

        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(vault_routes.get_vault_manager())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert len(results) == 8
        assert all(r is created[0] for r in results)

    def test_configure_replaces_and_locks_previous(self, monkeypatch, vault, tmp_path):
        monkeypatch.setattr(vault_routes, "_vault_manager", vault)
        replacement = vault_routes.configure_vault_manager(vault.paths)
        assert vault_routes.get_vault_manager() is replacement
        assert not vault.is_unlocked


class TestSecretRoutes:

    def _create(self, client, **overrides):
        body = {"title": "mail", "username": "alice", "password": "hunter2"}
        body.update(overrides)
        resp = client.post("/api/secrets", json=body)
        assert resp.status_code == 201
        return resp.json()

    def test_create_list_get(self, unlocked_client):
        created = self._create(unlocked_client)
        assert created["title"] == "mail"
        assert created["password"] == "hunter2"

        listed = unlocked_client.get("/api/secrets").json()
        assert [s["id"] for s in listed] == [created["id"]]

        fetched = unlocked_client.get(f"/api/secrets/{created['id']}").json()
        assert fetched == created

    def test_update(self, unlocked_client):
        created = self._create(unlocked_client)
        resp = unlocked_client.put(
            f"/api/secrets/{created['id']}",
            json={"title": "mail", "username": "alice", "password": "new"},
        )
        assert resp.status_code == 200
        assert resp.json()["password"] == "new"

    def test_trash_restore_delete(self, unlocked_client):
        sid = self._create(unlocked_client)["id"]

        assert unlocked_client.post(f"/api/secrets/{sid}/trash").status_code == 200
        assert unlocked_client.get("/api/secrets").json() == []
        trashed = unlocked_client.get("/api/secrets/trash").json()
        assert [s["id"] for s in trashed] == [sid]

        assert unlocked_client.post(f"/api/secrets/{sid}/restore").status_code == 200
        assert len(unlocked_client.get("/api/secrets").json()) == 1

        assert unlocked_client.delete(f"/api/secrets/{sid}").status_code == 200
        assert unlocked_client.get(f"/api/secrets/{sid}").status_code == 404

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/secrets/99"),
            ("post", "/api/secrets/99/trash"),
            ("post", "/api/secrets/99/restore"),
            ("delete", "/api/secrets/99"),
        ],
    )
    def test_missing_secret_404(self, unlocked_client, method, path):
        resp = getattr(unlocked_client, method)(path)
        assert resp.status_code == 404

    def test_unknown_project_404(self, unlocked_client):
        resp = unlocked_client.post(
            "/api/secrets",
            json={"title": "x", "password": "y", "project_id": 42},
        )
        assert resp.status_code == 404

    def test_empty_trash(self, unlocked_client):
        sid = self._create(unlocked_client)["id"]
        unlocked_client.post(f"/api/secrets/{sid}/trash")
        resp = unlocked_client.post("/api/trash/empty")
        assert resp.status_code == 200
        assert resp.json()["deleted"] == {"secrets": 1, "projects": 0}
        assert unlocked_client.get("/api/secrets/trash").json() == []


class TestProjectRoutes:

    def test_project_lifecycle(self, unlocked_client):
        resp = unlocked_client.post("/api/projects", json={"name": "Work"})
        assert resp.status_code == 201
        pid = resp.json()["id"]

        secret = unlocked_client.post(
            "/api/secrets",
            json={"title": "vpn", "password": "x", "project_id": pid},
        ).json()
        assert secret["project_id"] == pid

        resp = unlocked_client.put(f"/api/projects/{pid}", json={"name": "Job", "description": "d"})
        assert resp.json()["name"] == "Job"

        assert unlocked_client.post(f"/api/projects/{pid}/trash").status_code == 200
        assert unlocked_client.get("/api/projects").json() == []
        assert [p["id"] for p in unlocked_client.get("/api/projects/trash").json()] == [pid]

        detached = unlocked_client.get(f"/api/secrets/{secret['id']}").json()
        assert detached["project_id"] is None
        assert detached["deleted_at"] is None

        assert unlocked_client.post(f"/api/projects/{pid}/restore").status_code == 200
        assert unlocked_client.delete(f"/api/projects/{pid}").status_code == 200
        assert unlocked_client.get(f"/api/projects/{pid}").status_code == 404

    def test_update_missing(self, unlocked_client):
        resp = unlocked_client.put("/api/projects/5", json={"name": "x"})
        assert resp.status_code == 404


class TestAttachmentRoutes:

    def _secret_id(self, client):
        return client.post("/api/secrets", json={"title": "ssh", "password": "x"}).json()["id"]

    def test_upload_list_download_delete(self, unlocked_client):
        sid = self._secret_id(unlocked_client)

        resp = unlocked_client.post(f"/api/secrets/{sid}/attachments", files=PEM_UPLOAD)
        assert resp.status_code == 201
        meta = resp.json()
        assert meta["filename"] == "id_ed25519"
        assert meta["file_size"] == len(b"-----BEGIN KEY-----")
        assert meta["mime_type"] == "application/x-pem-file"

        listed = unlocked_client.get(f"/api/secrets/{sid}/attachments").json()
        assert [m["id"] for m in listed] == [meta["id"]]
        assert "content" not in listed[0]

        resp = unlocked_client.get(f"/api/attachments/{meta['id']}")
        assert resp.status_code == 200
        assert resp.content == b"-----BEGIN KEY-----"
        assert 'filename="id_ed25519"' in resp.headers["content-disposition"]

        assert unlocked_client.delete(f"/api/attachments/{meta['id']}").status_code == 200
        assert unlocked_client.get(f"/api/attachments/{meta['id']}").status_code == 404

    def test_upload_to_missing_secret(self, unlocked_client):
        resp = unlocked_client.post(
            "/api/secrets/77/attachments",
            files={"file": ("f.txt", b"x", "text/plain")},
        )
        assert resp.status_code == 404

    def test_upload_over_limit_rejected(self, unlocked_client, monkeypatch):
        monkeypatch.setattr(attachment_routes, "MAX_ATTACHMENT_SIZE", 4)
        sid = self._secret_id(unlocked_client)

        resp = unlocked_client.post(
            f"/api/secrets/{sid}/attachments",
            files={"file": ("big.bin", b"12345", "application/octet-stream")},
        )
        assert resp.status_code == 413
        assert unlocked_client.get(f"/api/secrets/{sid}/attachments").json() == []

    def test_upload_at_limit_accepted(self, unlocked_client, monkeypatch):
        monkeypatch.setattr(attachment_routes, "MAX_ATTACHMENT_SIZE", 4)
        sid = self._secret_id(unlocked_client)

        resp = unlocked_client.post(
            f"/api/secrets/{sid}/attachments",
            files={"file": ("four.bin", b"1234", "application/octet-stream")},
        )
        assert resp.status_code == 201
        assert resp.json()["file_size"] == 4

    def test_upload_without_file_part(self, unlocked_client):
        sid = self._secret_id(unlocked_client)
        resp = unlocked_client.post(f"/api/secrets/{sid}/attachments", data={"note": "x"})
        assert resp.status_code == 422


class TestBackupRoutes:

    def test_export_then_import(self, unlocked_client, tmp_path):
        unlocked_client.post("/api/secrets", json={"title": "a", "username": "b", "password": "c"})
        path = str(tmp_path / "backup.bin")

        resp = unlocked_client.post("/api/vault/export", json={"path": path, "password": "exp"})
        assert resp.status_code == 200
        assert resp.json()["count"] == 1

        resp = unlocked_client.post("/api/vault/import", json={"path": path, "password": "exp"})
        assert resp.status_code == 200
        assert (resp.json()["inserted"], resp.json()["skipped"]) == (0, 1)

    def test_import_wrong_password(self, unlocked_client, tmp_path):
        path = str(tmp_path / "backup.bin")
        unlocked_client.post("/api/vault/export", json={"path": path, "password": "exp"})
        resp = unlocked_client.post("/api/vault/import", json={"path": path, "password": "bad"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Wrong password or corrupted file"

    def test_import_missing_file(self, unlocked_client, tmp_path):
        resp = unlocked_client.post(
            "/api/vault/import",
            json={"path": str(tmp_path / "nope.bin"), "password": "exp"},
        )
        assert resp.status_code == 500
