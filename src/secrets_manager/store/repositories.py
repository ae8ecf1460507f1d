"""
Data access objects (repositories) for vault records.

Provides CRUD operations for:
- Secrets (with soft delete / restore)
- Projects (soft delete and hard delete detach their secrets atomically)
- Attachments (hard delete only)
- Trash (purge of every soft-deleted record)

Every repository takes the VaultManager and runs each operation inside
``vault.session()``, so all statements are serialized by the vault lock and
fail with VaultClosed while the vault is locked. Engine errors are re-raised
as StorageError.
"""

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import sqlcipher3
import structlog

from ..core.db import transaction
from ..core.exceptions import NotFound, StorageError
from .models import (
    Attachment,
    AttachmentMetadata,
    Project,
    Secret,
    decode_password,
    encode_password,
)

logger = structlog.get_logger(__name__)

# Same format as the column defaults in the migrations
NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_SECRET_COLUMNS = "id, project_id, title, username, password_blob, created_at, deleted_at"
_PROJECT_COLUMNS = "id, name, description, created_at, deleted_at"
_ATTACHMENT_COLUMNS = "id, secret_id, filename, mime_type, file_size, created_at"

_UNSET = object()


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Translate sqlcipher3 errors raised in the block into StorageError."""
    try:
        yield
    except sqlcipher3.Error as e:
        logger.error("storage_error", action=action, error=str(e))
        raise StorageError(f"Failed to {action}: {e}") from e


# ── Statement helpers (caller holds the session) ─────────────────────


def insert_secret(
    conn,
    title: str,
    username: str,
    password: str,
    project_id: Optional[int] = None,
) -> int:
    """Insert one secret row and return its id."""
    cursor = conn.execute(
        "INSERT INTO secrets (project_id, title, username, password_blob) VALUES (?, ?, ?, ?)",
        (project_id, title, username, encode_password(password)),
    )
    return cursor.lastrowid


def select_secret_identities(conn) -> List[Tuple[str, str, str]]:
    """(title, username, password) of every stored secret, trashed ones included."""
    rows = conn.execute("SELECT title, username, password_blob FROM secrets").fetchall()
    return [(r["title"], r["username"], decode_password(r["password_blob"])) for r in rows]


def insert_secrets(conn, secrets: Iterable[Secret]) -> int:
    """Insert title/username/password of each secret in one transaction."""
    count = 0
    with transaction(conn):
        for secret in secrets:
            insert_secret(conn, secret.title, secret.username, secret.password)
            count += 1
    return count


def _fetch_secret(conn, secret_id: int) -> Optional[Secret]:
    row = conn.execute(
        f"SELECT {_SECRET_COLUMNS} FROM secrets WHERE id = ?", (secret_id,)
    ).fetchone()
    return Secret.from_row(row) if row else None


def _require_active_project(conn, project_id: Optional[int]) -> None:
    if project_id is None:
        return
    row = conn.execute(
        "SELECT 1 FROM projects WHERE id = ? AND deleted_at IS NULL", (project_id,)
    ).fetchone()
    if row is None:
        raise NotFound("Project not found")


class SecretRepository:
    """Secret data access object."""

    def __init__(self, vault):
        """Initialize with the vault session owner."""
        self.vault = vault

    def create(
        self,
        title: str,
        username: str,
        password: str,
        project_id: Optional[int] = None,
    ) -> Secret:
        """
        Create new secret.

        Args:
            title: Entry title (e.g. "mail")
            username: Login name (may be empty)
            password: Secret value (stored as a BLOB)
            project_id: Optional active project to file the secret under

        Returns:
            The stored Secret with its generated id and created_at

        Raises:
            NotFound: If project_id does not reference an active project
        """
        with self.vault.session() as conn, storage_errors("save secret"):
            _require_active_project(conn, project_id)
            secret_id = insert_secret(conn, title, username, password, project_id)
            secret = _fetch_secret(conn, secret_id)

        logger.info("secret_created", secret_id=secret_id)
        return secret

    def get(self, secret_id: int) -> Secret:
        """Get secret by ID (active or trashed)."""
        with self.vault.session() as conn, storage_errors("load secret"):
            secret = _fetch_secret(conn, secret_id)
        if secret is None:
            raise NotFound("Secret not found")
        return secret

    def list_active(self) -> List[Secret]:
        """All secrets not in the trash."""
        with self.vault.session() as conn, storage_errors("load secrets"):
            rows = conn.execute(
                f"SELECT {_SECRET_COLUMNS} FROM secrets WHERE deleted_at IS NULL ORDER BY id"
            ).fetchall()
        return [Secret.from_row(r) for r in rows]

    def list_deleted(self) -> List[Secret]:
        """Secrets in the trash, most recently trashed first."""
        with self.vault.session() as conn, storage_errors("load deleted secrets"):
            rows = conn.execute(
                f"SELECT {_SECRET_COLUMNS} FROM secrets WHERE deleted_at IS NOT NULL "
                "ORDER BY deleted_at DESC, id DESC"
            ).fetchall()
        return [Secret.from_row(r) for r in rows]

    def update(
        self,
        secret_id: int,
        title: str,
        username: str,
        password: str,
        project_id=_UNSET,
    ) -> Secret:
        """
        Update a secret's fields.

        ``project_id`` is only touched when passed; pass None to detach the
        secret from its project.

        Raises:
            NotFound: If the secret (or the given project) does not exist
        """
        with self.vault.session() as conn, storage_errors("update secret"):
            if project_id is _UNSET:
                cursor = conn.execute(
                    "UPDATE secrets SET title = ?, username = ?, password_blob = ? WHERE id = ?",
                    (title, username, encode_password(password), secret_id),
                )
            else:
                _require_active_project(conn, project_id)
                cursor = conn.execute(
                    "UPDATE secrets SET title = ?, username = ?, password_blob = ?, "
                    "project_id = ? WHERE id = ?",
                    (title, username, encode_password(password), project_id, secret_id),
                )
            if cursor.rowcount == 0:
                raise NotFound("Secret not found")
            secret = _fetch_secret(conn, secret_id)

        logger.info("secret_updated", secret_id=secret_id)
        return secret

    def soft_delete(self, secret_id: int) -> bool:
        """Move a secret to the trash. Returns True if the secret exists."""
        with self.vault.session() as conn, storage_errors("move secret to trash"):
            # An existing deletion time is kept until an explicit restore
            cursor = conn.execute(
                f"UPDATE secrets SET deleted_at = COALESCE(deleted_at, {NOW_SQL}) WHERE id = ?",
                (secret_id,),
            )
        found = cursor.rowcount > 0
        if found:
            logger.info("secret_trashed", secret_id=secret_id)
        return found

    def restore(self, secret_id: int) -> bool:
        """Clear deleted_at (no-op for an active secret). Returns True if it exists."""
        with self.vault.session() as conn, storage_errors("restore secret"):
            cursor = conn.execute(
                "UPDATE secrets SET deleted_at = NULL WHERE id = ?", (secret_id,)
            )
        return cursor.rowcount > 0

    def delete(self, secret_id: int) -> bool:
        """Permanently delete a secret and its attachments."""
        with self.vault.session() as conn, storage_errors("delete secret"):
            cursor = conn.execute("DELETE FROM secrets WHERE id = ?", (secret_id,))
        found = cursor.rowcount > 0
        if found:
            logger.info("secret_deleted", secret_id=secret_id)
        return found

    def list_triples(self) -> List[Tuple[str, str, str]]:
        """(title, username, password) of every secret, trashed ones included."""
        with self.vault.session() as conn, storage_errors("load secrets"):
            return select_secret_identities(conn)

    def insert_many(self, secrets: Iterable[Secret]) -> int:
        """Insert secrets (title/username/password only) atomically."""
        with self.vault.session() as conn, storage_errors("save secrets"):
            return insert_secrets(conn, secrets)


class ProjectRepository:
    """Project data access object."""

    def __init__(self, vault):
        self.vault = vault

    def create(self, name: str, description: Optional[str] = None) -> int:
        """Create new project. Returns its id."""
        with self.vault.session() as conn, storage_errors("save project"):
            cursor = conn.execute(
                "INSERT INTO projects (name, description) VALUES (?, ?)",
                (name, description),
            )
        logger.info("project_created", project_id=cursor.lastrowid)
        return cursor.lastrowid

    def get(self, project_id: int) -> Project:
        """Get project by ID (active or trashed)."""
        with self.vault.session() as conn, storage_errors("load project"):
            row = conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        if row is None:
            raise NotFound("Project not found")
        return Project.from_row(row)

    def list_active(self) -> List[Project]:
        with self.vault.session() as conn, storage_errors("load projects"):
            rows = conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE deleted_at IS NULL ORDER BY name ASC"
            ).fetchall()
        return [Project.from_row(r) for r in rows]

    def list_deleted(self) -> List[Project]:
        with self.vault.session() as conn, storage_errors("load deleted projects"):
            rows = conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE deleted_at IS NOT NULL ORDER BY name ASC"
            ).fetchall()
        return [Project.from_row(r) for r in rows]

    def update(self, project_id: int, name: str, description: Optional[str] = None) -> bool:
        """Update name/description. Returns True if the project exists."""
        with self.vault.session() as conn, storage_errors("update project"):
            cursor = conn.execute(
                "UPDATE projects SET name = ?, description = ? WHERE id = ?",
                (name, description, project_id),
            )
        return cursor.rowcount > 0

    def soft_delete(self, project_id: int) -> bool:
        """
        Move a project to the trash.

        Its secrets are detached (project_id set to NULL) in the same
        transaction; they stay active. Returns True if the project exists.
        """
        with self.vault.session() as conn, storage_errors("move project to trash"):
            with transaction(conn):
                detached = conn.execute(
                    "UPDATE secrets SET project_id = NULL WHERE project_id = ?", (project_id,)
                ).rowcount
                cursor = conn.execute(
                    f"UPDATE projects SET deleted_at = COALESCE(deleted_at, {NOW_SQL}) WHERE id = ?",
                    (project_id,),
                )
        found = cursor.rowcount > 0
        if found:
            logger.info("project_trashed", project_id=project_id, detached_secrets=detached)
        return found

    def delete(self, project_id: int) -> bool:
        """
        Permanently delete a project after detaching its secrets.

        Both steps commit together or not at all. Returns True if the
        project existed.
        """
        with self.vault.session() as conn, storage_errors("delete project"):
            with transaction(conn):
                detached = conn.execute(
                    "UPDATE secrets SET project_id = NULL WHERE project_id = ?", (project_id,)
                ).rowcount
                cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        found = cursor.rowcount > 0
        if found:
            logger.info("project_deleted", project_id=project_id, detached_secrets=detached)
        return found

    def restore(self, project_id: int) -> bool:
        """Clear deleted_at. Detached secrets are not re-attached."""
        with self.vault.session() as conn, storage_errors("restore project"):
            cursor = conn.execute(
                "UPDATE projects SET deleted_at = NULL WHERE id = ?", (project_id,)
            )
        return cursor.rowcount > 0


class AttachmentRepository:
    """Attachment data access object."""

    def __init__(self, vault):
        self.vault = vault

    def add(self, secret_id: int, filename: str, mime_type: str, content: bytes) -> AttachmentMetadata:
        """
        Store a file for a secret.

        Returns:
            Metadata of the new attachment (file_size = len(content))

        Raises:
            NotFound: If the secret does not exist
        """
        with self.vault.session() as conn, storage_errors("save attachment"):
            if conn.execute("SELECT 1 FROM secrets WHERE id = ?", (secret_id,)).fetchone() is None:
                raise NotFound("Secret not found")
            cursor = conn.execute(
                "INSERT INTO attachments (secret_id, filename, mime_type, file_size, content) "
                "VALUES (?, ?, ?, ?, ?)",
                (secret_id, filename, mime_type, len(content), bytes(content)),
            )
            row = conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()

        logger.info("attachment_added", attachment_id=row["id"], secret_id=secret_id, size=len(content))
        return AttachmentMetadata.from_row(row)

    def list_metadata(self, secret_id: int) -> List[AttachmentMetadata]:
        """Metadata of a secret's attachments, newest first (no content)."""
        with self.vault.session() as conn, storage_errors("load attachments"):
            rows = conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE secret_id = ? "
                "ORDER BY created_at DESC, id DESC",
                (secret_id,),
            ).fetchall()
        return [AttachmentMetadata.from_row(r) for r in rows]

    def get(self, attachment_id: int) -> Attachment:
        """Metadata and content of one attachment."""
        with self.vault.session() as conn, storage_errors("load attachment"):
            row = conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS}, content FROM attachments WHERE id = ?",
                (attachment_id,),
            ).fetchone()
        if row is None:
            raise NotFound("Attachment not found")
        return Attachment(metadata=AttachmentMetadata.from_row(row), content=bytes(row["content"]))

    def get_content(self, attachment_id: int) -> bytes:
        return self.get(attachment_id).content

    def delete(self, attachment_id: int) -> bool:
        with self.vault.session() as conn, storage_errors("delete attachment"):
            cursor = conn.execute("DELETE FROM attachments WHERE id = ?", (attachment_id,))
        return cursor.rowcount > 0


class TrashRepository:
    """Purge of soft-deleted records."""

    def __init__(self, vault):
        self.vault = vault

    def empty(self) -> Dict[str, int]:
        """
        Permanently delete every trashed secret and every trashed project.

        The two deletes are independent (trashed projects have no secrets
        left) but run in one transaction.

        Returns:
            {"secrets": n, "projects": m} rows removed
        """
        with self.vault.session() as conn, storage_errors("empty trash"):
            with transaction(conn):
                secrets = conn.execute("DELETE FROM secrets WHERE deleted_at IS NOT NULL").rowcount
                projects = conn.execute("DELETE FROM projects WHERE deleted_at IS NOT NULL").rowcount
        logger.info("trash_emptied", secrets=secrets, projects=projects)
        return {"secrets": secrets, "projects": projects}


class RepositoryFactory:
    """Bundle of repositories sharing one vault."""

    def __init__(self, vault):
        self.secrets = SecretRepository(vault)
        self.projects = ProjectRepository(vault)
        self.attachments = AttachmentRepository(vault)
        self.trash = TrashRepository(vault)
