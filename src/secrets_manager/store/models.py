# Store Module - Record Models
#
# Plain dataclasses for the rows of the vault database:
#   Project            grouping, soft-deletable
#   Secret             credential, soft-deletable, optional project
#   AttachmentMetadata file attached to a secret (hard delete only)
#   Attachment         metadata + binary content
#
# Timestamps are UTC ISO-8601 strings generated by the store.

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass
class Project:
    id: int
    name: str
    description: Optional[str]
    created_at: str
    deleted_at: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> "Project":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
            deleted_at=row["deleted_at"],
        )


@dataclass
class Secret:
    """A stored credential. ``password`` is kept as a BLOB in the database."""

    id: int
    title: str
    username: str
    password: str
    created_at: str
    project_id: Optional[int] = None
    deleted_at: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def identity(self) -> Tuple[str, str, str]:
        """(title, username, password): the fields import dedup compares."""
        return (self.title, self.username, self.password)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> "Secret":
        return cls(
            id=row["id"],
            title=row["title"],
            username=row["username"],
            password=decode_password(row["password_blob"]),
            created_at=row["created_at"],
            project_id=row["project_id"],
            deleted_at=row["deleted_at"],
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Secret":
        """
        Build a Secret from a serialized dict (backup payload).

        Raises:
            KeyError / TypeError: If a required field is missing or mistyped
        """
        title, username, password = data["title"], data["username"], data["password"]
        if not all(isinstance(v, str) for v in (title, username, password)):
            raise TypeError("title, username and password must be strings")
        return cls(
            id=data.get("id") or 0,
            title=title,
            username=username,
            password=password,
            created_at=data.get("created_at") or "",
            project_id=data.get("project_id"),
            deleted_at=data.get("deleted_at"),
        )


@dataclass
class AttachmentMetadata:
    id: int
    secret_id: int
    filename: str
    mime_type: str
    file_size: int
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row) -> "AttachmentMetadata":
        return cls(
            id=row["id"],
            secret_id=row["secret_id"],
            filename=row["filename"],
            mime_type=row["mime_type"],
            file_size=row["file_size"],
            created_at=row["created_at"],
        )


@dataclass
class Attachment:
    metadata: AttachmentMetadata
    content: bytes


def encode_password(password: str) -> bytes:
    return password.encode("utf-8")


def decode_password(blob) -> str:
    if blob is None:
        return ""
    return bytes(blob).decode("utf-8", errors="replace")
