# Store Module - Vault Records
#
# Secrets, projects and attachments kept in the unlocked vault database.

from .models import Attachment, AttachmentMetadata, Project, Secret
from .repositories import (
    AttachmentRepository,
    ProjectRepository,
    RepositoryFactory,
    SecretRepository,
    TrashRepository,
)

__all__ = [
    "Attachment",
    "AttachmentMetadata",
    "Project",
    "Secret",
    "AttachmentRepository",
    "ProjectRepository",
    "RepositoryFactory",
    "SecretRepository",
    "TrashRepository",
]
