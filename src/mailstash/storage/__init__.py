# =============================================================================
# Storage Module
# =============================================================================
# Blob persistence for the mailbox store.
#
# Provides:
#   - The BlobStore interface (fetch by key, paginated listing)
#   - A SQLite-backed implementation via aiosqlite
#   - Mailbox snapshot save/load
#
# The database lives in the XDG data directory (~/.local/share/mailstash/).
# =============================================================================

from mailstash.storage.base import BlobNotFoundError, BlobStore, ObjectInfo, StorageError
from mailstash.storage.database import Database
from mailstash.storage.repository import Repository

__all__ = [
    "BlobNotFoundError",
    "BlobStore",
    "Database",
    "ObjectInfo",
    "Repository",
    "StorageError",
]
