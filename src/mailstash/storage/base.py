# =============================================================================
# Blob Store Interface
# =============================================================================
# The mailbox store only needs two things from the persistence layer:
#
#   fetch_bytes(key)               -> raw message bytes
#   list_objects(bucket, marker)   -> (one page of ObjectInfo, next marker)
#
# Any object with these coroutines can be attached to a Mailbox. The
# aiosqlite-backed Repository in this package is the bundled implementation;
# remote object stores plug in the same way.
# =============================================================================

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ObjectInfo:
    """
    One entry of a bucket listing.

    Attributes:
        key: Object key inside the bucket.
        last_modified: Upload time. Becomes the internal date of a
                       message created from this object.
    """
    key: str
    last_modified: datetime


@runtime_checkable
class BlobStore(Protocol):
    """Read side of the blob persistence layer used by the mailbox store."""

    async def fetch_bytes(self, key: str) -> bytes:
        """
        Fetch the content stored under `key`.

        Raises:
            BlobNotFoundError: If there is no object with that key.
        """
        ...

    async def list_objects(
        self, bucket: str, marker: str | None = None
    ) -> tuple[list[ObjectInfo], str | None]:
        """
        List one page of a bucket, in key order, starting after `marker`.

        Returns:
            (entries, next_marker). `next_marker` is None on the last page.
        """
        ...


# =============================================================================
# Exceptions
# =============================================================================

class StorageError(Exception):
    """Base exception for blob storage errors."""
    pass


class BlobNotFoundError(StorageError):
    """Raised when a blob key doesn't exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object not found: {key}")
