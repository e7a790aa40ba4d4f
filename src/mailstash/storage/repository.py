# =============================================================================
# Repository - Blob Access Layer
# =============================================================================
# Implements the BlobStore interface on top of the SQLite database:
#   - Storing and fetching raw message blobs
#   - Paginated, key-ordered bucket listings with a continuation marker
#   - Saving and loading mailbox snapshots
#
# All methods are async for non-blocking database access.
# =============================================================================

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from mailstash.storage.base import BlobNotFoundError, ObjectInfo

if TYPE_CHECKING:
    from mailstash.storage.database import Database


logger = logging.getLogger(__name__)


class Repository:
    """
    Blob store backed by the local SQLite database.

    Usage:
        >>> repo = Repository(database, bucket="alice--example.com.inbound")
        >>> await repo.put_object("msg-0001", raw_bytes)
        >>> entries, marker = await repo.list_objects(repo.bucket)
        >>> raw = await repo.fetch_bytes("msg-0001")

    Attributes:
        db: Database instance for executing queries.
        bucket: Bucket that fetch_bytes() and put_object() use by default.
        page_size: Maximum number of entries per list_objects() page.
    """

    def __init__(self, db: "Database", bucket: str = "", page_size: int = 1000) -> None:
        """
        Initialize the repository.

        Args:
            db: Connected Database instance.
            bucket: Default bucket for object reads and writes.
            page_size: Listing page size.
        """
        self.db = db
        self.bucket = bucket
        self.page_size = page_size

    # =========================================================================
    # Object Operations
    # =========================================================================

    async def put_object(
        self,
        key: str,
        body: bytes | str,
        bucket: str | None = None,
        last_modified: datetime | None = None,
    ) -> ObjectInfo:
        """
        Store a blob (insert or replace).

        Args:
            key: Object key.
            body: Content. Strings are stored as latin-1 bytes.
            bucket: Target bucket. Defaults to the repository bucket.
            last_modified: Upload time. Defaults to now (UTC).

        Returns:
            ObjectInfo of the stored object.
        """
        if isinstance(body, str):
            body = body.encode("latin-1")
        last_modified = last_modified or datetime.now(timezone.utc)

        await self.db.conn.execute(
            """INSERT OR REPLACE INTO objects (bucket, key, body, last_modified)
               VALUES (?, ?, ?, ?)""",
            (bucket or self.bucket, key, body, last_modified.isoformat())
        )
        await self.db.conn.commit()
        return ObjectInfo(key=key, last_modified=last_modified)

    async def fetch_bytes(self, key: str) -> bytes:
        """
        Fetch a blob from the repository bucket.

        Raises:
            BlobNotFoundError: If the key doesn't exist.
        """
        async with self.db.conn.execute(
            "SELECT body FROM objects WHERE bucket = ? AND key = ?",
            (self.bucket, key)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise BlobNotFoundError(key)
        return bytes(row[0])

    async def delete_object(self, key: str, bucket: str | None = None) -> None:
        """Delete a blob. Missing keys are ignored."""
        await self.db.conn.execute(
            "DELETE FROM objects WHERE bucket = ? AND key = ?",
            (bucket or self.bucket, key)
        )
        await self.db.conn.commit()

    async def list_objects(
        self, bucket: str, marker: str | None = None
    ) -> tuple[list[ObjectInfo], str | None]:
        """
        List one page of a bucket in key order.

        Args:
            bucket: Bucket to list.
            marker: Only keys sorting after this one are returned.

        Returns:
            (entries, next_marker). next_marker is the last key of the page
            when more entries follow, None otherwise.
        """
        async with self.db.conn.execute(
            """SELECT key, last_modified FROM objects
               WHERE bucket = ? AND key > ?
               ORDER BY key LIMIT ?""",
            (bucket, marker or "", self.page_size + 1)
        ) as cursor:
            rows = await cursor.fetchall()

        entries = [self._row_to_object(row) for row in rows[: self.page_size]]
        next_marker = entries[-1].key if len(rows) > self.page_size else None
        logger.debug(f"Listed {len(entries)} object(s) in {bucket} after {marker!r}")
        return entries, next_marker

    def _row_to_object(self, row: Any) -> ObjectInfo:
        """Convert a database row to an ObjectInfo."""
        return ObjectInfo(key=row[0], last_modified=datetime.fromisoformat(row[1]))

    # =========================================================================
    # Snapshot Operations
    # =========================================================================

    async def save_snapshot(self, name: str, data: dict[str, Any]) -> None:
        """
        Save a mailbox dataset under `name`, replacing any previous one.

        Args:
            name: Snapshot name (e.g., "mbox.json").
            data: JSON-serializable dataset, as returned by MailboxStore.dump().
        """
        await self.db.conn.execute(
            """INSERT OR REPLACE INTO snapshots (name, data, saved_at)
               VALUES (?, ?, ?)""",
            (name, json.dumps(data), datetime.now(timezone.utc).isoformat())
        )
        await self.db.conn.commit()
        logger.info(f"Saved snapshot {name}")

    async def load_snapshot(self, name: str) -> dict[str, Any] | None:
        """
        Load a mailbox dataset.

        Returns:
            The dataset, or None if no snapshot has that name.
        """
        async with self.db.conn.execute(
            "SELECT data FROM snapshots WHERE name = ?", (name,)
        ) as cursor:
            row = await cursor.fetchone()
        return json.loads(row[0]) if row else None
