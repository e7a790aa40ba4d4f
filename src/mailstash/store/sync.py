# =============================================================================
# INBOX Sync
# =============================================================================
# Pulls newly delivered messages from the blob store into the INBOX.
#
# Delivery writes one object per message into the user's bucket. The INBOX
# remembers the last key it has seen (its `marker`); a refresh lists the
# bucket from that marker onwards, following pagination until the listing
# is exhausted, and appends one key-backed message per object. Payloads are
# not downloaded here, they are fetched on demand when a command needs them.
#
# Key concepts:
#   - marker: Listing continuation point, stored on the INBOX folder
#   - skip_suffix: Objects whose key contains it (e.g. the "mbox.json"
#     snapshot living in the same bucket) are not messages
#   - internaldate: Taken from the object's upload time
# =============================================================================

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from mailstash.core import INBOX, Message, format_internal_date
from mailstash.storage.base import BlobStore, StorageError
from mailstash.store.tree import MailboxStore


logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """
    Result of an INBOX refresh.

    Attributes:
        success: True if the listing completed without errors.
        new_messages: Messages appended to the INBOX.
        skipped: Listing entries ignored because of the skip suffix.
        pages: Listing pages requested.
        marker: INBOX marker after the refresh.
        errors: List of error messages encountered.
        duration_seconds: Time taken for the refresh.
    """
    success: bool = True
    new_messages: int = 0
    skipped: int = 0
    pages: int = 0
    marker: str = ""
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class InboxSync:
    """
    Appends newly listed blob-store objects to the INBOX.

    Usage:
        >>> sync = InboxSync(store, repository, bucket="alice--example.com.inbound")
        >>> result = await sync.refresh()
        >>> result.new_messages
        3

    Attributes:
        store: Folder tree to update.
        blobs: Blob store to list.
        bucket: Bucket holding the user's incoming messages.
        skip_suffix: Key fragment marking non-message objects.
    """

    def __init__(
        self,
        store: MailboxStore,
        blobs: BlobStore,
        bucket: str,
        skip_suffix: str = ".json",
    ) -> None:
        """
        Initialize the sync.

        Args:
            store: Folder tree to update.
            blobs: Blob store to list.
            bucket: Bucket to list.
            skip_suffix: Objects whose key contains this are ignored.
        """
        self.store = store
        self.blobs = blobs
        self.bucket = bucket
        self.skip_suffix = skip_suffix
        self._lock = asyncio.Lock()

    async def refresh(self) -> SyncResult:
        """
        List the bucket after the INBOX marker and append new messages.

        Concurrent refreshes run one after another, so a listing is never
        appended twice. New messages are added and indexed together once
        the listing ends. Messages from pages listed before a failure are
        kept, and the marker points after the last of them, so the next
        refresh continues where this one stopped.

        Returns:
            SyncResult with counts and any listing error.
        """
        async with self._lock:
            start_time = datetime.now()
            result = SyncResult()
            marker = self.store.folder(INBOX).marker
            received: list[Message] = []

            try:
                listing_marker = marker or None
                while True:
                    entries, next_marker = await self.blobs.list_objects(self.bucket, listing_marker)
                    result.pages += 1

                    for entry in entries:
                        if self.skip_suffix and self.skip_suffix in entry.key:
                            result.skipped += 1
                            continue
                        received.append(Message(
                            key=entry.key,
                            internaldate=format_internal_date(entry.last_modified),
                        ))

                    if entries:
                        marker = entries[-1].key

                    if not next_marker:
                        break
                    listing_marker = next_marker

            except StorageError as e:
                logger.error(f"INBOX refresh from {self.bucket} failed: {e}", exc_info=True)
                result.success = False
                result.errors.append(str(e))

            # Appended and indexed with no await in between
            inbox = self.store.folder(INBOX)
            inbox.marker = marker
            if received:
                inbox.messages.extend(received)
                self.store.reindex()
                logger.info(f"INBOX refresh: {len(received)} new message(s) from {self.bucket}")

            result.new_messages = len(received)
            result.marker = inbox.marker
            result.duration_seconds = (datetime.now() - start_time).total_seconds()
            return result
