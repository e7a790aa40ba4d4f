# =============================================================================
# Mailbox Facade
# =============================================================================
# One Mailbox per protocol session. It exposes every operation the session
# layer needs (one method per IMAP command family) and returns an
# OperationResult instead of raising, so the protocol layer can map failures
# to tagged NO / BAD responses:
#
#   result = mailbox.create_folder("Work")
#   if not result.ok:
#       reply(tag, "NO", result.error.code)
#
# Commands that need raw message content (FETCH, content-based SEARCH) are
# coroutines: payloads still held only in the blob store are fetched
# concurrently, one request per message. A failed fetch doesn't stop the
# others; the result carries everything that worked plus one aggregated
# BlobFetchError.
#
# Attempts to delete or rename INBOX raise InboxModificationError straight
# through, as that is a caller bug rather than a command failure.
# =============================================================================

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from mailstash.core import INBOX, Message
from mailstash.storage.base import BlobStore, StorageError
from mailstash.store.errors import BlobFetchError, MailboxError
from mailstash.store.ranges import IndexedMessage
from mailstash.store.search import Query
from mailstash.store.sync import InboxSync, SyncResult
from mailstash.store.tree import MailboxStore


logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """
    Outcome of a mailbox operation.

    Attributes:
        value: The operation's return value. For partially failed content
               fetches this holds the part that succeeded.
        error: The failure, if any.
    """
    value: Any = None
    error: MailboxError | None = None

    @property
    def ok(self) -> bool:
        """Returns True if the operation completed without error."""
        return self.error is None

    def unwrap(self) -> Any:
        """
        Return the value, or raise the error.

        Raises:
            MailboxError: If the operation failed.
        """
        if self.error is not None:
            raise self.error
        return self.value


class Mailbox:
    """
    Session-facing facade over a MailboxStore.

    Usage:
        >>> mailbox = Mailbox(store, blobs=repository, bucket="alice--example.com.inbound")
        >>> mailbox.create_folder("Work").ok
        True
        >>> result = await mailbox.fetch("INBOX", "1:*")
        >>> [m.uid for m in result.value]
        [1, 2, 3]

    Attributes:
        store: The folder tree.
        blobs: Blob store used to fetch payloads (optional).
        sync: INBOX refresh, present when a blob store and bucket are set.
    """

    def __init__(
        self,
        store: MailboxStore,
        blobs: BlobStore | None = None,
        bucket: str | None = None,
        skip_suffix: str = ".json",
    ) -> None:
        """
        Initialize the facade.

        Args:
            store: The folder tree.
            blobs: Blob store for payloads and INBOX refresh.
            bucket: Bucket with incoming messages. INBOX refresh is
                    disabled without it.
            skip_suffix: Listing entries containing this are not messages.
        """
        self.store = store
        self.blobs = blobs
        self.sync: InboxSync | None = None
        if blobs is not None and bucket:
            self.sync = InboxSync(store, blobs, bucket, skip_suffix=skip_suffix)

    def _run(self, operation: Callable[..., Any], *args: Any) -> OperationResult:
        """Call a store operation, turning MailboxError into a failed result."""
        try:
            return OperationResult(value=operation(*args))
        except MailboxError as e:
            logger.debug(f"{operation.__name__} failed: {e.code}: {e}")
            return OperationResult(error=e)

    # =========================================================================
    # Namespaces and Folders
    # =========================================================================

    def get_namespaces(self) -> OperationResult:
        """NAMESPACE: {"personal": [...], "other": [...], "shared": [...]}."""
        return self._run(self.store.get_namespaces)

    async def get_folder(self, path: str) -> OperationResult:
        """
        SELECT / EXAMINE / STATUS: folder summary.

        Opening INBOX first pulls newly delivered messages from the blob
        store when a bucket is configured.
        """
        if path.upper() == INBOX and self.sync is not None:
            await self.refresh_inbox()
        return self._run(self.store.folder_summary, path)

    async def refresh_inbox(self) -> SyncResult | None:
        """Pull new messages into INBOX. Returns None without a blob store."""
        if self.sync is None:
            return None
        return await self.sync.refresh()

    def list_folders(self, reference: str, pattern: str) -> OperationResult:
        """LIST: folders matching a wildcard pattern."""
        return self._run(self.store.match_folders, reference, pattern)

    def list_subscribed(self, reference: str, pattern: str) -> OperationResult:
        """LSUB: subscribed folders matching a wildcard pattern."""
        result = self.list_folders(reference, pattern)
        if result.ok:
            result.value = [folder for folder in result.value if folder.subscribed]
        return result

    def create_folder(self, path: str) -> OperationResult:
        """CREATE."""
        return self._run(self.store.create_folder, path)

    def delete_folder(self, path: str) -> OperationResult:
        """DELETE. Raises InboxModificationError for INBOX."""
        return self._run(self.store.delete_folder, path)

    def rename_folder(self, source: str, destination: str) -> OperationResult:
        """RENAME. Raises InboxModificationError when `source` is INBOX."""
        return self._run(self.store.rename_folder, source, destination)

    def subscribe(self, path: str) -> OperationResult:
        """SUBSCRIBE."""
        return self._run(self.store.subscribe, path, True)

    def unsubscribe(self, path: str) -> OperationResult:
        """UNSUBSCRIBE."""
        return self._run(self.store.subscribe, path, False)

    def set_special_use(self, path: str, attributes: str | Iterable[str]) -> OperationResult:
        return self._run(self.store.set_special_use, path, attributes)

    # =========================================================================
    # Messages
    # =========================================================================

    def append_message(
        self,
        path: str,
        raw: str | bytes,
        flags: str | Iterable[str] | None = None,
        internaldate: str | datetime | None = None,
    ) -> OperationResult:
        """APPEND. The value is the stored Message (with its UID)."""
        return self._run(self.store.append_message, path, raw, flags, internaldate)

    def add_flags(self, path: str, expression: str, by_uid: bool, flags: Iterable[str]) -> OperationResult:
        """STORE +FLAGS."""
        return self._run(self.store.add_flags, path, expression, by_uid, flags)

    def remove_flags(self, path: str, expression: str, by_uid: bool, flags: Iterable[str]) -> OperationResult:
        """STORE -FLAGS."""
        return self._run(self.store.remove_flags, path, expression, by_uid, flags)

    def replace_flags(self, path: str, expression: str, by_uid: bool, flags: Iterable[str]) -> OperationResult:
        """STORE FLAGS."""
        return self._run(self.store.replace_flags, path, expression, by_uid, flags)

    def add_properties(
        self, path: str, expression: str, by_uid: bool, properties: Mapping[str, Any]
    ) -> OperationResult:
        return self._run(self.store.add_properties, path, expression, by_uid, properties)

    def remove_properties(
        self, path: str, expression: str, by_uid: bool, properties: Mapping[str, Any]
    ) -> OperationResult:
        return self._run(self.store.remove_properties, path, expression, by_uid, properties)

    def replace_properties(
        self, path: str, expression: str, by_uid: bool, properties: Mapping[str, Any]
    ) -> OperationResult:
        return self._run(self.store.replace_properties, path, expression, by_uid, properties)

    def expunge(self, path: str) -> OperationResult:
        """EXPUNGE. The value is an ExpungeResult."""
        return self._run(self.store.expunge, path)

    async def fetch(self, path: str, expression: str, by_uid: bool = False) -> OperationResult:
        """
        FETCH: resolve a range and make sure every payload is loaded.

        Returns:
            OperationResult whose value lists the IndexedMessage entries
            that have content. If some payloads couldn't be fetched, the
            error is a BlobFetchError naming them and the value holds the
            rest.
        """
        resolved = self._run(self.store.resolve, path, expression, by_uid)
        if not resolved.ok:
            return resolved

        matches: list[IndexedMessage] = resolved.value
        failures = await self._populate([match.message for match in matches])
        if not failures:
            return OperationResult(value=matches)

        loaded = [match for match in matches if match.message.key not in failures]
        return OperationResult(value=loaded, error=BlobFetchError(failures))

    async def search(self, path: str, criteria: Mapping[str, Any]) -> OperationResult:
        """
        SEARCH.

        Content predicates (headers, date, body, text, size) need the
        payloads, so missing ones are fetched first. Messages whose fetch
        failed are searched without content, and the result carries a
        BlobFetchError next to the hits.
        """
        parsed = self._run(Query.parse, criteria)
        if not parsed.ok:
            return parsed
        query: Query = parsed.value

        folder_result = self._run(self.store.folder, path)
        if not folder_result.ok:
            return folder_result

        failures: dict[str, BaseException] = {}
        if query.needs_content:
            failures = await self._populate(folder_result.value.messages)

        result = self._run(self.store.search, path, query)
        if result.ok and failures:
            result.error = BlobFetchError(failures)
        return result

    async def _populate(self, messages: list[Message]) -> dict[str, BaseException]:
        """
        Fetch the payload of every message that only has a blob key.

        Returns:
            Blob key -> exception for each fetch that failed.
        """
        pending = [(message.key, message) for message in messages if message.needs_fetch]
        if not pending:
            return {}

        if self.blobs is None:
            error = StorageError("No blob store attached")
            return {key: error for key, _ in pending}

        blobs = self.blobs
        outcomes = await asyncio.gather(
            *(blobs.fetch_bytes(key) for key, _ in pending),
            return_exceptions=True,
        )

        failures: dict[str, BaseException] = {}
        for (key, message), outcome in zip(pending, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"Failed to fetch {key}: {outcome}")
                failures[key] = outcome
            else:
                message.raw = outcome.decode("latin-1")

        if failures:
            logger.error(f"{len(failures)} of {len(pending)} payload fetch(es) failed")
        return failures
