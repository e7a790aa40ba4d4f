# =============================================================================
# Store Module
# =============================================================================
# The mailbox storage engine behind the IMAP session layer.
#
# Components:
#   - MailboxStore: Folder tree, UID bookkeeping, flags and properties
#   - Mailbox: Per-session facade returning OperationResult values
#   - resolve_range: IMAP sequence-set resolution (by index or UID)
#   - Query / search: Structured message search
#   - InboxSync: Pulls delivered messages from the blob store into INBOX
# =============================================================================

from mailstash.store.errors import (
    BlobFetchError,
    InboxModificationError,
    InvalidFolderError,
    InvalidMessageRangeError,
    InvalidQueryError,
    MailboxError,
    NamespacePermissionError,
    StructuralConflictError,
    UnknownNamespaceError,
)
from mailstash.store.mailbox import Mailbox, OperationResult
from mailstash.store.ranges import IndexedMessage, resolve_range
from mailstash.store.search import Query, SearchHit, search
from mailstash.store.sync import InboxSync, SyncResult
from mailstash.store.tree import ExpungeResult, MailboxStore

__all__ = [
    "BlobFetchError",
    "ExpungeResult",
    "InboxModificationError",
    "InboxSync",
    "IndexedMessage",
    "InvalidFolderError",
    "InvalidMessageRangeError",
    "InvalidQueryError",
    "Mailbox",
    "MailboxError",
    "MailboxStore",
    "NamespacePermissionError",
    "OperationResult",
    "Query",
    "SearchHit",
    "StructuralConflictError",
    "SyncResult",
    "UnknownNamespaceError",
    "resolve_range",
    "search",
]
