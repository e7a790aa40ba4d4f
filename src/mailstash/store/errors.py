# =============================================================================
# Store Exceptions
# =============================================================================
# Error taxonomy of the mailbox store. The folder tree raises these; the
# session facade (Mailbox) turns them into OperationResult values so the
# protocol layer gets a result it can map to a tagged NO/BAD response.
#
# InboxModificationError is the exception to that rule: trying to delete
# or rename INBOX is a bug in the caller, so it always propagates.
# =============================================================================


class MailboxError(Exception):
    """Base exception for mailbox store operations."""

    code = "mailbox-error"


class InvalidFolderError(MailboxError):
    """Raised when an operation references a folder that doesn't exist."""

    code = "invalid-folder"


class InvalidMessageRangeError(MailboxError):
    """Raised when a message range matches no message in the folder."""

    code = "invalid-message-range"


class InvalidQueryError(MailboxError):
    """Raised when a search query contains an unknown predicate."""

    code = "invalid-query"


class NamespacePermissionError(MailboxError):
    """Raised when a folder mutation targets a non-personal namespace."""

    code = "namespace-permission"


class UnknownNamespaceError(MailboxError):
    """Raised when a folder path doesn't belong to any namespace."""

    code = "unknown-namespace"


class StructuralConflictError(MailboxError):
    """
    Raised when a folder mutation conflicts with the tree structure.

    Examples: creating a folder that already exists, creating a folder
    named like a namespace, or creating children under \\NoInferiors.
    """

    code = "structural-conflict"


class BlobFetchError(MailboxError):
    """
    Raised when raw message content couldn't be fetched from the blob store.

    Attributes:
        failures: Blob key -> exception, one entry per failed fetch.
    """

    code = "blob-fetch"

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        keys = ", ".join(sorted(failures))
        super().__init__(f"Failed to fetch {len(failures)} message(s): {keys}")


class InboxModificationError(Exception):
    """Raised when a caller tries to delete or rename INBOX."""
    pass
