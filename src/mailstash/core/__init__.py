# =============================================================================
# mailstash Core Module
# =============================================================================
# This module contains the core data model of the store. These are plain
# Python dataclasses with no external dependencies. They can be imported
# anywhere without causing circular dependency issues.
#
# The core models represent the fundamental concepts of a mailbox:
#   - Namespace: A top-level partition of the folder tree
#   - Folder: A mailbox folder (INBOX, Sent, Work/Projects, ...)
#   - Message: An individual message with UID, flags and raw payload
# =============================================================================

from mailstash.core.folder import (
    HAS_CHILDREN,
    HAS_NO_CHILDREN,
    INBOX,
    NAMESPACE_TYPES,
    NOINFERIORS,
    NONEXISTENT,
    NOSELECT,
    Folder,
    Namespace,
)
from mailstash.core.message import (
    ANSWERED,
    DELETED,
    DRAFT,
    FLAGGED,
    SEEN,
    SYSTEM_FLAGS,
    Message,
    format_internal_date,
)

__all__ = [
    "Folder",
    "Namespace",
    "Message",
    "format_internal_date",
    "INBOX",
    "NAMESPACE_TYPES",
    "HAS_CHILDREN",
    "HAS_NO_CHILDREN",
    "NOSELECT",
    "NOINFERIORS",
    "NONEXISTENT",
    "SEEN",
    "ANSWERED",
    "FLAGGED",
    "DELETED",
    "DRAFT",
    "SYSTEM_FLAGS",
]
