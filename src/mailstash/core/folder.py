# =============================================================================
# Folder Model
# =============================================================================
# Represents a mailbox folder (IMAP "mailbox") and the namespaces that hold
# them. The folder tree looks like this:
#
#   INBOX                      (always present, its own namespace)
#   ""        -> Drafts, Work, Work/Projects, ...   (personal namespace)
#   "#shared/" -> #shared/Team, ...                  (shared namespace)
#
# Each namespace has its own hierarchy separator. Folders carry the IMAP
# synchronization state (UIDVALIDITY / UIDNEXT) and the structural flags
# (\HasChildren, \Noselect, ...) that the store recomputes after every
# mutation.
# =============================================================================

from dataclasses import dataclass, field
from typing import Any

from mailstash.core.message import Message


# Mailbox name attributes (RFC 3501 / RFC 3348)
HAS_CHILDREN = "\\HasChildren"
HAS_NO_CHILDREN = "\\HasNoChildren"
NOSELECT = "\\Noselect"
NOINFERIORS = "\\NoInferiors"
NONEXISTENT = "\\NonExistent"

INBOX = "INBOX"

# Namespace types as reported by the NAMESPACE command
NAMESPACE_TYPES = ("personal", "other", "shared")


@dataclass
class Folder:
    """
    Represents a mailbox folder.

    Attributes:
        path: Full, namespace-qualified name (e.g., "Work/Projects" or
              "#shared/Team"). Set by the store when the tree is indexed.
        namespace: Prefix of the namespace this folder lives in ("INBOX"
                   for the INBOX itself).
        separator: Hierarchy separator of the namespace.

        uidvalidity: IMAP UIDVALIDITY value. Stays the same for the whole
                     life of the folder. When a folder is deleted and then
                     recreated at the same path it is reissued from the
                     retired UIDNEXT, so clients notice the new epoch.
        uidnext: UID the next appended message receives. Only ever grows,
                 and is always above the highest UID in the folder.

        flags: Mailbox attributes. Exactly one of \\HasChildren and
               \\HasNoChildren is present once the folder is indexed.
        permanent_flags: Message flags clients may store permanently.
        allow_permanent_flags: When False, flags outside permanent_flags are
                               silently dropped by flag updates.
        subscribed: LSUB subscription state.
        special_use: SPECIAL-USE attributes (RFC 6154), e.g. ["\\Sent"].

        messages: Messages in folder order (sequence number = position + 1).
        folders: Child folders keyed by their last path segment.
        marker: Blob-listing marker (only used by the INBOX, see InboxSync).

    Example:
        >>> folder = Folder(path="Work", messages=[Message(raw="...")])
    """

    path: str = ""
    namespace: str = ""
    separator: str = "/"

    # IMAP synchronization state
    uidvalidity: int = 0
    uidnext: int = 1

    # Attributes and flags
    flags: set[str] = field(default_factory=set)
    permanent_flags: list[str] = field(default_factory=list)
    allow_permanent_flags: bool = True
    subscribed: bool = True
    special_use: list[str] = field(default_factory=list)

    # Contents
    messages: list[Message] = field(default_factory=list)
    folders: dict[str, "Folder"] = field(default_factory=dict)

    marker: str = ""

    @property
    def has_children(self) -> bool:
        """Returns True if the folder currently has child folders."""
        return bool(self.folders)

    @property
    def selectable(self) -> bool:
        """Returns False for \\Noselect placeholder folders."""
        return NOSELECT not in self.flags

    @property
    def max_uid(self) -> int:
        """Highest UID currently in the folder (0 if empty)."""
        return max((message.uid for message in self.messages), default=0)

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for snapshots (derived fields are recomputed on load)."""
        data: dict[str, Any] = {
            "uidvalidity": self.uidvalidity,
            "uidnext": self.uidnext,
            "flags": sorted(self.flags),
            "permanentFlags": list(self.permanent_flags),
            "allowPermanentFlags": self.allow_permanent_flags,
            "subscribed": self.subscribed,
            "messages": [message.to_dict() for message in self.messages],
        }
        if self.special_use:
            data["special-use"] = list(self.special_use)
        if self.folders:
            data["folders"] = {
                name: child.to_dict() for name, child in self.folders.items()
            }
        if self.marker:
            data["marker"] = self.marker
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Folder":
        """Build a Folder (and its subtree) from a snapshot mapping."""
        return cls(
            uidvalidity=data.get("uidvalidity") or 0,
            uidnext=data.get("uidnext") or 1,
            flags=set(data.get("flags") or []),
            permanent_flags=list(data.get("permanentFlags") or []),
            allow_permanent_flags=data.get("allowPermanentFlags", True),
            subscribed=bool(data.get("subscribed", True)),
            special_use=list(data.get("special-use") or []),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            folders={
                name: cls.from_dict(child)
                for name, child in (data.get("folders") or {}).items()
            },
            marker=data.get("marker") or "",
        )

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"{self.path} ({len(self.messages)})"

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return (
            f"Folder(path={self.path!r}, uidvalidity={self.uidvalidity}, "
            f"uidnext={self.uidnext}, messages={len(self.messages)})"
        )


@dataclass
class Namespace:
    """
    A top-level partition of the folder tree.

    Attributes:
        prefix: Namespace prefix including the trailing separator
                (e.g., "#shared/"), or "" for the default personal namespace.
        separator: Hierarchy separator used inside this namespace.
        type: One of "personal", "other" or "shared". Only personal
              namespaces accept folder mutations.
        folders: Top-level folders keyed by name.
    """

    prefix: str = ""
    separator: str = "/"
    type: str = "personal"
    folders: dict[str, Folder] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """The prefix without its trailing separator ("#shared" for "#shared/")."""
        if self.prefix and self.prefix.endswith(self.separator):
            return self.prefix[: -len(self.separator)]
        return self.prefix

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for snapshots."""
        return {
            "separator": self.separator,
            "type": self.type,
            "folders": {name: f.to_dict() for name, f in self.folders.items()},
        }

    @classmethod
    def from_dict(cls, prefix: str, data: dict[str, Any]) -> "Namespace":
        """Build a Namespace from a snapshot mapping keyed by `prefix`."""
        return cls(
            prefix=prefix,
            separator=data.get("separator") or prefix[-1:] or "/",
            type=data.get("type") or "personal",
            folders={
                name: Folder.from_dict(child)
                for name, child in (data.get("folders") or {}).items()
            },
        )
