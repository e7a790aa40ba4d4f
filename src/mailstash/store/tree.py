# =============================================================================
# Folder Tree
# =============================================================================
# Owns the whole mailbox dataset of one user:
#
#   MailboxStore
#     +-- INBOX (Folder)
#     +-- namespaces: {"": Namespace, "#shared/": Namespace, ...}
#     |     +-- folders: {"Work": Folder(folders={"Projects": Folder})}
#     +-- flattened cache: {"INBOX": ..., "Work": ..., "Work/Projects": ...}
#     +-- retired UIDNEXT values of deleted folders, keyed by path
#
# Every mutation ends with reindex(), which walks the whole tree, fills in
# defaults (UIDs, internal dates, permanent flags), recomputes the
# \HasChildren / \HasNoChildren attributes and publishes a new flattened
# cache. The cache dict is replaced, never edited, so readers always see
# the state after the last completed mutation.
#
# The store expects a single writer: the session layer serializes
# mutations on one instance. Reads may run side by side.
# =============================================================================

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable

from mailstash.core import (
    HAS_CHILDREN,
    HAS_NO_CHILDREN,
    INBOX,
    NAMESPACE_TYPES,
    NOINFERIORS,
    NONEXISTENT,
    NOSELECT,
    SYSTEM_FLAGS,
    Folder,
    Message,
    Namespace,
    format_internal_date,
)
from mailstash.store.errors import (
    InboxModificationError,
    InvalidFolderError,
    InvalidMessageRangeError,
    NamespacePermissionError,
    StructuralConflictError,
    UnknownNamespaceError,
)
from mailstash.store.ranges import IndexedMessage, resolve_range
from mailstash.store.search import Query, SearchHit


logger = logging.getLogger(__name__)

# Called for every message on every reindex pass
MessageHandler = Callable[[Message, Folder], None]

# Default namespace layout: a single personal namespace without prefix
DEFAULT_NAMESPACES: dict[str, dict[str, str]] = {"": {"separator": "/", "type": "personal"}}


@dataclass
class ExpungeResult:
    """
    Result of an EXPUNGE.

    Attributes:
        expunged: Sequence numbers of removed messages, each one taken at
                  the moment of its removal (so "2, 2" means the 2nd
                  message was removed twice in a row).
        exists: Number of messages left in the folder.
    """
    expunged: list[int] = field(default_factory=list)
    exists: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"expunged": list(self.expunged), "exists": self.exists}


def _as_list(value: Any) -> list[Any]:
    """Wrap a scalar in a list; falsy values become an empty list."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _flag_list(flags: str | Iterable[str] | None) -> list[str]:
    if flags is None:
        return []
    if isinstance(flags, str):
        return [flags]
    return list(flags)


def _set_children_flags(flags: set[str], has_children: bool) -> None:
    """Keep exactly one of \\HasChildren / \\HasNoChildren in `flags`."""
    if has_children:
        flags.discard(HAS_NO_CHILDREN)
        flags.add(HAS_CHILDREN)
    else:
        flags.discard(HAS_CHILDREN)
        flags.add(HAS_NO_CHILDREN)


class MailboxStore:
    """
    In-memory folder tree for one mailbox.

    Usage:
        >>> store = MailboxStore()
        >>> store.create_folder("Work/Projects")
        >>> message = store.append_message("INBOX", raw_bytes, flags=["\\\\Seen"])
        >>> store.search("INBOX", {"flags": "\\\\Seen"})
        [SearchHit(uid=1, index=1)]

    Attributes:
        system_flags: Permanent flags given to folders that declare none.
        allow_permanent_flags: Default for Folder.allow_permanent_flags.
        message_handlers: Plugin callbacks run on every message by reindex().
    """

    def __init__(
        self,
        namespaces: Mapping[str, Mapping[str, str]] | None = None,
        system_flags: Iterable[str] = SYSTEM_FLAGS,
        allow_permanent_flags: bool = True,
        message_handlers: Iterable[MessageHandler] | None = None,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            namespaces: Namespace layout, prefix -> {"separator", "type"}.
                        Defaults to one personal namespace "" with "/".
            system_flags: Default permanent flags for folders.
            allow_permanent_flags: Whether folders accept flags outside
                                   their permanent flags by default.
            message_handlers: Callbacks run for each message on reindex.
        """
        self.system_flags = list(system_flags)
        self.allow_permanent_flags = allow_permanent_flags
        self.message_handlers: list[MessageHandler] = list(message_handlers or [])
        self._default_namespaces = dict(namespaces or DEFAULT_NAMESPACES)

        self._inbox = Folder()
        self._namespaces: dict[str, Namespace] = {}
        self._folders: dict[str, Folder] = {}
        # path -> UIDNEXT of a deleted folder, reused if it is recreated
        self._uidnext_cache: dict[str, int] = {}

        self.reset()

    # =========================================================================
    # Dataset Lifecycle
    # =========================================================================

    def reset(self) -> None:
        """Replace the dataset with an empty INBOX and the default namespaces."""
        self.load({
            prefix: {"separator": ns.get("separator", "/"), "type": ns.get("type", "personal")}
            for prefix, ns in self._default_namespaces.items()
        })

    def load(self, data: Mapping[str, Any]) -> None:
        """
        Replace the dataset from a plain mapping.

        Args:
            data: {"INBOX": {folder...}, "<prefix>": {"separator", "type",
                  "folders"}}. Messages may be mappings or raw strings.
        """
        inbox_data = data.get(INBOX) or {}
        self._inbox = Folder.from_dict(inbox_data)
        self._namespaces = {
            prefix: Namespace.from_dict(prefix, value or {})
            for prefix, value in data.items()
            if prefix != INBOX
        }
        for namespace in self._namespaces.values():
            if namespace.type not in NAMESPACE_TYPES:
                namespace.type = "personal"
        self.reindex()
        logger.info(f"Loaded mailbox: {len(self._folders)} folder(s)")

    def dump(self) -> dict[str, Any]:
        """
        Export the dataset as a JSON-compatible mapping.

        The result can be fed back to load(). Parsed MIME trees are not
        included.
        """
        data: dict[str, Any] = {INBOX: self._inbox.to_dict()}
        for prefix, namespace in self._namespaces.items():
            data[prefix] = namespace.to_dict()
        return data

    # =========================================================================
    # Indexing
    # =========================================================================

    @property
    def reference_namespace(self) -> Namespace:
        """The first personal namespace. Created ("" with "/") if there is none."""
        for namespace in self._namespaces.values():
            if namespace.type == "personal":
                return namespace
        namespace = Namespace(prefix="", separator="/", type="personal")
        self._namespaces[""] = namespace
        return namespace

    def reindex(self) -> None:
        """
        Walk the whole tree and publish a fresh flattened cache.

        Fills in folder defaults, assigns UIDs to new messages, runs the
        message handlers and recomputes \\HasChildren / \\HasNoChildren.
        """
        reference = self.reference_namespace
        folders: dict[str, Folder] = {}

        self._inbox.separator = reference.separator
        folders[INBOX] = self._inbox
        self._index_folder(INBOX, self._inbox, INBOX)
        if self._inbox.folders:
            self._walk(INBOX, reference.separator, self._inbox.folders, reference.prefix, folders)

        for prefix, namespace in self._namespaces.items():
            self._walk(prefix, namespace.separator, namespace.folders, prefix, folders)

        # With an "INBOX." style personal namespace the top-level folders
        # are children of INBOX.
        if reference.name.upper() == INBOX:
            _set_children_flags(self._inbox.flags, bool(reference.folders or self._inbox.folders))

        self._folders = folders

    def _walk(
        self,
        path: str,
        separator: str,
        branch: dict[str, Folder],
        namespace: str,
        out: dict[str, Folder],
    ) -> None:
        for name, folder in branch.items():
            if path:
                prefix = path if path.endswith(separator) else path + separator
            else:
                prefix = ""
            current = prefix + name

            out[current] = folder
            folder.separator = separator
            self._index_folder(current, folder, namespace)

            if folder.folders:
                self._walk(current, separator, folder.folders, namespace, out)

    def _index_folder(self, path: str, folder: Folder, namespace: str) -> None:
        """Fill in folder defaults and index its messages."""
        folder.path = path
        folder.namespace = namespace
        folder.uidvalidity = folder.uidvalidity or self._uidnext_cache.get(path) or 1
        if not folder.permanent_flags:
            folder.permanent_flags = list(self.system_flags)

        folder.uidnext = max(folder.uidnext or 1, folder.max_uid + 1)
        _set_children_flags(folder.flags, folder.has_children)

        for message in folder.messages:
            self._index_message(message, folder)

    def _index_message(self, message: Message, folder: Folder) -> None:
        """Assign UID and internal date to a message and run the handlers."""
        if not message.internaldate:
            message.internaldate = format_internal_date(datetime.now())
        elif isinstance(message.internaldate, datetime):
            message.internaldate = format_internal_date(message.internaldate)

        if not message.uid:
            message.uid = folder.uidnext
            folder.uidnext += 1

        for handler in self.message_handlers:
            handler(message, folder)

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def folders(self) -> Mapping[str, Folder]:
        """Read-only view of the flattened cache (path -> Folder)."""
        return MappingProxyType(self._folders)

    @property
    def namespaces(self) -> Mapping[str, Namespace]:
        return MappingProxyType(self._namespaces)

    def get_folder(self, path: str) -> Folder | None:
        """Look up a folder by path. "INBOX" is case-insensitive."""
        if path.upper() == INBOX:
            return self._folders.get(INBOX)
        return self._folders.get(path)

    def folder(self, path: str) -> Folder:
        """
        Look up a folder by path.

        Raises:
            InvalidFolderError: If the folder doesn't exist.
        """
        folder = self.get_folder(path)
        if folder is None:
            raise InvalidFolderError(f"Invalid folder: {path}")
        return folder

    def get_namespaces(self) -> dict[str, list[dict[str, str]]]:
        """Namespaces grouped by type, as reported by the NAMESPACE command."""
        result: dict[str, list[dict[str, str]]] = {kind: [] for kind in NAMESPACE_TYPES}
        for prefix, namespace in self._namespaces.items():
            result[namespace.type].append({"name": prefix, "separator": namespace.separator})
        return result

    def namespace(self, prefix: str | None = None) -> Namespace | None:
        """A namespace by prefix. Defaults to the reference namespace."""
        if prefix is None:
            return self.reference_namespace
        return self._namespaces.get(prefix)

    def folder_summary(self, path: str) -> dict[str, Any]:
        """
        Counters and attributes of a folder, for SELECT / STATUS responses.

        Raises:
            InvalidFolderError: If the folder doesn't exist.
        """
        folder = self.folder(path)
        total = len(folder.messages)
        seen = sum(1 for message in folder.messages if message.is_seen)
        return {
            "name": path,
            "path": folder.path,
            "flags": sorted(folder.flags),
            "seen": seen,
            "unseen": total - seen,
            "messages": total,
            "permanentFlags": list(folder.permanent_flags),
            "uidvalidity": folder.uidvalidity,
            "uidnext": folder.uidnext,
        }

    def match_folders(self, reference: str, pattern: str) -> list[Folder]:
        """
        Folders matching a LIST pattern.

        "*" matches anything, "%" matches anything except the hierarchy
        separator. An empty reference means the reference namespace, and
        then INBOX is considered as well.

        Args:
            reference: Namespace prefix to search in.
            pattern: LIST mailbox pattern.

        Returns:
            Matching folders, INBOX first when it matches.
        """
        include_inbox = False
        if reference == "":
            reference = self.reference_namespace.prefix
            include_inbox = True

        namespace = self._namespaces.get(reference)
        if namespace is None:
            return []

        query = self._pattern_regex(reference + pattern, namespace.separator)
        result = []

        if include_inbox and query.match(INBOX):
            result.append(self._inbox)

        for path, folder in self._folders.items():
            if folder is self._inbox:
                continue
            if (
                query.match(path)
                and (NONEXISTENT not in folder.flags or folder.path == pattern)
                and folder.namespace == reference
            ):
                result.append(folder)
        return result

    @staticmethod
    def _pattern_regex(pattern: str, separator: str) -> re.Pattern[str]:
        parts = []
        for char in pattern:
            if char == "*":
                parts.append(".*")
            elif char == "%":
                parts.append(f"[^{re.escape(separator)}]*")
            else:
                parts.append(re.escape(char))
        return re.compile("^" + "".join(parts) + "$")

    # =========================================================================
    # Folder Mutations
    # =========================================================================

    def _resolve_namespace(self, path: str) -> Namespace:
        """
        Find the personal namespace a folder path belongs to.

        Raises:
            StructuralConflictError: If the path is a namespace name itself.
            UnknownNamespaceError: If no namespace matches.
            NamespacePermissionError: If the namespace isn't personal.
        """
        found = self._namespaces.get("")
        for prefix, namespace in self._namespaces.items():
            if not prefix:
                continue
            if path == namespace.name:
                raise StructuralConflictError(f"Used mailbox name is a namespace value: {path}")
            if path.startswith(prefix):
                found = namespace

        if found is None:
            raise UnknownNamespaceError(f"Unknown namespace for {path}")
        if found.type != "personal":
            raise NamespacePermissionError(f"Permission denied for {path}")
        return found

    def create_folder(self, path: str) -> Folder:
        """
        Create a folder, including any missing parent folders.

        Parents that were \\Noselect placeholders become selectable again.

        Args:
            path: Full folder path. A trailing separator is ignored.

        Returns:
            The created folder.

        Raises:
            StructuralConflictError: If the folder already exists, the path
                                     names a namespace, or a parent has
                                     \\NoInferiors.
            UnknownNamespaceError / NamespacePermissionError: See
                                     _resolve_namespace().
        """
        namespace = self._resolve_namespace(path)
        separator = namespace.separator
        if path.endswith(separator):
            path = path[: -len(separator)]

        existing = self.get_folder(path)
        if existing is not None and existing.selectable:
            raise StructuralConflictError(f"Mailbox already exists: {path}")

        segments = path[len(namespace.prefix):].split(separator)
        parent: Folder | None = None
        current = namespace.name

        for name in segments:
            current = f"{current}{separator}{name}" if current else name

            if parent is None:
                folder = self._inbox if current.upper() == INBOX else namespace.folders.get(name)
            else:
                folder = parent.folders.get(name)

            if folder is not None and NOINFERIORS in folder.flags:
                raise StructuralConflictError(f"Can not create subfolders for {folder.path}")

            if folder is None:
                folder = Folder(subscribed=False, allow_permanent_flags=self.allow_permanent_flags)
                retired = self._uidnext_cache.pop(current, None)
                if retired:
                    # New UIDVALIDITY epoch, and UIDs continue above the old ones
                    folder.uidvalidity = retired
                    folder.uidnext = retired
                self._index_folder(current, folder, namespace.prefix)
                container = parent.folders if parent is not None else namespace.folders
                container[name] = folder

            if parent is not None:
                parent.flags.discard(NOSELECT)
                _set_children_flags(parent.flags, True)
            parent = folder

        # The last folder of the walk is the one requested
        folder.flags.discard(NOSELECT)
        self.reindex()
        logger.info(f"Created folder {path}")
        return folder

    def delete_folder(self, path: str) -> None:
        """
        Delete a folder.

        A folder that still has child folders keeps its place in the tree
        as an empty \\Noselect placeholder. Otherwise it is removed and its
        UIDNEXT is retired for a later folder at the same path. A \\Noselect
        parent left without children is removed as well.

        Raises:
            InboxModificationError: If `path` is INBOX.
            InvalidFolderError: If the folder doesn't exist (or is already
                                a placeholder with children).
            StructuralConflictError: If the folder has \\NoInferiors.
        """
        if path.upper() == INBOX:
            raise InboxModificationError("INBOX can not be modified")

        namespace = self._resolve_namespace(path)
        separator = namespace.separator
        if path.endswith(separator):
            path = path[: -len(separator)]

        folder = self._folders.get(path)
        if folder is None or (not folder.selectable and folder.has_children):
            raise InvalidFolderError(f"Mailbox does not exist: {path}")
        if NOINFERIORS in folder.flags:
            raise StructuralConflictError(f"Can not delete \\NoInferiors mailbox: {path}")

        segments = path[len(namespace.prefix):].split(separator)
        name = segments.pop()
        parent = self.get_folder(namespace.prefix + separator.join(segments)) if segments else None
        container = parent.folders if parent is not None else namespace.folders

        if folder.has_children:
            folder.messages.clear()
            folder.flags.add(NOSELECT)
            logger.info(f"Deleted folder {path} (kept as \\Noselect, has children)")
            self.reindex()
            return

        container.pop(name, None)
        self._uidnext_cache[folder.path] = folder.uidnext
        logger.info(f"Deleted folder {path}, retired uidnext {folder.uidnext}")

        if parent is not None and parent is not self._inbox:
            if not parent.selectable and not parent.folders:
                self.reindex()
                self.delete_folder(parent.path)
                return
            _set_children_flags(parent.flags, parent.has_children)

        self.reindex()

    def rename_folder(self, source: str, destination: str) -> Folder:
        """
        Rename a folder: create the destination, move state and child
        folders over, then delete the source.

        Messages keep their UIDs, and the folder keeps its UIDVALIDITY.

        Raises:
            InboxModificationError: If `source` is INBOX.
            InvalidFolderError: If the source doesn't exist.
            StructuralConflictError: If the destination exists or lies
                                     inside the source, or the
                                     source has \\NoInferiors.
        """
        if source.upper() == INBOX:
            raise InboxModificationError("INBOX can not be modified")

        origin = self.folder(source)
        if NOINFERIORS in origin.flags:
            raise StructuralConflictError(f"Can not rename \\NoInferiors mailbox: {source}")
        if destination.startswith(origin.path + origin.separator):
            raise StructuralConflictError(f"Can not move {source} into itself")

        target = self.create_folder(destination)

        target.messages = origin.messages
        target.uidvalidity = origin.uidvalidity
        target.uidnext = max(target.uidnext, origin.uidnext)
        target.permanent_flags = list(origin.permanent_flags)
        target.allow_permanent_flags = origin.allow_permanent_flags
        target.subscribed = origin.subscribed
        target.special_use = list(origin.special_use)
        target.flags |= origin.flags - {HAS_CHILDREN, HAS_NO_CHILDREN, NOSELECT}
        target.folders.update(origin.folders)

        origin.messages = []
        origin.folders = {}
        origin.flags.discard(NOSELECT)
        self.reindex()

        self.delete_folder(origin.path)
        logger.info(f"Renamed folder {source} to {destination}")
        return target

    def subscribe(self, path: str, subscribed: bool = True) -> None:
        """
        Set the subscription state of a folder.

        Raises:
            InvalidFolderError: If the folder doesn't exist or is \\Noselect.
        """
        folder = self.get_folder(path)
        if folder is None or not folder.selectable:
            raise InvalidFolderError(f"Invalid folder: {path}")
        folder.subscribed = subscribed

    def set_special_use(self, path: str, attributes: str | Iterable[str]) -> None:
        """Set the SPECIAL-USE attributes of a folder (ignored for unknown folders)."""
        folder = self.get_folder(path)
        if folder is not None:
            folder.special_use = _flag_list(attributes)

    # =========================================================================
    # Message Operations
    # =========================================================================

    def append_message(
        self,
        path: str,
        raw: str | bytes | None,
        flags: str | Iterable[str] | None = None,
        internaldate: str | datetime | None = None,
        key: str | None = None,
    ) -> Message:
        """
        Append a message to a folder.

        Args:
            path: Target folder.
            raw: RFC822 payload, or None when only `key` is known.
            flags: Initial flags.
            internaldate: Internal date (string or datetime). Defaults to now.
            key: Blob-store key of the payload.

        Returns:
            The stored message, with its UID assigned.

        Raises:
            InvalidFolderError: If the folder doesn't exist.
        """
        folder = self.folder(path)
        if isinstance(internaldate, datetime):
            internaldate = format_internal_date(internaldate)

        message = Message(
            raw=raw,
            key=key,
            flags=set(_flag_list(flags)),
            internaldate=internaldate or "",
        )
        folder.messages.append(message)
        self.reindex()
        logger.debug(f"Appended message uid={message.uid} to {folder.path}")
        return message

    def resolve(self, path: str, expression: str | int, by_uid: bool = False) -> list[IndexedMessage]:
        """
        Messages of a folder matched by a sequence set.

        Raises:
            InvalidFolderError: If the folder doesn't exist.
        """
        return resolve_range(self.folder(path).messages, expression, by_uid)

    def _matched(self, path: str, expression: str | int, by_uid: bool) -> tuple[Folder, list[IndexedMessage]]:
        folder = self.folder(path)
        matches = resolve_range(folder.messages, expression, by_uid)
        if not matches:
            raise InvalidMessageRangeError(f"Invalid messages: {expression}")
        return folder, matches

    def _allowed_flags(self, folder: Folder, flags: list[str]) -> list[str]:
        """Drop flags the folder doesn't store permanently, unless it allows any."""
        if folder.allow_permanent_flags:
            return flags
        return [flag for flag in flags if flag in folder.permanent_flags]

    @staticmethod
    def _flag_update(match: IndexedMessage) -> dict[str, Any]:
        return {"index": match.index, "uid": match.uid, "flags": sorted(match.message.flags)}

    @staticmethod
    def _property_update(match: IndexedMessage) -> dict[str, Any]:
        return {"index": match.index, "uid": match.uid, "properties": match.message.properties}

    def add_flags(
        self, path: str, expression: str | int, by_uid: bool, flags: str | Iterable[str]
    ) -> list[dict[str, Any]]:
        """
        Add flags to a range of messages (STORE +FLAGS).

        Returns:
            One {"index", "uid", "flags"} entry per updated message.

        Raises:
            InvalidFolderError, InvalidMessageRangeError
        """
        folder, matches = self._matched(path, expression, by_uid)
        allowed = self._allowed_flags(folder, _flag_list(flags))
        for match in matches:
            match.message.flags.update(allowed)
        self.reindex()
        return [self._flag_update(match) for match in matches]

    def remove_flags(
        self, path: str, expression: str | int, by_uid: bool, flags: str | Iterable[str]
    ) -> list[dict[str, Any]]:
        """Remove flags from a range of messages (STORE -FLAGS)."""
        _, matches = self._matched(path, expression, by_uid)
        for match in matches:
            match.message.flags.difference_update(_flag_list(flags))
        self.reindex()
        return [self._flag_update(match) for match in matches]

    def replace_flags(
        self, path: str, expression: str | int, by_uid: bool, flags: str | Iterable[str]
    ) -> list[dict[str, Any]]:
        """Replace the flags of a range of messages (STORE FLAGS)."""
        folder, matches = self._matched(path, expression, by_uid)
        allowed = self._allowed_flags(folder, _flag_list(flags))
        for match in matches:
            match.message.flags = set(allowed)
        self.reindex()
        return [self._flag_update(match) for match in matches]

    def add_properties(
        self, path: str, expression: str | int, by_uid: bool, properties: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """
        Merge properties into a range of messages.

        A key that already holds a string or list collects the new values
        into a list; any other existing value is replaced.
        """
        _, matches = self._matched(path, expression, by_uid)
        for match in matches:
            current_properties = match.message.properties
            for key, value in properties.items():
                current = current_properties.get(key)
                if not current:
                    current_properties[key] = value
                elif isinstance(current, list):
                    current_properties[key] = current + _as_list(value)
                elif isinstance(current, str):
                    current_properties[key] = [current] + _as_list(value)
                else:
                    current_properties[key] = value
        self.reindex()
        return [self._property_update(match) for match in matches]

    def remove_properties(
        self, path: str, expression: str | int, by_uid: bool, properties: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Remove the given values from property lists of a range of messages."""
        _, matches = self._matched(path, expression, by_uid)
        for match in matches:
            current_properties = match.message.properties
            for key, value in properties.items():
                remove = _as_list(value)
                current_properties[key] = [
                    item for item in _as_list(current_properties.get(key)) if item not in remove
                ]
        self.reindex()
        return [self._property_update(match) for match in matches]

    def replace_properties(
        self, path: str, expression: str | int, by_uid: bool, properties: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Overwrite properties of a range of messages."""
        _, matches = self._matched(path, expression, by_uid)
        for match in matches:
            match.message.properties.update(properties)
        self.reindex()
        return [self._property_update(match) for match in matches]

    def search(self, path: str, criteria: "Mapping[str, Any] | Query") -> list[SearchHit]:
        """
        Search a folder.

        Raises:
            InvalidFolderError: If the folder doesn't exist.
            InvalidQueryError: If the criteria contain an unknown predicate.
        """
        folder = self.folder(path)
        hits = Query.parse(criteria).run(folder.messages)
        logger.debug(f"Search in {folder.path} matched {len(hits)} message(s)")
        return hits

    def expunge(self, path: str) -> ExpungeResult:
        """
        Remove all \\Deleted messages from a folder.

        Raises:
            InvalidFolderError: If the folder doesn't exist.
        """
        folder = self.folder(path)
        result = ExpungeResult()

        kept: list[Message] = []
        for message in folder.messages:
            if message.is_deleted:
                # Position among the messages still present at removal time
                result.expunged.append(len(kept) + 1)
            else:
                kept.append(message)
        folder.messages = kept
        result.exists = len(kept)

        self.reindex()
        if result.expunged:
            logger.info(f"Expunged {len(result.expunged)} message(s) from {folder.path}")
        return result
