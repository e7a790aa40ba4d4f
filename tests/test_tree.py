# =============================================================================
# Tests for the folder tree (MailboxStore)
# =============================================================================

import pytest

from mailstash.core import HAS_CHILDREN, HAS_NO_CHILDREN, NOINFERIORS, NOSELECT
from mailstash.store import (
    InboxModificationError,
    InvalidFolderError,
    InvalidMessageRangeError,
    MailboxStore,
    NamespacePermissionError,
    StructuralConflictError,
    UnknownNamespaceError,
)


def assert_children_flags_consistent(store):
    for path, folder in store.folders.items():
        assert (HAS_CHILDREN in folder.flags) != (HAS_NO_CHILDREN in folder.flags), path
        assert (HAS_CHILDREN in folder.flags) == folder.has_children, path


# =============================================================================
# Indexing
# =============================================================================

def test_default_store_has_inbox(store):
    assert list(store.folders) == ["INBOX"]
    assert HAS_NO_CHILDREN in store.folder("INBOX").flags
    assert store.folder("INBOX").uidvalidity == 1


def test_inbox_lookup_is_case_insensitive(populated_store):
    assert populated_store.get_folder("inbox") is populated_store.folder("INBOX")


def test_loaded_messages_get_uids_in_order(populated_store):
    inbox = populated_store.folder("INBOX")

    assert [m.uid for m in inbox.messages] == [1, 2, 3]
    assert inbox.uidnext == 4


def test_loaded_folders_get_defaults(populated_store):
    work = populated_store.folder("Work")

    assert work.path == "Work"
    assert work.permanent_flags == list(populated_store.system_flags)
    assert populated_store.folder("Work/Projects").namespace == ""
    assert populated_store.folder("#shared/Team").namespace == "#shared/"
    assert_children_flags_consistent(populated_store)


def test_uidnext_is_raised_above_existing_uids():
    store = MailboxStore()
    store.load({"INBOX": {"uidnext": 2, "messages": [{"uid": 7, "raw": "x"}, "Subject: y\r\n\r\n"]}})

    inbox = store.folder("INBOX")
    assert [m.uid for m in inbox.messages] == [7, 8]
    assert inbox.uidnext == 9


def test_message_handlers_run_on_every_message():
    seen = []
    store = MailboxStore(message_handlers=[lambda message, folder: seen.append((folder.path, message.uid))])

    store.append_message("INBOX", "Subject: one\r\n\r\n")

    assert ("INBOX", 1) in seen


def test_reindex_replaces_cache_instead_of_patching(store):
    before = store.folders

    store.create_folder("Sent")

    assert "Sent" not in before
    assert "Sent" in store.folders


# =============================================================================
# Creating Folders
# =============================================================================

def test_create_nested_folder_creates_parents(store):
    created = store.create_folder("Work/Projects/Alpha")

    assert created.path == "Work/Projects/Alpha"
    assert {"Work", "Work/Projects", "Work/Projects/Alpha"} <= set(store.folders)
    assert HAS_CHILDREN in store.folder("Work").flags
    assert HAS_NO_CHILDREN in created.flags
    assert_children_flags_consistent(store)


def test_create_ignores_trailing_separator(store):
    store.create_folder("Drafts/")

    assert "Drafts" in store.folders


def test_create_existing_folder_conflicts(populated_store):
    with pytest.raises(StructuralConflictError):
        populated_store.create_folder("Work")


def test_create_namespace_name_conflicts(populated_store):
    with pytest.raises(StructuralConflictError):
        populated_store.create_folder("#shared")


def test_create_in_shared_namespace_is_denied(populated_store):
    with pytest.raises(NamespacePermissionError):
        populated_store.create_folder("#shared/Other")


def test_create_without_matching_namespace():
    store = MailboxStore(namespaces={"#mine/": {"separator": "/", "type": "personal"}})

    with pytest.raises(UnknownNamespaceError):
        store.create_folder("Elsewhere")


def test_create_under_noinferiors_conflicts(store):
    store.create_folder("Leaf")
    store.folder("Leaf").flags.add(NOINFERIORS)

    with pytest.raises(StructuralConflictError):
        store.create_folder("Leaf/Child")


def test_delete_noinferiors_conflicts(store):
    store.create_folder("Leaf")
    store.folder("Leaf").flags.add(NOINFERIORS)

    with pytest.raises(StructuralConflictError):
        store.delete_folder("Leaf")
    assert store.get_folder("Leaf") is not None


def test_rename_noinferiors_conflicts(store):
    store.create_folder("Leaf")
    store.folder("Leaf").flags.add(NOINFERIORS)

    with pytest.raises(StructuralConflictError):
        store.rename_folder("Leaf", "Moved")
    assert store.get_folder("Leaf") is not None
    assert store.get_folder("Moved") is None


def test_create_under_inbox(store):
    store.create_folder("INBOX/Receipts")

    assert store.folder("INBOX/Receipts").path == "INBOX/Receipts"
    assert HAS_CHILDREN in store.folder("INBOX").flags


def test_inbox_prefixed_personal_namespace():
    store = MailboxStore(namespaces={"INBOX.": {"separator": ".", "type": "personal"}})

    store.create_folder("INBOX.Sent")

    assert "INBOX.Sent" in store.folders
    assert HAS_CHILDREN in store.folder("INBOX").flags

    store.delete_folder("INBOX.Sent")

    assert "INBOX.Sent" not in store.folders
    assert HAS_NO_CHILDREN in store.folder("INBOX").flags


# =============================================================================
# Deleting and Renaming
# =============================================================================

def test_inbox_can_not_be_deleted_or_renamed(store):
    with pytest.raises(InboxModificationError):
        store.delete_folder("INBOX")
    with pytest.raises(InboxModificationError):
        store.rename_folder("inbox", "Old")


def test_delete_missing_folder(store):
    with pytest.raises(InvalidFolderError):
        store.delete_folder("Nope")


def test_delete_leaf_updates_parent_flags(populated_store):
    populated_store.delete_folder("Work/Projects")

    assert "Work/Projects" not in populated_store.folders
    assert HAS_NO_CHILDREN in populated_store.folder("Work").flags
    assert_children_flags_consistent(populated_store)


def test_recreated_folder_never_reuses_uids(store):
    store.create_folder("Lists")
    for i in range(3):
        store.append_message("Lists", f"Subject: {i}\r\n\r\n")
    retired = store.folder("Lists").uidnext

    store.delete_folder("Lists")
    recreated = store.create_folder("Lists")

    assert recreated.uidnext >= retired
    assert recreated.uidvalidity == retired
    assert store.append_message("Lists", "Subject: new\r\n\r\n").uid >= retired


def test_delete_with_children_leaves_noselect_placeholder(populated_store):
    populated_store.append_message("Work", "Subject: w\r\n\r\n")

    populated_store.delete_folder("Work")

    work = populated_store.folder("Work")
    assert NOSELECT in work.flags
    assert work.messages == []
    assert "Work/Projects" in populated_store.folders

    with pytest.raises(InvalidFolderError):
        populated_store.delete_folder("Work")


def test_deleting_last_child_removes_placeholder_parent(populated_store):
    populated_store.delete_folder("Work")
    populated_store.delete_folder("Work/Projects")

    assert "Work" not in populated_store.folders
    assert "Work/Projects" not in populated_store.folders


def test_create_revives_placeholder(populated_store):
    populated_store.delete_folder("Work")

    populated_store.create_folder("Work")

    assert populated_store.folder("Work").selectable


def test_rename_moves_messages_and_children(populated_store):
    populated_store.append_message("Work", "Subject: a\r\n\r\n")
    populated_store.append_message("Work", "Subject: b\r\n\r\n")
    work = populated_store.folder("Work")
    uidvalidity = work.uidvalidity

    renamed = populated_store.rename_folder("Work", "Archive/Work")

    assert "Work" not in populated_store.folders
    assert renamed.path == "Archive/Work"
    assert [m.uid for m in renamed.messages] == [1, 2]
    assert renamed.uidvalidity == uidvalidity
    assert populated_store.folder("Archive/Work/Projects").path == "Archive/Work/Projects"
    assert_children_flags_consistent(populated_store)


def test_rename_into_itself_conflicts(populated_store):
    with pytest.raises(StructuralConflictError):
        populated_store.rename_folder("Work", "Work/Inner")


def test_rename_missing_source(store):
    with pytest.raises(InvalidFolderError):
        store.rename_folder("Nope", "Other")


# =============================================================================
# Subscriptions and Special Use
# =============================================================================

def test_subscribe(store):
    store.create_folder("Lists")

    store.subscribe("Lists")
    assert store.folder("Lists").subscribed is True

    store.subscribe("Lists", False)
    assert store.folder("Lists").subscribed is False


def test_subscribe_placeholder_fails(populated_store):
    populated_store.delete_folder("Work")

    with pytest.raises(InvalidFolderError):
        populated_store.subscribe("Work")


def test_set_special_use(store):
    store.create_folder("Sent")
    store.set_special_use("Sent", "\\Sent")

    assert store.folder("Sent").special_use == ["\\Sent"]


# =============================================================================
# Messages, Flags and Properties
# =============================================================================

def test_append_assigns_increasing_uids(store):
    uidnexts = [store.folder("INBOX").uidnext]
    for i in range(3):
        message = store.append_message("INBOX", f"Subject: {i}\r\n\r\n", flags="\\Draft")
        uidnexts.append(store.folder("INBOX").uidnext)
        assert message.uid == uidnexts[-2]
        assert message.internaldate

    assert uidnexts == sorted(set(uidnexts))


def test_append_to_missing_folder(store):
    with pytest.raises(InvalidFolderError):
        store.append_message("Nope", "x")


def test_add_flags_is_idempotent(populated_store):
    populated_store.add_flags("INBOX", "2", False, ["\\Seen"])
    updates = populated_store.add_flags("INBOX", "2", False, ["\\Seen"])

    assert updates == [{"index": 2, "uid": 2, "flags": ["\\Seen"]}]


def test_flags_outside_permanent_flags_are_dropped_when_not_allowed():
    store = MailboxStore(allow_permanent_flags=False)
    store.create_folder("Strict")
    store.append_message("Strict", "x")

    store.add_flags("Strict", "1", False, ["\\Seen", "$Custom"])

    assert store.folder("Strict").messages[0].flags == {"\\Seen"}


def test_remove_and_replace_flags(populated_store):
    populated_store.remove_flags("INBOX", "1:*", False, "\\Seen")
    assert [sorted(m.flags) for m in populated_store.folder("INBOX").messages] == [
        [], [], ["\\Deleted"],
    ]

    updates = populated_store.replace_flags("INBOX", "3", True, ["\\Flagged"])
    assert updates == [{"index": 3, "uid": 3, "flags": ["\\Flagged"]}]


def test_flag_update_on_empty_range_fails(populated_store):
    with pytest.raises(InvalidMessageRangeError):
        populated_store.add_flags("INBOX", "40:50", True, ["\\Seen"])


def test_add_properties_merges_into_lists(populated_store):
    populated_store.add_properties("INBOX", "1", False, {"label": "work"})
    populated_store.add_properties("INBOX", "1", False, {"label": "urgent"})
    updates = populated_store.add_properties("INBOX", "1", False, {"label": ["later"]})

    assert updates[0]["properties"]["label"] == ["work", "urgent", "later"]


def test_add_properties_replaces_non_string_values(populated_store):
    populated_store.add_properties("INBOX", "1", False, {"score": 3})
    updates = populated_store.add_properties("INBOX", "1", False, {"score": 5})

    assert updates[0]["properties"]["score"] == 5


def test_remove_and_replace_properties(populated_store):
    populated_store.add_properties("INBOX", "1", False, {"label": ["a", "b", "c"]})

    updates = populated_store.remove_properties("INBOX", "1", False, {"label": ["a", "c"]})
    assert updates[0]["properties"]["label"] == ["b"]

    updates = populated_store.replace_properties("INBOX", "1", False, {"label": "z"})
    assert updates[0]["properties"]["label"] == "z"


def test_expunge_reports_positions_at_removal_time(populated_store):
    populated_store.add_flags("INBOX", "1:2", False, ["\\Deleted"])

    result = populated_store.expunge("INBOX")

    assert result.expunged == [1, 1, 1]
    assert result.exists == 0


def test_expunge_keeps_undeleted_messages(populated_store):
    result = populated_store.expunge("INBOX")

    assert result.to_dict() == {"expunged": [3], "exists": 2}
    assert [m.uid for m in populated_store.folder("INBOX").messages] == [1, 2]
    assert populated_store.folder("INBOX").uidnext == 4


def test_expunge_middle_message():
    store = MailboxStore()
    for flags in ([], ["\\Deleted"], [], ["\\Deleted"]):
        store.append_message("INBOX", "x", flags=flags)

    assert store.expunge("INBOX").expunged == [2, 3]


# =============================================================================
# Listing and Namespaces
# =============================================================================

def paths(folders):
    return [folder.path for folder in folders]


def test_match_all_folders(populated_store):
    assert paths(populated_store.match_folders("", "*")) == [
        "INBOX", "Archive", "Work", "Work/Projects",
    ]


def test_match_percent_stops_at_separator(populated_store):
    assert paths(populated_store.match_folders("", "%")) == ["INBOX", "Archive", "Work"]
    assert paths(populated_store.match_folders("", "Work/%")) == ["Work/Projects"]


def test_match_in_other_namespace(populated_store):
    assert paths(populated_store.match_folders("#shared/", "*")) == ["#shared/Team"]
    assert populated_store.match_folders("#nowhere/", "*") == []


def test_match_escapes_regex_characters(store):
    store.create_folder("a.b")
    store.create_folder("axb")

    assert paths(store.match_folders("", "a.b")) == ["a.b"]


def test_get_namespaces(populated_store):
    assert populated_store.get_namespaces() == {
        "personal": [{"name": "", "separator": "/"}],
        "other": [],
        "shared": [{"name": "#shared/", "separator": "/"}],
    }
    assert populated_store.namespace().prefix == ""
    assert populated_store.namespace("#shared/").type == "shared"


def test_folder_summary(populated_store):
    summary = populated_store.folder_summary("INBOX")

    assert summary["messages"] == 3
    assert summary["seen"] == 2
    assert summary["unseen"] == 1
    assert summary["uidnext"] == 4
    assert summary["uidvalidity"] == 1


# =============================================================================
# Snapshots
# =============================================================================

def test_dump_and_load_keep_uids_and_tree(populated_store):
    populated_store.add_flags("INBOX", "2", False, ["\\Flagged"])
    data = populated_store.dump()

    restored = MailboxStore()
    restored.load(data)

    assert list(restored.folders) == list(populated_store.folders)
    inbox = restored.folder("INBOX")
    assert [m.uid for m in inbox.messages] == [1, 2, 3]
    assert "\\Flagged" in inbox.messages[1].flags
    assert restored.append_message("INBOX", "x").uid == 4


def test_reset(populated_store):
    populated_store.reset()

    assert list(populated_store.folders) == ["INBOX"]
    assert populated_store.folder("INBOX").messages == []
