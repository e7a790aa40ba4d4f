# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the mailstash test suite.
# =============================================================================

import asyncio
from datetime import datetime, timezone

import pytest

from mailstash.storage import BlobNotFoundError, ObjectInfo
from mailstash.store import MailboxStore


SIMPLE_MESSAGE = (
    "From: Alice Example <alice@example.com>\r\n"
    "To: bob@example.com, Carol <carol@example.com>\r\n"
    "Subject: Quarterly report\r\n"
    "Date: Mon, 15 Jan 2024 10:30:00 +0000\r\n"
    "Message-ID: <report-1@example.com>\r\n"
    "\r\n"
    "Numbers are up this quarter.\r\n"
)

MULTIPART_MESSAGE = (
    "From: bob@example.com\r\n"
    "Subject: Holiday photos\r\n"
    "Date: Tue, 20 Feb 2024 08:00:00 +0000\r\n"
    "Content-Type: multipart/mixed; boundary=\"outer\"\r\n"
    "\r\n"
    "--outer\r\n"
    "Content-Type: multipart/alternative; boundary=inner\r\n"
    "\r\n"
    "--inner\r\n"
    "Content-Type: text/plain; charset=utf-8\r\n"
    "\r\n"
    "See attached.\r\n"
    "--inner\r\n"
    "Content-Type: text/html\r\n"
    "\r\n"
    "<p>See attached.</p>\r\n"
    "--inner--\r\n"
    "--outer\r\n"
    "Content-Type: image/jpeg; name=beach.jpg\r\n"
    "Content-Disposition: attachment; filename=beach.jpg\r\n"
    "\r\n"
    "/9j/4AAQSkZJRg==\r\n"
    "--outer--\r\n"
)

NEWSLETTER_MESSAGE = (
    "From: news@example.org\r\n"
    "Subject: Weekly digest\r\n"
    "Date: Wed, 01 Mar 2023 07:00:00 +0000\r\n"
    "X-Mailer: Bulk\r\n"
    "\r\n"
    "Unsubscribe any time.\r\n"
)


@pytest.fixture
def simple_message() -> str:
    """A single-part message with address headers."""
    return SIMPLE_MESSAGE


@pytest.fixture
def multipart_message() -> str:
    """A nested multipart/mixed message with an attachment."""
    return MULTIPART_MESSAGE


@pytest.fixture
def store() -> MailboxStore:
    """An empty store with the default namespace layout."""
    return MailboxStore()


@pytest.fixture
def populated_store() -> MailboxStore:
    """
    A store with three INBOX messages (UIDs 1-3) and a small folder tree.

    INBOX:   1 \\Seen report, 2 unread photos, 3 \\Seen \\Deleted newsletter
    Folders: Archive, Work, Work/Projects
    """
    store = MailboxStore(namespaces={
        "": {"separator": "/", "type": "personal"},
        "#shared/": {"separator": "/", "type": "shared"},
    })
    store.load({
        "INBOX": {
            "messages": [
                {"raw": SIMPLE_MESSAGE, "flags": ["\\Seen"],
                 "internaldate": "15-Jan-2024 10:30:00 +0000"},
                {"raw": MULTIPART_MESSAGE,
                 "internaldate": "20-Feb-2024 08:00:00 +0000"},
                {"raw": NEWSLETTER_MESSAGE, "flags": ["\\Seen", "\\Deleted"],
                 "internaldate": "01-Mar-2023 07:00:00 +0000"},
            ],
        },
        "": {
            "separator": "/",
            "type": "personal",
            "folders": {
                "Archive": {},
                "Work": {"folders": {"Projects": {}}},
            },
        },
        "#shared/": {
            "separator": "/",
            "type": "shared",
            "folders": {"Team": {}},
        },
    })
    return store


class FakeBlobStore:
    """
    In-memory blob store.

    Attributes:
        objects: bucket -> {key: (body, last_modified)}
        page_size: Entries per listing page.
        failing: Keys whose fetch raises an error.
        fetched: Keys fetched so far, in request order.
        yield_listing: Give control back to the event loop on every
                       listing page, like a remote store would.
    """

    def __init__(self, page_size: int = 2) -> None:
        self.objects: dict[str, dict[str, tuple[bytes, datetime]]] = {}
        self.page_size = page_size
        self.failing: set[str] = set()
        self.fetched: list[str] = []
        self.yield_listing = False
        self.bucket = "alice--example.com.inbound"

    def put(self, key: str, body: str, bucket: str | None = None) -> None:
        modified = datetime(2024, 3, 1, 12, 0, len(self.objects.get(bucket or self.bucket, {})),
                            tzinfo=timezone.utc)
        self.objects.setdefault(bucket or self.bucket, {})[key] = (body.encode("latin-1"), modified)

    async def fetch_bytes(self, key: str) -> bytes:
        self.fetched.append(key)
        if key in self.failing:
            raise BlobNotFoundError(key)
        for bucket in self.objects.values():
            if key in bucket:
                return bucket[key][0]
        raise BlobNotFoundError(key)

    async def list_objects(self, bucket: str, marker: str | None = None):
        if self.yield_listing:
            await asyncio.sleep(0)
        keys = sorted(k for k in self.objects.get(bucket, {}) if k > (marker or ""))
        page = keys[: self.page_size]
        entries = [ObjectInfo(key=k, last_modified=self.objects[bucket][k][1]) for k in page]
        next_marker = page[-1] if len(keys) > self.page_size else None
        return entries, next_marker


@pytest.fixture
def blob_store() -> FakeBlobStore:
    """An empty in-memory blob store listing two entries per page."""
    return FakeBlobStore()
