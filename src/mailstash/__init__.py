# =============================================================================
# mailstash: Mailbox Storage Engine for IMAP Servers
# =============================================================================
#
# mailstash keeps the folder tree of a mailbox in memory and answers the
# storage side of IMAP commands:
#
#   - Namespaces, folder create / delete / rename / subscribe
#   - UIDVALIDITY / UIDNEXT bookkeeping, UIDs that are never reused
#   - Flags and free-form properties over sequence sets
#   - Structured SEARCH over headers, bodies, dates, flags and sizes
#   - A forgiving MIME parser, run lazily per message
#   - Raw payloads fetched on demand from a blob store (SQLite bundled)
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "mailstash"

# Main entry point - this is what gets called by the 'mailstash' command
from mailstash.app import main

__all__ = ["main", "__version__", "__app_name__"]
