"""
greetkeep

Durable titles and descriptions for greetings whose list is owned and
freely edited by someone else. Metadata follows each greeting through
reorders, edits, inserts and deletes by matching content fingerprints.

Quick Start:
    from greetkeep import GreetingKeeper, ListEntryHost

    host = ListEntryHost("Hello!", ["Hi there.", "Good evening."])
    with GreetingKeeper() as keeper:
        session = keeper.open_session("alice.png", host)
        session.set_details(1, title="Formal")
        session.move(1, -1)

Default Store:
    ~/.greetkeep (created automatically).
    Override with GREETKEEP_STORE_PATH or an explicit path argument.

Environment Variables:
    GREETKEEP_STORE_PATH  - Override default store location
    GREETKEEP_VERBOSE     - Do not silence library logging

The store is initialized automatically on first use. Configuration is persisted
in a TOML file within the store directory.
"""

from . import logging_config  # noqa: F401  (installs the quiet default handler)
from .api import GreetingKeeper
from .document_store import (
    JsonFileMetadataStore,
    ListEntryHost,
    MemoryMetadataStore,
    SqliteMetadataStore,
)
from .exchange import insert_at_end, move, move_at, remove, remove_at, swap_with_head
from .fingerprint import fingerprint
from .lifecycle import (
    garbage_collect,
    is_empty,
    refresh_fingerprint_only,
    update_head,
    upsert,
)
from .reconcile import reconcile_positions, resolve_identifier, sync_all_positions
from .session import GreetingSession
from .types import (
    GreetingMeta,
    GreetingOption,
    Greetings,
    IdentityStore,
    content_preview,
    generate_id,
)

__version__ = "0.1.0"
__all__ = [
    "GreetingKeeper",
    "GreetingSession",
    "GreetingMeta",
    "GreetingOption",
    "Greetings",
    "IdentityStore",
    "JsonFileMetadataStore",
    "ListEntryHost",
    "MemoryMetadataStore",
    "SqliteMetadataStore",
    "content_preview",
    "fingerprint",
    "garbage_collect",
    "generate_id",
    "insert_at_end",
    "is_empty",
    "move",
    "move_at",
    "reconcile_positions",
    "refresh_fingerprint_only",
    "remove",
    "remove_at",
    "resolve_identifier",
    "swap_with_head",
    "sync_all_positions",
    "update_head",
    "upsert",
]
