"""
Metadata record lifecycle: creation, merge-update, garbage collection.

Records are created lazily on the first title/description write for a
greeting, merged on later writes, and dropped once they carry neither a
title nor a description.
"""

import logging
from typing import Optional

from .fingerprint import fingerprint
from .types import DEFAULT_ID_PREFIX, GreetingMeta, IdentityStore, generate_id

logger = logging.getLogger(__name__)


def is_empty(record: Optional[GreetingMeta]) -> bool:
    """True when the record has no title and no description."""
    return record is None or record.is_empty()


def _merge(
    record: GreetingMeta,
    content: str,
    title: Optional[str],
    description: Optional[str],
) -> None:
    if title is not None:
        record.title = title.strip()
    if description is not None:
        record.description = description.strip()
    record.content_hash = fingerprint(content)


def garbage_collect(store: IdentityStore) -> list[str]:
    """
    Drop empty records and every position mapped to a missing record.

    The head record is never collected. Idempotent.

    Returns:
        Identifiers of the removed records
    """
    removed = [gid for gid, meta in store.greetings.items() if meta.is_empty()]
    for gid in removed:
        del store.greetings[gid]

    head_id = store.main_greeting.id
    dangling = [
        position for position, gid in store.index_map.items()
        if gid not in store.greetings and gid != head_id
    ]
    for position in dangling:
        del store.index_map[position]

    if removed:
        logger.debug("Collected %d empty record(s): %s", len(removed), ", ".join(removed))
    return removed


def upsert(
    store: IdentityStore,
    identifier: str,
    *,
    content: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    position: Optional[int] = None,
) -> GreetingMeta:
    """
    Merge title/description into the record for ``identifier``.

    Creates the record if absent. The stored fingerprint is always
    refreshed from ``content``. Garbage collection runs afterwards, so
    clearing both fields removes the record.

    Args:
        store: Identity store to update
        identifier: Record identifier
        content: Current text of the greeting
        title: New title, or None to keep the current one
        description: New description, or None to keep the current one
        position: When given, map this position to the record (any other
            position mapped to it is unmapped)

    Returns:
        The updated record (possibly already collected if now empty)
    """
    if identifier == store.main_greeting.id:
        return update_head(store, content=content, title=title, description=description)

    record = store.greetings.get(identifier)
    if record is None:
        record = GreetingMeta(id=identifier)
        store.greetings[identifier] = record
        logger.debug("Created record %s", identifier)
    _merge(record, content, title, description)

    if position is not None:
        for other, gid in list(store.index_map.items()):
            if gid == identifier and other != position:
                del store.index_map[other]
        store.index_map[position] = identifier

    garbage_collect(store)
    return record


def update_head(
    store: IdentityStore,
    *,
    content: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    id_prefix: str = DEFAULT_ID_PREFIX,
) -> GreetingMeta:
    """
    Merge title/description into the head record.

    The head gets an identifier the first time it carries data.
    """
    head = store.main_greeting
    _merge(head, content, title, description)
    if head.id is None and not head.is_empty():
        head.id = generate_id(id_prefix, existing=store.identifiers())
        logger.debug("Assigned head identifier %s", head.id)
    garbage_collect(store)
    return head


def refresh_fingerprint_only(store: IdentityStore, position: int, content: str) -> bool:
    """
    Update the stored fingerprint for the record mapped at ``position``.

    Used when the greeting text is edited in place: the metadata stays with
    the edited greeting. No garbage collection, no search for other matches.

    Returns:
        True if a mapped record was updated
    """
    record = store.record_at(position)
    if record is None:
        return False
    record.content_hash = fingerprint(content)
    return True


def refresh_head_fingerprint(store: IdentityStore, content: str) -> None:
    """Update the head record's stored fingerprint."""
    store.main_greeting.content_hash = fingerprint(content)


def prune_positions(store: IdentityStore, length: int) -> list[int]:
    """
    Drop mappings for positions outside ``0 <= position < length``.

    Returns:
        The dropped positions
    """
    stale = [p for p in store.index_map if p < 0 or p >= length]
    for position in stale:
        del store.index_map[position]
    if stale:
        logger.debug("Pruned stale positions: %s", sorted(stale))
    return sorted(stale)
