"""
Content-identity reconciliation.

Maps positions in the alternate-greeting list to stable identifiers using
content fingerprints as the only matching signal. The list carries no ids
of its own, so after any outside edit the mapping is recovered by matching
each entry's fingerprint against the stored records.

Duplicate content is indistinguishable: when several records share a
fingerprint they are claimed first-come-first-served, scanning positions
in order against records in insertion order.
"""

import logging
from typing import Optional

from .fingerprint import fingerprint
from .types import DEFAULT_ID_PREFIX, IdentityStore, generate_id

logger = logging.getLogger(__name__)


def _find_unclaimed(store: IdentityStore, content_hash: int, claimed: set[str]) -> Optional[str]:
    for gid, meta in store.greetings.items():
        if gid in claimed:
            continue
        if meta.content_hash is not None and meta.content_hash == content_hash:
            return gid
    return None


def resolve_identifier(
    position: int,
    text: str,
    store: IdentityStore,
    claimed: Optional[set[str]] = None,
    *,
    id_prefix: str = DEFAULT_ID_PREFIX,
) -> tuple[str, bool]:
    """
    Find the identifier for the greeting at ``position``.

    1. The stored mapping for ``position`` is returned unchanged when its
       record still carries this text's fingerprint.
    2. Otherwise the first unclaimed record with a matching fingerprint is
       claimed and returned.
    3. Otherwise a fresh identifier is generated.

    The store is not modified.

    Args:
        position: Position in the alternate list
        text: Current content at that position
        store: Identity store to search
        claimed: Identifiers already taken in this reconciliation pass;
            updated in place
        id_prefix: Prefix for generated identifiers

    Returns:
        (identifier, is_new) where is_new means no record exists yet
    """
    if claimed is None:
        claimed = set()
    content_hash = fingerprint(text)

    gid = store.index_map.get(position)
    if gid is not None and gid not in claimed:
        meta = store.greetings.get(gid)
        if meta is not None and meta.content_hash == content_hash:
            claimed.add(gid)
            return gid, False

    match = _find_unclaimed(store, content_hash, claimed)
    if match is not None:
        claimed.add(match)
        logger.debug("Position %d matched record %s by content", position, match)
        return match, False

    new_id = generate_id(id_prefix, existing=store.identifiers() | claimed)
    claimed.add(new_id)
    return new_id, True


def sync_all_positions(alternates: list[str], store: IdentityStore) -> dict[int, str]:
    """
    Rebuild the whole position -> identifier map from content.

    Ignores the stored ``index_map``; every position is matched against the
    records by fingerprint, each record claimed at most once. Positions with
    no matching record stay unmapped.

    Returns:
        The new position -> identifier map (the store is not modified)
    """
    claimed: set[str] = set()
    index_map: dict[int, str] = {}
    for position, text in enumerate(alternates):
        match = _find_unclaimed(store, fingerprint(text), claimed)
        if match is not None:
            claimed.add(match)
            index_map[position] = match
    return index_map


def reconcile_positions(alternates: list[str], store: IdentityStore) -> dict[int, str]:
    """
    Load-time reconciliation.

    Stored mappings whose record fingerprint still matches the content at
    their position are trusted and claimed first. The remaining positions
    are filled by fingerprint search over the unclaimed records.

    Returns:
        The new position -> identifier map (the store is not modified)
    """
    claimed: set[str] = set()
    index_map: dict[int, str] = {}
    hashes = [fingerprint(text) for text in alternates]

    for position, gid in sorted(store.index_map.items()):
        if position < 0 or position >= len(alternates) or gid in claimed:
            continue
        meta = store.greetings.get(gid)
        if meta is not None and meta.content_hash == hashes[position]:
            claimed.add(gid)
            index_map[position] = gid

    repaired = 0
    for position, content_hash in enumerate(hashes):
        if position in index_map:
            continue
        match = _find_unclaimed(store, content_hash, claimed)
        if match is not None:
            claimed.add(match)
            index_map[position] = match
            repaired += 1

    if repaired or len(index_map) != len(store.index_map):
        logger.info(
            "Reconciled positions: %d trusted, %d re-matched, %d dropped",
            len(index_map) - repaired, repaired,
            max(len(store.index_map) - (len(index_map) - repaired), 0),
        )
    return dict(sorted(index_map.items()))
