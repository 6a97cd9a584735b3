"""
Position exchange for greetings and their identifier mappings.

Every operation changes the content list and the position -> identifier
map together. The head (main greeting) is not part of the movable range:
it only changes place through ``swap_with_head``.
"""

import logging

from .fingerprint import fingerprint
from .lifecycle import garbage_collect
from .types import DEFAULT_ID_PREFIX, GreetingMeta, Greetings, IdentityStore, generate_id

logger = logging.getLogger(__name__)


def _swap_mappings(store: IdentityStore, a: int, b: int) -> None:
    id_a = store.index_map.pop(a, None)
    id_b = store.index_map.pop(b, None)
    if id_a is not None:
        store.index_map[b] = id_a
    if id_b is not None:
        store.index_map[a] = id_b


def move_at(greetings: Greetings, store: IdentityStore, position: int, delta: int) -> bool:
    """
    Exchange the greeting at ``position`` with its neighbour.

    Moving position 0 up exchanges it with the head instead.

    Args:
        greetings: Content snapshot (mutated)
        store: Identity store (mutated)
        position: Position in the alternate list
        delta: -1 (up) or +1 (down)

    Returns:
        True if anything moved; False for an out-of-range move
    """
    if delta not in (-1, 1):
        raise ValueError(f"delta must be -1 or 1, got {delta!r}")

    alternates = greetings.alternates
    if position < 0 or position >= len(alternates):
        return False
    if position == 0 and delta == -1:
        return swap_with_head(greetings, store)

    target = position + delta
    if target < 0 or target >= len(alternates):
        return False

    alternates[position], alternates[target] = alternates[target], alternates[position]
    _swap_mappings(store, position, target)
    return True


def move(greetings: Greetings, store: IdentityStore, identifier: str, delta: int) -> bool:
    """Move the greeting mapped to ``identifier`` by ``delta``; see ``move_at``."""
    position = store.position_of(identifier)
    if position is None:
        logger.debug("move: %s is not mapped to a position", identifier)
        return False
    return move_at(greetings, store, position, delta)


def swap_with_head(greetings: Greetings, store: IdentityStore) -> bool:
    """
    Exchange the head greeting with alternate position 0.

    Content and records trade places; each record keeps its own identifier
    and metadata. An unmapped position 0 becomes an id-less empty head, and
    an id-less head leaves position 0 unmapped. The old head record takes
    the slot in ``store.greetings`` that the new head vacated (or the slot
    it came from, see ``IdentityStore.head_slot``), so applying the swap
    twice restores the original state, record order included.

    Returns:
        False (no-op) when there are no alternates
    """
    if not greetings.alternates:
        return False

    old_head = store.main_greeting
    records = list(store.greetings.items())
    first_id = store.index_map.pop(0, None)

    vacated = None
    if first_id is not None and first_id in store.greetings:
        vacated = [gid for gid, _ in records].index(first_id)
        store.main_greeting = records.pop(vacated)[1]
    else:
        store.main_greeting = GreetingMeta(content_hash=fingerprint(greetings.alternates[0]))

    if old_head.id is not None:
        slot = vacated if vacated is not None else store.head_slot
        if slot is None or slot > len(records):
            slot = len(records)
        records.insert(slot, (old_head.id, old_head))
        store.index_map[0] = old_head.id

    store.greetings = dict(records)
    store.head_slot = vacated

    greetings.main, greetings.alternates[0] = greetings.alternates[0], greetings.main
    logger.debug("Swapped head %s with first alternate %s", old_head.id, first_id)
    return True


def insert_at_end(
    greetings: Greetings,
    store: IdentityStore,
    text: str = "",
    *,
    id_prefix: str = DEFAULT_ID_PREFIX,
) -> str:
    """
    Append a new greeting with a fresh identifier and an empty record.

    The empty record lasts until the next garbage collection.

    Returns:
        The new greeting's identifier
    """
    new_id = generate_id(id_prefix, existing=store.identifiers())
    greetings.alternates.append(text)
    store.greetings[new_id] = GreetingMeta(id=new_id, content_hash=fingerprint(text))
    store.index_map[len(greetings.alternates) - 1] = new_id
    return new_id


def remove_at(greetings: Greetings, store: IdentityStore, position: int) -> bool:
    """
    Delete the greeting at ``position`` and shift later positions down.

    The record it was mapped to becomes an orphan: kept when it carries
    metadata (it can be re-matched by content later), collected otherwise.

    Returns:
        False (no-op) for an out-of-range position
    """
    if position < 0 or position >= len(greetings.alternates):
        return False

    del greetings.alternates[position]
    orphan = store.index_map.pop(position, None)
    store.index_map = {
        (p - 1 if p > position else p): gid
        for p, gid in sorted(store.index_map.items())
    }
    garbage_collect(store)
    if orphan is not None:
        logger.debug("Removed position %d, orphaned %s", position, orphan)
    return True


def remove(greetings: Greetings, store: IdentityStore, identifier: str) -> bool:
    """Delete the greeting mapped to ``identifier``; see ``remove_at``."""
    position = store.position_of(identifier)
    if position is None:
        logger.debug("remove: %s is not mapped to a position", identifier)
        return False
    return remove_at(greetings, store, position)
