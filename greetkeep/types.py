"""
Data types for greeting metadata.
"""

import re
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional


MAX_OWNER_ID_LENGTH = 1024

# Prefix for generated greeting identifiers
DEFAULT_ID_PREFIX = "g_"

PREVIEW_MAX_LINES = 3
PREVIEW_MAX_CHARS = 200

# Owner IDs: printable characters minus control chars and a small blocklist.
# Blocked: null bytes (\x00), control chars (\x01-\x1f), DEL (\x7f),
#   backslash (path confusion), backtick (shell), angle brackets (HTML/XML),
#   pipe (shell), semicolon (shell/SQL), double quote, single quote
_ID_BLOCKED_RE = re.compile(r'[\x00-\x1f\x7f\\`<>|;"\']')

_BASE36 = string.digits + string.ascii_lowercase


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def validate_owner_id(owner_id: str) -> None:
    """Validate an owner ID: length and no dangerous characters."""
    if not owner_id or len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise ValueError(f"Owner ID must be 1-{MAX_OWNER_ID_LENGTH} characters")
    if _ID_BLOCKED_RE.search(owner_id):
        raise ValueError(f"Owner ID contains invalid characters: {owner_id!r}")


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id(
    prefix: str = DEFAULT_ID_PREFIX,
    existing: Optional[Iterable[str]] = None,
) -> str:
    """
    Generate an opaque greeting identifier.

    Format: ``<prefix><millis base36>_<6 random base36 chars>``.
    Never derived from content. Regenerates on collision with ``existing``.
    """
    taken = set(existing) if existing is not None else set()
    while True:
        stamp = _to_base36(time.time_ns() // 1_000_000)
        suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
        candidate = f"{prefix}{stamp}_{suffix}"
        if candidate not in taken:
            return candidate


def content_preview(content: str) -> str:
    """
    Short preview of greeting content: the first three lines.

    Truncated to 200 characters with a trailing ``...`` when the content
    has more lines or the preview is too long.
    """
    lines = content.split("\n")
    preview = "\n".join(lines[:PREVIEW_MAX_LINES])
    if len(lines) > PREVIEW_MAX_LINES or len(preview) > PREVIEW_MAX_CHARS:
        preview = preview[:PREVIEW_MAX_CHARS] + "..."
    return preview


@dataclass
class GreetingMeta:
    """
    User-authored metadata for one greeting.

    A record without a title and without a description is empty and is
    dropped by garbage collection, whatever its fingerprint.
    """
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    content_hash: Optional[int] = None

    def is_empty(self) -> bool:
        return not (self.title or "").strip() and not (self.description or "").strip()

    def copy(self) -> "GreetingMeta":
        return GreetingMeta(
            id=self.id,
            title=self.title,
            description=self.description,
            content_hash=self.content_hash,
        )


@dataclass
class IdentityStore:
    """
    The persisted identity record for one owner.

    Attributes:
        main_greeting: Metadata for the head slot (id-less when empty)
        greetings: Records keyed by identifier, in insertion order
        index_map: Alternate-greeting position -> identifier
        head_slot: Place in ``greetings`` the head record was taken from by
            the last swap, so swapping back restores record order. Not
            persisted.
    """
    main_greeting: GreetingMeta = field(default_factory=GreetingMeta)
    greetings: dict[str, GreetingMeta] = field(default_factory=dict)
    index_map: dict[int, str] = field(default_factory=dict)
    head_slot: Optional[int] = field(default=None, compare=False, repr=False)

    def copy(self) -> "IdentityStore":
        return IdentityStore(
            main_greeting=self.main_greeting.copy(),
            greetings={gid: meta.copy() for gid, meta in self.greetings.items()},
            index_map=dict(self.index_map),
            head_slot=self.head_slot,
        )

    def identifiers(self) -> set[str]:
        """All identifiers in use, the head's included."""
        ids = set(self.greetings)
        if self.main_greeting.id:
            ids.add(self.main_greeting.id)
        return ids

    def position_of(self, identifier: str) -> Optional[int]:
        for position, gid in self.index_map.items():
            if gid == identifier:
                return position
        return None

    def record_at(self, position: int) -> Optional[GreetingMeta]:
        gid = self.index_map.get(position)
        if gid is None:
            return None
        return self.greetings.get(gid)

    def check_invariants(self, length: Optional[int] = None) -> list[str]:
        """
        Describe every violated invariant (empty list when consistent).

        Args:
            length: Current number of alternate greetings, to detect stale
                positions. Skipped when None.
        """
        problems = []
        seen: dict[str, int] = {}
        for position, gid in sorted(self.index_map.items()):
            if gid not in self.greetings and gid != self.main_greeting.id:
                problems.append(f"position {position} maps to unknown id {gid!r}")
            if gid in seen:
                problems.append(
                    f"positions {seen[gid]} and {position} share id {gid!r}"
                )
            seen.setdefault(gid, position)
            if position < 0 or (length is not None and position >= length):
                problems.append(f"position {position} is out of range")
        for gid, meta in self.greetings.items():
            if meta.is_empty():
                problems.append(f"record {gid!r} is empty")
        return problems


@dataclass
class Greetings:
    """Content snapshot of one owner's greetings: the head plus the ordinary list."""
    main: str = ""
    alternates: list[str] = field(default_factory=list)


@dataclass
class GreetingOption:
    """
    A selectable greeting for display.

    swipe_index 0 is the main greeting; alternates start at 1.
    """
    swipe_index: int
    content: str
    title: str
    description: str
    id: Optional[str]

    @property
    def preview(self) -> str:
        return self.description or content_preview(self.content)
