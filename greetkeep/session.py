"""
Editing session for one owner's greetings.

A session holds all working state for one editing context: the content
snapshot read from the host, the identity store loaded from the gateway,
and the debounced writer. Every edit is applied synchronously in the order
it arrives, written back to the host, and followed by a coalesced save of
the whole store.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from . import exchange, lifecycle
from .config import DEFAULT_ALTERNATE_TITLE, DEFAULT_DEBOUNCE_SECONDS, DEFAULT_MAIN_TITLE
from .debounce import DebouncedWriter
from .protocol import EntryHostProtocol, MetadataGatewayProtocol
from .reconcile import reconcile_positions, resolve_identifier
from .schema import store_to_document
from .types import DEFAULT_ID_PREFIX, GreetingMeta, GreetingOption, Greetings, IdentityStore

logger = logging.getLogger(__name__)


class GreetingSession:
    """
    Metadata editor state for one owner.

    Positions are indexes into the alternate-greeting list; the main
    greeting has its own methods.
    """

    def __init__(
        self,
        owner_id: Optional[str],
        host: EntryHostProtocol,
        gateway: MetadataGatewayProtocol,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        main_title: str = DEFAULT_MAIN_TITLE,
        alternate_title: str = DEFAULT_ALTERNATE_TITLE,
        id_prefix: str = DEFAULT_ID_PREFIX,
        store_path: Optional[Path] = None,
        on_close: Optional[Callable[["GreetingSession"], None]] = None,
    ):
        """
        Args:
            owner_id: Owner of the greetings; None when the host has no
                saved owner yet (edits stay in memory, saves are skipped)
            host: Owner of the greeting text
            gateway: Metadata persistence
            debounce_seconds: Quiet interval before a coalesced save
            main_title: Display title for an untitled main greeting
            alternate_title: Display title prefix for untitled alternates
            id_prefix: Prefix for generated identifiers
            store_path: Store directory that receives the error log of
                failed background saves
            on_close: Called with the session once it has closed
        """
        self.owner_id = owner_id
        self._host = host
        self._gateway = gateway
        self._main_title = main_title
        self._alternate_title = alternate_title
        self._id_prefix = id_prefix
        self._lock = threading.RLock()
        self._closed = False
        self._on_close = on_close

        self.greetings = Greetings(main=host.get_main() or "", alternates=list(host.get_alternates()))
        self.store = self._load()
        self._writer = DebouncedWriter(
            self._save, debounce_seconds,
            name=f"greetkeep-save {owner_id}", store_path=store_path,
        )

    # -------------------------------------------------------------------------
    # Loading & saving
    # -------------------------------------------------------------------------

    def _load(self) -> IdentityStore:
        store = self._gateway.load(self.owner_id)
        alternates = self.greetings.alternates
        store.index_map = reconcile_positions(alternates, store)
        lifecycle.prune_positions(store, len(alternates))
        lifecycle.garbage_collect(store)
        lifecycle.refresh_head_fingerprint(store, self.greetings.main)
        problems = store.check_invariants(len(alternates))
        if problems:
            logger.debug("Loaded store for %s has issues: %s", self.owner_id, "; ".join(problems))
        logger.debug(
            "Opened session for %s: %d greetings, %d records, %d mapped",
            self.owner_id, len(alternates), len(store.greetings), len(store.index_map),
        )
        return store

    def _save(self) -> None:
        self._gateway.save(self.owner_id, self.snapshot())

    def _changed(self, *, content: bool = False) -> None:
        if content:
            self._host.set_main(self.greetings.main)
            self._host.set_alternates(list(self.greetings.alternates))
        self._writer.schedule()

    def snapshot(self) -> IdentityStore:
        """Independent copy of the current identity store."""
        with self._lock:
            return self.store.copy()

    def document(self) -> dict:
        """The current store in its persisted document form."""
        with self._lock:
            return store_to_document(self.store)

    @property
    def save_pending(self) -> bool:
        return self._writer.pending

    def flush(self) -> bool:
        """Persist now if a save is pending. Returns True if written."""
        return self._writer.flush()

    def close(self) -> None:
        """Write any pending save and stop the timer."""
        if self._closed:
            return
        self._closed = True
        try:
            self._writer.flush()
        finally:
            self._writer.cancel()
            if self._on_close is not None:
                self._on_close(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # -------------------------------------------------------------------------
    # Content edits
    # -------------------------------------------------------------------------

    def edit_text(self, position: int, text: str) -> bool:
        """
        Replace the text of the alternate at ``position``.

        Metadata stays attached to the edited greeting.
        """
        with self._lock:
            if position < 0 or position >= len(self.greetings.alternates):
                return False
            self.greetings.alternates[position] = text
            lifecycle.refresh_fingerprint_only(self.store, position, text)
            self._changed(content=True)
            return True

    def edit_main(self, text: str) -> None:
        """Replace the text of the main greeting."""
        with self._lock:
            self.greetings.main = text
            lifecycle.refresh_head_fingerprint(self.store, text)
            self._changed(content=True)

    def add(self, text: str = "") -> str:
        """Append a new alternate greeting. Returns its identifier."""
        with self._lock:
            gid = exchange.insert_at_end(self.greetings, self.store, text, id_prefix=self._id_prefix)
            self._changed(content=True)
            return gid

    def delete(self, position: int) -> bool:
        """Delete the alternate at ``position``."""
        with self._lock:
            if not exchange.remove_at(self.greetings, self.store, position):
                return False
            self._changed(content=True)
            return True

    def move(self, position: int, delta: int) -> bool:
        """Move the alternate at ``position`` up (-1) or down (+1)."""
        with self._lock:
            if not exchange.move_at(self.greetings, self.store, position, delta):
                return False
            self._changed(content=True)
            return True

    def swap_with_head(self) -> bool:
        """Make the first alternate the main greeting and vice versa."""
        with self._lock:
            if not exchange.swap_with_head(self.greetings, self.store):
                return False
            self._changed(content=True)
            return True

    # -------------------------------------------------------------------------
    # Metadata edits
    # -------------------------------------------------------------------------

    def set_details(
        self,
        position: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[str]:
        """
        Set the title and/or description of the alternate at ``position``.

        An unmapped greeting is matched to a stored record by content, or
        given a new identifier. Clearing both fields drops the record.

        Returns:
            The greeting's identifier, or None for an out-of-range position
            or when the greeting is left without a record
        """
        with self._lock:
            if position < 0 or position >= len(self.greetings.alternates):
                return None
            text = self.greetings.alternates[position]
            claimed = {gid for p, gid in self.store.index_map.items() if p != position}
            gid, is_new = resolve_identifier(
                position, text, self.store, claimed, id_prefix=self._id_prefix,
            )
            if is_new and title is None and description is None:
                return None
            lifecycle.upsert(
                self.store, gid,
                content=text, title=title, description=description, position=position,
            )
            if gid not in self.store.greetings:
                # Cleared, or created empty: the record was collected
                if not is_new:
                    self._changed()
                return None
            self._changed()
            return gid

    def set_main_details(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> GreetingMeta:
        """Set the title and/or description of the main greeting."""
        with self._lock:
            head = lifecycle.update_head(
                self.store,
                content=self.greetings.main,
                title=title,
                description=description,
                id_prefix=self._id_prefix,
            )
            self._changed()
            return head.copy()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def identifier_at(self, position: int) -> Optional[str]:
        with self._lock:
            return self.store.index_map.get(position)

    def details_at(self, position: int) -> Optional[GreetingMeta]:
        """Metadata for the alternate at ``position`` (None if it has none)."""
        with self._lock:
            record = self.store.record_at(position)
            return record.copy() if record is not None else None

    def main_details(self) -> GreetingMeta:
        with self._lock:
            return self.store.main_greeting.copy()

    def options(self) -> list[GreetingOption]:
        """
        All greetings as display options.

        Swipe index 0 is the main greeting; alternate ``n`` (1-based) falls
        back to the title "Alternate Greeting #n".
        """
        with self._lock:
            head = self.store.main_greeting
            options = [GreetingOption(
                swipe_index=0,
                content=self.greetings.main,
                title=head.title or self._main_title,
                description=head.description,
                id=head.id,
            )]
            for position, text in enumerate(self.greetings.alternates):
                record = self.store.record_at(position)
                options.append(GreetingOption(
                    swipe_index=position + 1,
                    content=text,
                    title=(record.title if record else "") or f"{self._alternate_title} #{position + 1}",
                    description=record.description if record else "",
                    id=self.store.index_map.get(position),
                ))
            return options

    def find_option(self, swipe_index: int) -> Optional[GreetingOption]:
        for option in self.options():
            if option.swipe_index == swipe_index:
                return option
        return None
