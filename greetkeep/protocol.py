"""
Protocol definitions for the collaborators around the reconciliation core.

Defines interface contracts at two levels:
- MetadataGatewayProtocol: durable storage of identity stores, keyed by owner
  (SQLite, JSON files or memory locally; anything registered as a backend)
- EntryHostProtocol: the component that owns the greeting text itself
"""

from typing import Optional, Protocol, runtime_checkable

from .types import IdentityStore


@runtime_checkable
class MetadataGatewayProtocol(Protocol):
    """
    Persistence gateway for greeting metadata.

    An owner ID of None means no owner context: reads return an empty
    store and writes are skipped with a warning.
    """

    def load(self, owner_id: Optional[str]) -> IdentityStore: ...

    def save(self, owner_id: Optional[str], store: IdentityStore) -> None: ...

    def delete(self, owner_id: Optional[str]) -> bool: ...

    def list_owners(self) -> list[str]: ...

    def close(self) -> None: ...


@runtime_checkable
class EntryHostProtocol(Protocol):
    """
    Owner of the greeting text.

    The host has no notion of metadata or identity; it only stores the
    main greeting and the ordered list of alternates.
    """

    def get_main(self) -> str: ...

    def set_main(self, content: str) -> None: ...

    def get_alternates(self) -> list[str]: ...

    def set_alternates(self, alternates: list[str]) -> None: ...
