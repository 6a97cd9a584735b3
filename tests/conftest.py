"""
Shared pytest fixtures for greetkeep tests.

Provides in-memory gateways and greeting hosts so most tests never touch
the filesystem.
"""

import pytest

from greetkeep.document_store import ListEntryHost, MemoryMetadataStore
from greetkeep.fingerprint import fingerprint
from greetkeep.types import GreetingMeta, Greetings, IdentityStore


def make_record(gid: str, content: str, title: str = "", description: str = "") -> GreetingMeta:
    """Record for ``content`` as it would be after a save."""
    return GreetingMeta(
        id=gid,
        title=title,
        description=description,
        content_hash=fingerprint(content),
    )


def make_store(records: list[tuple[str, str, str]], mapped: bool = True) -> IdentityStore:
    """
    Build a store from (id, content, title) tuples.

    With ``mapped``, record ``i`` is mapped to position ``i``.
    """
    store = IdentityStore()
    for position, (gid, content, title) in enumerate(records):
        store.greetings[gid] = make_record(gid, content, title)
        if mapped:
            store.index_map[position] = gid
    return store


class RecordingGateway(MemoryMetadataStore):
    """Memory gateway that counts saves."""

    def __init__(self):
        super().__init__()
        self.saves = 0

    def save(self, owner_id, store):
        self.saves += 1
        super().save(owner_id, store)


@pytest.fixture
def gateway():
    """Fresh in-memory gateway that counts saves."""
    return RecordingGateway()


@pytest.fixture
def host():
    """Host with a main greeting and three alternates."""
    return ListEntryHost("Main hello", ["Alt A", "Alt B", "Alt C"])


@pytest.fixture
def greetings():
    return Greetings(main="Main hello", alternates=["A", "B", "C"])


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    """Isolated store directory; error logs land there too."""
    path = tmp_path / "store"
    monkeypatch.setenv("GREETKEEP_STORE_PATH", str(path))
    return path


@pytest.fixture
def record_factory():
    """The make_record helper, for tests that build stores by hand."""
    return make_record


@pytest.fixture
def store_factory():
    """The make_store helper."""
    return make_store
