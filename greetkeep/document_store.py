"""
Metadata document stores.

Each owner (for example a character card) has exactly one metadata
document. Writes replace the whole document; the latest write wins.

Backends:
- SqliteMetadataStore: one row per owner in a SQLite database (default)
- JsonFileMetadataStore: one JSON file per owner in a directory
- MemoryMetadataStore: process-local, for hosts that have not saved the
  owner yet and for tests
"""

import hashlib
import json
import logging
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from .schema import load_store, store_to_document
from .types import IdentityStore, utc_now, validate_owner_id

logger = logging.getLogger(__name__)


def _no_owner(action: str) -> None:
    logger.warning("No owner selected, skipping metadata %s", action)


class SqliteMetadataStore:
    """
    SQLite-backed store for per-owner metadata documents.

    The document is stored as JSON text so that documents written by other
    versions round-trip unchanged through ``load``.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrent access across processes
        self._conn.execute("PRAGMA journal_mode=WAL")
        # Wait up to 5 seconds for locks instead of failing immediately
        self._conn.execute("PRAGMA busy_timeout=5000")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS greeting_metadata (
                owner_id TEXT PRIMARY KEY,
                data_json TEXT NOT NULL DEFAULT '{}',
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    # -------------------------------------------------------------------------
    # Raw documents
    # -------------------------------------------------------------------------

    def get_document(self, owner_id: str) -> Optional[Any]:
        """
        Get the raw stored document for an owner.

        Returns:
            Parsed JSON value, or None if no document (or unreadable JSON)
        """
        validate_owner_id(owner_id)
        with self._lock:
            cursor = self._conn.execute("""
                SELECT data_json FROM greeting_metadata
                WHERE owner_id = ?
            """, (owner_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["data_json"])
        except json.JSONDecodeError as e:
            logger.warning("Malformed metadata document for %s: %s", owner_id, e)
            return None

    def put_document(self, owner_id: str, data: dict) -> None:
        """Replace the stored document for an owner."""
        validate_owner_id(owner_id)
        data_json = json.dumps(data, ensure_ascii=False)
        with self._lock:
            self._conn.execute("""
                INSERT OR REPLACE INTO greeting_metadata
                (owner_id, data_json, updated_at)
                VALUES (?, ?, ?)
            """, (owner_id, data_json, utc_now()))
            self._conn.commit()

    # -------------------------------------------------------------------------
    # Gateway operations
    # -------------------------------------------------------------------------

    def load(self, owner_id: Optional[str]) -> IdentityStore:
        """Load an owner's identity store (empty defaults if absent)."""
        if owner_id is None:
            return IdentityStore()
        return load_store(self.get_document(owner_id))

    def save(self, owner_id: Optional[str], store: IdentityStore) -> None:
        """Replace an owner's stored document with ``store``."""
        if owner_id is None:
            _no_owner("save")
            return
        self.put_document(owner_id, store_to_document(store))
        logger.debug("Saved metadata for %s (%d records)", owner_id, len(store.greetings))

    def delete(self, owner_id: Optional[str]) -> bool:
        """
        Delete an owner's document.

        Returns:
            True if a document existed and was deleted
        """
        if owner_id is None:
            _no_owner("delete")
            return False
        validate_owner_id(owner_id)
        with self._lock:
            cursor = self._conn.execute("""
                DELETE FROM greeting_metadata
                WHERE owner_id = ?
            """, (owner_id,))
            self._conn.commit()
        return cursor.rowcount > 0

    def list_owners(self) -> list[str]:
        """List owners that have a stored document."""
        with self._lock:
            cursor = self._conn.execute("""
                SELECT owner_id FROM greeting_metadata
                ORDER BY owner_id
            """)
            return [row["owner_id"] for row in cursor]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()


class JsonFileMetadataStore:
    """
    Directory of JSON documents, one file per owner.

    File names are derived from a hash of the owner ID, so any valid owner
    ID maps to a safe file name. The owner ID is kept inside the file.
    """

    def __init__(self, directory: Path):
        self._dir = directory
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, owner_id: str) -> Path:
        digest = hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:16]
        return self._dir / f"{digest}.json"

    def load(self, owner_id: Optional[str]) -> IdentityStore:
        if owner_id is None:
            return IdentityStore()
        validate_owner_id(owner_id)
        path = self._path(owner_id)
        if not path.exists():
            return IdentityStore()
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable metadata file %s: %s", path, e)
            return IdentityStore()
        if not isinstance(payload, dict):
            return IdentityStore()
        return load_store(payload.get("data"))

    def save(self, owner_id: Optional[str], store: IdentityStore) -> None:
        if owner_id is None:
            _no_owner("save")
            return
        validate_owner_id(owner_id)
        payload = {
            "owner_id": owner_id,
            "updated_at": utc_now(),
            "data": store_to_document(store),
        }
        path = self._path(owner_id)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, sort_keys=True)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, owner_id: Optional[str]) -> bool:
        if owner_id is None:
            _no_owner("delete")
            return False
        validate_owner_id(owner_id)
        path = self._path(owner_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_owners(self) -> list[str]:
        owners = []
        for path in self._dir.glob("*.json"):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                continue
            if isinstance(payload, dict) and isinstance(payload.get("owner_id"), str):
                owners.append(payload["owner_id"])
        return sorted(owners)

    def close(self) -> None:
        pass


class MemoryMetadataStore:
    """In-process metadata store. Documents are kept in serialized form."""

    def __init__(self):
        self._docs: dict[str, dict] = {}

    def load(self, owner_id: Optional[str]) -> IdentityStore:
        if owner_id is None:
            return IdentityStore()
        return load_store(self._docs.get(owner_id))

    def save(self, owner_id: Optional[str], store: IdentityStore) -> None:
        if owner_id is None:
            _no_owner("save")
            return
        validate_owner_id(owner_id)
        self._docs[owner_id] = store_to_document(store)

    def delete(self, owner_id: Optional[str]) -> bool:
        if owner_id is None:
            _no_owner("delete")
            return False
        return self._docs.pop(owner_id, None) is not None

    def list_owners(self) -> list[str]:
        return sorted(self._docs)

    def get_document(self, owner_id: str) -> Optional[dict]:
        return self._docs.get(owner_id)

    def close(self) -> None:
        self._docs.clear()


class ListEntryHost:
    """In-memory greeting owner: a main greeting plus a list of alternates."""

    def __init__(self, main: str = "", alternates: Optional[list[str]] = None):
        self.main = main
        self.alternates = list(alternates) if alternates is not None else []

    def get_main(self) -> str:
        return self.main

    def set_main(self, content: str) -> None:
        self.main = content

    def get_alternates(self) -> list[str]:
        return list(self.alternates)

    def set_alternates(self, alternates: list[str]) -> None:
        self.alternates = list(alternates)
