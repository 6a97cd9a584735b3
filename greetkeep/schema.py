"""
Persisted document schema.

The stored document is JSON-compatible and version-agnostic::

    {
      "mainGreeting": {"id"?, "title"?, "description"?, "contentHash"?},
      "greetings": {"<id>": {"id"?, "title"?, "description"?, "contentHash"}},
      "indexMap": {"<position>": "<id>"}
    }

Documents written by older versions, or edited by hand, may miss any field
or carry the wrong type. Parsing never fails on shape: missing containers
become empty, unusable entries are dropped, and unusable values fall back
to their defaults.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .types import GreetingMeta, IdentityStore

logger = logging.getLogger(__name__)


class GreetingMetaModel(BaseModel):
    """One metadata record as stored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    title: str = ""
    description: str = ""
    content_hash: Optional[int] = Field(default=None, alias="contentHash")

    @field_validator("id", mode="before")
    @classmethod
    def _id_or_none(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) and v else None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("content_hash", mode="before")
    @classmethod
    def _hash_or_none(cls, v: Any) -> Optional[int]:
        # bool is an int subclass; a stored true/false is not a hash
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return None


class GreetingToolsDocument(BaseModel):
    """The whole per-owner document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    main_greeting: GreetingMetaModel = Field(
        default_factory=GreetingMetaModel, alias="mainGreeting",
    )
    greetings: dict[str, GreetingMetaModel] = Field(default_factory=dict)
    index_map: dict[int, str] = Field(default_factory=dict, alias="indexMap")

    @field_validator("main_greeting", mode="before")
    @classmethod
    def _main_or_empty(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, GreetingMetaModel)) else {}

    @field_validator("greetings", mode="before")
    @classmethod
    def _records_only(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            return {}
        records = {}
        for key, value in v.items():
            if not isinstance(key, str) or not key:
                continue
            if isinstance(value, GreetingMetaModel):
                records[key] = value
            elif isinstance(value, dict):
                records[key] = value
            else:
                logger.debug("Dropping malformed greeting record %r", key)
        return records

    @field_validator("index_map", mode="before")
    @classmethod
    def _positions_only(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            return {}
        positions = {}
        for key, value in v.items():
            try:
                position = int(key)
            except (TypeError, ValueError):
                logger.debug("Dropping non-integer position %r", key)
                continue
            if position < 0 or not isinstance(value, str) or not value:
                continue
            positions[position] = value
        return positions


def parse_document(raw: Any) -> GreetingToolsDocument:
    """Parse a loaded JSON value, tolerating any shape."""
    if not isinstance(raw, dict):
        return GreetingToolsDocument()
    return GreetingToolsDocument.model_validate(raw)


def document_to_store(doc: GreetingToolsDocument) -> IdentityStore:
    """Convert a parsed document to the working identity store."""
    main = doc.main_greeting
    greetings = {}
    for gid, rec in doc.greetings.items():
        greetings[gid] = GreetingMeta(
            id=rec.id or gid,
            title=rec.title,
            description=rec.description,
            content_hash=rec.content_hash,
        )
    return IdentityStore(
        main_greeting=GreetingMeta(
            id=main.id,
            title=main.title,
            description=main.description,
            content_hash=main.content_hash,
        ),
        greetings=greetings,
        index_map=dict(doc.index_map),
    )


def store_to_document(store: IdentityStore) -> dict:
    """Serialize an identity store to its JSON-compatible document form."""
    def record(meta: GreetingMeta) -> GreetingMetaModel:
        return GreetingMetaModel(
            id=meta.id,
            title=meta.title,
            description=meta.description,
            content_hash=meta.content_hash,
        )

    doc = GreetingToolsDocument(
        main_greeting=record(store.main_greeting),
        greetings={gid: record(meta) for gid, meta in store.greetings.items()},
        index_map=dict(store.index_map),
    )
    data = doc.model_dump(by_alias=True, exclude_none=True)
    data["indexMap"] = {str(pos): gid for pos, gid in sorted(doc.index_map.items())}
    return data


def load_store(raw: Any) -> IdentityStore:
    """Parse a raw JSON value straight to an identity store."""
    return document_to_store(parse_document(raw))
