"""
Core API for greeting metadata.

GreetingKeeper ties a store directory, its configuration and a persistence
gateway together:
- load() / save(): read or replace one owner's identity store
- open_session(): start an editing session over a host's greetings
"""

import logging
from pathlib import Path
from typing import Optional

from .backend import LOCAL_BACKENDS, create_gateway
from .config import GreetkeepConfig, get_default_store_path, load_or_create_config
from .logging_config import configure_ops_log, remove_ops_log
from .protocol import EntryHostProtocol, MetadataGatewayProtocol
from .session import GreetingSession
from .types import IdentityStore

logger = logging.getLogger(__name__)


class GreetingKeeper:
    """
    Greeting metadata store.

    Usage::

        keeper = GreetingKeeper()           # ~/.greetkeep or GREETKEEP_STORE_PATH
        with keeper.open_session("alice.png", host) as session:
            session.set_details(0, title="Tavern arrival")
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[GreetkeepConfig] = None,
        gateway: Optional[MetadataGatewayProtocol] = None,
    ):
        """
        Args:
            store_path: Store directory. Defaults to GREETKEEP_STORE_PATH,
                then ~/.greetkeep. Ignored when ``config`` is given.
            config: Explicit configuration (not written to disk)
            gateway: Explicit persistence gateway, bypassing the backend
                factory
        """
        if config is None:
            path = Path(store_path).expanduser() if store_path is not None else get_default_store_path()
            config = load_or_create_config(path)
        self.config = config

        self._ops_handler = None
        if gateway is None:
            if config.backend in LOCAL_BACKENDS:
                self._ops_handler = configure_ops_log(config.path)
            gateway = create_gateway(config)
        self._gateway = gateway
        self._sessions: list[GreetingSession] = []
        logger.info("Opened greeting store at %s (backend=%s)", config.path, config.backend)

    @property
    def gateway(self) -> MetadataGatewayProtocol:
        return self._gateway

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def load(self, owner_id: Optional[str]) -> IdentityStore:
        """Read an owner's identity store (empty defaults if absent)."""
        return self._gateway.load(owner_id)

    def save(self, owner_id: Optional[str], store: IdentityStore) -> None:
        """Replace an owner's stored document."""
        self._gateway.save(owner_id, store)

    def delete(self, owner_id: Optional[str]) -> bool:
        deleted = self._gateway.delete(owner_id)
        if deleted:
            logger.info("Deleted greeting metadata for %s", owner_id)
        return deleted

    def list_owners(self) -> list[str]:
        return self._gateway.list_owners()

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def open_session(
        self,
        owner_id: Optional[str],
        host: EntryHostProtocol,
        *,
        debounce_seconds: Optional[float] = None,
    ) -> GreetingSession:
        """
        Start editing an owner's greetings.

        Args:
            owner_id: Owner of the greetings (None for an unsaved owner)
            host: Owner of the greeting text
            debounce_seconds: Override the configured save interval
        """
        if debounce_seconds is None:
            debounce_seconds = self.config.debounce_seconds
        session = GreetingSession(
            owner_id,
            host,
            self._gateway,
            debounce_seconds=debounce_seconds,
            main_title=self.config.main_title,
            alternate_title=self.config.alternate_title,
            store_path=self.config.path,
            on_close=self._forget_session,
        )
        self._sessions.append(session)
        return session

    def _forget_session(self, session: GreetingSession) -> None:
        if session in self._sessions:
            self._sessions.remove(session)

    @property
    def sessions(self) -> list[GreetingSession]:
        """Sessions opened by this keeper that are still open."""
        return list(self._sessions)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Flush open sessions and release the gateway."""
        sessions, self._sessions = self._sessions, []
        try:
            for session in sessions:
                session.close()
        finally:
            self._gateway.close()
            if self._ops_handler is not None:
                remove_ops_log(self._ops_handler)
                self._ops_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
