"""
End-to-end tests for editing sessions and the GreetingKeeper facade.

The host owns the greeting text; these tests edit through the session and
check that metadata follows each greeting, in memory and after reload.
"""

import logging
import time

import pytest

from greetkeep import GreetingKeeper, GreetingSession, ListEntryHost
from greetkeep.config import GreetkeepConfig
from greetkeep.document_store import MemoryMetadataStore
from greetkeep.fingerprint import fingerprint
from greetkeep.logging_config import LOGGER_NAME, configure_quiet_mode
from greetkeep.types import GreetingMeta, IdentityStore


class FailingGateway(MemoryMetadataStore):
    """Memory gateway whose saves always fail."""

    def save(self, owner_id, store):
        raise OSError("disk full")


@pytest.fixture
def session(host, gateway):
    """Session that saves synchronously after every edit."""
    s = GreetingSession("alice.png", host, gateway, debounce_seconds=0)
    yield s
    s.close()


def reopen(host, gateway):
    return GreetingSession("alice.png", host, gateway, debounce_seconds=0)


class TestMetadataEdits:

    def test_first_title_creates_record(self, session, gateway):
        gid = session.set_details(1, title="Formal")
        assert gid is not None
        assert session.identifier_at(1) == gid
        stored = gateway.load("alice.png")
        assert stored.greetings[gid].title == "Formal"
        assert stored.greetings[gid].content_hash == fingerprint("Alt B")
        assert stored.index_map == {1: gid}
        assert gateway.saves == 1

    def test_no_fields_on_unknown_greeting(self, session, gateway):
        assert session.set_details(0) is None
        assert session.identifier_at(0) is None
        assert gateway.saves == 0

    def test_empty_fields_on_unknown_greeting(self, session, gateway):
        """A blank title for an untracked greeting leaves nothing behind."""
        assert session.set_details(0, title="", description="  ") is None
        assert session.identifier_at(0) is None
        assert session.store.greetings == {}
        assert gateway.saves == 0

    def test_clearing_returns_none_and_saves(self, session, gateway):
        gid = session.set_details(0, title="Casual")
        assert session.set_details(0, title="") is None
        assert gid not in gateway.load("alice.png").greetings
        assert gateway.saves == 2

    def test_out_of_range(self, session):
        assert session.set_details(3, title="x") is None
        assert session.set_details(-1, title="x") is None

    def test_second_edit_merges(self, session):
        gid = session.set_details(0, title="Casual")
        assert session.set_details(0, description="Friendly wave") == gid
        details = session.details_at(0)
        assert details.title == "Casual"
        assert details.description == "Friendly wave"

    def test_clearing_drops_record(self, session):
        session.set_details(0, title="Casual")
        session.set_details(0, title="", description="")
        assert session.details_at(0) is None
        assert session.identifier_at(0) is None
        assert session.document()["greetings"] == {}

    def test_main_details(self, session, gateway):
        head = session.set_main_details(title="Opening")
        assert head.id is not None
        assert session.main_details().title == "Opening"
        stored = gateway.load("alice.png").main_greeting
        assert stored.title == "Opening"
        assert stored.content_hash == fingerprint("Main hello")

    def test_returned_details_are_copies(self, session):
        session.set_details(0, title="Casual")
        session.details_at(0).title = "mutated"
        session.main_details().title = "mutated"
        assert session.details_at(0).title == "Casual"
        assert session.main_details().title == ""

    def test_duplicate_texts_get_separate_records(self, gateway):
        host = ListEntryHost("Main", ["Hi", "Hi"])
        with reopen(host, gateway) as s:
            first = s.set_details(0, title="one")
            second = s.set_details(1, title="two")
            assert first != second
        with reopen(host, gateway) as s:
            assert s.details_at(0).title == "one"
            assert s.details_at(1).title == "two"


class TestContentEdits:

    def test_edit_text_keeps_metadata(self, session, host, gateway):
        session.set_details(0, title="Casual")
        assert session.edit_text(0, "Alt A, but longer") is True
        assert host.get_alternates()[0] == "Alt A, but longer"
        assert session.details_at(0).title == "Casual"
        gid = session.identifier_at(0)
        assert gateway.load("alice.png").greetings[gid].content_hash == fingerprint("Alt A, but longer")

    def test_edit_text_out_of_range(self, session):
        assert session.edit_text(7, "x") is False

    def test_edit_main(self, session, host):
        session.set_main_details(title="Opening")
        session.edit_main("Welcome!")
        assert host.get_main() == "Welcome!"
        assert session.main_details().content_hash == fingerprint("Welcome!")
        assert session.main_details().title == "Opening"

    def test_move_carries_metadata(self, session, host):
        session.set_details(0, title="Casual")
        assert session.move(0, 1) is True
        assert host.get_alternates() == ["Alt B", "Alt A", "Alt C"]
        assert session.details_at(1).title == "Casual"
        assert session.details_at(0) is None

    def test_move_past_end(self, session, host):
        assert session.move(2, 1) is False
        assert host.get_alternates() == ["Alt A", "Alt B", "Alt C"]

    def test_delete_shifts_metadata(self, session, host):
        session.set_details(2, title="Farewell")
        assert session.delete(0) is True
        assert host.get_alternates() == ["Alt B", "Alt C"]
        assert session.details_at(1).title == "Farewell"

    def test_add(self, session, host):
        gid = session.add("Alt D")
        assert host.get_alternates()[-1] == "Alt D"
        assert session.identifier_at(3) == gid
        assert session.set_details(3, title="New") == gid

    def test_swap_with_head(self, session, host):
        session.set_main_details(title="Opening")
        session.set_details(0, title="First")
        assert session.swap_with_head() is True
        assert host.get_main() == "Alt A"
        assert host.get_alternates()[0] == "Main hello"
        assert session.main_details().title == "First"
        assert session.details_at(0).title == "Opening"

        session.swap_with_head()
        assert host.get_main() == "Main hello"
        assert session.main_details().title == "Opening"
        assert session.details_at(0).title == "First"

    def test_move_first_up_swaps_with_head(self, session, host):
        session.set_details(0, title="First")
        assert session.move(0, -1) is True
        assert host.get_main() == "Alt A"
        assert session.main_details().title == "First"


class TestReload:
    """Metadata survives outside edits made while no session was open."""

    def test_follows_host_reorder(self, host, gateway):
        with reopen(host, gateway) as s:
            s.set_details(0, title="Casual")
            s.set_details(2, title="Farewell")

        host.set_alternates(["Alt C", "Alt A", "Alt B"])

        with reopen(host, gateway) as s:
            assert s.details_at(0).title == "Farewell"
            assert s.details_at(1).title == "Casual"
            assert s.details_at(2) is None

    def test_deleted_greeting_metadata_returns_with_content(self, host, gateway):
        with reopen(host, gateway) as s:
            s.set_details(1, title="Formal")

        host.set_alternates(["Alt A", "Alt C"])
        with reopen(host, gateway) as s:
            assert s.details_at(0) is None
            assert s.details_at(1) is None

        host.set_alternates(["Alt A", "Alt C", "Alt B"])
        with reopen(host, gateway) as s:
            assert s.details_at(2).title == "Formal"

    def test_empty_records_in_stored_document_dropped(self, host, gateway):
        """Documents may hold untitled records for every greeting."""
        gateway.save("alice.png", IdentityStore(
            greetings={
                "e1": GreetingMeta(id="e1", content_hash=fingerprint("Alt A")),
                "t2": GreetingMeta(id="t2", title="Formal", content_hash=fingerprint("Alt B")),
                "e3": GreetingMeta(id="e3", title=" ", content_hash=fingerprint("Alt C")),
            },
            index_map={0: "e1", 1: "t2", 2: "e3"},
        ))
        with reopen(host, gateway) as s:
            assert s.store.check_invariants(3) == []
            assert s.store.index_map == {1: "t2"}
            s.edit_text(0, "Alt A, edited")
            assert s.store.check_invariants(3) == []

        stored = gateway.load("alice.png")
        assert list(stored.greetings) == ["t2"]
        assert stored.index_map == {1: "t2"}

    def test_stale_positions_pruned(self, host, gateway):
        with reopen(host, gateway) as s:
            s.set_details(2, title="Farewell")
        host.set_alternates(["Alt A"])
        with reopen(host, gateway) as s:
            assert s.store.index_map == {}
            assert s.store.check_invariants(1) == []


class TestSaving:

    def test_edits_coalesce_into_one_save(self, host, gateway):
        s = GreetingSession("alice.png", host, gateway, debounce_seconds=60)
        s.set_details(0, title="C")
        s.set_details(0, title="Ca")
        s.set_details(0, title="Casual")
        assert gateway.saves == 0
        assert s.save_pending is True
        assert s.flush() is True
        assert gateway.saves == 1
        assert gateway.load("alice.png").record_at(0).title == "Casual"
        s.close()
        assert gateway.saves == 1

    def test_close_writes_pending_save(self, host, gateway):
        s = GreetingSession("alice.png", host, gateway, debounce_seconds=60)
        s.set_details(0, title="Casual")
        s.close()
        s.close()
        assert gateway.saves == 1

    def test_no_owner_keeps_edits_in_memory(self, host, gateway, caplog):
        with caplog.at_level(logging.WARNING, logger=LOGGER_NAME):
            s = GreetingSession(None, host, gateway, debounce_seconds=0)
            s.set_details(0, title="Casual")
        assert "No owner selected" in caplog.text
        assert gateway.list_owners() == []
        assert s.details_at(0).title == "Casual"

    def test_snapshot_is_independent(self, session):
        session.set_details(0, title="Casual")
        snap = session.snapshot()
        snap.greetings.clear()
        assert session.details_at(0) is not None


class TestOptions:

    def test_default_titles(self, session):
        options = session.options()
        assert [o.swipe_index for o in options] == [0, 1, 2, 3]
        assert options[0].title == "Main Greeting"
        assert options[1].title == "Alternate Greeting #1"
        assert options[3].title == "Alternate Greeting #3"
        assert options[2].id is None

    def test_user_titles_and_previews(self, session):
        gid = session.set_details(1, title="Formal", description="For nobles")
        option = session.find_option(2)
        assert option.title == "Formal"
        assert option.id == gid
        assert option.preview == "For nobles"
        assert session.find_option(1).preview == "Alt A"

    def test_find_missing_option(self, session):
        assert session.find_option(99) is None

    def test_custom_titles(self, host, gateway):
        s = GreetingSession(
            "alice.png", host, gateway,
            debounce_seconds=0, main_title="Opening", alternate_title="Variant",
        )
        assert [o.title for o in s.options()[:2]] == ["Opening", "Variant #1"]


class TestGreetingKeeper:

    def test_persists_across_keepers(self, store_path):
        host = ListEntryHost("Main", ["Hi there.", "Good evening."])
        with GreetingKeeper(store_path) as keeper:
            session = keeper.open_session("alice.png", host, debounce_seconds=60)
            session.set_details(1, title="Formal")
        # close() flushed the pending save

        with GreetingKeeper(store_path) as keeper:
            assert keeper.list_owners() == ["alice.png"]
            store = keeper.load("alice.png")
            assert store.record_at(1).title == "Formal"

    def test_creates_config_and_ops_log(self, store_path):
        with GreetingKeeper(store_path) as keeper:
            assert keeper.config.config_path.exists()
        log_text = (store_path / "greetkeep-ops.log").read_text()
        assert "Opened greeting store" in log_text

    def test_default_store_path_from_env(self, store_path):
        with GreetingKeeper() as keeper:
            assert keeper.config.path == store_path

    def test_explicit_gateway(self, tmp_path):
        gateway = MemoryMetadataStore()
        config = GreetkeepConfig(path=tmp_path / "unused", debounce_seconds=0)
        keeper = GreetingKeeper(config=config, gateway=gateway)
        assert keeper.gateway is gateway
        host = ListEntryHost("Main", ["A"])
        keeper.open_session("bob.png", host).set_details(0, title="Only")
        assert gateway.load("bob.png").record_at(0).title == "Only"
        keeper.close()
        assert not (tmp_path / "unused").exists()

    def test_closed_sessions_are_released(self, store_path):
        with GreetingKeeper(store_path) as keeper:
            with keeper.open_session("alice.png", ListEntryHost("M", ["A"])) as first:
                assert keeper.sessions == [first]
            assert first.closed
            assert keeper.sessions == []

            second = keeper.open_session("bob.png", ListEntryHost("M", ["B"]))
            assert keeper.sessions == [second]
        assert second.closed
        assert keeper.sessions == []

    def test_background_failures_logged_in_explicit_store(self, store_path, tmp_path):
        explicit = tmp_path / "explicit-store"
        keeper = GreetingKeeper(
            config=GreetkeepConfig(path=explicit, debounce_seconds=0.01),
            gateway=FailingGateway(),
        )
        session = keeper.open_session("alice.png", ListEntryHost("M", ["A"]))
        session.set_details(0, title="T")

        log_path = explicit / "greetkeep-errors.log"
        deadline = time.monotonic() + 5
        while "disk full" not in (log_path.read_text() if log_path.exists() else "") \
                and time.monotonic() < deadline:
            time.sleep(0.01)
        assert "greetkeep-save alice.png" in log_path.read_text()
        assert not (store_path / "greetkeep-errors.log").exists()
        keeper.close()

    def test_delete(self, store_path):
        with GreetingKeeper(store_path) as keeper:
            session = keeper.open_session("alice.png", ListEntryHost("M", ["A"]), debounce_seconds=0)
            session.set_details(0, title="T")
            assert keeper.delete("alice.png") is True
            assert keeper.delete("alice.png") is False


class TestLoggingConfig:

    def test_quiet_mode_levels(self):
        logger = logging.getLogger(LOGGER_NAME)
        previous = logger.level
        try:
            configure_quiet_mode(True)
            assert logger.level == logging.WARNING
            configure_quiet_mode(False)
            assert logger.level == logging.NOTSET
        finally:
            logger.setLevel(previous)

    def test_debug_mode_adds_one_stderr_handler(self):
        import sys

        from greetkeep.logging_config import enable_debug_mode

        logger = logging.getLogger(LOGGER_NAME)
        previous_level, previous_handlers = logger.level, list(logger.handlers)
        try:
            enable_debug_mode()
            enable_debug_mode()
            added = [h for h in logger.handlers if h not in previous_handlers]
            assert len(added) == 1
            assert added[0].stream is sys.stderr
            assert logger.level == logging.DEBUG
        finally:
            logger.handlers = previous_handlers
            logger.setLevel(previous_level)
