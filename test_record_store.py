# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false

"""
Tests for the record store contract as implemented in memory.
"""

import threading
import typing
from unittest.mock import patch

import pytest

from sprint_desk.core.errors import CollaboratorError, RecordConflictError
from sprint_desk.models.domain import ChangeEvent
from sprint_desk.repositories.record_store import InMemoryRecordStore, Topic


@pytest.fixture
def store():
    return InMemoryRecordStore(unique_keys={"poker_sessions": ("session_id",)}, poll_seconds=0.05)


class TestCrud:
    def test_create_assigns_id_and_timestamps(self, store):
        record = store.create("sprints", {"name": "Sprint 1.195.0"})
        assert len(record["id"]) == 15
        assert record["created"] and record["updated"]
        assert store.get("sprints", record["id"])["name"] == "Sprint 1.195.0"

    def test_returned_records_are_copies(self, store):
        record = store.create("sprints", {"name": "A", "tags": ["x"]})
        record["tags"].append("y")
        assert store.get("sprints", record["id"])["tags"] == ["x"]

    def test_update(self, store):
        record = store.create("sprints", {"name": "A", "status": "planned"})
        updated = store.update("sprints", record["id"], {"status": "finished", "id": "hijack"})
        assert updated["id"] == record["id"]
        assert updated["status"] == "finished"
        assert updated["name"] == "A"

    def test_missing_record(self, store):
        with pytest.raises(KeyError):
            store.get("sprints", "nope")
        with pytest.raises(KeyError):
            store.update("sprints", "nope", {})
        with pytest.raises(KeyError):
            store.delete("sprints", "nope")

    def test_delete(self, store):
        record = store.create("sprints", {"name": "A"})
        store.delete("sprints", record["id"])
        assert store.count("sprints") == 0


class TestList:
    def test_filter_sort_limit(self, store):
        for name, status in [("B", "active"), ("A", "active"), ("C", "finished")]:
            store.create("sprints", {"name": name, "status": status})
        active = store.list("sprints", filters={"status": "active"}, sort="name")
        assert [r["name"] for r in active] == ["A", "B"]
        newest = store.list("sprints", sort="-created", limit=1)
        assert newest[0]["name"] == "C"

    def test_unknown_collection_is_empty(self, store):
        assert store.list("nothing") == []

    def test_find_one(self, store):
        store.create("poker_sessions", {"session_id": "abcd1234"})
        assert store.find_one("poker_sessions", {"session_id": "abcd1234"}) is not None
        assert store.find_one("poker_sessions", {"session_id": "00000000"}) is None


class TestCreateIfAbsent:
    def test_unique_key_enforced(self, store):
        store.create("poker_sessions", {"session_id": "abcd1234"})
        with pytest.raises(RecordConflictError):
            store.create("poker_sessions", {"session_id": "abcd1234"})

    def test_existing_returned(self, store):
        first, created = store.create_if_absent("poker_sessions", "session_id", {"session_id": "abcd1234"})
        second, created_again = store.create_if_absent("poker_sessions", "session_id", {"session_id": "abcd1234"})
        assert created is True and created_again is False
        assert first["id"] == second["id"]

    def test_lost_race_refetches(self, store):
        winner = store.create("poker_sessions", {"session_id": "abcd1234"})
        real_find = store.find_one

        # The first lookup runs before the winner's create lands.
        def first_miss(collection, filters):
            if not getattr(first_miss, "seen", False):
                first_miss.seen = True
                return None
            return real_find(collection, filters)

        with patch.object(store, "find_one", side_effect=first_miss):
            record, created = store.create_if_absent(
                "poker_sessions", "session_id", {"session_id": "abcd1234"}
            )
        assert created is False
        assert record["id"] == winner["id"]
        assert store.count("poker_sessions") == 1

    def test_failure_without_record_is_raised(self, store):
        with patch.object(store, "create", side_effect=CollaboratorError("create", "poker_sessions", "down")):
            with pytest.raises(CollaboratorError):
                store.create_if_absent("poker_sessions", "session_id", {"session_id": "abcd1234"})

    def test_concurrent_creates_make_one_record(self, store):
        results = []

        def bootstrap():
            results.append(store.create_if_absent(
                "poker_sessions", "session_id", {"session_id": "abcd1234"}
            ))

        threads = [threading.Thread(target=bootstrap) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.count("poker_sessions") == 1
        assert sum(1 for _, created in results if created) == 1
        assert len({record["id"] for record, _ in results}) == 1


class TestSubscriptions:
    def test_topic_name_and_match(self):
        topic = Topic("poker_votes", filters={"session": "s1"})
        assert topic.name == "poker_votes/*"
        assert topic.matches(ChangeEvent(action="create", collection="poker_votes",
                                         record={"id": "v1", "session": "s1"}))
        assert not topic.matches(ChangeEvent(action="create", collection="poker_votes",
                                             record={"id": "v2", "session": "s2"}))

    def test_subscription_needs_topics(self, store):
        with pytest.raises(ValueError):
            store.subscribe_topics([])

    def test_filtered_events_then_close(self, store):
        subscription = store.subscribe("poker_votes", filters={"session": "s1"})
        store.create("poker_votes", {"session": "s1", "participant_name": "Sam"})
        store.create("poker_votes", {"session": "s2", "participant_name": "Eve"})
        subscription.close()
        events = list(subscription)
        assert [e.record["participant_name"] for e in events] == ["Sam"]
        assert events[0].action == "create"

    def test_single_record_topic(self, store):
        session = store.create("poker_sessions", {"session_id": "abcd1234"})
        other = store.create("poker_sessions", {"session_id": "ffff0000"})
        with store.subscribe("poker_sessions", session["id"]) as subscription:
            store.update("poker_sessions", other["id"], {"revealed": True})
            store.update("poker_sessions", session["id"], {"revealed": True})
            store.delete("poker_sessions", session["id"])
        events = list(subscription)
        assert [e.action for e in events] == ["update", "delete"]

    def test_closed_subscription_stops_receiving(self, store):
        subscription = store.subscribe("sprints")
        subscription.close()
        store.create("sprints", {"name": "late"})
        assert list(subscription) == []

    def test_clear_closes_subscribers(self, store):
        subscription = store.subscribe("sprints")
        store.create("sprints", {"name": "A"})
        store.clear()
        assert len(list(subscription)) == 1
        assert store.count("sprints") == 0


class TestSignatures:
    def test_topic_annotations_resolve_to_builtin_list(self):
        # Store classes define a list() method; annotations must still mean the builtin.
        from sprint_desk.services.pocketbase_client import PocketBaseStore

        for cls in (InMemoryRecordStore, PocketBaseStore):
            hints = typing.get_type_hints(cls.subscribe_topics)
            assert hints["topics"] == list[Topic]
