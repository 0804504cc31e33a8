# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: Planning-poker data access.
Encapsulates reads/writes on the `poker_sessions` and `poker_votes`
collections. NO business rules here — pure CRUD.
"""

from typing import Any, Optional

from sprint_desk.models.domain import SESSION_ACTIVE
from sprint_desk.repositories.record_store import RecordStore, Subscription, Topic
from sprint_desk.services.poker_reducer import SESSIONS_COLLECTION, VOTES_COLLECTION


class PokerRepository:
    """Store-backed poker sessions and per-participant vote records."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    # ── Sessions ──

    def find_session(self, session_id: str) -> Optional[dict[str, Any]]:
        return self._store.find_one(SESSIONS_COLLECTION, {"session_id": session_id})

    def create_session_if_absent(self, session_id: str, owner_name: str) -> tuple[dict[str, Any], bool]:
        return self._store.create_if_absent(
            SESSIONS_COLLECTION,
            "session_id",
            {
                "session_id": session_id,
                "owner_name": owner_name,
                "revealed": False,
                "current_story": "",
                "status": SESSION_ACTIVE,
            },
        )

    def update_session(self, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._store.update(SESSIONS_COLLECTION, record_id, data)

    # ── Votes ──

    def list_votes(self, session_record_id: str) -> list[dict[str, Any]]:
        return self._store.list(
            VOTES_COLLECTION, filters={"session": session_record_id}, sort="created"
        )

    def create_participant(self, session_record_id: str, name: str) -> dict[str, Any]:
        return self._store.create(
            VOTES_COLLECTION,
            {"session": session_record_id, "participant_name": name, "vote": None},
        )

    def set_vote(self, vote_record_id: str, vote: Optional[str]) -> dict[str, Any]:
        return self._store.update(VOTES_COLLECTION, vote_record_id, {"vote": vote})

    # ── Change streams ──

    def subscribe_room(self, session_record_id: str) -> Subscription:
        """Session record changes plus every vote record of that session."""
        return self._store.subscribe_topics([
            Topic(SESSIONS_COLLECTION, session_record_id),
            Topic(VOTES_COLLECTION, filters={"session": session_record_id}),
        ])
