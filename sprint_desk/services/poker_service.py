# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Planning-poker rooms.

Each command re-reads the session from the store, lets the round reducer
check preconditions, writes through the repository, then folds the written
records back into the reducer. A store failure therefore leaves the local
projection untouched. Every read and write of one room runs under that
room's lock.
"""

import threading
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sprint_desk.core.config import settings
from sprint_desk.core.errors import ValidationError
from sprint_desk.core.logging import get_logger
from sprint_desk.metrics.prometheus import (
    POKER_ACTIVE_ROOMS,
    POKER_ROUNDS_COMPLETED,
    POKER_SESSION_RACES,
    POKER_SESSIONS_CREATED,
    POKER_VOTES_CAST,
)
from sprint_desk.models.domain import ChangeEvent, PokerRound, TimerState
from sprint_desk.repositories.poker_repository import PokerRepository
from sprint_desk.services.poker_reducer import (
    MIN_NAME_LENGTH,
    SESSIONS_COLLECTION,
    VOTES_COLLECTION,
    PokerRoundReducer,
    participant_from_record,
    session_from_record,
)

logger = get_logger(__name__)

SESSION_ID_LENGTH = 8


def new_session_id() -> str:
    return uuid.uuid4().hex[:SESSION_ID_LENGTH]


class PokerService:
    """Business logic for planning-poker sessions."""

    def __init__(self, poker_repo: PokerRepository, max_rounds: Optional[int] = None) -> None:
        self._repo = poker_repo
        self._max_rounds = max_rounds or settings.POKER_MAX_ROUNDS
        self._rooms: dict[str, PokerRoundReducer] = {}
        self._room_locks: dict[str, threading.RLock] = {}
        self._lock = threading.Lock()

    # ── Rooms ──

    def _find(self, session_id: str) -> dict[str, Any]:
        record = self._repo.find_session(session_id)
        if record is None:
            raise KeyError(f"Poker session '{session_id}' not found")
        return record

    def _room_lock(self, session_id: str) -> threading.RLock:
        with self._lock:
            return self._room_locks.setdefault(session_id, threading.RLock())

    def _room(self, session_id: str) -> PokerRoundReducer:
        """Hydrate the projection of one session from the store. Caller holds the room lock."""
        session = session_from_record(self._find(session_id))
        participants = [participant_from_record(r) for r in self._repo.list_votes(session.id)]
        with self._lock:
            room = self._rooms.get(session_id)
            if room is None:
                room = PokerRoundReducer(session, participants, max_rounds=self._max_rounds)
                self._rooms[session_id] = room
                POKER_ACTIVE_ROOMS.set(len(self._rooms))
                return room
        room.load(session, participants)
        return room

    @contextmanager
    def _open(self, session_id: str) -> Iterator[PokerRoundReducer]:
        """Hydrated room, with its lock held for every read and write in the block."""
        with self._room_lock(session_id):
            yield self._room(session_id)

    def forget(self) -> None:
        with self._lock:
            self._rooms.clear()
            self._room_locks.clear()
            POKER_ACTIVE_ROOMS.set(0)

    # ── Commands ──

    def create_session(self, owner_name: str, session_id: Optional[str] = None) -> dict[str, Any]:
        """Create a session, or return the existing one when another initializer won."""
        owner = (owner_name or "").strip()
        if len(owner) < MIN_NAME_LENGTH:
            raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
        session_id = session_id or new_session_id()
        log_extra = {"session_id": session_id}

        record, created = self._repo.create_session_if_absent(session_id, owner)
        if created:
            POKER_SESSIONS_CREATED.inc()
            logger.info("Poker session created: owner=%s", owner, extra=log_extra)
        else:
            POKER_SESSION_RACES.inc()
            logger.info("Poker session already existed", extra=log_extra)

        with self._open(record["session_id"]) as room:
            return {"created": created, "session": room.snapshot()}

    def get_room(self, session_id: str, viewer_id: Optional[str] = None) -> dict[str, Any]:
        with self._open(session_id) as room:
            return room.snapshot(viewer_id)

    def join(self, session_id: str, name: str, participant_id: Optional[str] = None) -> dict[str, Any]:
        """Register a participant; a known participant_id reconnects instead."""
        log_extra = {"session_id": session_id}
        with self._open(session_id) as room:
            if participant_id:
                try:
                    existing = room.participant(participant_id)
                except KeyError:
                    logger.info("Stale participant id, joining fresh", extra=log_extra)
                else:
                    return {
                        "participant": existing.model_dump(),
                        "reconnected": True,
                        "session": room.snapshot(existing.id),
                    }

            display_name = room.join(name)
            record = self._repo.create_participant(room.session.id, display_name)
            room.apply(ChangeEvent(action="create", collection=VOTES_COLLECTION, record=record))
            participant = participant_from_record(record)
            logger.info("Participant joined: name=%s", display_name, extra=log_extra)
            return {
                "participant": participant.model_dump(),
                "reconnected": False,
                "session": room.snapshot(participant.id),
            }

    def vote(self, session_id: str, participant_id: str, value: str) -> dict[str, Any]:
        with self._open(session_id) as room:
            new_vote = room.vote(participant_id, value)
            record = self._repo.set_vote(participant_id, new_vote)
            room.apply(ChangeEvent(action="update", collection=VOTES_COLLECTION, record=record))
            POKER_VOTES_CAST.labels(kind="withdrawn" if new_vote is None else "cast").inc()
            return room.snapshot(participant_id)

    def reveal(self, session_id: str, actor: Optional[str]) -> dict[str, Any]:
        with self._open(session_id) as room:
            room.reveal(actor)
            record = self._repo.update_session(room.session.id, {"revealed": True})
            room.apply(ChangeEvent(action="update", collection=SESSIONS_COLLECTION, record=record))
            logger.info("Votes revealed", extra={"session_id": session_id})
            return room.snapshot()

    def reset(self, session_id: str, actor: Optional[str], archive: bool = True) -> dict[str, Any]:
        """Clear every vote and hide results, archiving the finished round locally."""
        with self._open(session_id) as room:
            voted_ids = room.reset(actor)

            events = [
                ChangeEvent(
                    action="update",
                    collection=VOTES_COLLECTION,
                    record=self._repo.set_vote(pid, None),
                )
                for pid in voted_ids
            ]
            session_record = self._repo.update_session(room.session.id, {"revealed": False})
            events.append(ChangeEvent(action="update", collection=SESSIONS_COLLECTION, record=session_record))

            archived: Optional[PokerRound] = room.archive_round() if archive else None
            room.fold(events)
            POKER_ROUNDS_COMPLETED.labels(archived=str(archive).lower()).inc()
            logger.info("Round reset: cleared=%d, archived=%s", len(voted_ids), archive,
                        extra={"session_id": session_id})
            return {
                "session": room.snapshot(),
                "archived_round": archived.model_dump() if archived else None,
            }

    def end(self, session_id: str, actor: Optional[str]) -> dict[str, Any]:
        with self._open(session_id) as room:
            room.end(actor)
            record = self._repo.update_session(room.session.id, {"status": "ended"})
            room.apply(ChangeEvent(action="update", collection=SESSIONS_COLLECTION, record=record))
            logger.info("Poker session ended", extra={"session_id": session_id})
            return room.snapshot()

    def set_story(self, session_id: str, actor: Optional[str], story: str) -> dict[str, Any]:
        with self._open(session_id) as room:
            cleaned = room.set_story(actor, story)
            record = self._repo.update_session(room.session.id, {"current_story": cleaned})
            room.apply(ChangeEvent(action="update", collection=SESSIONS_COLLECTION, record=record))
            return room.snapshot()

    def start_timer(self, session_id: str, actor: Optional[str], seconds: int) -> TimerState:
        with self._open(session_id) as room:
            return room.start_timer(actor, seconds, max_seconds=settings.POKER_MAX_TIMER_SECONDS)

    def rounds(self, session_id: str) -> list[PokerRound]:
        with self._open(session_id) as room:
            return room.rounds

    # ── Live view ──

    def watch(self, session_id: str, viewer_id: Optional[str] = None) -> Iterator[dict[str, Any]]:
        """Yield the room snapshot now and after every remote change, until the session ends."""
        # Subscribed before hydrating, so a write landing in between is still seen.
        subscription = self._repo.subscribe_room(self._find(session_id)["id"])
        lock = self._room_lock(session_id)
        try:
            subscription.open()
            with lock:
                room = self._room(session_id)
                snapshot, ended = room.snapshot(viewer_id), room.ended
            yield snapshot
            if ended:
                return
            for event in subscription:
                with lock:
                    snapshot = room.snapshot(viewer_id) if room.apply(event) else None
                    ended = room.ended
                if snapshot is not None:
                    yield snapshot
                if ended:
                    return
        finally:
            subscription.close()
