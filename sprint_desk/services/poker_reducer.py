# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Planning-poker round reducer — pure state, no I/O.

The reducer owns only an in-memory projection of one session. The record
store stays authoritative:

    awaiting-join ─► voting ─► revealed ─► (reset) ─► voting ...
          └─────────────┴──────────┴──► ended   (terminal)

Commands (join/vote/reveal/reset/end/...) check preconditions against the
projection and return what should be written. The projection itself only
moves when the written record comes back through apply() / fold(), which
makes applying the same event twice harmless.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from sprint_desk.core.errors import RoundStateError, ValidationError
from sprint_desk.models.domain import (
    SESSION_ACTIVE,
    SESSION_ENDED,
    VALID_VOTES,
    ChangeEvent,
    PokerParticipant,
    PokerRound,
    PokerSession,
    TimerState,
    VoteStats,
)

SESSIONS_COLLECTION = "poker_sessions"
VOTES_COLLECTION = "poker_votes"

MIN_NAME_LENGTH = 2

PHASE_AWAITING_JOIN = "awaiting-join"
PHASE_VOTING = "voting"
PHASE_REVEALED = "revealed"
PHASE_ENDED = "ended"


# ── Record mapping ──

def session_from_record(record: dict[str, Any]) -> PokerSession:
    return PokerSession(
        id=record["id"],
        session_id=record.get("session_id", ""),
        owner_name=record.get("owner_name", ""),
        revealed=bool(record.get("revealed", False)),
        current_story=record.get("current_story") or "",
        status=record.get("status") or SESSION_ACTIVE,
    )


def participant_from_record(record: dict[str, Any]) -> PokerParticipant:
    return PokerParticipant(
        id=record["id"],
        name=record.get("participant_name", ""),
        vote=record.get("vote") or None,
    )


# ── Helpers ──

def unique_participant_name(desired: str, existing: Iterable[str]) -> str:
    """Append -2, -3, ... until the name is free."""
    taken = set(existing)
    if desired not in taken:
        return desired
    counter = 2
    candidate = f"{desired}-{counter}"
    while candidate in taken:
        counter += 1
        candidate = f"{desired}-{counter}"
    return candidate


def is_valid_vote(value: Optional[str]) -> bool:
    return value in VALID_VOTES


def vote_stats(votes: Iterable[Optional[str]]) -> VoteStats:
    """Average / min / max / consensus over the votes actually cast."""
    values = [float(v) for v in votes if v is not None and v != ""]
    if not values:
        return VoteStats()
    low = min(values)
    high = max(values)
    return VoteStats(
        average=sum(values) / len(values),
        min=low,
        max=high,
        consensus=low == high,
    )


class PokerRoundReducer:
    """In-memory projection of one poker session plus its local round log."""

    def __init__(
        self,
        session: PokerSession,
        participants: Iterable[PokerParticipant] = (),
        max_rounds: int = 100,
    ) -> None:
        self.session = session
        self._participants: dict[str, PokerParticipant] = {
            p.id: p for p in participants
        }
        self._rounds: list[PokerRound] = []
        self._max_rounds = max_rounds
        self._timer_ends_at: Optional[datetime] = None

    # ── Projection ──

    @property
    def participants(self) -> list[PokerParticipant]:
        return list(self._participants.values())

    @property
    def rounds(self) -> list[PokerRound]:
        return list(self._rounds)

    @property
    def ended(self) -> bool:
        return self.session.status == SESSION_ENDED

    @property
    def phase(self) -> str:
        if self.ended:
            return PHASE_ENDED
        if not self._participants:
            return PHASE_AWAITING_JOIN
        return PHASE_REVEALED if self.session.revealed else PHASE_VOTING

    @property
    def all_voted(self) -> bool:
        return bool(self._participants) and all(
            p.vote is not None for p in self._participants.values()
        )

    def participant(self, participant_id: str) -> PokerParticipant:
        try:
            return self._participants[participant_id]
        except KeyError:
            raise KeyError(f"No participant '{participant_id}' in this session") from None

    def is_owner(self, actor: Optional[str]) -> bool:
        return actor is not None and actor == self.session.owner_name

    def stats(self) -> VoteStats:
        return vote_stats(p.vote for p in self._participants.values())

    # ── Remote events ──

    def load(
        self, session: PokerSession, participants: Iterable[PokerParticipant]
    ) -> None:
        """Replace the projection with an authoritative snapshot."""
        self.session = session
        self._participants = {p.id: p for p in participants}

    def apply(self, event: ChangeEvent) -> bool:
        """Fold one change event. Returns True if the projection moved."""
        record = event.record
        if event.collection == SESSIONS_COLLECTION:
            if record.get("id") != self.session.id:
                return False
            if event.action == "delete":
                self.session = self.session.model_copy(update={"status": SESSION_ENDED})
            elif self.ended and record.get("status") != SESSION_ENDED:
                # Ended is terminal; a late update cannot reopen the room.
                return False
            else:
                self.session = session_from_record(record)
            return True

        if event.collection == VOTES_COLLECTION:
            if record.get("session") != self.session.id or self.ended:
                return False
            if event.action == "delete":
                return self._participants.pop(record["id"], None) is not None
            participant = participant_from_record(record)
            self._participants[participant.id] = participant
            return True

        return False

    def fold(self, events: Iterable[ChangeEvent]) -> "PokerRoundReducer":
        for event in events:
            self.apply(event)
        return self

    # ── Commands ──

    def _require_active(self) -> None:
        if self.ended:
            raise RoundStateError("Session has ended")

    def _require_owner(self, actor: Optional[str], action: str) -> None:
        if not self.is_owner(actor):
            raise PermissionError(f"Only the session owner can {action}")

    def join(self, name: str) -> str:
        """Return the display name to register for a new participant."""
        self._require_active()
        cleaned = (name or "").strip()
        if len(cleaned) < MIN_NAME_LENGTH:
            raise ValidationError(
                f"Name must be at least {MIN_NAME_LENGTH} characters"
            )
        return unique_participant_name(
            cleaned, (p.name for p in self._participants.values())
        )

    def vote(self, participant_id: str, value: str) -> Optional[str]:
        """Return the participant's new vote; voting the same value clears it."""
        self._require_active()
        if self.session.revealed:
            raise RoundStateError("Votes are revealed; reset the round to vote again")
        participant = self.participant(participant_id)
        if not is_valid_vote(value):
            raise ValidationError(
                f"Vote must be one of {', '.join(VALID_VOTES)}, got '{value}'"
            )
        return None if participant.vote == value else value

    def reveal(self, actor: Optional[str]) -> None:
        self._require_active()
        self._require_owner(actor, "reveal votes")
        if self.session.revealed:
            raise RoundStateError("Votes are already revealed")
        if not self.all_voted:
            raise RoundStateError("Every participant must vote before reveal")

    def reset(self, actor: Optional[str]) -> list[str]:
        """Return the participant ids whose votes must be cleared."""
        self._require_active()
        self._require_owner(actor, "reset the round")
        return [p.id for p in self._participants.values() if p.vote is not None]

    def end(self, actor: Optional[str]) -> None:
        self._require_active()
        self._require_owner(actor, "end the session")

    def set_story(self, actor: Optional[str], story: str) -> str:
        self._require_active()
        self._require_owner(actor, "change the story")
        return story.strip()

    # ── Local round history ──

    def archive_round(self, now: Optional[datetime] = None) -> PokerRound:
        """Snapshot story, votes and average before the votes are cleared."""
        now = now or datetime.now(timezone.utc)
        archived = PokerRound(
            story=self.session.current_story,
            votes={p.name: p.vote for p in self._participants.values()},
            average=self.stats().average,
            archived_at=now.isoformat(),
        )
        self._rounds.append(archived)
        if len(self._rounds) > self._max_rounds:
            del self._rounds[: len(self._rounds) - self._max_rounds]
        return archived

    # ── Advisory countdown ──

    def start_timer(
        self,
        actor: Optional[str],
        seconds: int,
        now: Optional[datetime] = None,
        max_seconds: int = 3600,
    ) -> TimerState:
        """Start (or with 0 seconds, clear) the countdown. Never forces a reveal."""
        self._require_active()
        self._require_owner(actor, "control the timer")
        if seconds < 0 or seconds > max_seconds:
            raise ValidationError(f"Timer must be between 0 and {max_seconds} seconds")
        now = now or datetime.now(timezone.utc)
        self._timer_ends_at = now + timedelta(seconds=seconds) if seconds else None
        return self.timer_state(now)

    def timer_state(self, now: Optional[datetime] = None) -> TimerState:
        if self._timer_ends_at is None:
            return TimerState()
        now = now or datetime.now(timezone.utc)
        remaining = (self._timer_ends_at - now).total_seconds()
        return TimerState(
            ends_at=self._timer_ends_at.isoformat(),
            remaining_seconds=max(0.0, remaining),
            expired=remaining <= 0,
        )

    # ── View ──

    def snapshot(
        self, viewer_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Room state as shown to one viewer; others' votes stay hidden until reveal."""
        revealed = self.session.revealed
        participants = [
            {
                "id": p.id,
                "name": p.name,
                "has_voted": p.vote is not None,
                "vote": p.vote if revealed or p.id == viewer_id else None,
            }
            for p in self._participants.values()
        ]
        voted = sum(1 for p in self._participants.values() if p.vote is not None)
        return {
            "id": self.session.id,
            "session_id": self.session.session_id,
            "owner_name": self.session.owner_name,
            "current_story": self.session.current_story,
            "status": self.session.status,
            "revealed": revealed,
            "phase": self.phase,
            "participants": participants,
            "voted_count": voted,
            "total_count": len(participants),
            "all_voted": self.all_voted,
            "stats": self.stats().model_dump() if revealed else None,
            "timer": self.timer_state(now).model_dump(),
            "rounds_played": len(self._rounds),
        }
