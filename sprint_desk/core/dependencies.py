# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
FastAPI dependency injection — wire the record store, repositories and services.
"""

from sprint_desk.core.config import settings
from sprint_desk.core.errors import ConfigError
from sprint_desk.repositories.poker_repository import PokerRepository
from sprint_desk.repositories.record_store import InMemoryRecordStore, RecordStore
from sprint_desk.repositories.sprint_repository import SprintRepository
from sprint_desk.services.capacity_service import CapacityService
from sprint_desk.services.pocketbase_client import PocketBaseStore
from sprint_desk.services.poker_reducer import SESSIONS_COLLECTION
from sprint_desk.services.poker_service import PokerService
from sprint_desk.services.rotation_service import RotationService


def build_store(backend: str) -> RecordStore:
    if backend == "pocketbase":
        return PocketBaseStore()
    if backend == "memory":
        return InMemoryRecordStore(
            unique_keys={SESSIONS_COLLECTION: ("session_id",)},
            poll_seconds=settings.SUBSCRIPTION_POLL_SECONDS,
        )
    raise ConfigError(f"Unknown STORE_BACKEND '{backend}' (expected memory or pocketbase)")


# ── Singleton instances ──
_store = build_store(settings.STORE_BACKEND)
_sprint_repo = SprintRepository(_store)
_poker_repo = PokerRepository(_store)

_rotation_service = RotationService(sprint_repo=_sprint_repo)
_capacity_service = CapacityService(
    sprint_repo=_sprint_repo,
    rotation_service=_rotation_service,
)
_poker_service = PokerService(poker_repo=_poker_repo)


# ── FastAPI dependency functions ──
def get_store() -> RecordStore:
    return _store


def get_rotation_service() -> RotationService:
    return _rotation_service


def get_capacity_service() -> CapacityService:
    return _capacity_service


def get_poker_service() -> PokerService:
    return _poker_service
