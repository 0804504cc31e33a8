# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: Capacity plan data access.
Maps the `sprints` and `capacities` collections to SprintPlan objects.
NO business rules here — pure CRUD.
"""

from typing import Any, Optional

from sprint_desk.models.domain import SprintEffort, SprintPlan, TeamMember
from sprint_desk.repositories.record_store import RecordStore

SPRINTS = "sprints"
CAPACITIES = "capacities"

EFFORT_FIELDS = tuple(SprintEffort.model_fields)


def _value(record: dict[str, Any], field: str, default: Any) -> Any:
    value = record.get(field)
    return default if value is None or value == "" else value


def effort_from_record(record: dict[str, Any]) -> SprintEffort:
    defaults = SprintEffort()
    return SprintEffort(
        **{field: _value(record, field, getattr(defaults, field)) for field in EFFORT_FIELDS}
    )


def member_from_record(record: dict[str, Any], default_capacity: float = 20) -> TeamMember:
    return TeamMember(
        id=record["id"],
        name=record["name"],
        role=_value(record, "role", "Engineer"),
        leave_days=_value(record, "leave_days", 0),
        public_holiday_days=_value(record, "public_holiday_days", 0),
        full_capacity_points=_value(record, "full_capacity_points", default_capacity),
    )


class SprintRepository:
    """Store-backed capacity plans."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    # ── Read ──

    def list_sprints(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        return self._store.list(SPRINTS, sort="-created", limit=limit)

    def latest(self) -> Optional[dict[str, Any]]:
        records = self._store.list(SPRINTS, sort="-created", limit=1)
        return records[0] if records else None

    def get_sprint(self, sprint_id: str) -> dict[str, Any]:
        return self._store.get(SPRINTS, sprint_id)

    def list_capacities(self, sprint_id: str) -> list[dict[str, Any]]:
        return self._store.list(CAPACITIES, filters={"sprint": sprint_id}, sort="created")

    def to_plan(self, sprint: dict[str, Any], capacities: list[dict[str, Any]],
                default_capacity: float = 20) -> SprintPlan:
        return SprintPlan(
            id=sprint["id"],
            name=sprint["name"],
            status=_value(sprint, "status", "planned"),
            start_date=sprint.get("start_date"),
            end_date=sprint.get("end_date"),
            effort=effort_from_record(sprint),
            members=[member_from_record(c, default_capacity) for c in capacities],
            created=sprint.get("created"),
        )

    # ── Write ──

    def create_sprint(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._store.create(SPRINTS, data)

    def update_sprint(self, sprint_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._store.update(SPRINTS, sprint_id, data)

    def save_capacity(
        self,
        sprint_id: str,
        member: TeamMember,
        working_days: float,
        record_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Write one member row of a plan; record_id must be a row of that plan."""
        data = {
            "sprint": sprint_id,
            "name": member.name,
            "role": member.role,
            "leave_days": member.leave_days,
            "public_holiday_days": member.public_holiday_days,
            "full_capacity_points": member.full_capacity_points,
            "working_days": working_days,
        }
        if record_id:
            return self._store.update(CAPACITIES, record_id, data)
        return self._store.create(CAPACITIES, data)
