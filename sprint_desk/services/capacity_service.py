# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Capacity planning business logic.
Orchestrates the capacity maths, the default team roster and the sprint
repository. Finished plans are read-only; starting the next sprint closes
the current one and clones its roster with leave reset.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sprint_desk.core.config import settings
from sprint_desk.core.errors import CollaboratorError, ConfigError, RoundStateError
from sprint_desk.core.logging import get_logger
from sprint_desk.metrics.prometheus import (
    CAPACITY_CALCULATIONS,
    CAPACITY_PLANS_SAVED,
    SPRINTS_STARTED,
)
from sprint_desk.models.domain import (
    CapacityConstants,
    CapacitySummary,
    SprintEffort,
    SprintPlan,
    TeamMember,
)
from sprint_desk.repositories.sprint_repository import SprintRepository
from sprint_desk.services import capacity
from sprint_desk.services.rotation_service import RotationService

logger = get_logger(__name__)

STATUS_PLANNED = "planned"
STATUS_ACTIVE = "active"
STATUS_FINISHED = "finished"

PLAN_LENGTH_DAYS = 14


def load_team(path: str, default_capacity: float) -> list[TeamMember]:
    """Default roster from a JSON list of {name, role}. Raises ConfigError."""
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except FileNotFoundError:
        logger.warning("Team config not found: path=%s, starting with no default team", path)
        return []
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read team config '{path}': {exc}") from exc

    try:
        return [
            TeamMember(
                name=entry["name"],
                role=entry.get("role", "Engineer"),
                full_capacity_points=entry.get("full_capacity_points", default_capacity),
            )
            for entry in raw
        ]
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise ConfigError(f"Invalid team config '{path}': {exc}") from exc


def merge_roster(defaults: list[TeamMember], stored: list[TeamMember]) -> list[TeamMember]:
    """Default team first, stored rows override by name, extra stored rows appended."""
    by_name = {m.name: m for m in stored}
    merged = [by_name.pop(m.name, m) for m in defaults]
    merged.extend(m for m in stored if m.name in by_name)
    return merged


class CapacityService:
    """Business logic for sprint capacity plans."""

    def __init__(
        self,
        sprint_repo: SprintRepository,
        rotation_service: RotationService,
        team_config_path: Optional[str] = None,
        constants: Optional[CapacityConstants] = None,
    ) -> None:
        self._repo = sprint_repo
        self._rotation = rotation_service
        self._team_path = team_config_path or settings.TEAM_CONFIG_PATH
        self._constants = constants
        self._team: Optional[list[TeamMember]] = None

    @property
    def constants(self) -> CapacityConstants:
        return self._constants or capacity.capacity_constants()

    def default_team(self) -> list[TeamMember]:
        if self._team is None:
            self._team = load_team(self._team_path, settings.DEFAULT_FULL_CAPACITY)
        return [m.model_copy() for m in self._team]

    # ── Calculation ──

    def calculate(self, members: list[TeamMember], effort: SprintEffort) -> CapacitySummary:
        summary = capacity.summarize(members, effort, self.constants)
        CAPACITY_CALCULATIONS.inc()
        return summary

    def _view(self, plan: SprintPlan) -> dict[str, Any]:
        return {
            "plan": plan,
            "summary": self.calculate(plan.members, plan.effort),
            "read_only": plan.status == STATUS_FINISHED,
        }

    # ── Queries ──

    def list_plans(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        records = self._repo.list_sprints(limit=limit or settings.DEFAULT_SPRINT_LIST_LIMIT)
        return [
            {
                "id": r["id"],
                "name": r.get("name", ""),
                "status": r.get("status") or STATUS_PLANNED,
                "created": r.get("created"),
            }
            for r in records
        ]

    def load_plan(self, sprint_id: str) -> SprintPlan:
        sprint = self._repo.get_sprint(sprint_id)
        stored = self._repo.to_plan(
            sprint, self._repo.list_capacities(sprint_id), settings.DEFAULT_FULL_CAPACITY
        )
        if stored.status == STATUS_FINISHED:
            return stored
        return stored.model_copy(
            update={"members": merge_roster(self.default_team(), stored.members)}
        )

    def get_plan(self, sprint_id: str) -> dict[str, Any]:
        return self._view(self.load_plan(sprint_id))

    def latest_plan(self) -> dict[str, Any]:
        """Most recent plan, or an unsaved draft named after the current sprint."""
        latest = self._repo.latest()
        if latest is not None:
            return self.get_plan(latest["id"])
        return self._view(self.draft_plan())

    def draft_plan(self) -> SprintPlan:
        try:
            current = self._rotation.current()
        except ConfigError as exc:
            logger.warning("Rotation unavailable for draft plan name: %s", exc)
            current = None
        return SprintPlan(
            name=capacity.default_sprint_name(current),
            status=STATUS_PLANNED,
            members=self.default_team(),
        )

    # ── Commands ──

    def save_plan(self, plan: SprintPlan) -> dict[str, Any]:
        """Create or update a plan and its member rows. Raises RoundStateError if finished."""
        # Reject bad factors before anything is written.
        self.calculate(plan.members, plan.effort)

        sprint_data: dict[str, Any] = {
            "name": plan.name,
            "status": plan.status,
            **plan.effort.model_dump(),
        }
        if plan.id:
            existing = self._repo.get_sprint(plan.id)
            if (existing.get("status") or STATUS_PLANNED) == STATUS_FINISHED:
                raise RoundStateError(f"Sprint plan '{existing.get('name')}' is finished and read-only")
            sprint = self._repo.update_sprint(plan.id, sprint_data)
            mode = "update"
        else:
            now = datetime.now(timezone.utc)
            sprint_data["start_date"] = plan.start_date or now.isoformat()
            sprint_data["end_date"] = plan.end_date or (
                now + timedelta(days=PLAN_LENGTH_DAYS)
            ).isoformat()
            sprint = self._repo.create_sprint(sprint_data)
            mode = "create"

        self._save_members(sprint["id"], plan.members)
        CAPACITY_PLANS_SAVED.labels(mode=mode).inc()
        logger.info(
            "Capacity plan saved: id=%s, name=%s, mode=%s, members=%d",
            sprint["id"], plan.name, mode, len(plan.members),
        )
        return self.get_plan(sprint["id"])

    def _save_members(self, sprint_id: str, members: list[TeamMember]) -> None:
        # Only this plan's rows are updated; ids from other plans fall back to a name match.
        rows = self._repo.list_capacities(sprint_id)
        own_ids = {row["id"] for row in rows}
        by_name = {row["name"]: row["id"] for row in rows}
        for member in members:
            record_id = member.id if member.id in own_ids else by_name.get(member.name)
            days = capacity.working_days(member)
            self._repo.save_capacity(sprint_id, member, days, record_id=record_id)

    def start_next_sprint(self, sprint_id: str) -> dict[str, Any]:
        """Finish the given plan and open its successor with the same roster."""
        current = self.load_plan(sprint_id)
        if current.status == STATUS_FINISHED:
            raise RoundStateError(f"Sprint plan '{current.name}' is already finished")

        next_name = capacity.next_sprint_name(current.name)
        now = datetime.now(timezone.utc)
        new_sprint = self._repo.create_sprint({
            "name": next_name,
            "status": STATUS_ACTIVE,
            "start_date": now.isoformat(),
            "end_date": (now + timedelta(days=PLAN_LENGTH_DAYS)).isoformat(),
            **current.effort.model_dump(),
        })
        cloned = [
            m.model_copy(update={"id": None, "leave_days": 0, "public_holiday_days": 0})
            for m in current.members
        ]
        self._save_members(new_sprint["id"], cloned)

        try:
            self._repo.update_sprint(sprint_id, {"status": STATUS_FINISHED})
        except CollaboratorError:
            logger.error(
                "New sprint %s created but %s could not be marked finished",
                new_sprint["id"], sprint_id,
            )
            raise

        SPRINTS_STARTED.inc()
        logger.info("Next sprint started: from=%s, to=%s, name=%s",
                    sprint_id, new_sprint["id"], next_name)
        return self.get_plan(new_sprint["id"])
