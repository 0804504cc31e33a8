# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain models — pure data structures, NO FastAPI dependency.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DATE_FORMAT = "%d/%m/%Y"

ROLE_ENGINEER = "Engineer"
ROLE_QA = "QA"
ROLE_PM = "PM"
ROLES = (ROLE_ENGINEER, ROLE_QA, ROLE_PM)

SPRINT_STATUSES = ("planned", "active", "finished")
SESSION_ACTIVE = "active"
SESSION_ENDED = "ended"

VALID_VOTES = ("0.5", "1", "2", "3", "5")


# ── Rotation ──

class RotationConfig(BaseModel):
    """Static rotation config, keyed the way the JSON document spells it."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    first_sprint_number: float = Field(..., alias="firstSprintNumber", gt=0)
    first_sprint_start_date: date = Field(..., alias="firstSprintStartDate")
    sprint_length_days: int = Field(default=14, alias="sprintLengthDays", gt=0)
    release_masters: list[str] = Field(..., alias="releaseMasters", min_length=1)
    scrum_masters: list[str] = Field(..., alias="scrumMasters", min_length=1)
    release_master_index_at_first_sprint: int = Field(
        default=0, alias="releaseMasterIndexAtFirstSprint"
    )
    scrum_master_index_at_first_sprint: int = Field(
        default=0, alias="scrumMasterIndexAtFirstSprint"
    )

    @field_validator("first_sprint_start_date", mode="before")
    @classmethod
    def parse_start_date(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return datetime.strptime(v.strip(), DATE_FORMAT).date()
            except ValueError as e:
                raise ValueError(
                    f"Invalid date: {v}. Expected format: dd/mm/yyyy"
                ) from e
        return v

    @field_validator("release_masters", "scrum_masters")
    @classmethod
    def names_not_blank(cls, v: list[str]) -> list[str]:
        if any(not name.strip() for name in v):
            raise ValueError("roster names must not be blank")
        return v


class SprintRecord(BaseModel):
    """Derived view of one sprint. Computed on demand, never stored."""

    index: int
    sprint: float
    release: float
    sprint_label: str
    release_label: str
    release_master: str
    scrum_master: str
    start_date: str
    end_date: str
    date_range: str
    is_current: bool = False
    capacity_plan_id: Optional[str] = None


# ── Capacity ──

class TeamMember(BaseModel):
    """One row of a sprint's capacity roster."""

    name: str = Field(..., min_length=1, max_length=255)
    role: str = Field(default=ROLE_ENGINEER, pattern="^(Engineer|QA|PM)$")
    leave_days: float = Field(default=0, ge=0)
    public_holiday_days: float = Field(default=0, ge=0)
    full_capacity_points: float = Field(default=20, ge=0)
    id: Optional[str] = None


class SprintEffort(BaseModel):
    """Shared per-sprint overhead inputs, applied to every member."""

    lead_effort_hours: float = Field(default=8, ge=0)
    support_effort_hours: float = Field(default=8, ge=0)
    release_effort_points: float = Field(default=0, ge=0)
    lead_effort_points_input: float = Field(default=2, ge=0)
    support_effort_points_input: float = Field(default=0, ge=0)
    dev_capacity_factor: float = 80
    qa_capacity_factor: float = 100


class CapacityConstants(BaseModel):
    """Conversion constants and factor bounds for capacity maths."""

    model_config = ConfigDict(frozen=True)

    hours_to_points: float = 0.25
    days_to_points: float = 2
    buffer_factor: float = 1.2
    code_freeze_factor: float = 0.8
    factor_min: float = 10
    factor_max: float = 100


class MemberCapacity(BaseModel):
    name: str
    role: str
    leave_points: float
    holiday_points: float
    shared_deduction: float
    net_capacity: float


class CapacitySummary(BaseModel):
    members: list[MemberCapacity]
    shared_deduction: float
    effort_total: float
    dev_capacity: float
    qa_capacity: float
    current_dev_capacity: float
    min_sprint_capacity_dev: float
    min_sprint_capacity_qa: float
    total_planned: float
    max_planned: float
    code_freeze_commitment: float


class SprintPlan(BaseModel):
    """A persisted capacity plan: sprint row plus its member rows."""

    id: Optional[str] = None
    name: str
    status: str = Field(default="planned", pattern="^(planned|active|finished)$")
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    effort: SprintEffort = Field(default_factory=SprintEffort)
    members: list[TeamMember] = Field(default_factory=list)
    created: Optional[str] = None

    @model_validator(mode="after")
    def unique_member_names(self) -> "SprintPlan":
        names = [m.name for m in self.members]
        if len(names) != len(set(names)):
            raise ValueError("member names must be unique within a sprint")
        return self


# ── Planning poker ──

class PokerSession(BaseModel):
    id: str
    session_id: str
    owner_name: str
    revealed: bool = False
    current_story: str = ""
    status: str = SESSION_ACTIVE


class PokerParticipant(BaseModel):
    id: str
    name: str
    vote: Optional[str] = None


class VoteStats(BaseModel):
    average: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    consensus: bool = False


class PokerRound(BaseModel):
    """Archived result of one completed estimation round."""

    story: str
    votes: dict[str, Optional[str]]
    average: Optional[float] = None
    archived_at: str


class TimerState(BaseModel):
    ends_at: Optional[str] = None
    remaining_seconds: Optional[float] = None
    expired: bool = False


class ChangeEvent(BaseModel):
    """One change notification delivered by the record store."""

    action: str = Field(..., pattern="^(create|update|delete)$")
    collection: str
    record: dict[str, Any]
