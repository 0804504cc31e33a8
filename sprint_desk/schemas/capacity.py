# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request / Response schemas — capacity planning endpoints.
Factor bounds are enforced by the capacity maths, not here, so the
configured limits apply to every caller the same way.
"""

from typing import Optional

from pydantic import BaseModel, Field

from sprint_desk.models.domain import CapacitySummary, SprintEffort, SprintPlan, TeamMember


class CapacityCalculateRequest(BaseModel):
    members: list[TeamMember] = Field(default_factory=list, description="Roster to compute")
    effort: SprintEffort = Field(default_factory=SprintEffort)


class SprintPlanSaveRequest(BaseModel):
    """Body of POST /api/v1/capacity/sprints (create, or update when id is set)."""
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    status: str = Field(default="planned", pattern="^(planned|active|finished)$")
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    effort: SprintEffort = Field(default_factory=SprintEffort)
    members: list[TeamMember] = Field(default_factory=list)


class SprintPlanSummaryItem(BaseModel):
    id: str
    name: str
    status: str
    created: Optional[str] = None


class SprintPlanResponse(BaseModel):
    plan: SprintPlan
    summary: CapacitySummary
    read_only: bool = False
