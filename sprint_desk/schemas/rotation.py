# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request / Response schemas — rotation endpoints.
"""

from pydantic import BaseModel

from sprint_desk.models.domain import SprintRecord


class RotationOverviewResponse(BaseModel):
    current: SprintRecord
    next: SprintRecord


class RotationHistoryResponse(BaseModel):
    sprints: list[SprintRecord]
    capacity_plans_linked: bool = True
