# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Capacity planning endpoints.
Thin HTTP layer — delegates ALL logic to CapacityService.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from sprint_desk.core.config import settings
from sprint_desk.core.dependencies import get_capacity_service
from sprint_desk.core.errors import DOMAIN_ERRORS, detail_for, status_for
from sprint_desk.models.domain import CapacitySummary, SprintPlan
from sprint_desk.schemas.capacity import (
    CapacityCalculateRequest,
    SprintPlanResponse,
    SprintPlanSaveRequest,
    SprintPlanSummaryItem,
)
from sprint_desk.services.capacity_service import CapacityService

router = APIRouter(prefix="/api/v1/capacity", tags=["Capacity"])


@router.post("/calculate", response_model=CapacitySummary)
def calculate_capacity(
    payload: CapacityCalculateRequest,
    service: CapacityService = Depends(get_capacity_service),
):
    """Compute a capacity breakdown without saving anything."""
    try:
        return service.calculate(payload.members, payload.effort)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/sprints", response_model=list[SprintPlanSummaryItem])
def list_sprint_plans(
    limit: int = Query(default=settings.DEFAULT_SPRINT_LIST_LIMIT, ge=1, le=500),
    service: CapacityService = Depends(get_capacity_service),
):
    """Saved plans, newest first."""
    try:
        return service.list_plans(limit=limit)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/sprints/latest", response_model=SprintPlanResponse)
def get_latest_plan(service: CapacityService = Depends(get_capacity_service)):
    """Newest saved plan, or an unsaved draft for the current sprint."""
    try:
        return service.latest_plan()
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/sprints/{sprint_id}", response_model=SprintPlanResponse)
def get_plan(
    sprint_id: str,
    service: CapacityService = Depends(get_capacity_service),
):
    try:
        return service.get_plan(sprint_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sprints", response_model=SprintPlanResponse)
def save_plan(
    payload: SprintPlanSaveRequest,
    service: CapacityService = Depends(get_capacity_service),
):
    """Create a plan, or update it when `id` is set. Finished plans are rejected."""
    try:
        plan = SprintPlan(**payload.model_dump())
        return service.save_plan(plan)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sprints/{sprint_id}/next", response_model=SprintPlanResponse, status_code=201)
def start_next_sprint(
    sprint_id: str,
    service: CapacityService = Depends(get_capacity_service),
):
    """Finish this plan and open the next sprint with the same roster, leave reset."""
    try:
        return service.start_next_sprint(sprint_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))
