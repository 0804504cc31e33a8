# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Rotation endpoints — current, next, overview, history, by index.
Thin HTTP layer — delegates ALL logic to RotationService.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from sprint_desk.core.dependencies import get_rotation_service
from sprint_desk.core.errors import DOMAIN_ERRORS, detail_for, status_for
from sprint_desk.models.domain import SprintRecord
from sprint_desk.schemas.rotation import RotationHistoryResponse, RotationOverviewResponse
from sprint_desk.services.rotation_service import RotationService

router = APIRouter(prefix="/api/v1/rotation", tags=["Rotation"])


@router.get("/current", response_model=SprintRecord)
def get_current_sprint(service: RotationService = Depends(get_rotation_service)):
    """Sprint containing today (UTC) with its Release Master and Scrum Master."""
    try:
        return service.current()
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/next", response_model=SprintRecord)
def get_next_sprint(service: RotationService = Depends(get_rotation_service)):
    try:
        return service.next()
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/overview", response_model=RotationOverviewResponse)
def get_overview(service: RotationService = Depends(get_rotation_service)):
    """Current and next sprint in one call."""
    try:
        return service.overview()
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/history", response_model=RotationHistoryResponse)
def get_history(
    past: Optional[int] = Query(default=None, ge=0, le=520, description="Sprints before current"),
    future: Optional[int] = Query(default=None, ge=0, le=520, description="Sprints after current"),
    service: RotationService = Depends(get_rotation_service),
):
    """Sprints around today, newest first, with linked capacity plan ids."""
    try:
        return service.history(past=past, future=future)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/sprints/{index}", response_model=SprintRecord)
def get_sprint_by_index(
    index: int,
    service: RotationService = Depends(get_rotation_service),
):
    """Any sprint by its index relative to the first configured sprint."""
    try:
        return service.sprint(index)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))
