# backend/coworking/routes/workspaces.py
"""
Public workspace catalogue.

Endpoints:
    GET /workspaces - Spaces open for booking, optionally filtered by type
    GET /workspaces/types - Space type options
    GET /workspaces/{space_id} - One space
    GET /workspaces/{space_id}/availability - Whether an interval is free
"""

import asyncio
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_space_service
from ..core.enums import SpaceType
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..schemas.space import AvailabilityResponse, SpaceResponse, SpaceTypeOption
from ..services.space_service import SpaceService

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("", response_model=List[SpaceResponse])
async def list_workspaces(
    space_type: Optional[SpaceType] = Query(None, alias="type"),
    space_service: SpaceService = Depends(get_space_service),
) -> List[SpaceResponse]:
    spaces = await asyncio.to_thread(
        space_service.list_available, space_type.value if space_type else None
    )
    return [SpaceResponse.model_validate(space) for space in spaces]


@router.get("/types", response_model=List[SpaceTypeOption])
async def list_workspace_types() -> List[SpaceTypeOption]:
    return [SpaceTypeOption(**option) for option in SpaceService.get_types()]


@router.get("/{space_id}", response_model=SpaceResponse)
async def get_workspace(
    space_id: str,
    space_service: SpaceService = Depends(get_space_service),
) -> SpaceResponse:
    try:
        space = await asyncio.to_thread(space_service.get_space, space_id)
        return SpaceResponse.model_validate(space)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{space_id}/availability", response_model=AvailabilityResponse)
async def check_workspace_availability(
    space_id: str,
    start_time: datetime = Query(..., alias="startTime"),
    end_time: datetime = Query(..., alias="endTime"),
    space_service: SpaceService = Depends(get_space_service),
) -> AvailabilityResponse:
    try:
        result = await asyncio.to_thread(
            space_service.check_availability, space_id, start_time, end_time
        )
        return AvailabilityResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)
