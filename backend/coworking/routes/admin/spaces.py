# backend/coworking/routes/admin/spaces.py
"""Admin workspace management."""

import asyncio
from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies import get_space_service, require_admin
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.user import User
from ...schemas.space import SpaceCreate, SpaceResponse, SpaceUpdate
from ...services.space_service import SpaceService

router = APIRouter(prefix="/spaces", tags=["admin-spaces"])


@router.get("", response_model=List[SpaceResponse])
async def list_spaces(
    _: User = Depends(require_admin),
    space_service: SpaceService = Depends(get_space_service),
) -> List[SpaceResponse]:
    spaces = await asyncio.to_thread(space_service.list_all)
    return [SpaceResponse.model_validate(space) for space in spaces]


@router.post("", response_model=SpaceResponse, status_code=status.HTTP_201_CREATED)
async def create_space(
    payload: SpaceCreate,
    _: User = Depends(require_admin),
    space_service: SpaceService = Depends(get_space_service),
) -> SpaceResponse:
    try:
        space = await asyncio.to_thread(space_service.create_space, payload.model_dump())
        return SpaceResponse.model_validate(space)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{space_id}", response_model=SpaceResponse)
async def get_space(
    space_id: str,
    _: User = Depends(require_admin),
    space_service: SpaceService = Depends(get_space_service),
) -> SpaceResponse:
    try:
        return SpaceResponse.model_validate(
            await asyncio.to_thread(space_service.get_space, space_id)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{space_id}", response_model=SpaceResponse)
async def update_space(
    space_id: str,
    payload: SpaceUpdate,
    _: User = Depends(require_admin),
    space_service: SpaceService = Depends(get_space_service),
) -> SpaceResponse:
    try:
        space = await asyncio.to_thread(
            space_service.update_space, space_id, payload.model_dump(exclude_unset=True)
        )
        return SpaceResponse.model_validate(space)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{space_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_space(
    space_id: str,
    _: User = Depends(require_admin),
    space_service: SpaceService = Depends(get_space_service),
) -> Response:
    try:
        await asyncio.to_thread(space_service.delete_space, space_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
