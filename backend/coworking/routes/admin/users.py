# backend/coworking/routes/admin/users.py
"""Admin user management."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ...api.dependencies import get_admin_user_service, require_admin
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ...core.enums import UserRole, UserStatus
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.user import User
from ...schemas.admin import AdminUserUpdate, UserListResponse, UserStatusUpdate
from ...schemas.auth import UserResponse
from ...services.admin_user_service import AdminUserService

router = APIRouter(prefix="/users", tags=["admin-users"])


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[UserRole] = None,
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    _: User = Depends(require_admin),
    admin_service: AdminUserService = Depends(get_admin_user_service),
) -> UserListResponse:
    users, total = await asyncio.to_thread(
        admin_service.list_users,
        search=search,
        role=role.value if role else None,
        status=user_status.value if user_status else None,
        skip=skip,
        limit=limit,
    )
    return UserListResponse(
        items=[UserResponse.model_validate(user) for user in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    _: User = Depends(require_admin),
    admin_service: AdminUserService = Depends(get_admin_user_service),
) -> UserResponse:
    try:
        return UserResponse.model_validate(await asyncio.to_thread(admin_service.get_user, user_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    payload: AdminUserUpdate,
    admin: User = Depends(require_admin),
    admin_service: AdminUserService = Depends(get_admin_user_service),
) -> UserResponse:
    try:
        user = await asyncio.to_thread(
            admin_service.update_user, admin, user_id, payload.model_dump(exclude_unset=True)
        )
        return UserResponse.model_validate(user)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    admin: User = Depends(require_admin),
    admin_service: AdminUserService = Depends(get_admin_user_service),
) -> UserResponse:
    try:
        user = await asyncio.to_thread(
            admin_service.update_status, admin, user_id, payload.status
        )
        return UserResponse.model_validate(user)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    admin_service: AdminUserService = Depends(get_admin_user_service),
) -> Response:
    try:
        await asyncio.to_thread(admin_service.delete_user, admin, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
