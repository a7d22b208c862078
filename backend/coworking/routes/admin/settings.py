# backend/coworking/routes/admin/settings.py
"""Admin platform settings (booking rules, working hours, notifications)."""

import asyncio
from typing import List

from fastapi import APIRouter, Depends

from ...api.dependencies import get_settings_service, require_admin
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.user import User
from ...schemas.settings import SettingResponse, SettingsUpdate
from ...services.settings_service import SettingsService

router = APIRouter(prefix="/settings", tags=["admin-settings"])


@router.get("", response_model=List[SettingResponse])
async def get_settings(
    _: User = Depends(require_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> List[SettingResponse]:
    items = await asyncio.to_thread(settings_service.get_all)
    return [SettingResponse(**item) for item in items]


@router.put("", response_model=List[SettingResponse])
async def update_settings(
    payload: SettingsUpdate,
    _: User = Depends(require_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> List[SettingResponse]:
    try:
        items = await asyncio.to_thread(
            settings_service.update, [item.model_dump() for item in payload.settings]
        )
        return [SettingResponse(**item) for item in items]
    except DomainException as e:
        handle_domain_exception(e)
