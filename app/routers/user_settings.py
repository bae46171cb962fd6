from fastapi import APIRouter, Depends, Body
from typing import Any, Dict
from app.core.dependencies import get_authenticated_user, AuthenticatedUser, get_settings_service
from app.core.exceptions import ValidationError
from app.controllers.settings import SettingsController
from app.models.settings import SettingsKind, SettingsView, SettingsUpdateResult
from app.services.settings_service import SettingsService

router = APIRouter()


@router.get("/{kind}", response_model=SettingsView)
async def get_settings(
    kind: SettingsKind,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: SettingsService = Depends(get_settings_service)
):
    """
    One settings tab. Fields never saved come back with their defaults.
    """
    return await service.load(kind, user.user_id)


@router.patch("/{kind}", response_model=SettingsUpdateResult)
async def update_settings(
    kind: SettingsKind,
    updates: Dict[str, Any] = Body(..., examples=[{"bold_text_enabled": True}]),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: SettingsService = Depends(get_settings_service)
):
    """
    Update one or more fields.

    Each field is saved independently. ``saved`` lists what was stored,
    ``errors`` what was not; a failed field keeps its previous value in
    ``values``.
    """
    if not updates:
        raise ValidationError("No settings to update")

    controller = SettingsController(service, user.user_id, kind)
    await controller.load()
    return await controller.update_many(updates)
