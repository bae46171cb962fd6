from fastapi import APIRouter, Depends
from typing import Optional
from app.core.dependencies import (
    get_authenticated_user, AuthenticatedUser,
    get_checkin_service, get_zone_service
)
from app.controllers.zone import ZoneController
from app.models.engagement import CheckinStatus, CheckinRequest, ZoneOverview
from app.services.checkin_service import CheckinService
from app.services.zone_service import ZoneService

router = APIRouter()


def _controller(
    checkins: CheckinService,
    zone: ZoneService,
    user: AuthenticatedUser
) -> ZoneController:
    return ZoneController(checkins, zone, user.user_id)


@router.get("/events/{event_id}/checkin", response_model=CheckinStatus)
async def get_checkin_status(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    checkins: CheckinService = Depends(get_checkin_service),
    zone: ZoneService = Depends(get_zone_service)
):
    return await _controller(checkins, zone, user).load_status(event_id)


@router.post("/events/{event_id}/checkin", response_model=CheckinStatus)
async def check_in(
    event_id: str,
    data: Optional[CheckinRequest] = None,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    checkins: CheckinService = Depends(get_checkin_service),
    zone: ZoneService = Depends(get_zone_service)
):
    """
    Check in to an event for today.

    Checking in again on the same day reactivates the existing check-in
    instead of creating a second one.
    """
    location = data.location if data else None
    return await _controller(checkins, zone, user).check_in(event_id, location)


@router.post("/events/{event_id}/checkout", response_model=CheckinStatus)
async def check_out(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    checkins: CheckinService = Depends(get_checkin_service),
    zone: ZoneService = Depends(get_zone_service)
):
    """
    Check out of an event. 404 when the caller is not checked in.
    """
    return await _controller(checkins, zone, user).check_out(event_id)


@router.get("/events/{event_id}/zone", response_model=ZoneOverview)
async def get_zone(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    checkins: CheckinService = Depends(get_checkin_service),
    zone: ZoneService = Depends(get_zone_service)
):
    """
    Live and upcoming sessions, announcements (pinned first) and the
    number of attendees currently checked in.
    """
    return await _controller(checkins, zone, user).load_overview(event_id)


@router.get("/zone/current")
async def get_current_event(
    user: AuthenticatedUser = Depends(get_authenticated_user),
    checkins: CheckinService = Depends(get_checkin_service)
):
    """
    The event the caller is currently checked in to, if any.
    """
    event_id = await checkins.get_current_event_id(user.user_id)
    return {"event_id": event_id, "is_checked_in": event_id is not None}
