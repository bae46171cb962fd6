from fastapi import APIRouter, Depends
from app.core.dependencies import get_authenticated_user, AuthenticatedUser, get_channels_service
from app.controllers.channels import ChannelsController
from app.models.social import ChannelListing
from app.services.channels_service import ChannelsService

router = APIRouter()


@router.get("/events/{event_id}/channels", response_model=ChannelListing)
async def list_channels(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: ChannelsService = Depends(get_channels_service)
):
    """
    Participant channels grouped as Announcements, General, Sessions,
    Networking and Support, with unread counts when available.
    """
    controller = ChannelsController(service, user.access_token)
    return await controller.load(event_id)
