import logging
from typing import Dict, Optional

from app.controllers.base import PageController
from app.models.social import ChannelListing
from app.services.channels_service import ChannelsService, group_channels

logger = logging.getLogger(__name__)


class ChannelsController(PageController):
    """Event chat channels; unread counts are best effort"""

    def __init__(self, channels_service: ChannelsService, access_token: str):
        super().__init__()
        self.channels_service = channels_service
        self.access_token = access_token
        self.listing: Optional[ChannelListing] = None
        self.is_loading = False
        self.error: Optional[str] = None

    async def load(self, event_id: str) -> Optional[ChannelListing]:
        self.is_loading = True
        self.error = None
        self.notify_listeners()

        channels, counts = await self.run_parallel(
            self.channels_service.list_channels(event_id, self.access_token),
            self.channels_service.unread_counts(event_id, self.access_token),
        )

        # Page was closed while the calls were in flight
        if self.is_disposed:
            return None

        self.is_loading = False

        if isinstance(channels, Exception):
            self.error = "Failed to load channels"
            self.notify_listeners()
            raise channels

        unread: Dict[str, int] = {} if isinstance(counts, Exception) else counts

        self.listing = ChannelListing(
            event_id=event_id,
            categories=group_channels(channels),
            unread_counts=unread,
            total_unread=sum(unread.values())
        )
        self.notify_listeners()
        return self.listing
