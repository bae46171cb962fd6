import logging
from typing import Optional

from app.controllers.base import PageController
from app.models.engagement import EventCheckin, CheckinStatus, ZoneOverview
from app.services.checkin_service import CheckinService
from app.services.zone_service import ZoneService

logger = logging.getLogger(__name__)


class ZoneController(PageController):
    """
    Event-day zone: check-in state plus sessions and announcements.

    Check-in and check-out are not optimistic; ``is_checked_in`` only
    changes once the server has acknowledged the call.
    """

    def __init__(self, checkin_service: CheckinService, zone_service: ZoneService, user_id: str):
        super().__init__()
        self.checkin_service = checkin_service
        self.zone_service = zone_service
        self.user_id = user_id
        self.checkin: Optional[EventCheckin] = None
        self.is_checking_in = False

    @property
    def is_checked_in(self) -> bool:
        return self.checkin is not None and self.checkin.is_active

    async def load_status(self, event_id: str) -> CheckinStatus:
        checkin = await self.checkin_service.get_active_checkin(event_id, self.user_id)
        if not self.is_disposed:
            self.checkin = checkin
            self.notify_listeners()
        return CheckinStatus(event_id=event_id, is_checked_in=self.is_checked_in, checkin=self.checkin)

    async def check_in(self, event_id: str, location: Optional[str] = None) -> CheckinStatus:
        self.is_checking_in = True
        self.notify_listeners()
        try:
            self.checkin = await self.checkin_service.check_in(event_id, self.user_id, location)
        finally:
            self.is_checking_in = False
            self.notify_listeners()
        return CheckinStatus(event_id=event_id, is_checked_in=self.is_checked_in, checkin=self.checkin)

    async def check_out(self, event_id: str) -> CheckinStatus:
        self.is_checking_in = True
        self.notify_listeners()
        try:
            self.checkin = await self.checkin_service.check_out(event_id, self.user_id)
        finally:
            self.is_checking_in = False
            self.notify_listeners()
        return CheckinStatus(event_id=event_id, is_checked_in=self.is_checked_in, checkin=self.checkin)

    async def load_overview(self, event_id: str) -> ZoneOverview:
        """Everything on the zone tab, loaded concurrently; failed parts come back empty"""
        checkin, attendees, live, upcoming, announcements = await self.run_parallel(
            self.checkin_service.get_active_checkin(event_id, self.user_id),
            self.checkin_service.get_attendee_count(event_id, self.user_id),
            self.zone_service.get_live_sessions(event_id, self.user_id),
            self.zone_service.get_upcoming_sessions(event_id, self.user_id),
            self.zone_service.get_announcements(event_id, self.user_id),
        )

        if not isinstance(checkin, Exception) and not self.is_disposed:
            self.checkin = checkin

        return ZoneOverview(
            event_id=event_id,
            is_checked_in=self.is_checked_in,
            attendee_count=0 if isinstance(attendees, Exception) else attendees,
            live_sessions=[] if isinstance(live, Exception) else live,
            upcoming_sessions=[] if isinstance(upcoming, Exception) else upcoming,
            announcements=[] if isinstance(announcements, Exception) else announcements
        )
