import logging
from typing import Optional, List
from datetime import datetime, timezone

from app.controllers.base import PageController
from app.models.event import (
    Event, TicketTier, EventFaq, Registration, EventMode, ModeBadge,
    PriceRange, SaveToggleOutcome, SaveToggleResult, EventDetailView
)
from app.services.events_service import EventsService, event_local_time
from app.services import pricing_service
from app.core.exceptions import APIError, NotFoundError

logger = logging.getLogger(__name__)

MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

MODE_BADGES = {
    EventMode.ONLINE: ModeBadge(label="Online", icon="videocam", color="#2196F3"),
    EventMode.OFFLINE: ModeBadge(label="In-person", icon="location_on", color="#4CAF50"),
    EventMode.HYBRID: ModeBadge(label="Hybrid", icon="sync_alt", color="#9C27B0"),
}
EMPTY_BADGE = ModeBadge(label="Event", icon="event", color="#9E9E9E")


def format_date(dt: datetime) -> str:
    """Jan 5, 2026"""
    return f"{MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def format_time(dt: datetime) -> str:
    """3:05 PM"""
    hour = 12 if dt.hour % 12 == 0 else dt.hour % 12
    ampm = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {ampm}"


def format_duration(start: datetime, end: datetime) -> str:
    minutes = int((end - start).total_seconds() // 60)
    days, hours = minutes // 1440, (minutes // 60) % 24
    if days > 0:
        return f"{days}d {hours}h"
    if minutes >= 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes}m"


class EventDetailController(PageController):
    """State behind the event detail page for one caller"""

    def __init__(
        self,
        events_service: EventsService,
        user_id: str,
        per_order_cap: int = 10,
        currency_symbol: str = pricing_service.DEFAULT_CURRENCY_SYMBOL
    ):
        super().__init__()
        self.events_service = events_service
        self.user_id = user_id
        self.per_order_cap = per_order_cap
        self.currency_symbol = currency_symbol

        self.event_id: Optional[str] = None
        self.event: Optional[Event] = None
        self.tiers: List[TicketTier] = []
        self.faqs: List[EventFaq] = []
        self.is_saved = False
        self.registration: Optional[Registration] = None
        self.is_loading = False
        self.is_saving = False

    async def initialize(self, event_id: str):
        """Load event, tiers, FAQs, saved and registration status concurrently"""
        self.event_id = event_id
        self.is_loading = True
        self.notify_listeners()

        event, tiers, faqs, saved, registration = await self.run_parallel(
            self.events_service.get_event_by_id(event_id, self.user_id),
            self.events_service.get_ticket_tiers(event_id, self.user_id),
            self.events_service.get_published_faqs(event_id),
            self.events_service.is_event_saved(event_id, self.user_id),
            self.events_service.get_user_registration(event_id, self.user_id),
        )

        if self.is_disposed:
            return

        self.is_loading = False

        if isinstance(event, APIError):
            raise event
        if isinstance(event, Exception):
            raise APIError("Failed to load event") from event
        if event is None:
            raise NotFoundError("Event not found")

        self.event = event
        if not isinstance(tiers, Exception):
            self.tiers = tiers
        if not isinstance(faqs, Exception):
            self.faqs = faqs
        if not isinstance(saved, Exception):
            self.is_saved = saved
        if not isinstance(registration, Exception):
            self.registration = registration

        logger.debug(f"Loaded event {event_id} with {len(self.tiers)} tiers")
        self.notify_listeners()

    async def refresh_after_registration(self):
        """Re-read registration status and tier stock after a submission"""
        tiers, registration = await self.run_parallel(
            self.events_service.get_ticket_tiers(self.event_id, self.user_id),
            self.events_service.get_user_registration(self.event_id, self.user_id),
        )

        if self.is_disposed:
            return
        if not isinstance(tiers, Exception):
            self.tiers = tiers
        if not isinstance(registration, Exception):
            self.registration = registration
        self.notify_listeners()

    async def toggle_save(self) -> SaveToggleResult:
        if self.is_saving:
            return SaveToggleResult(outcome=SaveToggleOutcome.BUSY, is_saved=self.is_saved)

        self.is_saving = True
        self.notify_listeners()

        try:
            if self.is_saved:
                await self.events_service.unsave_event(self.event_id, self.user_id)
            else:
                await self.events_service.save_event(self.event_id, self.user_id)
        except APIError as e:
            logger.warning(f"Failed to toggle save for event {self.event_id}: {e.message}")
            self.is_saving = False
            self.notify_listeners()
            return SaveToggleResult(outcome=SaveToggleOutcome.FAILED, is_saved=self.is_saved)

        self.is_saved = not self.is_saved
        self.is_saving = False
        self.notify_listeners()
        return SaveToggleResult(outcome=SaveToggleOutcome.SUCCESS, is_saved=self.is_saved)

    @property
    def is_registered(self) -> bool:
        return self.registration is not None

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return self.event is not None and self.event.start_date > (now or datetime.now(timezone.utc))

    def available_tiers(self, now: Optional[datetime] = None) -> List[TicketTier]:
        return pricing_service.available_tiers(self.tiers, now or datetime.now(timezone.utc))

    def price_range(self, now: Optional[datetime] = None) -> PriceRange:
        return pricing_service.price_range(self.tiers, now or datetime.now(timezone.utc), self.currency_symbol)

    @property
    def mode_badge(self) -> ModeBadge:
        if self.event is None:
            return EMPTY_BADGE
        return MODE_BADGES.get(self.event.mode, EMPTY_BADGE)

    @property
    def registered_count(self) -> int:
        return pricing_service.registered_count(self.tiers)

    def to_view(self, now: Optional[datetime] = None) -> EventDetailView:
        now = now or datetime.now(timezone.utc)
        start = event_local_time(self.event.start_date, self.event.timezone)
        end = event_local_time(self.event.end_date, self.event.timezone)

        return EventDetailView(
            event=self.event,
            tiers=self.tiers,
            available_tiers=self.available_tiers(now),
            faqs=self.faqs,
            price_range=self.price_range(now),
            mode_badge=self.mode_badge,
            is_saved=self.is_saved,
            is_registered=self.is_registered,
            is_upcoming=self.is_upcoming(now),
            registration=self.registration,
            registered_count=self.registered_count,
            date_label=format_date(start),
            time_label=format_time(start),
            duration_label=format_duration(start, end)
        )
