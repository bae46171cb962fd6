import json
import logging
from typing import Optional, List
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from app.database import Database, row_to_dict
from app.models.event import Event, TicketTier, EventFaq, Registration

logger = logging.getLogger(__name__)


def event_local_time(dt: datetime, tz_name: Optional[str]) -> datetime:
    """``dt`` in the event's timezone; unchanged when the zone is unknown"""
    if not tz_name or dt.tzinfo is None:
        return dt
    try:
        return dt.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug(f"Unknown timezone {tz_name}, using stored offset")
        return dt


class EventsService:
    """Event, tier, FAQ, saved-status and registration reads for one caller"""

    def __init__(self, db: Database):
        self.db = db

    async def get_event_by_id(self, event_id: str, user_id: Optional[str] = None) -> Optional[Event]:
        async with self.db.connection(use_transaction=False, as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT id, name, description, mode, status, start_date, end_date,
                       timezone, capacity, registration_deadline,
                       organizer_id, organization_id, banner_url
                FROM events
                WHERE id = $1
            """, event_id)

        return Event(**row_to_dict(row)) if row else None

    async def get_ticket_tiers(self, event_id: str, user_id: Optional[str] = None) -> List[TicketTier]:
        """All tiers of an event; availability is filtered by the caller"""
        async with self.db.connection(use_transaction=False, as_user=user_id) as conn:
            rows = await conn.fetch("""
                SELECT id, event_id, name, description, price, currency, quantity,
                       sold_count, sale_start, sale_end, is_active, sort_order
                FROM ticket_tiers
                WHERE event_id = $1
                ORDER BY sort_order ASC
            """, event_id)

        return [TicketTier(**row_to_dict(r)) for r in rows]

    async def get_ticket_tier(self, tier_id: str, user_id: Optional[str] = None) -> Optional[TicketTier]:
        async with self.db.connection(use_transaction=False, as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT id, event_id, name, description, price, currency, quantity,
                       sold_count, sale_start, sale_end, is_active, sort_order
                FROM ticket_tiers
                WHERE id = $1
            """, tier_id)

        return TicketTier(**row_to_dict(row)) if row else None

    async def get_published_faqs(self, event_id: str) -> List[EventFaq]:
        async with self.db.connection(use_transaction=False) as conn:
            rows = await conn.fetch("""
                SELECT id, event_id, question, answer, sort_order
                FROM event_faqs
                WHERE event_id = $1 AND is_published = true
                ORDER BY sort_order ASC
            """, event_id)

        return [EventFaq(**row_to_dict(r)) for r in rows]

    async def is_event_saved(self, event_id: str, user_id: str) -> bool:
        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT id FROM saved_events
                WHERE event_id = $1 AND user_id = $2
            """, event_id, user_id)

        return row is not None

    async def save_event(self, event_id: str, user_id: str) -> None:
        async with self.db.connection(as_user=user_id) as conn:
            await conn.execute("""
                INSERT INTO saved_events (event_id, user_id)
                VALUES ($1, $2)
                ON CONFLICT (event_id, user_id) DO NOTHING
            """, event_id, user_id)

        logger.debug(f"Saved event {event_id}")

    async def unsave_event(self, event_id: str, user_id: str) -> None:
        async with self.db.connection(as_user=user_id) as conn:
            await conn.execute("""
                DELETE FROM saved_events
                WHERE event_id = $1 AND user_id = $2
            """, event_id, user_id)

        logger.debug(f"Unsaved event {event_id}")

    async def get_user_registration(self, event_id: str, user_id: str) -> Optional[Registration]:
        """The caller's non-cancelled registration for an event, if any"""
        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT id, event_id, user_id, status, ticket_tier_id, quantity,
                       promo_code_id, subtotal, discount_amount, total_amount,
                       form_responses, created_at
                FROM registrations
                WHERE event_id = $1 AND user_id = $2 AND status <> 'CANCELLED'
                ORDER BY created_at DESC
                LIMIT 1
            """, event_id, user_id)

        return registration_from_row(row) if row else None


def registration_from_row(row) -> Registration:
    data = row_to_dict(row)
    # jsonb arrives as text unless a codec is registered on the pool
    responses = data.get('form_responses')
    if isinstance(responses, str):
        data['form_responses'] = json.loads(responses)
    elif responses is None:
        data['form_responses'] = {}
    return Registration(**data)
