import logging
from typing import Optional
from datetime import datetime, timezone
from app.database import Database, row_to_dict
from app.models.engagement import EventCheckin
from app.core.exceptions import NotFoundError
from app.services.events_service import event_local_time

logger = logging.getLogger(__name__)

CHECKIN_COLUMNS = "id, event_id, user_id, checkin_date, checkin_time, checkout_time, location"


class CheckinService:
    """Event check-in and check-out against event_checkins"""

    def __init__(self, db: Database):
        self.db = db

    async def check_in(
        self,
        event_id: str,
        user_id: str,
        location: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> EventCheckin:
        """
        Check in for today, in the event's timezone.

        Upserts on (event_id, user_id, checkin_date): checking in again on
        the same day reactivates the existing row and clears checkout_time.
        Events without a known timezone use the UTC date.
        """
        now = now or datetime.now(timezone.utc)

        async with self.db.connection(as_user=user_id) as conn:
            tz_name = await conn.fetchval("SELECT timezone FROM events WHERE id = $1", event_id)
            checkin_date = event_local_time(now, tz_name).date()

            row = await conn.fetchrow(f"""
                INSERT INTO event_checkins (event_id, user_id, checkin_date, checkin_time, checkout_time, location)
                VALUES ($1, $2, $3, $4, NULL, $5)
                ON CONFLICT (event_id, user_id, checkin_date)
                DO UPDATE SET checkin_time = EXCLUDED.checkin_time,
                              checkout_time = NULL,
                              location = EXCLUDED.location
                RETURNING {CHECKIN_COLUMNS}
            """, event_id, user_id, checkin_date, now, location)

        logger.info(f"User {user_id[:8]}... checked in to event {event_id}")
        return EventCheckin(**row_to_dict(row))

    async def check_out(self, event_id: str, user_id: str, now: Optional[datetime] = None) -> EventCheckin:
        now = now or datetime.now(timezone.utc)

        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow(f"""
                UPDATE event_checkins
                SET checkout_time = $3
                WHERE event_id = $1 AND user_id = $2 AND checkout_time IS NULL
                RETURNING {CHECKIN_COLUMNS}
            """, event_id, user_id, now)

        if not row:
            raise NotFoundError("No active check-in for this event")

        logger.info(f"User {user_id[:8]}... checked out of event {event_id}")
        return EventCheckin(**row_to_dict(row))

    async def get_active_checkin(self, event_id: str, user_id: str) -> Optional[EventCheckin]:
        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow(f"""
                SELECT {CHECKIN_COLUMNS}
                FROM event_checkins
                WHERE event_id = $1 AND user_id = $2 AND checkout_time IS NULL
                ORDER BY checkin_time DESC
                LIMIT 1
            """, event_id, user_id)

        return EventCheckin(**row_to_dict(row)) if row else None

    async def get_current_event_id(self, user_id: str) -> Optional[str]:
        """Event the user is currently checked in to, most recent first"""
        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT event_id FROM event_checkins
                WHERE user_id = $1 AND checkout_time IS NULL
                ORDER BY checkin_time DESC
                LIMIT 1
            """, user_id)

        return str(row['event_id']) if row else None

    async def get_attendee_count(self, event_id: str, user_id: str) -> int:
        async with self.db.connection(as_user=user_id) as conn:
            count = await conn.fetchval("""
                SELECT COUNT(*) FROM event_checkins
                WHERE event_id = $1 AND checkout_time IS NULL
            """, event_id)

        return count or 0
