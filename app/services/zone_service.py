import logging
from typing import List, Optional
from datetime import datetime, timezone
from app.database import Database, row_to_dict
from app.models.engagement import EventSession, EventAnnouncement

logger = logging.getLogger(__name__)

SESSION_COLUMNS = "id, event_id, title, description, speaker_name, room, start_time, end_time"


class ZoneService:
    """Event-day content for attendees: sessions and announcements"""

    def __init__(self, db: Database):
        self.db = db

    async def get_live_sessions(self, event_id: str, user_id: str, now: Optional[datetime] = None) -> List[EventSession]:
        now = now or datetime.now(timezone.utc)

        async with self.db.connection(as_user=user_id) as conn:
            rows = await conn.fetch(f"""
                SELECT {SESSION_COLUMNS}
                FROM event_sessions
                WHERE event_id = $1 AND start_time <= $2 AND end_time >= $2
                ORDER BY start_time
            """, event_id, now)

        return [EventSession(**row_to_dict(r)) for r in rows]

    async def get_upcoming_sessions(
        self,
        event_id: str,
        user_id: str,
        limit: int = 5,
        now: Optional[datetime] = None
    ) -> List[EventSession]:
        now = now or datetime.now(timezone.utc)

        async with self.db.connection(as_user=user_id) as conn:
            rows = await conn.fetch(f"""
                SELECT {SESSION_COLUMNS}
                FROM event_sessions
                WHERE event_id = $1 AND start_time > $2
                ORDER BY start_time
                LIMIT $3
            """, event_id, now, limit)

        return [EventSession(**row_to_dict(r)) for r in rows]

    async def get_announcements(self, event_id: str, user_id: str, limit: int = 10) -> List[EventAnnouncement]:
        """Pinned announcements first, then newest"""
        async with self.db.connection(as_user=user_id) as conn:
            rows = await conn.fetch("""
                SELECT id, event_id, title, content, type, is_pinned, author_name, created_at
                FROM event_announcements
                WHERE event_id = $1
                ORDER BY is_pinned DESC, created_at DESC
                LIMIT $2
            """, event_id, limit)

        return [EventAnnouncement(**row_to_dict(r)) for r in rows]
