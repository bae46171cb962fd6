import logging
from typing import Set
from app.database import Database
from app.core.exceptions import NotFoundError, ServerRejectedError

logger = logging.getLogger(__name__)


class CirclesService:
    """Circle membership for the calling user"""

    def __init__(self, db: Database):
        self.db = db

    async def get_joined_circle_ids(self, user_id: str) -> Set[str]:
        async with self.db.connection(as_user=user_id) as conn:
            rows = await conn.fetch("""
                SELECT circle_id FROM circle_members
                WHERE user_id = $1
            """, user_id)

        return {str(r['circle_id']) for r in rows}

    async def join_circle(self, circle_id: str, user_id: str) -> None:
        async with self.db.connection(as_user=user_id) as conn:
            circle = await conn.fetchrow("""
                SELECT id, member_count, max_members
                FROM circles
                WHERE id = $1
                FOR UPDATE
            """, circle_id)

            if not circle:
                raise NotFoundError("Circle not found")

            if circle['max_members'] is not None and circle['member_count'] >= circle['max_members']:
                raise ServerRejectedError("This circle is full", 409, {"circle_id": circle_id})

            inserted = await conn.fetchval("""
                INSERT INTO circle_members (circle_id, user_id, role)
                VALUES ($1, $2, 'MEMBER')
                ON CONFLICT (circle_id, user_id) DO NOTHING
                RETURNING circle_id
            """, circle_id, user_id)

            if inserted is not None:
                await conn.execute("""
                    UPDATE circles SET member_count = member_count + 1
                    WHERE id = $1
                """, circle_id)

        logger.info(f"User {user_id[:8]}... joined circle {circle_id}")

    async def leave_circle(self, circle_id: str, user_id: str) -> None:
        async with self.db.connection(as_user=user_id) as conn:
            removed = await conn.fetchval("""
                DELETE FROM circle_members
                WHERE circle_id = $1 AND user_id = $2
                RETURNING circle_id
            """, circle_id, user_id)

            if removed is not None:
                await conn.execute("""
                    UPDATE circles SET member_count = GREATEST(member_count - 1, 0)
                    WHERE id = $1
                """, circle_id)

        logger.info(f"User {user_id[:8]}... left circle {circle_id}")
