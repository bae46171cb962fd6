import logging
from typing import Optional, List
from app.database import Database, row_to_dict
from app.models.engagement import EventPoll, PollOption, PollCreate
from app.core.exceptions import NotFoundError, ServerRejectedError

logger = logging.getLogger(__name__)


class PollsService:
    """Live polls: listing, voting, and organizer open/close"""

    def __init__(self, db: Database):
        self.db = db

    async def get_active_polls(self, event_id: str, user_id: str) -> List[EventPoll]:
        """Active polls of an event, newest first, with the caller's vote"""
        async with self.db.connection(as_user=user_id) as conn:
            poll_rows = await conn.fetch("""
                SELECT id, event_id, question, is_active, created_at, expires_at
                FROM event_polls
                WHERE event_id = $1 AND is_active = true
                ORDER BY created_at DESC
            """, event_id)

            if not poll_rows:
                return []

            poll_ids = [r['id'] for r in poll_rows]

            option_rows = await conn.fetch("""
                SELECT id, poll_id, text, vote_count
                FROM event_poll_options
                WHERE poll_id = ANY($1::uuid[])
                ORDER BY id
            """, poll_ids)

            vote_rows = await conn.fetch("""
                SELECT poll_id, option_id
                FROM event_poll_votes
                WHERE poll_id = ANY($1::uuid[]) AND user_id = $2
            """, poll_ids, user_id)

        options_by_poll = {}
        for r in option_rows:
            data = row_to_dict(r)
            options_by_poll.setdefault(data['poll_id'], []).append(
                PollOption(id=data['id'], text=data['text'], vote_count=data['vote_count'] or 0)
            )

        votes = {str(r['poll_id']): str(r['option_id']) for r in vote_rows}

        polls = []
        for r in poll_rows:
            data = row_to_dict(r)
            polls.append(EventPoll(
                **data,
                options=options_by_poll.get(data['id'], []),
                user_vote=votes.get(data['id'])
            ))

        return polls

    async def get_poll(self, poll_id: str, user_id: str) -> EventPoll:
        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT id, event_id, question, is_active, created_at, expires_at
                FROM event_polls
                WHERE id = $1
            """, poll_id)

            if not row:
                raise NotFoundError("Poll not found")

            option_rows = await conn.fetch("""
                SELECT id, text, vote_count
                FROM event_poll_options
                WHERE poll_id = $1
                ORDER BY id
            """, poll_id)

            user_vote = await conn.fetchval("""
                SELECT option_id FROM event_poll_votes
                WHERE poll_id = $1 AND user_id = $2
            """, poll_id, user_id)

        options = [
            PollOption(id=o['id'], text=o['text'], vote_count=o['vote_count'] or 0)
            for o in map(row_to_dict, option_rows)
        ]

        return EventPoll(
            **row_to_dict(row),
            options=options,
            user_vote=str(user_vote) if user_vote else None
        )

    async def submit_vote(self, poll_id: str, option_id: str, user_id: str) -> Optional[int]:
        """
        Record a vote and bump the option's count.

        Returns the option's new vote count when the database reports one,
        otherwise None and the caller should re-read the poll. A second vote
        on the same poll is rejected with a 409.
        """
        async with self.db.connection(as_user=user_id) as conn:
            poll = await conn.fetchrow("""
                SELECT p.is_active
                FROM event_polls p
                JOIN event_poll_options o ON o.poll_id = p.id
                WHERE p.id = $1 AND o.id = $2
            """, poll_id, option_id)

            if not poll:
                raise NotFoundError("Poll option not found")

            if not poll['is_active']:
                raise ServerRejectedError("This poll is closed", 409, {"poll_id": poll_id})

            vote_id = await conn.fetchval("""
                INSERT INTO event_poll_votes (poll_id, option_id, user_id, voted_at)
                VALUES ($1, $2, $3, NOW())
                ON CONFLICT (poll_id, user_id) DO NOTHING
                RETURNING id
            """, poll_id, option_id, user_id)

            if vote_id is None:
                raise ServerRejectedError("You have already voted in this poll", 409, {"poll_id": poll_id})

            new_count = await conn.fetchval("SELECT increment_poll_vote($1)", option_id)

        logger.info(f"Vote recorded on poll {poll_id}")
        return new_count

    async def retract_vote(self, poll_id: str, user_id: str) -> Optional[int]:
        """Remove the caller's vote; returns the option's new count if reported"""
        async with self.db.connection(as_user=user_id) as conn:
            option_id = await conn.fetchval("""
                DELETE FROM event_poll_votes
                WHERE poll_id = $1 AND user_id = $2
                RETURNING option_id
            """, poll_id, user_id)

            if option_id is None:
                raise NotFoundError("No vote to retract")

            new_count = await conn.fetchval("SELECT decrement_poll_vote($1)", option_id)

        logger.info(f"Vote retracted on poll {poll_id}")
        return new_count

    async def create_poll(self, event_id: str, poll_data: PollCreate, user_id: str) -> EventPoll:
        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow("""
                INSERT INTO event_polls (event_id, question, is_active, expires_at, created_by)
                VALUES ($1, $2, true, $3, $4)
                RETURNING id, event_id, question, is_active, created_at, expires_at
            """, event_id, poll_data.question, poll_data.expires_at, user_id)

            options = []
            for text in poll_data.options:
                option_row = await conn.fetchrow("""
                    INSERT INTO event_poll_options (poll_id, text, vote_count)
                    VALUES ($1, $2, 0)
                    RETURNING id, text, vote_count
                """, row['id'], text)
                options.append(PollOption(**row_to_dict(option_row)))

        poll = EventPoll(**row_to_dict(row), options=options)
        logger.info(f"Poll {poll.id} created for event {event_id} with {len(options)} options")
        return poll

    async def close_poll(self, poll_id: str, user_id: str) -> None:
        async with self.db.connection(as_user=user_id) as conn:
            result = await conn.execute("""
                UPDATE event_polls SET is_active = false
                WHERE id = $1
            """, poll_id)

        if result == "UPDATE 0":
            raise NotFoundError("Poll not found")

        logger.info(f"Poll {poll_id} closed")
