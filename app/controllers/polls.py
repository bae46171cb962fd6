import logging
from typing import Dict, Optional, Set

from app.controllers.base import PageController
from app.models.engagement import EventPoll, PollView, PollVoteResponse
from app.services.polls_service import PollsService
from app.core.optimistic import optimistic_update
from app.core.exceptions import APIError, ValidationError

logger = logging.getLogger(__name__)


class PollsController(PageController):
    """
    Live polls with optimistic voting.

    A vote shows up immediately; if the server rejects it both the
    selection and the count go back to what they were and ``vote_error``
    is set with ``can_retry``.
    """

    def __init__(self, polls_service: PollsService, user_id: str):
        super().__init__()
        self.polls_service = polls_service
        self.user_id = user_id
        self.polls: Dict[str, EventPoll] = {}
        self.voting: Set[str] = set()
        self.vote_error: Optional[str] = None
        self.can_retry = False

    async def load(self, event_id: str):
        polls = await self.polls_service.get_active_polls(event_id, self.user_id)
        if self.is_disposed:
            return
        self.polls = {p.id: p for p in polls}
        self.notify_listeners()

    async def load_poll(self, poll_id: str) -> EventPoll:
        poll = await self.polls_service.get_poll(poll_id, self.user_id)
        if not self.is_disposed:
            self.polls[poll_id] = poll
        return poll

    async def vote(self, poll_id: str, option_id: str) -> PollVoteResponse:
        poll = self.polls.get(poll_id) or await self.load_poll(poll_id)
        option = poll.option(option_id)
        if option is None:
            raise ValidationError("Unknown poll option", {"option_id": option_id})

        if poll_id in self.voting:
            return PollVoteResponse(success=False, poll=PollView.from_poll(poll), error="Vote already in progress")

        if poll.user_vote is not None:
            return PollVoteResponse(
                success=False,
                poll=PollView.from_poll(poll),
                error="You have already voted in this poll"
            )

        def apply():
            poll.user_vote = option_id
            option.vote_count += 1
            self.vote_error = None
            self.can_retry = False
            self.notify_listeners()

        def restore(saved):
            poll.user_vote, option.vote_count = saved
            self.notify_listeners()

        self.voting.add(poll_id)
        try:
            result = await optimistic_update(
                snapshot=lambda: (poll.user_vote, option.vote_count),
                apply=apply,
                effect=lambda: self.polls_service.submit_vote(poll_id, option_id, self.user_id),
                restore=restore,
                operation=f"vote on poll {poll_id}"
            )
        finally:
            self.voting.discard(poll_id)

        if not result.ok:
            self.vote_error = result.error
            self.can_retry = True
            self.notify_listeners()
            return PollVoteResponse(success=False, poll=PollView.from_poll(poll), error=result.error, can_retry=True)

        if result.value is not None:
            option.vote_count = result.value
        else:
            poll = await self._refetch(poll)

        self.notify_listeners()
        return PollVoteResponse(success=True, poll=PollView.from_poll(poll))

    async def retract_vote(self, poll_id: str) -> PollView:
        await self.polls_service.retract_vote(poll_id, self.user_id)
        return PollView.from_poll(await self.load_poll(poll_id))

    async def _refetch(self, poll: EventPoll) -> EventPoll:
        """Counts were not reported back; read the poll again, keep the local copy if that fails"""
        try:
            return await self.load_poll(poll.id)
        except APIError as e:
            logger.warning(f"Could not refresh poll {poll.id} after vote: {e.message}")
            return poll
