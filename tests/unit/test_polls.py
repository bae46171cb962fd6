"""
Tests for polls: service queries, optimistic voting and endpoints.
"""
import pytest
from decimal import Decimal
from httpx import AsyncClient

from app.core.exceptions import ServerRejectedError, NotFoundError, TransportError
from app.models.engagement import EventPoll, PollOption, PollView, PollCreate
from app.services.polls_service import PollsService
from app.controllers.polls import PollsController
from tests.utils.factories import PollFactory


def make_poll(counts=(3, 1), user_vote=None) -> EventPoll:
    return EventPoll(
        id="poll-1",
        event_id="event-1",
        question="Best talk?",
        options=[PollOption(id=f"opt-{i}", text=f"Option {i}", vote_count=c) for i, c in enumerate(counts)],
        user_vote=user_vote
    )


class FakePollsService:
    def __init__(self, poll: EventPoll, vote_result=None, vote_error=None):
        self.poll = poll
        self.vote_result = vote_result
        self.vote_error = vote_error
        self.votes = []
        self.fetches = 0

    async def get_poll(self, poll_id, user_id):
        self.fetches += 1
        return self.poll.model_copy(deep=True)

    async def get_active_polls(self, event_id, user_id):
        return [self.poll.model_copy(deep=True)]

    async def submit_vote(self, poll_id, option_id, user_id):
        self.votes.append((poll_id, option_id))
        if self.vote_error:
            raise self.vote_error
        return self.vote_result


class TestPollModel:

    def test_percentages(self):
        view = PollView.from_poll(make_poll(counts=(2, 1)))

        assert view.total_votes == 3
        assert [o.percentage for o in view.options] == [Decimal("66.7"), Decimal("33.3")]

    def test_no_votes(self):
        view = PollView.from_poll(make_poll(counts=(0, 0)))
        assert all(o.percentage == 0 for o in view.options)


class TestPollsController:

    @pytest.mark.asyncio
    async def test_vote_uses_authoritative_count(self):
        service = FakePollsService(make_poll(counts=(3, 1)), vote_result=7)
        controller = PollsController(service, "user-1")
        await controller.load("event-1")

        response = await controller.vote("poll-1", "opt-0")

        assert response.success
        assert response.poll.user_vote == "opt-0"
        assert response.poll.options[0].vote_count == 7
        assert service.fetches == 0

    @pytest.mark.asyncio
    async def test_vote_refetches_when_no_count_returned(self):
        server_poll = make_poll(counts=(4, 1), user_vote="opt-0")
        service = FakePollsService(make_poll(counts=(3, 1)), vote_result=None)
        controller = PollsController(service, "user-1")
        await controller.load("event-1")
        service.poll = server_poll

        response = await controller.vote("poll-1", "opt-0")

        assert response.success
        assert service.fetches == 1
        assert response.poll.options[0].vote_count == 4

    @pytest.mark.asyncio
    async def test_failed_vote_rolls_back_selection_and_count(self):
        service = FakePollsService(make_poll(counts=(3, 1)), vote_error=TransportError("offline"))
        controller = PollsController(service, "user-1")
        await controller.load("event-1")
        seen = []
        controller.add_listener(
            lambda: seen.append((controller.polls["poll-1"].user_vote, controller.polls["poll-1"].options[1].vote_count))
        )

        response = await controller.vote("poll-1", "opt-1")

        assert ("opt-1", 2) in seen
        assert not response.success
        assert response.can_retry
        assert response.error == "offline"
        assert response.poll.user_vote is None
        assert response.poll.options[1].vote_count == 1
        assert controller.vote_error == "offline"

    @pytest.mark.asyncio
    async def test_second_vote_rejected_locally(self):
        service = FakePollsService(make_poll(user_vote="opt-0"))
        controller = PollsController(service, "user-1")
        await controller.load("event-1")

        response = await controller.vote("poll-1", "opt-1")

        assert not response.success
        assert service.votes == []

    @pytest.mark.asyncio
    async def test_results_ignored_after_dispose(self):
        service = FakePollsService(make_poll())
        controller = PollsController(service, "user-1")
        controller.dispose()

        await controller.load("event-1")

        assert controller.polls == {}


class TestPollsService:

    @pytest.mark.asyncio
    async def test_submit_vote_returns_count(self, mock_database, mock_conn):
        mock_conn.set_fetchrow_return("JOIN event_poll_options", {"is_active": True})
        mock_conn.set_fetchval_return("INSERT INTO event_poll_votes", "vote-1")
        mock_conn.set_fetchval_return("increment_poll_vote", 12)

        count = await PollsService(mock_database).submit_vote("poll-1", "opt-0", "user-1")

        assert count == 12
        assert mock_database.impersonated == ["user-1"]

    @pytest.mark.asyncio
    async def test_duplicate_vote_rejected(self, mock_database, mock_conn):
        mock_conn.set_fetchrow_return("JOIN event_poll_options", {"is_active": True})
        mock_conn.set_fetchval_return("INSERT INTO event_poll_votes", None)

        with pytest.raises(ServerRejectedError) as exc:
            await PollsService(mock_database).submit_vote("poll-1", "opt-0", "user-1")

        assert exc.value.status_code == 409
        assert not mock_conn.was_called_with("fetchval", "increment_poll_vote")

    @pytest.mark.asyncio
    async def test_closed_poll_rejected(self, mock_database, mock_conn):
        mock_conn.set_fetchrow_return("JOIN event_poll_options", {"is_active": False})

        with pytest.raises(ServerRejectedError):
            await PollsService(mock_database).submit_vote("poll-1", "opt-0", "user-1")

    @pytest.mark.asyncio
    async def test_unknown_option(self, mock_database):
        with pytest.raises(NotFoundError):
            await PollsService(mock_database).submit_vote("poll-1", "nope", "user-1")

    @pytest.mark.asyncio
    async def test_retract_vote(self, mock_database, mock_conn):
        mock_conn.set_fetchval_return("DELETE FROM event_poll_votes", "opt-0")
        mock_conn.set_fetchval_return("decrement_poll_vote", 2)

        assert await PollsService(mock_database).retract_vote("poll-1", "user-1") == 2

    @pytest.mark.asyncio
    async def test_retract_without_vote(self, mock_database):
        with pytest.raises(NotFoundError):
            await PollsService(mock_database).retract_vote("poll-1", "user-1")

    @pytest.mark.asyncio
    async def test_active_polls_with_user_vote(self, mock_database, mock_conn):
        poll = PollFactory.create(id="poll-1")
        mock_conn.set_fetch_return("FROM event_polls", [poll])
        mock_conn.set_fetch_return("FROM event_poll_options", PollFactory.options("poll-1", [5, 5]))
        mock_conn.set_fetch_return("FROM event_poll_votes", [{"poll_id": "poll-1", "option_id": "poll-1-opt-1"}])

        polls = await PollsService(mock_database).get_active_polls("event-1", "user-1")

        assert len(polls) == 1
        assert polls[0].total_votes == 10
        assert polls[0].user_vote == "poll-1-opt-1"

    @pytest.mark.asyncio
    async def test_create_poll(self, mock_database, mock_conn):
        mock_conn.set_fetchrow_return("INSERT INTO event_polls", PollFactory.create(id="poll-9"))
        mock_conn.set_fetchrow_return(
            "INSERT INTO event_poll_options",
            lambda poll_id, text: {"id": f"{poll_id}-{text}", "text": text, "vote_count": 0}
        )

        poll = await PollsService(mock_database).create_poll(
            "event-1", PollCreate(question="Lunch?", options=["Yes", "No"]), "user-1"
        )

        assert [o.text for o in poll.options] == ["Yes", "No"]

    @pytest.mark.asyncio
    async def test_close_missing_poll(self, mock_database, mock_conn):
        mock_conn.set_execute_return("UPDATE event_polls", "UPDATE 0")

        with pytest.raises(NotFoundError):
            await PollsService(mock_database).close_poll("poll-1", "user-1")


class TestPollEndpoints:

    @pytest.mark.asyncio
    async def test_vote_rejected_returns_rolled_back_poll(self, client: AsyncClient, mock_conn, auth_headers):
        mock_conn.set_fetchrow_return("JOIN event_poll_options", {"is_active": True})
        mock_conn.set_fetchrow_return("FROM event_polls", PollFactory.create(id="poll-1"))
        mock_conn.set_fetch_return("FROM event_poll_options", PollFactory.options("poll-1", [2, 3]))
        mock_conn.set_fetchval_return("INSERT INTO event_poll_votes", None)

        response = await client.post("/polls/poll-1/vote", json={"option_id": "poll-1-opt-0"}, headers=auth_headers)

        data = response.json()
        assert response.status_code == 200
        assert data["success"] is False
        assert data["can_retry"] is True
        assert data["poll"]["user_vote"] is None
        assert data["poll"]["options"][0]["vote_count"] == 2

    @pytest.mark.asyncio
    async def test_create_poll_validation(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/events/event-1/polls", json={"question": "Only one?", "options": ["Yes"]}, headers=auth_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_polls(self, client: AsyncClient, mock_conn, auth_headers):
        mock_conn.set_fetch_return("FROM event_polls", [PollFactory.create(id="poll-1")])
        mock_conn.set_fetch_return("FROM event_poll_options", PollFactory.options("poll-1", [1, 3]))

        response = await client.get("/events/event-1/polls", headers=auth_headers)

        data = response.json()
        assert data[0]["total_votes"] == 4
        assert data[0]["options"][1]["percentage"] == "75.0"
