from fastapi import APIRouter, Depends
from typing import List
from app.core.dependencies import get_authenticated_user, AuthenticatedUser, get_polls_service
from app.controllers.polls import PollsController
from app.models.engagement import PollView, PollCreate, PollVoteRequest, PollVoteResponse
from app.services.polls_service import PollsService

router = APIRouter()


@router.get("/events/{event_id}/polls", response_model=List[PollView])
async def list_active_polls(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: PollsService = Depends(get_polls_service)
):
    """
    Active polls of an event, newest first, with the caller's vote and
    per-option percentages.
    """
    polls = await service.get_active_polls(event_id, user.user_id)
    return [PollView.from_poll(p) for p in polls]


@router.post("/events/{event_id}/polls", response_model=PollView, status_code=201)
async def create_poll(
    event_id: str,
    data: PollCreate,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: PollsService = Depends(get_polls_service)
):
    """
    Create a poll (organizers). Row-level security decides who may.
    """
    poll = await service.create_poll(event_id, data, user.user_id)
    return PollView.from_poll(poll)


@router.post("/polls/{poll_id}/vote", response_model=PollVoteResponse)
async def vote(
    poll_id: str,
    data: PollVoteRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: PollsService = Depends(get_polls_service)
):
    """
    Vote on a poll.

    The response always carries the poll as the caller should now see it:
    on success with the server's count, on failure with the vote rolled
    back, ``error`` set and ``can_retry`` true.
    """
    controller = PollsController(service, user.user_id)
    return await controller.vote(poll_id, data.option_id)


@router.delete("/polls/{poll_id}/vote", response_model=PollView)
async def retract_vote(
    poll_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: PollsService = Depends(get_polls_service)
):
    controller = PollsController(service, user.user_id)
    return await controller.retract_vote(poll_id)


@router.post("/polls/{poll_id}/close", status_code=204)
async def close_poll(
    poll_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: PollsService = Depends(get_polls_service)
):
    await service.close_poll(poll_id, user.user_id)
