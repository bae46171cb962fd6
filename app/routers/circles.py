from fastapi import APIRouter, Depends
from app.core.dependencies import get_authenticated_user, AuthenticatedUser, get_circles_service
from app.controllers.circles import CirclesController
from app.models.social import JoinedCircles, MembershipToggleResult
from app.services.circles_service import CirclesService

router = APIRouter()


@router.get("/joined", response_model=JoinedCircles)
async def get_joined_circles(
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: CirclesService = Depends(get_circles_service)
):
    circle_ids = await service.get_joined_circle_ids(user.user_id)
    return JoinedCircles(circle_ids=sorted(circle_ids))


@router.post("/{circle_id}/membership", response_model=MembershipToggleResult)
async def toggle_membership(
    circle_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: CirclesService = Depends(get_circles_service)
):
    """
    Join the circle if the caller is not a member, leave it otherwise.

    A rejected change comes back with ``success`` false, the membership
    as it was, and the reason in ``error``.
    """
    controller = CirclesController(service, user.user_id)
    await controller.load()
    return await controller.toggle_membership(circle_id)
