import logging
from typing import Optional, Set

from app.controllers.base import PageController
from app.models.social import MembershipToggleResult
from app.services.circles_service import CirclesService
from app.core.optimistic import optimistic_update

logger = logging.getLogger(__name__)

# Haptic cue the client plays when a toggle is accepted locally
TOGGLE_FEEDBACK = "light_impact"


class CirclesController(PageController):
    """Joined-circle set with optimistic join/leave"""

    def __init__(self, circles_service: CirclesService, user_id: str):
        super().__init__()
        self.circles_service = circles_service
        self.user_id = user_id
        self.joined_ids: Set[str] = set()
        self.pending: Set[str] = set()
        self.error: Optional[str] = None

    async def load(self):
        joined = await self.circles_service.get_joined_circle_ids(self.user_id)
        if self.is_disposed:
            return
        self.joined_ids = joined
        self.notify_listeners()

    def is_member(self, circle_id: str) -> bool:
        return circle_id in self.joined_ids

    async def toggle_membership(self, circle_id: str) -> MembershipToggleResult:
        if circle_id in self.pending:
            return MembershipToggleResult(
                circle_id=circle_id,
                is_member=self.is_member(circle_id),
                success=False,
                error="Membership change already in progress"
            )

        joining = not self.is_member(circle_id)

        def apply():
            if joining:
                self.joined_ids.add(circle_id)
            else:
                self.joined_ids.discard(circle_id)
            self.error = None
            self.notify_listeners()

        def restore(was_member):
            if was_member:
                self.joined_ids.add(circle_id)
            else:
                self.joined_ids.discard(circle_id)
            self.notify_listeners()

        if joining:
            effect = lambda: self.circles_service.join_circle(circle_id, self.user_id)
        else:
            effect = lambda: self.circles_service.leave_circle(circle_id, self.user_id)

        self.pending.add(circle_id)
        try:
            result = await optimistic_update(
                snapshot=lambda: self.is_member(circle_id),
                apply=apply,
                effect=effect,
                restore=restore,
                operation=f"{'join' if joining else 'leave'} circle {circle_id}"
            )
        finally:
            self.pending.discard(circle_id)

        if not result.ok:
            self.error = result.error
            self.notify_listeners()

        return MembershipToggleResult(
            circle_id=circle_id,
            is_member=self.is_member(circle_id),
            success=result.ok,
            feedback=TOGGLE_FEEDBACK,
            error=result.error
        )
