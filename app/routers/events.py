from fastapi import APIRouter, Depends
from datetime import datetime, timezone
from app.config import settings
from app.core.dependencies import get_authenticated_user, AuthenticatedUser, get_events_service
from app.core.exceptions import NotFoundError
from app.controllers.event_detail import EventDetailController
from app.models.event import EventDetailView, TierListing, SaveToggleResult
from app.services.events_service import EventsService
from app.services import pricing_service

router = APIRouter()


def _controller(service: EventsService, user: AuthenticatedUser) -> EventDetailController:
    return EventDetailController(
        service,
        user.user_id,
        per_order_cap=settings.max_tickets_per_order,
        currency_symbol=settings.currency_symbol
    )


@router.get("/{event_id}", response_model=EventDetailView)
async def get_event_detail(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: EventsService = Depends(get_events_service)
):
    """
    Event detail page.

    Loads the event with its tiers, published FAQs, saved status and the
    caller's registration concurrently. Only the event itself is required;
    any other part that fails to load comes back empty.
    """
    controller = _controller(service, user)
    await controller.initialize(event_id)
    return controller.to_view()


@router.get("/{event_id}/tiers", response_model=TierListing)
async def get_event_tiers(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: EventsService = Depends(get_events_service)
):
    """
    Purchasable tiers, ordered by sort order, with the price label.
    """
    tiers = await service.get_ticket_tiers(event_id, user.user_id)
    if not tiers and not await service.get_event_by_id(event_id, user.user_id):
        raise NotFoundError("Event not found")

    now = datetime.now(timezone.utc)
    return TierListing(
        event_id=event_id,
        tiers=pricing_service.available_tiers(tiers, now),
        price_range=pricing_service.price_range(tiers, now, settings.currency_symbol),
        max_tickets_per_order=settings.max_tickets_per_order
    )


@router.post("/{event_id}/save", response_model=SaveToggleResult)
async def toggle_saved(
    event_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: EventsService = Depends(get_events_service)
):
    """
    Toggle the saved status of an event for the caller.

    Returns ``success`` with the new status, or ``failed`` with the
    unchanged status.
    """
    controller = _controller(service, user)
    controller.event_id = event_id
    controller.is_saved = await service.is_event_saved(event_id, user.user_id)
    return await controller.toggle_save()
