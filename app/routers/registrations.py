from fastapi import APIRouter, Depends
from datetime import datetime, timezone
from decimal import Decimal
from app.config import settings
from app.core.dependencies import (
    get_authenticated_user, AuthenticatedUser, get_flow_store,
    get_events_service, get_promotions_service, get_registrations_service
)
from app.core.exceptions import NotFoundError
from app.controllers.event_detail import EventDetailController
from app.models.registration import (
    AttendeeForm, FlowStep, FlowView, StartFlowRequest, SelectTierRequest,
    SetQuantityRequest, ApplyPromoRequest
)
from app.services.events_service import EventsService
from app.services.promotions_service import PromotionsService
from app.services.registrations_service import RegistrationsService
from app.services.registration_flow import RegistrationFlow, RegistrationFlowStore

router = APIRouter()


@router.post("/flows", response_model=FlowView, status_code=201)
async def start_flow(
    data: StartFlowRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store),
    events: EventsService = Depends(get_events_service),
    promotions: PromotionsService = Depends(get_promotions_service),
    registrations: RegistrationsService = Depends(get_registrations_service)
):
    """
    Open a registration flow for an event.

    The flow starts on tier selection with the event's tiers as loaded
    now; it lives in memory and expires after a period of inactivity.
    """
    event = await events.get_event_by_id(data.event_id, user.user_id)
    if not event:
        raise NotFoundError("Event not found")

    tiers = await events.get_ticket_tiers(data.event_id, user.user_id)

    async def validate_promo(code: str, tier_id: str, quantity: int, subtotal: Decimal):
        return await promotions.validate_promo_code(
            data.event_id, code, tier_id, quantity, subtotal, user.user_id
        )

    flow = RegistrationFlow(
        event_id=data.event_id,
        user_id=user.user_id,
        tiers=tiers,
        promo_validator=validate_promo,
        submitter=registrations.submit_registration,
        per_order_cap=settings.max_tickets_per_order,
        currency_symbol=settings.currency_symbol
    )
    store.add(flow)
    return flow.to_view()


@router.get("/flows/{flow_id}", response_model=FlowView)
async def get_flow(
    flow_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    return store.get(flow_id, user.user_id).to_view()


@router.put("/flows/{flow_id}/tier", response_model=FlowView)
async def select_tier(
    flow_id: str,
    data: SelectTierRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    """
    Select a tier. Choosing a different tier resets the quantity to 1 and
    drops an applied promo code.
    """
    flow = store.get(flow_id, user.user_id)
    now = datetime.now(timezone.utc)
    flow.select_tier(data.tier_id, now)
    return flow.to_view(now)


@router.put("/flows/{flow_id}/quantity", response_model=FlowView)
async def set_quantity(
    flow_id: str,
    data: SetQuantityRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    """
    Set the quantity, clamped to what the tier and the per-order limit
    allow. An applied promo keeps its discount; ``promo_is_stale`` tells
    whether it was computed for a different quantity.
    """
    flow = store.get(flow_id, user.user_id)
    flow.set_quantity(data.quantity)
    return flow.to_view()


@router.post("/flows/{flow_id}/promo", response_model=FlowView)
async def apply_promo(
    flow_id: str,
    data: ApplyPromoRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    """
    Apply a promo code. A rejected code leaves the order unchanged and the
    reason in ``error``.
    """
    flow = store.get(flow_id, user.user_id)
    await flow.apply_promo(data.code)
    return flow.to_view()


@router.delete("/flows/{flow_id}/promo", response_model=FlowView)
async def remove_promo(
    flow_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    flow = store.get(flow_id, user.user_id)
    flow.remove_promo()
    return flow.to_view()


@router.post("/flows/{flow_id}/continue", response_model=FlowView)
async def continue_to_form(
    flow_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    flow = store.get(flow_id, user.user_id)
    flow.continue_to_form()
    return flow.to_view()


@router.post("/flows/{flow_id}/attendee", response_model=FlowView)
async def submit_attendee(
    flow_id: str,
    data: AttendeeForm,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    """
    Submit attendee details. With field errors the flow stays on the form
    and ``field_errors`` says what to fix.
    """
    flow = store.get(flow_id, user.user_id)
    flow.submit_attendee_form(data)
    return flow.to_view()


@router.post("/flows/{flow_id}/back", response_model=FlowView)
async def go_back(
    flow_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    flow = store.get(flow_id, user.user_id)
    flow.back()
    return flow.to_view()


async def _refresh_after_submit(flow: RegistrationFlow, events: EventsService, user: AuthenticatedUser):
    """Pull fresh tier stock and the stored registration into a submitted flow"""
    controller = EventDetailController(
        events,
        user.user_id,
        per_order_cap=settings.max_tickets_per_order,
        currency_symbol=settings.currency_symbol
    )
    controller.event_id = flow.event_id
    controller.tiers = flow.tiers
    controller.registration = flow.registration
    await controller.refresh_after_registration()

    flow.tiers = controller.tiers
    if controller.registration is not None:
        flow.registration = controller.registration


@router.post("/flows/{flow_id}/submit", response_model=FlowView)
async def submit_registration(
    flow_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store),
    events: EventsService = Depends(get_events_service)
):
    """
    Submit the registration. Free orders are confirmed immediately, paid
    ones stay pending. If the server rejects the submission (for example
    the tier sold out meanwhile) the flow stays on the order summary with
    the server's message in ``error``.

    After a successful submission the tiers and the registration are
    re-read, so the view carries current stock.
    """
    flow = store.get(flow_id, user.user_id)
    await flow.submit()
    if flow.step == FlowStep.SUBMITTED:
        await _refresh_after_submit(flow, events, user)
    return flow.to_view()


@router.delete("/flows/{flow_id}", status_code=204)
async def cancel_flow(
    flow_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    store: RegistrationFlowStore = Depends(get_flow_store)
):
    store.discard(flow_id, user.user_id)
