from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from enum import Enum

from app.models.event import TicketTier, Registration
from app.models.promotion import PromoCode, OrderPricing


class FlowStep(str, Enum):
    """Registration sheet steps, in order"""
    TIER_SELECTION = "tier_selection"
    ATTENDEE_FORM = "attendee_form"
    ORDER_SUMMARY = "order_summary"
    SUBMITTED = "submitted"


class AttendeeForm(BaseModel):
    """Attendee details as typed; validated by the flow, not by pydantic"""
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    organization: Optional[str] = None
    agreed_to_terms: bool = False
    extra: Dict[str, str] = {}


class StartFlowRequest(BaseModel):
    event_id: str


class SelectTierRequest(BaseModel):
    tier_id: str


class SetQuantityRequest(BaseModel):
    quantity: int


class ApplyPromoRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class FlowView(BaseModel):
    """Snapshot of a registration flow"""
    flow_id: str
    event_id: str
    step: FlowStep
    tiers: List[TicketTier] = []
    selected_tier: Optional[TicketTier] = None
    quantity: int = 0
    max_quantity: int = 0
    pricing: Optional[OrderPricing] = None
    applied_promo: Optional[PromoCode] = None
    promo_quantity: Optional[int] = None
    promo_is_stale: bool = False
    attendee: AttendeeForm = AttendeeForm()
    field_errors: Dict[str, str] = {}
    error: Optional[str] = None
    registration: Optional[Registration] = None
    updated_at: datetime


class RegistrationSubmission(BaseModel):
    """Payload handed to the registration submitter"""
    event_id: str
    user_id: str
    ticket_tier_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    promo_code_id: Optional[str] = None
    attendee: AttendeeForm
