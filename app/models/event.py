from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum


class EventMode(str, Enum):
    """Where the event happens"""
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    HYBRID = "HYBRID"


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RegistrationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    WAITLISTED = "WAITLISTED"
    CANCELLED = "CANCELLED"


class Event(BaseModel):
    """Event row as read by participants"""
    id: str
    name: str
    description: Optional[str] = None
    mode: EventMode = EventMode.OFFLINE
    status: EventStatus = EventStatus.PUBLISHED
    start_date: datetime
    end_date: datetime
    timezone: Optional[str] = None
    capacity: Optional[int] = None
    registration_deadline: Optional[datetime] = None
    organizer_id: Optional[str] = None
    organization_id: Optional[str] = None
    banner_url: Optional[str] = None

    class Config:
        from_attributes = True


class TicketTier(BaseModel):
    """Priced ticket category with its own stock and sale window"""
    id: str
    event_id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"))
    currency: str = "INR"
    quantity: Optional[int] = Field(None, description="None = unlimited")
    sold_count: int = 0
    sale_start: Optional[datetime] = None
    sale_end: Optional[datetime] = None
    is_active: bool = True
    sort_order: int = 0

    class Config:
        from_attributes = True

    @property
    def remaining(self) -> Optional[int]:
        if self.quantity is None:
            return None
        return max(self.quantity - self.sold_count, 0)


class EventFaq(BaseModel):
    id: str
    event_id: str
    question: str
    answer: str
    sort_order: int = 0


class Registration(BaseModel):
    """A user's registration for an event"""
    id: str
    event_id: str
    user_id: str
    status: RegistrationStatus = RegistrationStatus.PENDING
    ticket_tier_id: Optional[str] = None
    quantity: int = 1
    promo_code_id: Optional[str] = None
    subtotal: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    form_responses: Dict[str, Any] = {}
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PriceRange(BaseModel):
    """Price range display data"""
    label: str
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None


class ModeBadge(BaseModel):
    """Mode badge display data"""
    label: str
    icon: str
    color: str


class SaveToggleOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    BUSY = "busy"


class SaveToggleResult(BaseModel):
    """Result of a saved-status toggle"""
    outcome: SaveToggleOutcome
    is_saved: bool


class TierListing(BaseModel):
    """Purchasable tiers plus the price label shown with them"""
    event_id: str
    tiers: List[TicketTier] = []
    price_range: PriceRange
    max_tickets_per_order: int


class EventDetailView(BaseModel):
    """Everything the event detail page renders"""
    event: Event
    tiers: List[TicketTier] = []
    available_tiers: List[TicketTier] = []
    faqs: List[EventFaq] = []
    price_range: PriceRange
    mode_badge: ModeBadge
    is_saved: bool = False
    is_registered: bool = False
    is_upcoming: bool = False
    registration: Optional[Registration] = None
    registered_count: int = 0
    date_label: str
    time_label: str
    duration_label: str
