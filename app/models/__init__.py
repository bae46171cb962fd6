# Models module for the participant API
from app.models.event import (
    Event, TicketTier, EventFaq, Registration, EventMode, EventStatus,
    RegistrationStatus, PriceRange, ModeBadge, SaveToggleOutcome,
    SaveToggleResult, TierListing, EventDetailView
)
from app.models.promotion import (
    PromoCode, PromoValidation, OrderPricing, DiscountType
)
from app.models.registration import (
    FlowStep, AttendeeForm, FlowView, RegistrationSubmission,
    StartFlowRequest, SelectTierRequest, SetQuantityRequest, ApplyPromoRequest
)
from app.models.engagement import (
    EventCheckin, CheckinStatus, CheckinRequest,
    EventPoll, PollOption, PollView, PollOptionView, PollCreate,
    PollVoteRequest, PollVoteResponse,
    EventSession, EventAnnouncement, ZoneOverview
)
from app.models.social import (
    ParticipantChannel, ChannelCategory, ChannelListing,
    Circle, JoinedCircles, MembershipToggleResult
)
from app.models.settings import (
    SettingsKind, AccessibilitySettings, NotificationPreferences,
    ChatThemeSettings, ChatSecuritySettings, SettingsView, SettingsUpdateResult
)
