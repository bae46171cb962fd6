"""
Registration flow

Drives one attendee through tier selection, the attendee form and the
order summary to a submitted registration. I/O is injected: a promo
validator and a submitter, so the flow itself only holds state and guards
transitions.

Guard violations (wrong step, no tier selected) raise ValidationError.
Outcomes the attendee should see and correct (invalid promo, form field
errors, a rejected submission) are recorded on the flow instead.
"""
import re
import uuid
import logging
from typing import Awaitable, Callable, Dict, List, Optional
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.models.event import TicketTier, Registration
from app.models.promotion import PromoCode, PromoValidation, OrderPricing
from app.models.registration import FlowStep, AttendeeForm, FlowView, RegistrationSubmission
from app.services import pricing_service
from app.core.exceptions import APIError, ValidationError, NotFoundError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[\w\-.]+@([\w-]+\.)+[\w-]{2,4}$')

# (code, tier_id, quantity, subtotal) -> validation
PromoValidator = Callable[[str, str, int, Decimal], Awaitable[PromoValidation]]
RegistrationSubmitter = Callable[[RegistrationSubmission], Awaitable[Registration]]


def validate_attendee(form: AttendeeForm) -> Dict[str, str]:
    """Field errors for the attendee form; empty when it can be submitted"""
    errors = {}

    if not form.name.strip():
        errors["name"] = "Name is required"

    email = form.email.strip()
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.match(email):
        errors["email"] = "Enter a valid email"

    if not form.agreed_to_terms:
        errors["agreed_to_terms"] = "Please agree to the terms and conditions"

    return errors


class RegistrationFlow:
    def __init__(
        self,
        event_id: str,
        user_id: str,
        tiers: List[TicketTier],
        promo_validator: PromoValidator,
        submitter: RegistrationSubmitter,
        per_order_cap: int = 10,
        currency_symbol: str = pricing_service.DEFAULT_CURRENCY_SYMBOL,
        flow_id: Optional[str] = None
    ):
        self.flow_id = flow_id or str(uuid.uuid4())
        self.event_id = event_id
        self.user_id = user_id
        self.tiers = tiers
        self.per_order_cap = per_order_cap
        self.currency_symbol = currency_symbol
        self._validate_promo = promo_validator
        self._submit = submitter

        self.step = FlowStep.TIER_SELECTION
        self.selected_tier_id: Optional[str] = None
        self.quantity = 0
        self.applied_promo: Optional[PromoCode] = None
        self.promo_discount = Decimal("0")
        self.promo_quantity: Optional[int] = None
        self.attendee = AttendeeForm()
        self.field_errors: Dict[str, str] = {}
        self.error: Optional[str] = None
        self.registration: Optional[Registration] = None
        self.is_submitting = False
        self.updated_at = datetime.now(timezone.utc)

    def _touch(self):
        self.updated_at = datetime.now(timezone.utc)

    def _require_step(self, step: FlowStep, action: str):
        if self.step != step:
            raise ValidationError(
                f"Cannot {action} during {self.step.value}",
                {"step": self.step.value}
            )

    def _require_tier(self) -> TicketTier:
        tier = self.selected_tier
        if tier is None:
            raise ValidationError("Select a ticket first")
        return tier

    def available_tiers(self, now: Optional[datetime] = None) -> List[TicketTier]:
        return pricing_service.available_tiers(self.tiers, now or datetime.now(timezone.utc))

    @property
    def selected_tier(self) -> Optional[TicketTier]:
        for tier in self.tiers:
            if tier.id == self.selected_tier_id:
                return tier
        return None

    @property
    def max_quantity(self) -> int:
        tier = self.selected_tier
        if tier is None:
            return 0
        return pricing_service.max_quantity(tier, self.per_order_cap)

    @property
    def pricing(self) -> Optional[OrderPricing]:
        tier = self.selected_tier
        if tier is None:
            return None
        return pricing_service.calculate_order_pricing(
            tier, self.quantity, self.promo_discount, self.currency_symbol
        )

    @property
    def promo_is_stale(self) -> bool:
        """True when the quantity changed after the promo discount was computed"""
        return self.applied_promo is not None and self.promo_quantity != self.quantity

    def select_tier(self, tier_id: str, now: Optional[datetime] = None):
        self._require_step(FlowStep.TIER_SELECTION, "select a ticket")

        available_ids = {t.id for t in self.available_tiers(now)}
        if tier_id not in available_ids:
            raise ValidationError("This ticket is not available", {"tier_id": tier_id})

        if tier_id != self.selected_tier_id:
            self.selected_tier_id = tier_id
            self.quantity = 1
            self._clear_promo()

        self.error = None
        self._touch()

    def set_quantity(self, quantity: int):
        self._require_step(FlowStep.TIER_SELECTION, "change quantity")
        tier = self._require_tier()
        # An applied promo keeps the discount it was granted with
        self.quantity = pricing_service.clamp_quantity(quantity, tier, self.per_order_cap)
        self._touch()

    async def apply_promo(self, code: str) -> bool:
        """Validate and apply a promo code; on rejection the message is kept in ``error``"""
        self._require_step(FlowStep.TIER_SELECTION, "apply a promo code")
        tier = self._require_tier()

        code = code.strip()
        if not code:
            raise ValidationError("Enter a promo code")

        subtotal = Decimal(tier.price) * self.quantity
        result = await self._validate_promo(code, tier.id, self.quantity, subtotal)
        self._touch()

        if not result.is_valid:
            self.error = result.error_message or "Invalid promo code"
            return False

        self.applied_promo = result.promo_code
        self.promo_discount = result.discount_amount
        self.promo_quantity = self.quantity
        self.error = None
        logger.debug(f"Flow {self.flow_id}: promo applied, discount {result.discount_amount}")
        return True

    def remove_promo(self):
        self._require_step(FlowStep.TIER_SELECTION, "remove a promo code")
        self._clear_promo()
        self._touch()

    def _clear_promo(self):
        self.applied_promo = None
        self.promo_discount = Decimal("0")
        self.promo_quantity = None

    def continue_to_form(self):
        self._require_step(FlowStep.TIER_SELECTION, "continue")
        self._require_tier()
        self.step = FlowStep.ATTENDEE_FORM
        self.error = None
        self._touch()

    def submit_attendee_form(self, form: AttendeeForm) -> Dict[str, str]:
        """Store the form; advance to the summary only when it has no field errors"""
        self._require_step(FlowStep.ATTENDEE_FORM, "submit attendee details")

        self.attendee = form
        self.field_errors = validate_attendee(form)
        if not self.field_errors:
            self.step = FlowStep.ORDER_SUMMARY
        self._touch()
        return self.field_errors

    def back(self):
        if self.step == FlowStep.ATTENDEE_FORM:
            self.step = FlowStep.TIER_SELECTION
        elif self.step == FlowStep.ORDER_SUMMARY:
            self.step = FlowStep.ATTENDEE_FORM
        else:
            raise ValidationError(f"Cannot go back from {self.step.value}", {"step": self.step.value})

        self.error = None
        self._touch()

    async def submit(self) -> Optional[Registration]:
        """
        Submit the registration.

        On rejection the flow stays on the order summary with the server's
        message in ``error`` so the attendee can retry.
        """
        self._require_step(FlowStep.ORDER_SUMMARY, "submit")
        if self.is_submitting:
            raise ValidationError("Registration is already being submitted")

        tier = self._require_tier()
        pricing = self.pricing

        submission = RegistrationSubmission(
            event_id=self.event_id,
            user_id=self.user_id,
            ticket_tier_id=tier.id,
            quantity=self.quantity,
            unit_price=pricing.unit_price,
            subtotal=pricing.subtotal,
            discount_amount=pricing.discount,
            total_amount=pricing.total,
            promo_code_id=self.applied_promo.id if self.applied_promo else None,
            attendee=self.attendee
        )

        self.is_submitting = True
        self.error = None
        try:
            registration = await self._submit(submission)
        except APIError as e:
            logger.warning(f"Flow {self.flow_id}: submission rejected: {e.message}")
            self.error = e.message
            return None
        finally:
            self.is_submitting = False
            self._touch()

        self.registration = registration
        self.step = FlowStep.SUBMITTED
        logger.info(f"Flow {self.flow_id}: registration {registration.id} submitted")
        return registration

    def to_view(self, now: Optional[datetime] = None) -> FlowView:
        return FlowView(
            flow_id=self.flow_id,
            event_id=self.event_id,
            step=self.step,
            tiers=self.available_tiers(now),
            selected_tier=self.selected_tier,
            quantity=self.quantity,
            max_quantity=self.max_quantity,
            pricing=self.pricing,
            applied_promo=self.applied_promo,
            promo_quantity=self.promo_quantity,
            promo_is_stale=self.promo_is_stale,
            attendee=self.attendee,
            field_errors=self.field_errors,
            error=self.error,
            registration=self.registration,
            updated_at=self.updated_at
        )


class RegistrationFlowStore:
    """In-process registry of open flows, keyed by flow id and owned by one user"""

    def __init__(self, ttl_minutes: int = 30):
        self.ttl = timedelta(minutes=ttl_minutes)
        self._flows: Dict[str, RegistrationFlow] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def add(self, flow: RegistrationFlow) -> RegistrationFlow:
        self.purge_expired()
        self._flows[flow.flow_id] = flow
        return flow

    def get(self, flow_id: str, user_id: str, now: Optional[datetime] = None) -> RegistrationFlow:
        now = now or datetime.now(timezone.utc)
        flow = self._flows.get(flow_id)

        if flow is not None and now - flow.updated_at > self.ttl:
            del self._flows[flow_id]
            flow = None

        # Other users' flows are indistinguishable from missing ones
        if flow is None or flow.user_id != user_id:
            raise NotFoundError("Registration flow not found")

        return flow

    def discard(self, flow_id: str, user_id: str) -> None:
        self.get(flow_id, user_id)
        del self._flows[flow_id]
        logger.debug(f"Flow {flow_id} discarded")

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        expired = [fid for fid, f in self._flows.items() if now - f.updated_at > self.ttl]
        for fid in expired:
            del self._flows[fid]
        if expired:
            logger.info(f"Purged {len(expired)} expired registration flows")
        return len(expired)
