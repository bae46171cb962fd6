import logging
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone
from app.database import Database, row_to_dict
from app.models.promotion import PromoCode, PromoValidation
from app.services import pricing_service

logger = logging.getLogger(__name__)


class PromotionsService:
    """Promo code lookup and validation against an event and tier selection"""

    def __init__(self, db: Database):
        self.db = db

    async def get_promo_code(self, event_id: str, code: str, user_id: Optional[str] = None) -> Optional[PromoCode]:
        async with self.db.connection(use_transaction=False, as_user=user_id) as conn:
            row = await conn.fetchrow("""
                SELECT id, event_id, code, discount_type, discount_value, max_quantity,
                       max_uses, current_uses, valid_from, valid_until, is_active,
                       ticket_tier_ids
                FROM promo_codes
                WHERE event_id = $1 AND UPPER(code) = $2
            """, event_id, code.upper().strip())

        return PromoCode(**row_to_dict(row)) if row else None

    async def validate_promo_code(
        self,
        event_id: str,
        code: str,
        tier_id: Optional[str],
        quantity: int,
        subtotal: Decimal,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> PromoValidation:
        """Validate a promo code and compute the discount for the current selection"""
        promo = await self.get_promo_code(event_id, code, user_id)
        return check_promo_code(promo, tier_id, quantity, subtotal, now or datetime.now(timezone.utc))


def check_promo_code(
    promo: Optional[PromoCode],
    tier_id: Optional[str],
    quantity: int,
    subtotal: Decimal,
    now: datetime
) -> PromoValidation:
    if promo is None:
        return PromoValidation(is_valid=False, error_message="Invalid promo code")

    if not promo.is_active:
        return PromoValidation(is_valid=False, error_message="This promo code is no longer active")

    if promo.valid_from and now < _aware(promo.valid_from):
        return PromoValidation(is_valid=False, error_message="This promo code is not valid yet")

    if promo.valid_until and now > _aware(promo.valid_until):
        return PromoValidation(is_valid=False, error_message="This promo code has expired")

    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        return PromoValidation(is_valid=False, error_message="This promo code has reached its usage limit")

    if promo.ticket_tier_ids and tier_id not in promo.ticket_tier_ids:
        return PromoValidation(is_valid=False, error_message="This promo code does not apply to the selected ticket")

    discount = pricing_service.calculate_discount(promo, subtotal, quantity)
    logger.info(f"Promo {promo.code} valid for tier {tier_id}: discount {discount}")

    return PromoValidation(is_valid=True, promo_code=promo, discount_amount=discount)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
