from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class DiscountType(str, Enum):
    """How a promo code discounts the order"""
    PERCENTAGE = "percentage"  # Percent of the subtotal
    FIXED = "fixed"            # Flat amount per ticket


class PromoCode(BaseModel):
    """Promo code row"""
    id: str
    event_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_quantity: Optional[int] = Field(None, description="Tickets per order the fixed discount covers")
    max_uses: Optional[int] = Field(None, description="None = unlimited")
    current_uses: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    ticket_tier_ids: Optional[List[str]] = Field(None, description="None = every tier")

    class Config:
        from_attributes = True

    @property
    def formatted_discount(self) -> str:
        if self.discount_type == DiscountType.PERCENTAGE:
            return f"{self.discount_value.normalize():f}% off"
        return f"{int(self.discount_value)} off per ticket"


class PromoValidation(BaseModel):
    """Result of validating a promo code against a selection"""
    is_valid: bool
    promo_code: Optional[PromoCode] = None
    discount_amount: Decimal = Decimal("0")
    error_message: Optional[str] = None


class OrderPricing(BaseModel):
    """Subtotal / discount / total for the current selection"""
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    discount: Decimal = Decimal("0")
    total: Decimal
    currency: str = "INR"
    total_label: str
