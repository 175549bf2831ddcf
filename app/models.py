import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

CURRENCY = "AED"


class PaymentMethod(str, Enum):
    TABBY = "tabby"
    STRIPE = "stripe"


def _default_reference() -> str:
    # Millisecond clock; two requests in the same millisecond share a reference.
    return f"ORD-{int(time.time() * 1000)}"


class CheckoutRequest(BaseModel):
    payment_method: str = PaymentMethod.TABBY.value
    name: str = "Customer"
    email: str = ""
    phone: str = ""
    amount: str = "0.00"
    description: str = "Purchase"
    reference_id: str = Field(default_factory=_default_reference)
    item_title: str = "Product"
    item_category: str = "General"
    address: str = ""
    city: str = "Dubai"
    zip: str = "00000"
    country: str = "AE"

    @model_validator(mode="before")
    @classmethod
    def _coerce_form_values(cls, data: Any) -> Any:
        # Form builders send nulls for untouched inputs and numbers for amounts.
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if value is None:
                continue
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            cleaned[key] = value
        return cleaned

    @property
    def method(self) -> PaymentMethod:
        if self.payment_method == PaymentMethod.STRIPE.value:
            return PaymentMethod.STRIPE
        return PaymentMethod.TABBY

    @property
    def amount_value(self) -> Optional[Decimal]:
        """The amount as a finite Decimal, or None when it does not parse or cannot be rounded."""
        try:
            value = Decimal(self.amount.strip())
            if not value.is_finite():
                return None
            # Minor units and the two-decimal string must fit the context precision.
            (value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except (InvalidOperation, ValueError):
            return None
        return value

    @property
    def amount_minor_units(self) -> int:
        return int((self.amount_value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def amount_display(self) -> str:
        return str(self.amount_value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    def split_name(self):
        parts = self.name.strip().split()
        first = parts[0] if parts else "Customer"
        return first, " ".join(parts[1:])


class CheckoutResult(BaseModel):
    """
    Body returned to the caller. Only explicitly assigned fields are serialized,
    so each outcome keeps its own shape (e.g. ghl_contact_id=None stays as null).
    """
    success: bool = False
    redirect_url: Optional[str] = None
    payment_id: Optional[str] = None
    session_id: Optional[str] = None
    ghl_contact_id: Optional[str] = None
    payment_method: Optional[str] = None
    error: Optional[str] = None
    rejection_reason: Optional[str] = None
    tabby_response: Optional[Any] = None
    details: Optional[str] = None
    # Best-effort CRM failures; kept for logs and callers in-process, never sent.
    audit: List[str] = Field(default_factory=list, exclude=True)

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)
