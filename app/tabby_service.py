from dataclasses import dataclass
from typing import Any, Optional

import requests

from app.config import Settings
from app.models import CURRENCY, CheckoutRequest

CREATED = "created"
REJECTED = "rejected"
UNEXPECTED = "unexpected"


@dataclass
class TabbyOutcome:
    """Tabby's answer to a checkout request, tagged by `kind`."""
    kind: str
    raw: Any
    web_url: Optional[str] = None
    payment_id: Optional[str] = None
    session_id: Optional[str] = None
    rejection_reason: Optional[str] = None


def _dig(data: Any, *path):
    for key in path:
        if isinstance(key, int):
            if not isinstance(data, list) or len(data) <= key:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[key] if isinstance(key, int) else data.get(key)
        if data is None:
            return None
    return data


def _as_id(value) -> Optional[str]:
    return None if value is None else str(value)


def build_payload(settings: Settings, checkout: CheckoutRequest, unified: bool = True) -> dict:
    """
    Payment payload for POST /api/v2/checkout.

    The Tabby-only endpoint ships a fixed Dubai shipping address and plain
    merchant URLs; the unified endpoint forwards the buyer's address and tags
    the return URLs with the payment method.
    """
    amount = checkout.amount_display
    if unified:
        shipping_address = {
            "city": checkout.city,
            "address": checkout.address or "N/A",
            "zip": checkout.zip,
        }
        suffix = "?method=tabby"
    else:
        shipping_address = {"city": "Dubai", "address": "N/A", "zip": "00000"}
        suffix = ""

    return {
        "payment": {
            "amount": amount,
            "currency": CURRENCY,
            "description": checkout.description,
            "buyer": {
                "name": checkout.name,
                "email": checkout.email,
                "phone": checkout.phone,
            },
            "shipping_address": shipping_address,
            "order": {
                "reference_id": checkout.reference_id,
                "items": [
                    {
                        "title": checkout.item_title,
                        "quantity": 1,
                        "unit_price": amount,
                        "reference_id": "ITEM-001",
                        "category": checkout.item_category,
                    }
                ],
            },
        },
        "lang": "en",
        "merchant_code": settings.tabby_merchant_code,
        "merchant_urls": {
            "success": settings.success_url + suffix,
            "failure": settings.failure_url + suffix,
            "cancel": settings.cancel_url + suffix,
        },
    }


def parse_response(data: Any) -> TabbyOutcome:
    status = _dig(data, "status")
    if status == CREATED:
        return TabbyOutcome(
            kind=CREATED,
            raw=data,
            web_url=_dig(data, "configuration", "available_products", "installments", 0, "web_url"),
            payment_id=_as_id(_dig(data, "payment", "id")),
            session_id=_as_id(_dig(data, "id")),
        )
    if status == REJECTED:
        reason = _dig(data, "configuration", "products", "installments", 0, "rejection_reason")
        return TabbyOutcome(kind=REJECTED, raw=data, rejection_reason=reason or "unknown")
    return TabbyOutcome(kind=UNEXPECTED, raw=data)


def create_checkout(settings: Settings, checkout: CheckoutRequest, unified: bool = True) -> TabbyOutcome:
    response = requests.post(
        f"{settings.tabby_api_url}/api/v2/checkout",
        json=build_payload(settings, checkout, unified=unified),
        headers={
            "Authorization": f"Bearer {settings.tabby_public_key}",
            "Content-Type": "application/json",
        },
        timeout=settings.http_timeout,
    )
    # Business status lives in the body, so non-2xx answers are parsed too.
    return parse_response(response.json())
