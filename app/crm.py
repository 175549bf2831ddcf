import logging

import requests

from app.config import Settings
from app.models import CURRENCY, CheckoutRequest

logger = logging.getLogger(__name__)

SOURCE = "Checkout Page"
TAG_STARTED = "checkout-started"
TAG_TABBY_REJECTED = "tabby-rejected"


class CRMResponseError(ValueError):
    """GHL answered, but not with what we asked for."""


class GHLClient:
    """Thin client for the GHL (LeadConnector) contacts API."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.base_url = settings.ghl_api_url

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.settings.ghl_api_key}",
            "Content-Type": "application/json",
            "Version": self.settings.ghl_api_version,
        }

    def contact_payload(self, checkout: CheckoutRequest) -> dict:
        first_name, last_name = checkout.split_name()
        return {
            "locationId": self.settings.ghl_location_id,
            "firstName": first_name,
            "lastName": last_name,
            "email": checkout.email,
            "phone": checkout.phone,
            "address1": checkout.address,
            "city": checkout.city,
            "postalCode": checkout.zip,
            "country": checkout.country,
            "source": SOURCE,
            "tags": [TAG_STARTED, self.settings.ghl_product_tag, f"payment-{checkout.payment_method}"],
        }

    def upsert_contact(self, checkout: CheckoutRequest) -> str:
        response = requests.post(
            f"{self.base_url}/contacts/",
            json=self.contact_payload(checkout),
            headers=self._headers(),
            timeout=self.settings.http_timeout,
        )
        data = response.json()
        contact = data.get("contact") if isinstance(data, dict) else None
        contact_id = contact.get("id") if isinstance(contact, dict) else None
        if not contact_id:
            raise CRMResponseError(f"GHL contact response without id: {data}")
        logger.info("GHL contact created/updated: %s", contact_id)
        return str(contact_id)

    def add_note(self, contact_id: str, body: str) -> None:
        response = requests.post(
            f"{self.base_url}/contacts/{contact_id}/notes",
            json={"body": body},
            headers=self._headers(),
            timeout=self.settings.http_timeout,
        )
        response.raise_for_status()

    def mark_tabby_rejected(self, contact_id: str) -> None:
        # PUT replaces the tag list
        response = requests.put(
            f"{self.base_url}/contacts/{contact_id}",
            json={"tags": [TAG_STARTED, self.settings.ghl_product_tag, TAG_TABBY_REJECTED]},
            headers=self._headers(),
            timeout=self.settings.http_timeout,
        )
        response.raise_for_status()


def checkout_note(provider: str, checkout: CheckoutRequest, ids) -> str:
    """Order summary posted to the contact once a provider session exists."""
    lines = [
        f"{provider} Checkout Started",
        f"- Product: {checkout.item_title}",
        f"- Amount: {checkout.amount} {CURRENCY}",
        f"- Order Ref: {checkout.reference_id}",
    ]
    for label, value in ids:
        lines.append(f"- {label}: {value or 'N/A'}")
    lines.append("- Status: Awaiting Payment")
    return "\n".join(lines)
