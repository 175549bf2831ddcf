import stripe

from app.config import Settings
from app.models import CURRENCY, CheckoutRequest

ALLOWED_SHIPPING_COUNTRIES = ["AE", "SA", "KW", "BH", "QA", "OM", "EG"]


def build_session_params(settings: Settings, checkout: CheckoutRequest, ghl_contact_id=None) -> dict:
    return {
        "payment_method_types": ["card"],
        "customer_email": checkout.email,
        "line_items": [
            {
                "price_data": {
                    "currency": CURRENCY.lower(),
                    "product_data": {
                        "name": checkout.item_title,
                        "description": checkout.description,
                    },
                    "unit_amount": checkout.amount_minor_units,
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "success_url": settings.success_url + "?session_id={CHECKOUT_SESSION_ID}&method=stripe",
        "cancel_url": settings.cancel_url + "?method=stripe",
        "metadata": {
            "reference_id": checkout.reference_id,
            "customer_name": checkout.name,
            "customer_phone": checkout.phone,
            "ghl_contact_id": ghl_contact_id or "",
        },
        "shipping_address_collection": {
            "allowed_countries": ALLOWED_SHIPPING_COUNTRIES,
        },
    }


def create_checkout_session(settings: Settings, checkout: CheckoutRequest, ghl_contact_id=None):
    return stripe.checkout.Session.create(
        api_key=settings.stripe_secret_key,
        **build_session_params(settings, checkout, ghl_contact_id)
    )
