from dataclasses import replace

import pytest
import requests

from app.checkout import CheckoutOrchestrator
from app.models import CheckoutRequest
from tests.payloads import CONFIGURED, ORDER, TABBY_CREATED, TABBY_REJECTED

CONTACT = {"contact": {"id": "contact_42"}}


def test_stripe_checkout_full_lifecycle(client, http, stripe_session):
    """
    Test the full unified flow for a card payment:
    1. GHL contact upsert (tags carry the payment method)
    2. Stripe Checkout Session creation (metadata carries the contact id)
    3. Order note posted to the contact
    """
    http.on("POST", "/contacts/", json=CONTACT)

    response = client.post("/api/checkout", json={**ORDER, "payment_method": "stripe"})

    assert response.status_code == 200
    assert response.json()["ghl_contact_id"] == "contact_42"
    assert response.json()["redirect_url"] == "https://checkout.stripe.com/c/pay/cs_test_123"

    # --- 1. CONTACT ---
    (upsert,) = http.calls("POST", "/contacts/")
    assert upsert.args[0] == "https://services.leadconnectorhq.com/contacts/"
    assert upsert.kwargs["headers"]["Authorization"] == "Bearer ghl_key"
    assert upsert.kwargs["headers"]["Version"] == "2021-07-28"
    contact = upsert.kwargs["json"]
    assert contact["firstName"] == "Layla"
    assert contact["lastName"] == "Haddad"
    assert contact["locationId"] == "loc_1"
    assert contact["tags"] == ["checkout-started", "ems-suit", "payment-stripe"]

    # --- 2. STRIPE SESSION ---
    params = stripe_session.call_args.kwargs
    assert params["metadata"] == {
        "reference_id": "ORD-100",
        "customer_name": "Layla Haddad",
        "customer_phone": "+971500000001",
        "ghl_contact_id": "contact_42",
    }
    assert params["success_url"] == "https://shop.test/thank-you?session_id={CHECKOUT_SESSION_ID}&method=stripe"
    assert params["cancel_url"] == "https://shop.test/payment-cancelled?method=stripe"

    # --- 3. NOTE ---
    (note,) = http.calls("POST", "/contacts/contact_42/notes")
    assert "Stripe Session: cs_test_123" in note.kwargs["json"]["body"]
    assert "Amount: 1499.00 AED" in note.kwargs["json"]["body"]


def test_tabby_checkout_full_lifecycle(client, http):
    http.on("POST", "/contacts/", json=CONTACT)
    http.on("POST", "/api/v2/checkout", json=TABBY_CREATED)

    response = client.post("/api/checkout", json=ORDER)

    assert response.status_code == 200
    assert response.json()["ghl_contact_id"] == "contact_42"
    assert http.calls("POST", "/contacts/")[0].kwargs["json"]["tags"][-1] == "payment-tabby"
    (note,) = http.calls("POST", "/contacts/contact_42/notes")
    body = note.kwargs["json"]["body"]
    assert body.startswith("Tabby Checkout Started")
    assert "Session ID: sess_1" in body
    assert "Payment ID: pay_1" in body
    assert http.put.call_count == 0


def test_tabby_rejection_tags_contact(client, http):
    http.on("POST", "/contacts/", json=CONTACT)
    http.on("POST", "/api/v2/checkout", json=TABBY_REJECTED)

    response = client.post("/api/checkout", json=ORDER)

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["rejection_reason"] == "risky"
    (tag_update,) = http.calls("PUT", "/contacts/contact_42")
    assert "tabby-rejected" in tag_update.kwargs["json"]["tags"]
    assert http.calls("POST", "/notes") == []


def test_crm_upsert_failure_does_not_block_stripe(client, http, stripe_session):
    http.on("POST", "/contacts/", error=requests.ConnectionError("GHL unreachable"))

    response = client.post("/api/checkout", json={**ORDER, "payment_method": "stripe"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["ghl_contact_id"] is None
    assert stripe_session.call_args.kwargs["metadata"]["ghl_contact_id"] == ""
    assert http.calls("POST", "/notes") == []


def test_crm_upsert_failure_does_not_block_tabby(client, http):
    http.on("POST", "/contacts/", error=requests.Timeout("GHL timed out"))
    http.on("POST", "/api/v2/checkout", json=TABBY_CREATED)

    response = client.post("/api/checkout", json=ORDER)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["ghl_contact_id"] is None


def test_malformed_crm_response_is_ignored(client, http, stripe_session):
    http.on("POST", "/contacts/", json={"message": "Invalid JWT"})

    response = client.post("/api/checkout", json={**ORDER, "payment_method": "stripe"})

    assert response.status_code == 200
    assert response.json()["ghl_contact_id"] is None


def test_stripe_amount_is_rounded_to_minor_units(client, http, stripe_session):
    client.post("/api/checkout", json={**ORDER, "payment_method": "stripe", "amount": "19.999"})

    line_item = stripe_session.call_args.kwargs["line_items"][0]
    assert line_item["price_data"]["unit_amount"] == 2000
    assert line_item["price_data"]["currency"] == "aed"


def test_identical_requests_create_separate_sessions(client, http, stripe_session, mocker):
    """No deduplication: each request opens a new provider session, even without a reference_id."""
    first, second = mocker.Mock(id="cs_1", url="https://stripe/1"), mocker.Mock(id="cs_2", url="https://stripe/2")
    stripe_session.side_effect = [first, second]
    order = {k: v for k, v in ORDER.items() if k != "reference_id"}
    order["payment_method"] = "stripe"

    one = client.post("/api/checkout", json=order)
    two = client.post("/api/checkout", json=order)

    assert stripe_session.call_count == 2
    assert one.json()["session_id"] == "cs_1"
    assert two.json()["session_id"] == "cs_2"
    for call in stripe_session.call_args_list:
        assert call.kwargs["metadata"]["reference_id"].startswith("ORD-")


# --- ORCHESTRATOR AUDIT TRAIL ---


@pytest.fixture
def orchestrator():
    return CheckoutOrchestrator(CONFIGURED)


def test_note_failure_is_recorded_not_raised(orchestrator, http, stripe_session):
    http.on("POST", "/contacts/", json=CONTACT)
    http.on("POST", "/notes", error=requests.HTTPError("502 Bad Gateway"))

    status_code, result = orchestrator.handle(CheckoutRequest(**ORDER, payment_method="stripe"))

    assert status_code == 200
    assert result.success is True
    assert result.audit == ["order note: 502 Bad Gateway"]
    assert "audit" not in result.to_body()


def test_tag_failure_keeps_rejection_outcome(orchestrator, http):
    http.on("POST", "/contacts/", json=CONTACT)
    http.on("POST", "/api/v2/checkout", json=TABBY_REJECTED)
    http.on("PUT", "/contacts/contact_42", error=requests.ConnectionError("reset"))

    status_code, result = orchestrator.handle(CheckoutRequest(**ORDER))

    assert status_code == 200
    assert result.success is False
    assert result.rejection_reason == "risky"
    assert result.audit == ["tag update: reset"]


def test_crm_disabled_without_location(http, stripe_session):
    orchestrator = CheckoutOrchestrator(replace(CONFIGURED, ghl_location_id=""))

    status_code, result = orchestrator.handle(CheckoutRequest(**ORDER, payment_method="stripe"))

    assert status_code == 200
    assert orchestrator.crm is None
    http.post.assert_not_called()
    assert result.audit == []
