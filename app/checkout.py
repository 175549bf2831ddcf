"""
Checkout orchestration.

One request runs straight through: validate, upsert the GHL contact, create
the Tabby or Stripe session, annotate the contact, respond. GHL calls are
best-effort: their failures are logged and recorded on the result's audit
trail, never surfaced to the caller. Business outcomes (created, rejected,
ambiguous) are HTTP 200 with `success` telling them apart; 4xx/5xx are kept
for bad requests and missing configuration.
"""
import logging
from typing import List, Optional, Tuple

import requests

from app import stripe_service, tabby_service
from app.config import Settings
from app.crm import GHLClient, checkout_note
from app.errors import CheckoutError, ConfigError, ValidationError
from app.models import CheckoutRequest, CheckoutResult, PaymentMethod

logger = logging.getLogger(__name__)

TABBY_REJECTED_MESSAGE = "Tabby was unable to approve this purchase. Please try paying with a card instead."
TABBY_ONLY_REJECTED_MESSAGE = (
    "Tabby was unable to approve this purchase. "
    "The customer may need to use an alternative payment method."
)


class CheckoutOrchestrator:
    def __init__(self, settings: Settings, crm: Optional[GHLClient] = None):
        self.settings = settings
        if crm is None and settings.crm_enabled:
            crm = GHLClient(settings)
        self.crm = crm

    def handle(self, checkout: CheckoutRequest) -> Tuple[int, CheckoutResult]:
        """Unified checkout: Tabby or Stripe, with GHL contact tracking."""
        try:
            return 200, self._run(checkout)
        except CheckoutError as exc:
            return exc.status_code, CheckoutResult(error=exc.message)
        except Exception as exc:
            logger.exception("Checkout error")
            return 500, CheckoutResult(error="Internal server error.", details=str(exc))

    def handle_tabby_session(self, checkout: CheckoutRequest) -> Tuple[int, CheckoutResult]:
        """Tabby-only session creator; no CRM, email optional."""
        if not self.settings.tabby_enabled:
            return 500, CheckoutResult(error="Server misconfigured: missing Tabby keys")
        try:
            self._validate(checkout, require_email=False)
            outcome = tabby_service.create_checkout(self.settings, checkout, unified=False)
            return 200, self._tabby_result(outcome, rejected_message=TABBY_ONLY_REJECTED_MESSAGE)
        except CheckoutError as exc:
            return exc.status_code, CheckoutResult(error=exc.message)
        except Exception as exc:
            logger.exception("Tabby session creation error")
            return 500, CheckoutResult(
                error="Internal server error while creating Tabby session.",
                details=str(exc),
            )

    @staticmethod
    def _validate(checkout: CheckoutRequest, require_email: bool) -> None:
        amount = checkout.amount_value
        if not checkout.phone or amount is None or amount <= 0:
            raise ValidationError("Missing required fields: phone and amount are required.")
        if require_email and not checkout.email:
            raise ValidationError("Email is required.")

    def _require_provider(self, method: PaymentMethod) -> None:
        if method is PaymentMethod.STRIPE and not self.settings.stripe_enabled:
            raise ConfigError("Stripe is not configured.")
        if method is PaymentMethod.TABBY and not self.settings.tabby_enabled:
            raise ConfigError("Tabby is not configured.")

    def _run(self, checkout: CheckoutRequest) -> CheckoutResult:
        self._validate(checkout, require_email=True)
        method = checkout.method
        self._require_provider(method)

        audit: List[str] = []
        contact_id = None
        if self.crm is not None:
            contact_id = self._best_effort(audit, "contact upsert", self.crm.upsert_contact, checkout)

        if method is PaymentMethod.STRIPE:
            result = self._stripe_leg(checkout, contact_id, audit)
        else:
            result = self._tabby_leg(checkout, contact_id, audit)
        result.audit.extend(audit)
        return result

    def _stripe_leg(self, checkout: CheckoutRequest, contact_id, audit: List[str]) -> CheckoutResult:
        session = stripe_service.create_checkout_session(self.settings, checkout, contact_id)
        logger.info("Stripe session %s created for %s", session.id, checkout.reference_id)

        if contact_id:
            note = checkout_note("Stripe", checkout, [("Stripe Session", session.id)])
            self._best_effort(audit, "order note", self.crm.add_note, contact_id, note)

        return CheckoutResult(
            success=True,
            redirect_url=session.url,
            session_id=session.id,
            ghl_contact_id=contact_id,
            payment_method=PaymentMethod.STRIPE.value,
        )

    def _tabby_leg(self, checkout: CheckoutRequest, contact_id, audit: List[str]) -> CheckoutResult:
        outcome = tabby_service.create_checkout(self.settings, checkout)

        if contact_id and outcome.kind == tabby_service.CREATED and outcome.web_url:
            note = checkout_note(
                "Tabby",
                checkout,
                [("Session ID", outcome.session_id), ("Payment ID", outcome.payment_id)],
            )
            self._best_effort(audit, "order note", self.crm.add_note, contact_id, note)
        elif contact_id and outcome.kind == tabby_service.REJECTED:
            self._best_effort(audit, "tag update", self.crm.mark_tabby_rejected, contact_id)

        return self._tabby_result(
            outcome,
            rejected_message=TABBY_REJECTED_MESSAGE,
            ghl_contact_id=contact_id,
            payment_method=PaymentMethod.TABBY.value,
        )

    @staticmethod
    def _tabby_result(outcome: tabby_service.TabbyOutcome, rejected_message: str, **success_fields) -> CheckoutResult:
        if outcome.kind == tabby_service.CREATED:
            if outcome.web_url:
                return CheckoutResult(
                    success=True,
                    redirect_url=outcome.web_url,
                    payment_id=outcome.payment_id,
                    session_id=outcome.session_id,
                    **success_fields,
                )
            logger.warning("Tabby session %s created without a redirect URL", outcome.session_id)
            return CheckoutResult(
                success=False,
                error="Session created but no redirect URL found.",
                tabby_response=outcome.raw,
            )
        if outcome.kind == tabby_service.REJECTED:
            logger.info("Tabby rejected checkout: %s", outcome.rejection_reason)
            return CheckoutResult(
                success=False,
                error=rejected_message,
                rejection_reason=outcome.rejection_reason,
            )
        logger.warning("Unexpected response from Tabby: %s", outcome.raw)
        return CheckoutResult(
            success=False,
            error="Unexpected response from Tabby.",
            tabby_response=outcome.raw,
        )

    @staticmethod
    def _best_effort(audit: List[str], action: str, call, *args):
        try:
            return call(*args)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("GHL %s failed: %s", action, exc)
            audit.append(f"{action}: {exc}")
            return None
