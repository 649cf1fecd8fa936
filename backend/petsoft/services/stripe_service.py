"""Stripe payments wrapper.

Verifies webhook signatures, fulfils completed checkouts by granting the
paying user access, and creates Checkout sessions.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import stripe
from sqlmodel import Session

from petsoft.config import get_settings
from petsoft.models.user import User
from petsoft.services.auth_service import get_user_by_email

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class WebhookVerificationError(Exception):
    """Raised when a webhook payload cannot be authenticated or parsed."""


class PaymentsNotConfiguredError(Exception):
    """Raised when a Stripe call is attempted without credentials."""


@dataclass(frozen=True)
class FulfillmentResult:
    """Outcome of handling one webhook event."""

    event_type: str
    fulfilled: bool
    user_found: bool = True
    email: Optional[str] = None


class StripeService:
    """
    Wrapper around the Stripe SDK.

    Reads credentials from environment variables:
      - STRIPE_SECRET_KEY (Checkout sessions)
      - STRIPE_WEBHOOK_SECRET (webhook signature verification)
      - STRIPE_PRICE_ID (the access product)

    Webhooks are always verified; without a webhook secret every event is
    rejected.
    """

    def __init__(self, secret_key: str = "", webhook_secret: str = "", price_id: str = ""):
        settings = get_settings()
        self.secret_key = secret_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self.price_id = price_id or settings.stripe_price_id
        self.base_url = settings.base_url

        if not self.webhook_secret:
            logger.warning("STRIPE_WEBHOOK_SECRET not configured. All webhook events will be rejected.")

    def verify_event(self, payload: bytes, signature_header: Optional[str]) -> dict:
        """
        Authenticate a webhook payload and decode it.

        Raises:
            WebhookVerificationError: missing secret/header, bad signature,
                stale timestamp or undecodable body
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook secret not configured")
        if not signature_header:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WebhookVerificationError("Payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature_header, self.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(f"Invalid signature: {e}") from e

        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise WebhookVerificationError("Payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise WebhookVerificationError("Payload is not a JSON object")
        return event

    def fulfill(self, session: Session, event: dict) -> FulfillmentResult:
        """
        Grant access for a completed checkout.

        The user update is committed before this returns.

        Raises:
            WebhookVerificationError: checkout event without a customer email
        """
        event_type = str(event.get("type", ""))
        if event_type != CHECKOUT_COMPLETED:
            logger.info(f"Ignoring Stripe event of type {event_type!r}")
            return FulfillmentResult(event_type=event_type, fulfilled=False)

        email = _customer_email(event)
        if not email:
            raise WebhookVerificationError("Event has no data.object.customer_email")

        user = get_user_by_email(session, email)
        if user is None:
            logger.warning("Checkout completed for an email with no account")
            return FulfillmentResult(event_type=event_type, fulfilled=False, user_found=False, email=email)

        grant_access(session, user)
        return FulfillmentResult(event_type=event_type, fulfilled=True, email=email)

    def create_checkout_session(self, customer_email: str) -> str:
        """
        Create a one-off Checkout session and return its URL.

        Raises:
            PaymentsNotConfiguredError: no secret key or price id
        """
        if not self.secret_key or not self.price_id:
            raise PaymentsNotConfiguredError("Set STRIPE_SECRET_KEY and STRIPE_PRICE_ID.")

        checkout = stripe.checkout.Session.create(
            api_key=self.secret_key,
            customer_email=customer_email,
            line_items=[{"price": self.price_id, "quantity": 1}],
            mode="payment",
            success_url=f"{self.base_url}/payment?success=true",
            cancel_url=f"{self.base_url}/payment?cancelled=true",
        )
        logger.info(f"Created checkout session {checkout.id}")
        return checkout.url


def _customer_email(event: dict) -> Optional[str]:
    data: Any = event.get("data")
    obj: Any = data.get("object") if isinstance(data, dict) else None
    email = obj.get("customer_email") if isinstance(obj, dict) else None
    if isinstance(email, str) and email.strip():
        return email
    return None


def grant_access(session: Session, user: User) -> User:
    """Set the entitlement flag and commit."""
    if not user.has_access:
        user.has_access = True
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info(f"Granted access to user {user.id}")
    return user


# Singleton instance
_stripe_service: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create the singleton StripeService instance."""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeService()
    return _stripe_service
