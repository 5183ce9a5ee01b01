"""Stripe checkout sessions and webhook verification."""
import json
import logging
import uuid
import stripe
from flask import current_app

logger = logging.getLogger(__name__)


class PaymentError(RuntimeError):
    pass


class InvalidSignature(PaymentError):
    pass


def is_configured(config):
    key = config.get("STRIPE_SECRET_KEY") or ""
    return bool(key) and "placeholder" not in key


class PaymentService:
    def __init__(self, config):
        self.config = config

    @property
    def is_configured(self):
        return is_configured(self.config)

    def create_checkout_session(self, tier, email, temp_upload_id=None):
        """Open a hosted checkout for ``tier``.

        Returns a dict with ``id`` and ``url``. In demo mode the session id is
        a ``demo_`` token and the URL points straight at the success page.
        """
        base = (self.config.get("APP_URL") or "").rstrip("/")
        if not self.is_configured:
            session_id = f"demo_session_{uuid.uuid4().hex[:16]}"
            logger.info("Stripe not configured — demo checkout %s", session_id)
            return {
                "id": session_id,
                "url": f"{base}/dashboard?session_id={session_id}&demo=true",
            }

        metadata = {"tierId": tier.id}
        if temp_upload_id:
            metadata["tempUploadId"] = temp_upload_id

        try:
            session = stripe.checkout.Session.create(
                api_key=self.config["STRIPE_SECRET_KEY"],
                payment_method_types=["card"],
                line_items=[
                    {
                        "price": self.config.get(tier.price_config_key),
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=f"{base}/dashboard?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/checkout?canceled=true",
                customer_email=email or None,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout failed: %s", exc)
            raise PaymentError(str(exc)) from exc
        return {"id": session.id, "url": session.url}

    def verify_event(self, payload, sig_header):
        """Verify the signature on a webhook body and return the event dict.

        Raises InvalidSignature when the secret is missing, the header does
        not match, or the body is not JSON.
        """
        secret = self.config.get("STRIPE_WEBHOOK_SECRET") or ""
        if not secret:
            raise InvalidSignature("STRIPE_WEBHOOK_SECRET is not set")
        if not sig_header:
            raise InvalidSignature("Missing Stripe-Signature header")

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        try:
            stripe.WebhookSignature.verify_header(payload, sig_header, secret)
            event = json.loads(payload)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature(str(exc)) from exc
        except ValueError as exc:
            raise InvalidSignature("Invalid payload") from exc
        if not isinstance(event, dict) or not event.get("type"):
            raise InvalidSignature("Invalid payload")
        return event


def get_payments():
    return PaymentService(current_app.config)
