import logging
from flask import request
from picpro.blueprints.webhooks import webhooks_bp
from picpro.extensions import db
from picpro.services import order_service
from picpro.services.fulfillment import handle_checkout_completed
from picpro.services.payment_service import InvalidSignature, get_payments

logger = logging.getLogger(__name__)


@webhooks_bp.route("/stripe", methods=["POST"])
def stripe_webhook():
    """Payment events. The signature is checked before the body is parsed."""
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature", "")

    try:
        event = get_payments().verify_event(payload, sig_header)
    except InvalidSignature as e:
        logger.warning("Stripe webhook rejected: %s", e)
        return {"error": "Invalid signature"}, 400

    event_id = event.get("id")
    event_type = event.get("type")
    if order_service.payment_event_processed(event_id):
        logger.info("Stripe event %s already processed", event_id)
        return {"received": True}, 200

    try:
        if event_type == "checkout.session.completed":
            session = (event.get("data") or {}).get("object") or {}
            handle_checkout_completed(session)
        elif event_type == "payment_intent.payment_failed":
            intent = (event.get("data") or {}).get("object") or {}
            logger.warning("Payment failed: %s", intent.get("id"))
        elif event_type == "charge.refunded":
            charge = (event.get("data") or {}).get("object") or {}
            logger.info(
                "Charge refunded: %s (payment intent %s, %s cents)",
                charge.get("id"),
                charge.get("payment_intent"),
                charge.get("amount_refunded"),
            )
        else:
            logger.info("Unhandled Stripe event type: %s", event_type)
        order_service.record_payment_event(event_id, event_type)
    except Exception:
        logger.exception("Error processing Stripe event %s", event_id)
        db.session.rollback()
        return {"error": "Webhook handler failed"}, 500

    return {"received": True}, 200
