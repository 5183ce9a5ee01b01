import logging
from datetime import datetime, timezone
from flask import request
from picpro.blueprints.webhooks import webhooks_bp
from picpro.extensions import db
from picpro.services.reconciler import InvalidCallback, Outcome, reconcile
from picpro.services.replicate_service import get_replicate

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 10


@webhooks_bp.route("/replicate", methods=["POST"])
def replicate_webhook():
    """Training and generation callbacks.

    Answers 200 for every handled case, drops included, so the provider does
    not escalate retries. 503 asks for redelivery when the callback beat the
    commit of its own job reference.
    """
    body = request.get_data()
    if not get_replicate().verify_webhook(body, request.headers):
        logger.warning("Invalid Replicate webhook signature")
        return {"error": "Invalid signature"}, 401

    payload = request.get_json(silent=True)
    if payload is None:
        return {"error": "Invalid JSON"}, 400

    logger.info(
        "Replicate webhook received: id=%s status=%s has_output=%s",
        payload.get("id") if isinstance(payload, dict) else None,
        payload.get("status") if isinstance(payload, dict) else None,
        bool(payload.get("output")) if isinstance(payload, dict) else False,
    )

    try:
        outcome = reconcile(payload, order_hint=request.args.get("order"))
    except InvalidCallback as e:
        return {"error": str(e)}, 400
    except Exception:
        logger.exception("Error processing Replicate webhook")
        db.session.rollback()
        return {"error": "Webhook processing failed"}, 500

    if outcome is Outcome.RETRY:
        return (
            {"received": False, "retry": True},
            503,
            {"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    return {"received": True}, 200


@webhooks_bp.route("/replicate", methods=["GET"])
def replicate_webhook_health():
    return {
        "status": "ok",
        "service": "replicate-webhook",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
