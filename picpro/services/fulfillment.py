"""Training and generation dispatch, and the payment-confirmed entry point."""
import logging
import httpx
from flask import current_app
from picpro.extensions import db, redis_lock
from picpro.models import OrderStatus
from picpro.services import completion, notifications, order_service, upload_service
from picpro.services.pricing import get_tier
from picpro.services.replicate_service import ReplicateError, get_replicate

logger = logging.getLogger(__name__)

# Submission failures that leave the order where it was
SUBMISSION_ERRORS = (ReplicateError, httpx.HTTPError)


def callback_url(order_id):
    """Webhook URL for provider callbacks, carrying the order as a hint."""
    base = (current_app.config.get("APP_URL") or "").rstrip("/")
    if not base:
        return None
    return f"{base}/webhooks/replicate?order={order_id}"


def dispatch_training(order_id, zip_url, webhook_url=None):
    """Submit one training job for a paid order and move it to ``training``.

    Returns the updated order, or None when the order was not eligible
    (unknown, not ``paid``, already has a training reference, or another
    worker is dispatching it). Submission errors propagate and leave the
    order in ``paid``.
    """
    order = order_service.get_order(order_id)
    if order is None:
        logger.warning("Training dispatch: order %s not found", order_id)
        return None

    with redis_lock(f"training_dispatch:{order.id}") as acquired:
        if not acquired:
            logger.info("Training dispatch already running for order %s", order.id)
            return None

        db.session.refresh(order)
        if order.status != OrderStatus.PAID or order.training_job_id:
            logger.info(
                "Order %s not eligible for training (status=%s, training_job_id=%s)",
                order.id, order.status, order.training_job_id,
            )
            return None

        replicate = get_replicate()
        prediction = replicate.create_training(zip_url, webhook_url or callback_url(order.id))

        updated = order_service.set_status(
            order.id,
            OrderStatus.TRAINING,
            expected={OrderStatus.PAID},
            training_job_id=prediction.id,
        )
        if updated is None:
            logger.warning(
                "Order %s left paid before training %s was recorded; cancelling it",
                order.id, prediction.id,
            )
            replicate.cancel_prediction(prediction.id)
            return None

        logger.info("Order %s training started: %s", order.id, prediction.id)
        return updated


def dispatch_generation(order, model_url, styles=None, webhook_url=None):
    """Submit one generation job per style and record each immediately.

    Styles that already have a job are skipped, so calling this again only
    fills gaps. A style whose submission fails is logged and skipped. When
    the order ends up with no jobs at all it is moved to ``failed``.
    Otherwise the dispatch marker is set and completion is checked, since
    every callback may already have arrived while later styles were being
    submitted. Returns the jobs created by this call.
    """
    tier = get_tier(order.tier)
    if tier is None:
        raise ValueError(f"Order {order.id} has unknown tier {order.tier!r}")
    styles = list(styles) if styles else list(tier.styles)
    webhook_url = webhook_url or callback_url(order.id)

    # Hold completion until every style below is recorded
    order_service.set_generation_dispatched(order.id, False)

    existing = {job.style for job in order_service.get_generation_jobs(order.id)}
    replicate = get_replicate()
    created = []
    for style in styles:
        if style in existing:
            logger.info("Order %s already has a %s job, skipping", order.id, style)
            continue
        try:
            prediction = replicate.create_generation(
                model_url, style, tier.images_per_style, webhook_url
            )
        except Exception:
            logger.exception("Generation submit failed for order %s style %s", order.id, style)
            continue
        job = order_service.ensure_generation_job(order.id, style, prediction.id)
        if job is not None:
            created.append(job)

    logger.info(
        "Order %s: %d generation jobs dispatched (%d styles requested)",
        order.id, len(created), len(styles),
    )

    if not order_service.get_generation_jobs(order.id):
        logger.error("Order %s has no generation jobs; marking failed", order.id)
        if order_service.set_status(order.id, OrderStatus.FAILED, expected={OrderStatus.GENERATING}):
            notifications.notify_order_failed(order.id)
        return created

    if order_service.set_generation_dispatched(order.id, True):
        complete_if_finished(order.id)
    return created


def complete_if_finished(order_id):
    """Complete the order once it is fully dispatched and every job is terminal.

    The dispatch marker is read before the jobs. A dispatcher sets it only
    after recording its last job and then runs this check itself, so either
    a callback sees the full job set or the dispatcher sees that callback's
    result. Only the caller whose ``generating -> completed`` update matches
    sends the notification.
    """
    if not order_service.generation_dispatched(order_id):
        return False
    jobs = order_service.get_generation_jobs(order_id)
    if completion.evaluate(jobs) is not completion.Completion.COMPLETE:
        return False
    if order_service.set_status(order_id, OrderStatus.COMPLETED, expected={OrderStatus.GENERATING}) is None:
        return False
    notifications.notify_order_completed(order_id)
    return True


def _customer_email(session):
    email = (session.get("customer_details") or {}).get("email")
    return email or session.get("customer_email") or ""


def handle_checkout_completed(session):
    """Confirm payment for a completed checkout session.

    Creates the order directly in ``paid`` when the webhook is the first
    thing we hear of it, otherwise moves it ``pending -> paid``. When the
    session names a pre-checkout upload, training is dispatched with its
    archive and the upload is consumed. Safe to call again with the same
    session.
    """
    session_id = session.get("id")
    metadata = session.get("metadata") or {}
    tier = get_tier(metadata.get("tierId"))
    temp_upload_id = metadata.get("tempUploadId")
    payment_intent = session.get("payment_intent")

    if not session_id or tier is None:
        logger.error(
            "Checkout session %s missing id or valid tier (%r)", session_id, metadata.get("tierId")
        )
        return None

    order, created = order_service.ensure_order_for_session(
        session_id,
        _customer_email(session),
        tier.id,
        tier.price_cents,
        status=OrderStatus.PAID,
        stripe_payment_intent_id=payment_intent,
    )
    newly_paid = created
    if not created and order.status == OrderStatus.PENDING:
        updated = order_service.set_status(
            order.id,
            OrderStatus.PAID,
            expected={OrderStatus.PENDING},
            stripe_payment_intent_id=payment_intent,
        )
        if updated is not None:
            order = updated
            newly_paid = True

    if newly_paid:
        logger.info("Payment confirmed for order %s (session %s)", order.id, session_id)
        notifications.notify_order_received(order.id)

    if temp_upload_id and order.status == OrderStatus.PAID:
        _start_training_from_temp_upload(order, temp_upload_id)
    return order


def _start_training_from_temp_upload(order, temp_upload_id):
    temp = upload_service.get_temp_upload(temp_upload_id)
    if temp is None:
        logger.info("Temp upload %s not found for order %s", temp_upload_id, order.id)
        return None
    try:
        dispatched = dispatch_training(order.id, temp.zip_url)
    except SUBMISSION_ERRORS:
        # Kept so the dispatch can be retried from the CLI
        logger.exception(
            "Training dispatch failed for order %s (temp upload %s kept)",
            order.id, temp_upload_id,
        )
        return None
    if dispatched is not None:
        upload_service.delete_temp_upload(temp_upload_id)
    return dispatched
