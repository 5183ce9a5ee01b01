"""JSON API used by the storefront pages."""
import logging
import time
from flask import current_app, request
from werkzeug.exceptions import HTTPException
from picpro.blueprints.api import api_bp
from picpro.extensions import db
from picpro.models import OrderId, OrderStatus
from picpro.services import completion, order_service, upload_service
from picpro.services.fulfillment import SUBMISSION_ERRORS, dispatch_generation, dispatch_training
from picpro.services.payment_service import PaymentError, get_payments
from picpro.services.pricing import ALL_STYLES, HEADSHOT_STYLES, TIERS, get_tier
from picpro.services.replicate_service import is_configured as replicate_configured
from picpro.services.storage_service import is_configured as storage_configured

logger = logging.getLogger(__name__)


@api_bp.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return {"error": e.description}, e.code
    logger.exception("Unhandled API error on %s", request.path)
    db.session.rollback()
    return {"error": "Internal server error"}, 500


def _details_response(details):
    jobs = details["jobs"]
    return {
        "order": details["order"].to_dict(),
        "photos": [p.to_dict() for p in details["photos"]],
        "headshots": [h.to_dict() for h in details["headshots"]],
        "jobs": [j.to_dict() for j in jobs],
        "progress": completion.summarize(jobs),
    }


@api_bp.route("/order", methods=["GET"])
def get_order():
    """Look up an order by ``orderId``, ``sessionId`` or ``email``."""
    order_id = request.args.get("orderId")
    session_id = request.args.get("sessionId")
    email = request.args.get("email")

    if session_id:
        order = order_service.get_order_by_session(session_id)
        if not order:
            return {"error": "Order not found"}, 404
        return _details_response(order_service.get_order_details(order.id))

    if order_id:
        details = order_service.get_order_details(order_id)
        if not details:
            return {"error": "Order not found"}, 404
        return _details_response(details)

    if email:
        orders = order_service.get_orders_by_email(email)
        return {"orders": [o.to_dict() for o in orders]}

    return {"error": "orderId, email, or sessionId required"}, 400


@api_bp.route("/checkout", methods=["POST"])
def checkout():
    body = request.get_json(silent=True) or {}
    tier = get_tier(body.get("tierId"))
    if tier is None:
        return {"error": "Invalid pricing tier"}, 400
    email = (body.get("email") or "").strip()
    temp_upload_id = body.get("tempUploadId") or None

    payments = get_payments()
    if not payments.is_configured:
        order = order_service.create_ephemeral_order(
            email or "demo@example.com", tier.id, tier.price_cents
        )
        base = current_app.config["APP_URL"].rstrip("/")
        return {
            "demo": True,
            "message": "Stripe not configured - proceeding in demo mode",
            "orderId": order.id,
            "url": f"{base}/dashboard?demo=true&order={order.id}",
        }

    try:
        session = payments.create_checkout_session(tier, email, temp_upload_id)
    except PaymentError:
        return {"error": "Failed to create checkout session"}, 502

    if email:
        order_service.ensure_order_for_session(
            session["id"], email, tier.id, tier.price_cents, status=OrderStatus.PENDING
        )
    return {"url": session["url"], "sessionId": session["id"]}


def _incoming_photos():
    photos = []
    for file in request.files.getlist("files"):
        photos.append(
            upload_service.IncomingPhoto(
                filename=file.filename or "photo.jpg",
                content_type=(file.mimetype or "").lower(),
                data=file.read(),
            )
        )
    return photos


@api_bp.route("/upload", methods=["POST"])
def upload_photos():
    """Accept the selfie batch.

    Without ``orderId`` the bundle is kept under ``tempUploadId`` until
    payment. With a paid order id the photos are attached to the order and
    training starts right away.
    """
    config = current_app.config
    raw_order_id = request.form.get("orderId") or ""
    email = request.form.get("email") or ""
    temp_upload_id = request.form.get("tempUploadId") or ""

    photos = _incoming_photos()
    try:
        upload_service.validate_batch(
            photos,
            config["UPLOAD_MIN_PHOTOS"],
            config["UPLOAD_MAX_PHOTOS"],
            config["UPLOAD_MAX_FILE_SIZE"],
        )
    except upload_service.UploadError as e:
        return {"error": str(e)}, 400

    order = None
    if raw_order_id:
        try:
            oid = OrderId.parse(raw_order_id)
        except ValueError:
            return {"error": "Invalid order ID"}, 400
        if not oid.ephemeral:
            order = order_service.get_order(oid)
            if order is None:
                return {"error": "Order not found"}, 404
            if order.status != OrderStatus.PAID or order.training_job_id:
                return {"error": f"Order is {order.status}, not awaiting photos"}, 409
        order_ref = oid.value
    else:
        order_ref = temp_upload_id or f"temp_{int(time.time() * 1000)}"

    stored, zip_url = upload_service.store_photos(photos, email or "anonymous", order_ref)

    training_job = None
    if order is not None:
        for item in stored:
            order_service.save_uploaded_photo(order.id, item["key"], item["filename"], item["size"])
        try:
            dispatched = dispatch_training(order.id, zip_url)
        except SUBMISSION_ERRORS:
            logger.exception("Training dispatch failed for order %s", order.id)
            dispatched = None
        if dispatched is not None:
            training_job = {"id": dispatched.training_job_id, "status": dispatched.status}
    elif temp_upload_id and not raw_order_id:
        upload_service.save_temp_upload(temp_upload_id, zip_url, len(stored))

    return {
        "success": True,
        "message": "Photos uploaded successfully",
        "photoCount": len(stored),
        "photos": [{"key": p["key"], "filename": p["filename"]} for p in stored],
        "zipUrl": zip_url,
        "tempUploadId": temp_upload_id or None,
        "trainingJob": training_job,
        "demo": not storage_configured(config) or not replicate_configured(config),
    }


@api_bp.route("/upload", methods=["GET"])
def upload_status():
    order_id = request.args.get("orderId")
    if not order_id:
        return {"error": "Order ID required"}, 400
    order = order_service.get_order(order_id)
    if not order:
        return {"error": "Order not found"}, 404
    return {
        "orderId": order.id,
        "status": order.status,
        "trainingJobId": order.training_job_id,
        "hasModel": bool(order.model_url),
    }


@api_bp.route("/generate", methods=["POST"])
def generate():
    """Re-dispatch generation for styles that have no job yet."""
    body = request.get_json(silent=True) or {}
    order_id = body.get("orderId")
    if not order_id:
        return {"error": "Order ID is required"}, 400
    styles = body.get("styles") or None
    if styles is not None:
        if not isinstance(styles, list) or any(s not in HEADSHOT_STYLES for s in styles):
            return {"error": "Unknown style requested"}, 400

    order = order_service.get_order(order_id)
    if not order:
        return {"error": "Order not found"}, 404
    if order.status != OrderStatus.GENERATING or not order.model_url:
        return {"error": "Model not available - training may not be complete"}, 409

    created = dispatch_generation(order, order.model_url, styles=styles)
    jobs = order_service.get_generation_jobs(order.id)
    return {
        "success": True,
        "dispatched": [j.to_dict() for j in created],
        "progress": completion.summarize(jobs),
    }


@api_bp.route("/generate", methods=["GET"])
def generation_results():
    order_id = request.args.get("orderId")
    if not order_id:
        return {"error": "Order ID required"}, 400
    order = order_service.get_order(order_id)
    if not order:
        return {"error": "Order not found"}, 404
    headshots = order_service.get_generated_headshots(order.id)
    return {
        "orderId": order.id,
        "status": order.status,
        "headshots": [h.to_dict() for h in headshots],
        "totalCount": len(headshots),
    }


@api_bp.route("/styles", methods=["GET"])
def styles():
    return {
        "styles": [
            {"id": style, "name": HEADSHOT_STYLES[style]["name"]} for style in ALL_STYLES
        ],
        "tiers": [tier.to_dict() for tier in TIERS.values()],
    }
