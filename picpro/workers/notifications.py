"""RQ worker jobs: customer notification emails."""
import logging
from flask import current_app, has_app_context
from picpro import create_app
from picpro.services import order_service
from picpro.services.email_service import dashboard_url, get_email

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI,
    inline queue), otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        _worker_app = create_app()
    return _worker_app


def send_ready_notification(order_id):
    """Email the customer that their headshots are ready.

    Enqueued once per order by whoever completes it. Errors propagate so
    RQ can retry the send.
    """
    app = _get_app()
    with app.app_context():
        order = order_service.get_order(order_id)
        if not order:
            logger.error("Order %s not found for ready notification", order_id)
            return None
        count = order_service.count_generated_headshots(order.id)
        message_id = get_email().send_headshots_ready(
            order.email,
            dashboard_url(app.config, order.id),
            count,
        )
        logger.info("Ready notification for order %s (%d headshots)", order.id, count)
        return message_id


def send_failure_notification(order_id):
    app = _get_app()
    with app.app_context():
        order = order_service.get_order(order_id)
        if not order:
            logger.error("Order %s not found for failure notification", order_id)
            return None
        return get_email().send_order_failed(order.email, dashboard_url(app.config, order.id))


def send_order_received(order_id):
    app = _get_app()
    with app.app_context():
        order = order_service.get_order(order_id)
        if not order or not order.email:
            logger.warning("Order %s has no email for receipt", order_id)
            return None
        return get_email().send_order_received(order.email, dashboard_url(app.config, order.id))
