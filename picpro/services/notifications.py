"""Enqueue customer notifications.

Callers only reach these after winning the status transition the
notification belongs to, so each one is enqueued once per order. The
``job_id`` also collapses accidental re-enqueues on the RQ side.
"""
import logging
from rq import Retry
from picpro import extensions

logger = logging.getLogger(__name__)

_RETRY = Retry(max=3, interval=[30, 120, 300])


def _enqueue(func_path, order_id, job_id):
    try:
        extensions.task_queue.enqueue(
            func_path,
            order_id=str(order_id),
            job_id=job_id,
            retry=_RETRY,
        )
    except Exception:
        # The status change is already committed; a lost email must not undo it
        logger.exception("Failed to enqueue %s for order %s", func_path, order_id)
        return False
    return True


def notify_order_completed(order_id):
    logger.info("Order %s completed, enqueueing ready notification", order_id)
    return _enqueue(
        "picpro.workers.notifications.send_ready_notification",
        order_id,
        f"notify_ready_{order_id}",
    )


def notify_order_failed(order_id):
    logger.info("Order %s failed, enqueueing failure notification", order_id)
    return _enqueue(
        "picpro.workers.notifications.send_failure_notification",
        order_id,
        f"notify_failed_{order_id}",
    )


def notify_order_received(order_id):
    return _enqueue(
        "picpro.workers.notifications.send_order_received",
        order_id,
        f"notify_received_{order_id}",
    )
