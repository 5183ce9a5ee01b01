"""Order store.

Every read and write of orders and the rows they own goes through this
module. Status changes are applied as a single conditional UPDATE keyed by
the current status, so two concurrent webhook deliveries can never both
apply the same transition. Operations on ephemeral (``demo_``) order ids
never reach the database and return None or an empty result.
"""
import logging
from datetime import datetime, timezone
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from picpro.extensions import db
from picpro.models import (
    GeneratedHeadshot,
    GenerationJob,
    Order,
    OrderId,
    OrderStatus,
    PaymentEvent,
    UploadedPhoto,
)

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _durable_id(order_id):
    """Return the storage key for a durable order id, else None."""
    try:
        oid = OrderId.parse(order_id)
    except ValueError:
        return None
    if oid.ephemeral:
        return None
    return oid.value


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def create_order(email, tier, price_cents, stripe_session_id=None,
                 status=OrderStatus.PENDING, **fields):
    """Insert a new order. Raises IntegrityError on a duplicate session."""
    order = Order(
        email=email,
        tier=tier,
        price_cents=price_cents,
        stripe_session_id=stripe_session_id,
        status=status,
        **fields,
    )
    db.session.add(order)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    logger.info("Order %s created (%s, %s)", order.id, tier, status)
    return order


def create_ephemeral_order(email, tier, price_cents):
    """Build an order that lives only in the response (demo checkout)."""
    now = _now()
    return Order(
        id=OrderId.new_ephemeral().value,
        email=email,
        tier=tier,
        price_cents=price_cents,
        status=OrderStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


def ensure_order_for_session(stripe_session_id, email, tier, price_cents,
                             status=OrderStatus.PAID, **fields):
    """Return ``(order, created)`` for a payment session.

    The payment webhook can beat the checkout call that creates the pending
    order, and can itself be delivered twice; the unique session column
    makes both races resolve to a single row.
    """
    order = get_order_by_session(stripe_session_id)
    if order:
        return order, False
    try:
        return (
            create_order(email, tier, price_cents, stripe_session_id, status, **fields),
            True,
        )
    except IntegrityError:
        order = get_order_by_session(stripe_session_id)
        if order is None:
            raise
        logger.info("Order for session %s created concurrently", stripe_session_id)
        return order, False


def get_order(order_id):
    key = _durable_id(order_id)
    if key is None:
        return None
    return db.session.get(Order, key)


def get_order_by_session(stripe_session_id):
    if not stripe_session_id:
        return None
    return Order.query.filter_by(stripe_session_id=stripe_session_id).first()


def get_order_by_training_job(training_job_id):
    if not training_job_id:
        return None
    return Order.query.filter_by(training_job_id=training_job_id).first()


def get_orders_by_email(email):
    """All orders for an address, newest first."""
    if not email:
        return []
    return (
        Order.query.filter(func.lower(Order.email) == email.strip().lower())
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def set_status(order_id, status, expected=None, **fields):
    """Atomically move an order to ``status`` and apply ``fields``.

    The update only matches when the current status is in ``expected``
    (default: every status the transition graph allows into ``status``).
    Returns the refreshed order, or None when the order is unknown,
    ephemeral, or was not in an expected status.
    """
    key = _durable_id(order_id)
    if key is None:
        return None

    allowed = sorted(expected if expected is not None else OrderStatus.predecessors(status))
    values = dict(fields)
    values["status"] = status
    values["updated_at"] = _now()

    result = db.session.execute(
        update(Order)
        .where(Order.id == key, Order.status.in_(allowed))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()

    if result.rowcount != 1:
        logger.info(
            "Order %s: transition to %s skipped (expected one of %s)",
            key, status, allowed,
        )
        return None
    order = db.session.get(Order, key)
    db.session.refresh(order)
    logger.info("Order %s -> %s", key, status)
    return order


def set_generation_dispatched(order_id, dispatched=True):
    """Set or clear the dispatch marker of a ``generating`` order.

    Completion is never evaluated while the marker is clear. Returns True
    when the order was generating and the marker was written.
    """
    key = _durable_id(order_id)
    if key is None:
        return False
    result = db.session.execute(
        update(Order)
        .where(Order.id == key, Order.status == OrderStatus.GENERATING)
        .values(generation_dispatched_at=_now() if dispatched else None)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def generation_dispatched(order_id):
    """Read the dispatch marker straight from the database."""
    key = _durable_id(order_id)
    if key is None:
        return False
    marker = db.session.execute(
        select(Order.generation_dispatched_at).where(Order.id == key)
    ).scalar()
    return marker is not None


def get_order_details(order_id):
    """Order plus photos, headshots and jobs, or None when unknown."""
    order = get_order(order_id)
    if not order:
        return None
    return {
        "order": order,
        "photos": get_uploaded_photos(order.id),
        "headshots": get_generated_headshots(order.id),
        "jobs": get_generation_jobs(order.id),
    }


def get_stats():
    """Order count per status."""
    rows = (
        db.session.query(Order.status, func.count(Order.id))
        .group_by(Order.status)
        .all()
    )
    return {status: count for status, count in rows}


# ---------------------------------------------------------------------------
# Uploaded photos
# ---------------------------------------------------------------------------

def save_uploaded_photo(order_id, storage_key, original_filename, size_bytes):
    key = _durable_id(order_id)
    if key is None:
        return None
    photo = UploadedPhoto(
        order_id=key,
        storage_key=storage_key,
        original_filename=original_filename,
        size_bytes=size_bytes,
    )
    db.session.add(photo)
    db.session.commit()
    return photo


def get_uploaded_photos(order_id):
    key = _durable_id(order_id)
    if key is None:
        return []
    return UploadedPhoto.query.filter_by(order_id=key).order_by(UploadedPhoto.id).all()


# ---------------------------------------------------------------------------
# Generated headshots
# ---------------------------------------------------------------------------

def ensure_generated_headshot(order_id, style, image_index, storage_key,
                              storage_url, generation_job_id=None):
    """Return ``(headshot, created)``; one row per (order, style, index)."""
    key = _durable_id(order_id)
    if key is None:
        return None, False

    existing = GeneratedHeadshot.query.filter_by(
        order_id=key, style=style, image_index=image_index
    ).first()
    if existing:
        return existing, False

    headshot = GeneratedHeadshot(
        order_id=key,
        style=style,
        image_index=image_index,
        storage_key=storage_key,
        storage_url=storage_url,
        generation_job_id=generation_job_id,
    )
    db.session.add(headshot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = GeneratedHeadshot.query.filter_by(
            order_id=key, style=style, image_index=image_index
        ).first()
        return existing, False
    return headshot, True


def get_existing_headshot_indexes(order_id, style):
    key = _durable_id(order_id)
    if key is None:
        return set()
    rows = (
        db.session.query(GeneratedHeadshot.image_index)
        .filter_by(order_id=key, style=style)
        .all()
    )
    return {row[0] for row in rows}


def get_generated_headshots(order_id):
    key = _durable_id(order_id)
    if key is None:
        return []
    return (
        GeneratedHeadshot.query.filter_by(order_id=key)
        .order_by(GeneratedHeadshot.style, GeneratedHeadshot.image_index)
        .all()
    )


def count_generated_headshots(order_id):
    key = _durable_id(order_id)
    if key is None:
        return 0
    return GeneratedHeadshot.query.filter_by(order_id=key).count()


# ---------------------------------------------------------------------------
# Generation jobs
# ---------------------------------------------------------------------------

def ensure_generation_job(order_id, style, prediction_id):
    """Record the job for (order, style); an existing row wins."""
    key = _durable_id(order_id)
    if key is None:
        return None

    existing = GenerationJob.query.filter_by(order_id=key, style=style).first()
    if existing:
        return existing

    job = GenerationJob(order_id=key, style=style, prediction_id=prediction_id)
    db.session.add(job)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return GenerationJob.query.filter_by(order_id=key, style=style).first()
    return job


def get_job_by_prediction(prediction_id):
    if not prediction_id:
        return None
    return GenerationJob.query.filter_by(prediction_id=prediction_id).first()


def get_generation_jobs(order_id):
    key = _durable_id(order_id)
    if key is None:
        return []
    return GenerationJob.query.filter_by(order_id=key).order_by(GenerationJob.id).all()


def update_generation_job(prediction_id, status, error=None):
    """Conditionally move a job forward.

    ``processing`` only applies to a pending job; ``completed`` and
    ``failed`` only apply to an open one, so a terminal job is never
    rewritten by a redelivered callback. Returns the job or None.
    """
    if status not in GenerationJob.STATUSES:
        raise ValueError(f"Unknown generation job status: {status!r}")
    if status == GenerationJob.PROCESSING:
        allowed = [GenerationJob.PENDING]
    else:
        allowed = sorted(GenerationJob.OPEN_STATUSES)

    values = {"status": status}
    if error:
        values["error"] = str(error)[:2000]
    if status in GenerationJob.TERMINAL_STATUSES:
        values["completed_at"] = _now()

    result = db.session.execute(
        update(GenerationJob)
        .where(
            GenerationJob.prediction_id == prediction_id,
            GenerationJob.status.in_(allowed),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    if result.rowcount != 1:
        return None
    job = get_job_by_prediction(prediction_id)
    db.session.refresh(job)
    return job


# ---------------------------------------------------------------------------
# Payment events
# ---------------------------------------------------------------------------

def payment_event_processed(stripe_event_id):
    if not stripe_event_id:
        return False
    return PaymentEvent.query.filter_by(stripe_event_id=stripe_event_id).first() is not None


def record_payment_event(stripe_event_id, event_type):
    """Mark an event processed. Returns False if it already was."""
    if not stripe_event_id:
        return False
    db.session.add(PaymentEvent(stripe_event_id=stripe_event_id, event_type=event_type))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return False
    return True
