"""Provider callback reconciliation.

Every callback is decoded once into one of five shapes, then applied with
conditional updates and "ensure exists" inserts, so the same delivery can be
processed any number of times, in any interleaving, without duplicating
assets or moving an order backwards.
"""
import enum
import logging
from dataclasses import dataclass
from picpro.models import GenerationJob, OrderId, OrderStatus
from picpro.services import notifications, order_service
from picpro.services.fulfillment import complete_if_finished, dispatch_generation
from picpro.services.storage_service import StorageError, get_storage, headshot_key

logger = logging.getLogger(__name__)

IN_PROGRESS_STATUSES = {"starting", "processing"}
FAILURE_STATUSES = {"failed", "canceled"}


class InvalidCallback(ValueError):
    pass


@dataclass(frozen=True)
class TrainingResult:
    prediction_id: str
    weights: str
    version: str = None


@dataclass(frozen=True)
class GenerationResult:
    prediction_id: str
    image_urls: tuple


@dataclass(frozen=True)
class Failure:
    prediction_id: str
    status: str
    error: str = None


@dataclass(frozen=True)
class InProgress:
    prediction_id: str
    status: str


@dataclass(frozen=True)
class Unrecognized:
    prediction_id: str
    status: str
    reason: str


class Outcome(enum.Enum):
    PROCESSED = "processed"
    IGNORED = "ignored"
    # The reference is not persisted yet; ask the provider to redeliver
    RETRY = "retry"


def decode_callback(payload):
    """Classify a provider callback body.

    Raises InvalidCallback when the body lacks an ``id`` or ``status``.
    """
    if not isinstance(payload, dict):
        raise InvalidCallback("Callback body must be a JSON object")
    prediction_id = payload.get("id")
    status = payload.get("status")
    if not prediction_id or not isinstance(prediction_id, str):
        raise InvalidCallback("Callback is missing id")
    if not status or not isinstance(status, str):
        raise InvalidCallback("Callback is missing status")

    if status in IN_PROGRESS_STATUSES:
        return InProgress(prediction_id, status)
    if status in FAILURE_STATUSES:
        error = payload.get("error")
        return Failure(prediction_id, status, str(error) if error else None)
    if status != "succeeded":
        return Unrecognized(prediction_id, status, f"unknown status {status!r}")

    output = payload.get("output")
    if isinstance(output, dict) and output.get("weights"):
        return TrainingResult(prediction_id, str(output["weights"]), output.get("version"))
    if isinstance(output, list):
        urls = tuple(url for url in output if isinstance(url, str) and url)
        return GenerationResult(prediction_id, urls)
    return Unrecognized(prediction_id, status, "output is neither weights nor image list")


def reconcile(payload, order_hint=None):
    """Decode and apply one callback. Returns an Outcome.

    ``order_hint`` is the order id carried on the callback URL. It is only
    used to tell a reference that is not recorded *yet* (the submitting
    request has not committed) from one that will never be known.
    """
    event = decode_callback(payload)
    if isinstance(event, TrainingResult):
        return _on_training_result(event, order_hint)
    if isinstance(event, GenerationResult):
        return _on_generation_result(event, order_hint)
    if isinstance(event, Failure):
        return _on_failure(event, order_hint)
    if isinstance(event, InProgress):
        return _on_in_progress(event)

    logger.warning("Unrecognized callback %s: %s", event.prediction_id, event.reason)
    return Outcome.IGNORED


def _hinted_status(order_hint):
    if not order_hint:
        return None
    try:
        oid = OrderId.parse(order_hint)
    except ValueError:
        return None
    order = order_service.get_order(oid)
    return order.status if order else None


def _unknown_reference(prediction_id, order_hint, awaiting):
    status = _hinted_status(order_hint)
    if status in awaiting:
        logger.info(
            "Callback %s arrived before its reference was recorded (order %s is %s); retry",
            prediction_id, order_hint, status,
        )
        return Outcome.RETRY
    logger.warning("No job found for callback %s (order hint %s); dropping", prediction_id, order_hint)
    return Outcome.IGNORED


def _on_training_result(event, order_hint):
    order = order_service.get_order_by_training_job(event.prediction_id)
    if order is None:
        return _unknown_reference(event.prediction_id, order_hint, {OrderStatus.PAID})

    updated = order_service.set_status(
        order.id,
        OrderStatus.GENERATING,
        expected={OrderStatus.TRAINING},
        model_url=event.weights,
    )
    if updated is None:
        logger.info(
            "Training %s already handled for order %s (%s)",
            event.prediction_id, order.id, order.status,
        )
        return Outcome.IGNORED

    logger.info("Training %s complete for order %s", event.prediction_id, order.id)
    dispatch_generation(updated, event.weights)
    return Outcome.PROCESSED


def _on_generation_result(event, order_hint):
    job = order_service.get_job_by_prediction(event.prediction_id)
    if job is None:
        return _unknown_reference(event.prediction_id, order_hint, {OrderStatus.GENERATING})

    saved = _store_headshots(job, event.image_urls)
    order_service.update_generation_job(event.prediction_id, GenerationJob.COMPLETED)
    logger.info(
        "Generation %s (%s) for order %s: %d new headshots",
        event.prediction_id, job.style, job.order_id, saved,
    )
    complete_if_finished(job.order_id)
    return Outcome.PROCESSED


def _store_headshots(job, image_urls):
    """Re-host each output under its slot key. Returns the number of new rows."""
    storage = get_storage()
    existing = order_service.get_existing_headshot_indexes(job.order_id, job.style)
    saved = 0
    for index, source_url in enumerate(image_urls):
        if index in existing:
            continue
        key = headshot_key(job.order_id, job.style, index)
        try:
            url = storage.upload_from_url(source_url, key)
        except StorageError:
            logger.exception("Failed to re-host headshot %d of %s", index, job.prediction_id)
            continue
        _, created = order_service.ensure_generated_headshot(
            job.order_id, job.style, index, key, url, generation_job_id=job.prediction_id
        )
        if created:
            saved += 1
    return saved


def _on_failure(event, order_hint):
    job = order_service.get_job_by_prediction(event.prediction_id)
    if job is not None:
        logger.error(
            "Generation %s (%s) for order %s %s: %s",
            event.prediction_id, job.style, job.order_id, event.status, event.error,
        )
        order_service.update_generation_job(
            event.prediction_id,
            GenerationJob.FAILED,
            error=event.error or f"Prediction {event.status}",
        )
        complete_if_finished(job.order_id)
        return Outcome.PROCESSED

    order = order_service.get_order_by_training_job(event.prediction_id)
    if order is not None:
        logger.error(
            "Training %s for order %s %s: %s",
            event.prediction_id, order.id, event.status, event.error,
        )
        if order_service.set_status(order.id, OrderStatus.FAILED, expected={OrderStatus.TRAINING}):
            notifications.notify_order_failed(order.id)
        return Outcome.PROCESSED

    return _unknown_reference(
        event.prediction_id, order_hint, {OrderStatus.PAID, OrderStatus.GENERATING}
    )


def _on_in_progress(event):
    job = order_service.get_job_by_prediction(event.prediction_id)
    if job is None:
        return Outcome.IGNORED
    if order_service.update_generation_job(event.prediction_id, GenerationJob.PROCESSING):
        return Outcome.PROCESSED
    return Outcome.IGNORED
