import logging
from contextlib import contextmanager
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis as _redis
from redis.exceptions import LockError
from rq import Queue
from rq.utils import import_attribute

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Initialized lazily in create_app
redis_client: _redis.Redis = None  # type: ignore
task_queue: Queue = None  # type: ignore

# Options understood by rq's enqueue that a plain call must not receive
_RQ_ONLY_KWARGS = ("job_id", "retry", "job_timeout", "result_ttl", "failure_ttl")


class InlineQueue:
    """Runs jobs synchronously for development and tests without Redis."""

    def enqueue(self, func, *args, **kwargs):
        for key in _RQ_ONLY_KWARGS:
            kwargs.pop(key, None)
        if isinstance(func, str):
            func = import_attribute(func)
        logger.info("Redis not available — running job inline: %s", func.__name__)
        return func(*args, **kwargs)


def init_redis(app):
    global redis_client, task_queue
    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        logger.warning("REDIS_URL not set — jobs run inline (dev mode)")
        redis_client = None
        task_queue = InlineQueue()
        return

    try:
        redis_client = _redis.from_url(redis_url, decode_responses=False)
        redis_client.ping()
        task_queue = Queue("notifications", connection=redis_client)
    except Exception as e:
        logger.warning("Redis connection failed (%s) — jobs run inline", e)
        redis_client = None
        task_queue = InlineQueue()


@contextmanager
def redis_lock(key, timeout=300):
    """Non-blocking distributed lock.

    Yields True when the lock is held (or Redis is not configured, in which
    case callers rely on their conditional updates alone) and False when
    another worker holds it.
    """
    if redis_client is None:
        yield True
        return

    lock = redis_client.lock(key, timeout=timeout)
    acquired = lock.acquire(blocking=False)
    try:
        yield acquired
    finally:
        if acquired:
            try:
                lock.release()
            except LockError:
                pass  # lock may have expired
