import hashlib
import hmac
import io
import json
import time
import pytest
from PIL import Image as PILImage
from picpro import create_app, extensions
from picpro.config import TestingConfig
from picpro.extensions import db as _db
from picpro.models import OrderStatus
from picpro.services import order_service
from picpro.services.pricing import get_tier


class RecordingQueue:
    """Stands in for the RQ queue and records what was enqueued."""

    def __init__(self):
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))

    def calls(self, func_path):
        return [kwargs for func, _, kwargs in self.jobs if func == func_path]


@pytest.fixture
def app():
    """Fresh application and schema per test."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def queue(app, monkeypatch):
    q = RecordingQueue()
    monkeypatch.setattr(extensions, "task_queue", q)
    return q


@pytest.fixture
def make_order(app):
    def _make(status=OrderStatus.PAID, tier="starter", email="jane@example.com", **fields):
        return order_service.create_order(
            email, tier, get_tier(tier).price_cents, status=status, **fields
        )

    return _make


@pytest.fixture
def jpeg_bytes():
    def _make(color=(200, 120, 80), size=(64, 64)):
        buffer = io.BytesIO()
        PILImage.new("RGB", size, color).save(buffer, format="JPEG")
        return buffer.getvalue()

    return _make


def stripe_signature(payload, secret="whsec_test_secret", timestamp=None):
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={sig}"


@pytest.fixture
def post_stripe_event(client):
    """Post a correctly signed Stripe event; returns the response."""

    def _post(event, secret="whsec_test_secret", signature=None):
        payload = json.dumps(event)
        header = signature if signature is not None else stripe_signature(payload, secret)
        return client.post(
            "/webhooks/stripe",
            data=payload,
            headers={"Stripe-Signature": header},
            content_type="application/json",
        )

    return _post


def checkout_event(event_id, session_id, tier="starter", temp_upload_id=None,
                   email="jane@example.com"):
    metadata = {"tierId": tier}
    if temp_upload_id:
        metadata["tempUploadId"] = temp_upload_id
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "customer_details": {"email": email},
                "payment_intent": f"pi_{session_id}",
                "metadata": metadata,
            }
        },
    }


@pytest.fixture
def checkout():
    return checkout_event


@pytest.fixture
def sign_stripe():
    return stripe_signature


@pytest.fixture
def file_app(tmp_path, monkeypatch):
    """Application on a SQLite file, so several threads can share the schema."""
    monkeypatch.setattr(
        TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'picpro.db'}"
    )
    monkeypatch.setattr(
        TestingConfig, "SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"timeout": 30}}
    )
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture
def file_queue(file_app, monkeypatch):
    q = RecordingQueue()
    monkeypatch.setattr(extensions, "task_queue", q)
    return q
