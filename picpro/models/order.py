import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from picpro.extensions import db


class OrderStatus:
    PENDING = "pending"
    PAID = "paid"
    TRAINING = "training"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    ALL = (PENDING, PAID, TRAINING, GENERATING, COMPLETED, FAILED)
    TERMINAL = {COMPLETED, FAILED}

    # Forward-only graph; ``failed`` is the only side exit.
    TRANSITIONS = {
        PENDING: {PAID},
        PAID: {TRAINING, FAILED},
        TRAINING: {GENERATING, FAILED},
        GENERATING: {COMPLETED, FAILED},
        COMPLETED: set(),
        FAILED: set(),
    }

    @classmethod
    def predecessors(cls, status):
        """Statuses from which ``status`` may be entered."""
        if status not in cls.TRANSITIONS:
            raise ValueError(f"Unknown order status: {status!r}")
        return {s for s, targets in cls.TRANSITIONS.items() if status in targets}

    @classmethod
    def can_transition(cls, current, target):
        return target in cls.TRANSITIONS.get(current, set())


EPHEMERAL_PREFIX = "demo_"


@dataclass(frozen=True)
class OrderId:
    """Order identifier tagged as durable (UUID) or ephemeral (demo token).

    Ephemeral orders exist only in responses; the order store treats every
    operation on them as a no-op.
    """

    value: str
    ephemeral: bool = False

    @classmethod
    def parse(cls, raw):
        if isinstance(raw, OrderId):
            return raw
        text = str(raw or "").strip()
        if not text:
            raise ValueError("Order id is required")
        if text.startswith(EPHEMERAL_PREFIX):
            return cls(text, ephemeral=True)
        try:
            return cls(str(uuid.UUID(text)))
        except ValueError:
            raise ValueError(f"Malformed order id: {text!r}")

    @classmethod
    def new(cls):
        return cls(str(uuid.uuid4()))

    @classmethod
    def new_ephemeral(cls):
        return cls(f"{EPHEMERAL_PREFIX}order_{uuid.uuid4().hex[:16]}", ephemeral=True)

    def __str__(self):
        return self.value


def _new_order_id():
    return OrderId.new().value


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=_new_order_id)
    email = db.Column(db.String(255), nullable=False, index=True)
    tier = db.Column(db.String(20), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default=OrderStatus.PENDING, index=True
    )
    stripe_session_id = db.Column(db.String(255), unique=True, index=True)
    stripe_payment_intent_id = db.Column(db.String(255))
    training_job_id = db.Column(db.String(255), unique=True, index=True)
    model_url = db.Column(db.Text)
    # Set once every style of the current generation dispatch is recorded
    generation_dispatched_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    photos = db.relationship(
        "UploadedPhoto",
        backref="order",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="UploadedPhoto.id",
    )
    headshots = db.relationship(
        "GeneratedHeadshot",
        backref="order",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="GeneratedHeadshot.id",
    )
    generation_jobs = db.relationship(
        "GenerationJob",
        backref="order",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="GenerationJob.id",
    )

    @property
    def order_id(self):
        return OrderId.parse(self.id)

    @property
    def price_display(self):
        """Price in dollars as a float for display."""
        return self.price_cents / 100

    @property
    def is_terminal(self):
        return self.status in OrderStatus.TERMINAL

    def to_dict(self):
        data = {
            "id": self.id,
            "email": self.email,
            "tier": self.tier,
            "price": self.price_display,
            "status": self.status,
            "stripe_session_id": self.stripe_session_id,
            "training_job_id": self.training_job_id,
            "has_model": bool(self.model_url),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if self.status == OrderStatus.FAILED:
            data["message"] = "Something went wrong with your order. Please contact support."
        return data

    def __repr__(self):
        return f"<Order {self.id} {self.tier} [{self.status}]>"
