from datetime import datetime, timezone
from picpro.extensions import db


class PaymentEvent(db.Model):
    """Payment webhook events that were fully processed.

    A redelivered event id is acknowledged without being handled again.
    """

    __tablename__ = "payment_events"

    id = db.Column(db.Integer, primary_key=True)
    stripe_event_id = db.Column(db.String(255), unique=True, nullable=False)
    event_type = db.Column(db.String(255), nullable=False)
    processed_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<PaymentEvent {self.stripe_event_id} ({self.event_type})>"
