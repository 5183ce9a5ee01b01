from datetime import datetime, timezone
from picpro.extensions import db


class GenerationJob(db.Model):
    __tablename__ = "generation_jobs"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.String(36),
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    style = db.Column(db.String(50), nullable=False)
    prediction_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    error = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.UniqueConstraint("order_id", "style", name="uq_generation_job_style"),
    )

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    STATUSES = {PENDING, PROCESSING, COMPLETED, FAILED}
    OPEN_STATUSES = {PENDING, PROCESSING}
    TERMINAL_STATUSES = {COMPLETED, FAILED}

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def to_dict(self):
        # Provider error text stays internal
        return {
            "id": self.id,
            "style": self.style,
            "status": self.status,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self):
        return f"<GenerationJob {self.style} {self.prediction_id} [{self.status}]>"
