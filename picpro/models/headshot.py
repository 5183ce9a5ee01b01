from datetime import datetime, timezone
from picpro.extensions import db


class GeneratedHeadshot(db.Model):
    __tablename__ = "generated_headshots"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.String(36),
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    style = db.Column(db.String(50), nullable=False)
    image_index = db.Column(db.Integer, nullable=False)
    storage_key = db.Column(db.String(512), nullable=False)
    storage_url = db.Column(db.String(1024), nullable=False)
    # Prediction id of the job that produced it; NULL for synchronous saves
    generation_job_id = db.Column(db.String(255), index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "order_id", "style", "image_index", name="uq_headshot_slot"
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "style": self.style,
            "index": self.image_index,
            "url": self.storage_url,
        }

    def __repr__(self):
        return f"<GeneratedHeadshot {self.style} #{self.image_index}>"
