from datetime import datetime, timezone
from picpro.extensions import db


class UploadedPhoto(db.Model):
    __tablename__ = "uploaded_photos"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.String(36),
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    storage_key = db.Column(db.String(512), nullable=False)
    original_filename = db.Column(db.String(255), nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "storage_key": self.storage_key,
            "filename": self.original_filename,
            "size_bytes": self.size_bytes,
        }

    def __repr__(self):
        return f"<UploadedPhoto {self.original_filename} ({self.size_bytes} bytes)>"
