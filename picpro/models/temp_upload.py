from datetime import datetime, timezone
from picpro.extensions import db


class TempUpload(db.Model):
    """Photo bundle uploaded before checkout, keyed by a client-chosen id."""

    __tablename__ = "temp_uploads"

    id = db.Column(db.Integer, primary_key=True)
    temp_upload_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    zip_url = db.Column(db.String(1024), nullable=False)
    photo_count = db.Column(db.Integer, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<TempUpload {self.temp_upload_id} ({self.photo_count} photos)>"
