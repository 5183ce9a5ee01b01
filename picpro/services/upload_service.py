"""Selfie upload validation, storage, and the pre-checkout upload ledger."""
import io
import logging
from dataclasses import dataclass
from PIL import Image as PILImage
from sqlalchemy.exc import IntegrityError
from picpro.extensions import db
from picpro.models import TempUpload
from picpro.services.storage_service import get_storage, training_zip_key, upload_key

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}
# Browsers often send HEIC with an empty or generic type
HEIF_EXTENSIONS = {"heic", "heif"}


class UploadError(ValueError):
    pass


@dataclass
class IncomingPhoto:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self):
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""

    @property
    def is_heif(self):
        return (
            self.content_type in ("image/heic", "image/heif")
            or self.extension in HEIF_EXTENSIONS
        )


def validate_photo(photo, max_size):
    """Reject anything that is not a real JPEG, PNG, WebP or HEIC/HEIF image.

    HEIC/HEIF files are accepted on type or extension alone since Pillow
    cannot decode them without a plugin.
    """
    content_type = (photo.content_type or "").lower()
    if content_type not in ALLOWED_CONTENT_TYPES and photo.extension not in HEIF_EXTENSIONS:
        raise UploadError("Only JPEG, PNG, WebP, and HEIC images are allowed")
    if not photo.data:
        raise UploadError(f"{photo.filename} is empty")
    if len(photo.data) > max_size:
        raise UploadError(
            f"{photo.filename} is too large: {len(photo.data)} bytes (max {max_size})"
        )
    if photo.is_heif:
        return

    try:
        img = PILImage.open(io.BytesIO(photo.data))
        img.verify()
    except Exception:
        raise UploadError(f"{photo.filename} is not a valid image")


def validate_batch(photos, min_count, max_count, max_size):
    if not photos:
        raise UploadError("No files provided")
    if len(photos) < min_count:
        raise UploadError(f"Minimum {min_count} photos required")
    if len(photos) > max_count:
        raise UploadError(f"Maximum {max_count} photos allowed")
    for photo in photos:
        validate_photo(photo, max_size)


def store_photos(photos, owner, order_ref):
    """Upload each photo and the training zip.

    Returns ``(stored, zip_url)`` where ``stored`` holds one dict per photo
    with its storage key, filename and size.
    """
    storage = get_storage()
    stored = []
    for photo in photos:
        key = upload_key(owner, order_ref, photo.filename)
        storage.upload(key, photo.data, content_type=photo.content_type or "image/jpeg")
        stored.append({"key": key, "filename": photo.filename, "size": len(photo.data)})

    zip_key = training_zip_key(order_ref)
    if storage.is_configured:
        zip_url = storage.upload_zip([(p.filename, p.data) for p in photos], zip_key)
    else:
        zip_url = storage.public_url(zip_key)
    logger.info("Stored %d photos for %s (zip %s)", len(stored), order_ref, zip_key)
    return stored, zip_url


# ---------------------------------------------------------------------------
# Temporary upload ledger
# ---------------------------------------------------------------------------

def save_temp_upload(temp_upload_id, zip_url, photo_count):
    """Record (or replace) the bundle uploaded under ``temp_upload_id``."""
    record = TempUpload.query.filter_by(temp_upload_id=temp_upload_id).first()
    if record:
        record.zip_url = zip_url
        record.photo_count = photo_count
        db.session.commit()
        return record

    record = TempUpload(temp_upload_id=temp_upload_id, zip_url=zip_url, photo_count=photo_count)
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        record = TempUpload.query.filter_by(temp_upload_id=temp_upload_id).first()
        record.zip_url = zip_url
        record.photo_count = photo_count
        db.session.commit()
    return record


def get_temp_upload(temp_upload_id):
    if not temp_upload_id:
        return None
    return TempUpload.query.filter_by(temp_upload_id=temp_upload_id).first()


def delete_temp_upload(temp_upload_id):
    """Consume a temp upload. Deleting an absent record is a no-op."""
    if not temp_upload_id:
        return False
    deleted = TempUpload.query.filter_by(temp_upload_id=temp_upload_id).delete(
        synchronize_session=False
    )
    db.session.commit()
    return bool(deleted)
