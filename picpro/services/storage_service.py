import io
import logging
import time
import uuid
import zipfile
import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

logger = logging.getLogger(__name__)

DEMO_BASE_URL = "https://demo.storage"


class StorageError(RuntimeError):
    pass


def is_configured(config):
    return bool(
        config.get("S3_ACCESS_KEY")
        and config.get("S3_SECRET_KEY")
        and config.get("S3_BUCKET_NAME")
    )


def upload_key(owner, order_ref, filename):
    """Unique key for a user-uploaded source photo."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
    return f"uploads/{owner}/{order_ref}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{ext}"


def headshot_key(order_id, style, index):
    """Deterministic key for a generated image slot."""
    return f"headshots/{order_id}/{style}/{index:03d}"


def training_zip_key(order_ref):
    return f"training/{order_ref}/images.zip"


class StorageService:
    """S3-compatible object storage; demo URLs when not configured."""

    def __init__(self, config):
        self.config = config

    @property
    def is_configured(self):
        return is_configured(self.config)

    def _client(self):
        return boto3.client(
            "s3",
            endpoint_url=self.config.get("S3_ENDPOINT_URL") or None,
            aws_access_key_id=self.config["S3_ACCESS_KEY"],
            aws_secret_access_key=self.config["S3_SECRET_KEY"],
            region_name=self.config.get("S3_REGION") or None,
            config=BotoConfig(signature_version="s3v4"),
        )

    @property
    def bucket(self):
        return self.config["S3_BUCKET_NAME"]

    def public_url(self, storage_key):
        """Return the public CDN URL for a storage key."""
        if not self.is_configured:
            return f"{DEMO_BASE_URL}/{storage_key}"
        base = (self.config.get("S3_PUBLIC_URL") or "").rstrip("/")
        if base:
            return f"{base}/{storage_key}"
        return self.signed_url(storage_key)

    def upload(self, storage_key, data, content_type="image/jpeg"):
        """Upload bytes and return a retrievable URL."""
        if not self.is_configured:
            logger.info("Storage not configured — demo upload of %s", storage_key)
            return self.public_url(storage_key)

        self._client().put_object(
            Bucket=self.bucket,
            Key=storage_key,
            Body=data,
            ContentType=content_type,
        )
        return self.public_url(storage_key)

    def upload_from_url(self, source_url, storage_key, timeout=45):
        """Fetch ``source_url`` and re-host it under ``storage_key``."""
        if not self.is_configured:
            return self.public_url(storage_key)

        try:
            resp = httpx.get(source_url, timeout=timeout, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise StorageError(f"Fetching {source_url} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise StorageError(
                f"Fetching {source_url} failed with HTTP {resp.status_code}"
            )
        content_type = resp.headers.get("content-type", "image/webp").split(";")[0].strip()
        try:
            return self.upload(storage_key, resp.content, content_type=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Storing {storage_key} failed: {exc}") from exc

    def upload_zip(self, files, storage_key):
        """Bundle ``(filename, bytes)`` pairs into a zip and upload it."""
        if not files:
            raise StorageError("Cannot bundle an empty upload")
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            seen = set()
            for i, (filename, data) in enumerate(files, start=1):
                name = filename or f"image_{i:03d}.jpg"
                if name in seen:
                    name = f"{i:03d}_{name}"
                seen.add(name)
                archive.writestr(name, data)
        return self.upload(storage_key, buffer.getvalue(), content_type="application/zip")

    def signed_url(self, storage_key, expires_in=3600):
        """Generate a pre-signed download URL (default 1 hour)."""
        if not self.is_configured:
            return f"{DEMO_BASE_URL}/{storage_key}?expires={expires_in}"
        return self._client().generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": storage_key},
            ExpiresIn=expires_in,
        )


def get_storage():
    return StorageService(current_app.config)
