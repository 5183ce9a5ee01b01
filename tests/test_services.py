"""Tests for storage, payment and email collaborators."""
import io
import zipfile
from unittest.mock import MagicMock, patch
import httpx
import pytest
from picpro.services.email_service import EmailError, EmailService, dashboard_url
from picpro.services.payment_service import PaymentService
from picpro.services.pricing import get_tier
from picpro.services.storage_service import (
    StorageError,
    StorageService,
    headshot_key,
    training_zip_key,
    upload_key,
)

S3 = {
    "S3_ACCESS_KEY": "key",
    "S3_SECRET_KEY": "secret",
    "S3_BUCKET_NAME": "picpro-test",
    "S3_PUBLIC_URL": "https://cdn.picpro.test/",
}


def test_storage_keys():
    assert headshot_key("o-1", "tech", 7) == "headshots/o-1/tech/007"
    assert training_zip_key("tmp-1") == "training/tmp-1/images.zip"
    key = upload_key("a@b.co", "o-1", "Me.HEIC")
    assert key.startswith("uploads/a@b.co/o-1/")
    assert key.endswith(".heic")
    assert upload_key("a@b.co", "o-1", "Me.HEIC") != key


def test_storage_demo_urls():
    storage = StorageService({})

    assert storage.upload("uploads/x.jpg", b"data") == "https://demo.storage/uploads/x.jpg"
    assert storage.upload_from_url("https://x/0.webp", "headshots/o/tech/000") == (
        "https://demo.storage/headshots/o/tech/000"
    )


def test_storage_upload_uses_public_base():
    storage = StorageService(S3)
    client = MagicMock()

    with patch("picpro.services.storage_service.boto3.client", return_value=client):
        url = storage.upload("headshots/o/tech/000", b"img", content_type="image/webp")

    assert url == "https://cdn.picpro.test/headshots/o/tech/000"
    client.put_object.assert_called_once_with(
        Bucket="picpro-test", Key="headshots/o/tech/000", Body=b"img", ContentType="image/webp"
    )


def test_storage_zip_bundles_every_photo():
    storage = StorageService(S3)
    client = MagicMock()

    with patch("picpro.services.storage_service.boto3.client", return_value=client):
        storage.upload_zip([("a.jpg", b"1"), ("a.jpg", b"2"), ("b.png", b"3")], "training/t/images.zip")

    body = client.put_object.call_args.kwargs["Body"]
    with zipfile.ZipFile(io.BytesIO(body)) as archive:
        assert len(archive.namelist()) == 3


def test_storage_fetch_failures_become_storage_errors():
    storage = StorageService(S3)

    with patch("picpro.services.storage_service.httpx.get", side_effect=httpx.ConnectError("down")):
        with pytest.raises(StorageError):
            storage.upload_from_url("https://x/0.webp", "headshots/o/tech/000")

    gone = httpx.Response(404, request=httpx.Request("GET", "https://x/0.webp"))
    with patch("picpro.services.storage_service.httpx.get", return_value=gone):
        with pytest.raises(StorageError):
            storage.upload_from_url("https://x/0.webp", "headshots/o/tech/000")


def test_demo_checkout_session():
    session = PaymentService({"APP_URL": "https://picpro.test"}).create_checkout_session(
        get_tier("starter"), "a@b.co"
    )

    assert session["id"].startswith("demo_session_")
    assert session["url"].startswith("https://picpro.test/dashboard?session_id=demo_session_")


def test_placeholder_stripe_key_is_demo():
    assert not PaymentService({"STRIPE_SECRET_KEY": "sk_placeholder"}).is_configured


def test_email_sends_through_resend():
    service = EmailService({"RESEND_API_KEY": "re_test", "APP_NAME": "PicPro AI"})
    sent = httpx.Response(200, json={"id": "msg_1"}, request=httpx.Request("POST", "https://api.resend.com/emails"))

    with patch("picpro.services.email_service.httpx.post", return_value=sent) as post:
        message_id = service.send_headshots_ready("a@b.co", "https://picpro.test/dashboard?orderId=1", 40)

    assert message_id == "msg_1"
    payload = post.call_args.kwargs["json"]
    assert payload["to"] == ["a@b.co"]
    assert "40" in payload["subject"]
    assert "https://picpro.test/dashboard?orderId=1" in payload["html"]


def test_email_provider_error_raises():
    service = EmailService({"RESEND_API_KEY": "re_test"})
    failed = httpx.Response(500, text="boom", request=httpx.Request("POST", "https://api.resend.com/emails"))

    with patch("picpro.services.email_service.httpx.post", return_value=failed):
        with pytest.raises(EmailError):
            service.send_order_failed("a@b.co", "https://picpro.test/dashboard?orderId=1")


def test_dashboard_url():
    assert dashboard_url({"APP_URL": "https://picpro.test/"}, "abc") == (
        "https://picpro.test/dashboard?orderId=abc"
    )
