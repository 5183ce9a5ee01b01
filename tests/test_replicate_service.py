"""Tests for the Replicate client (HTTP mocked)."""
import base64
import hashlib
import hmac
import time
from unittest.mock import MagicMock, patch
import httpx
import pytest
from picpro.services.replicate_service import (
    DEMO_WEIGHTS_URL,
    Prediction,
    ReplicateError,
    ReplicateRateLimit,
    ReplicateService,
    is_demo_weights,
)

LIVE = {
    "REPLICATE_API_TOKEN": "r8_test",
    "REPLICATE_API_URL": "https://api.replicate.test/v1",
    "REPLICATE_RATE_LIMIT_RETRIES": 3,
    "REPLICATE_RATE_LIMIT_BASE_WAIT": 10,
}


def response(status_code, body=None):
    return httpx.Response(
        status_code,
        json=body if body is not None else {},
        request=httpx.Request("POST", "https://api.replicate.test/v1/predictions"),
    )


def mock_client(*responses):
    client = MagicMock()
    client.__enter__.return_value = client
    client.request.side_effect = list(responses)
    return client


def test_demo_training_and_generation_ids():
    service = ReplicateService({})

    training = service.create_training("https://s/zip")
    generation = service.create_generation("https://w/lora.tar", "tech", 10)

    assert training.id.startswith("demo_training_")
    assert generation.id.startswith("demo_generation_10_")


def test_demo_predictions_resolve_to_results():
    service = ReplicateService({})

    training = service.get_prediction("demo_training_abc")
    generation = service.get_prediction("demo_generation_8_abc")

    assert training.status == "succeeded"
    assert training.output["weights"] == DEMO_WEIGHTS_URL
    assert len(generation.output) == 8
    assert generation.as_callback() == {
        "id": "demo_generation_8_abc",
        "status": "succeeded",
        "output": generation.output,
    }


def test_demo_weights_never_reach_the_api():
    service = ReplicateService(LIVE)

    with patch("picpro.services.replicate_service.httpx.Client") as client_cls:
        prediction = service.create_generation(DEMO_WEIGHTS_URL, "tech", 8)

    client_cls.assert_not_called()
    assert prediction.id.startswith("demo_generation_8_")


def test_weights_url_mentioning_demo_is_submitted():
    service = ReplicateService(LIVE)
    client = mock_client(response(201, {"id": "gen-9", "status": "starting"}))

    with patch("picpro.services.replicate_service.httpx.Client", return_value=client):
        prediction = service.create_generation(
            "https://replicate.delivery/xz/academic-demos/trained_model.tar", "corporate", 8
        )

    client.request.assert_called_once()
    assert prediction.id == "gen-9"
    assert is_demo_weights(DEMO_WEIGHTS_URL)
    assert not is_demo_weights("https://replicate.delivery/demo/weights.tar")


def test_unknown_style_rejected():
    with pytest.raises(ReplicateError):
        ReplicateService({}).create_generation("https://w", "underwater", 8)


def test_create_training_posts_webhook():
    client = mock_client(response(201, {"id": "tr-1", "status": "starting"}))

    with patch("picpro.services.replicate_service.httpx.Client", return_value=client):
        prediction = ReplicateService(LIVE).create_training("https://s/zip", "https://app/hook")

    assert prediction == Prediction("tr-1", "starting", raw={"id": "tr-1", "status": "starting"})
    method, url = client.request.call_args.args
    payload = client.request.call_args.kwargs["json"]
    assert (method, url) == ("POST", "https://api.replicate.test/v1/predictions")
    assert payload["webhook"] == "https://app/hook"
    assert payload["webhook_events_filter"] == ["completed"]
    assert payload["input"]["input_images"] == "https://s/zip"


def test_rate_limit_backs_off_then_succeeds():
    client = mock_client(
        response(429),
        response(429),
        response(201, {"id": "gen-1", "status": "starting"}),
    )

    with patch("picpro.services.replicate_service.httpx.Client", return_value=client), \
            patch("picpro.services.replicate_service.time.sleep") as sleep:
        prediction = ReplicateService(LIVE).create_generation("https://w/lora.tar", "tech", 8)

    assert prediction.id == "gen-1"
    assert [c.args[0] for c in sleep.call_args_list] == [10, 20]


def test_rate_limit_exhausted():
    client = mock_client(response(429), response(429), response(429))

    with patch("picpro.services.replicate_service.httpx.Client", return_value=client), \
            patch("picpro.services.replicate_service.time.sleep"):
        with pytest.raises(ReplicateRateLimit):
            ReplicateService(LIVE).create_training("https://s/zip")


def test_api_error_raises():
    client = mock_client(response(422, {"detail": "bad input"}))

    with patch("picpro.services.replicate_service.httpx.Client", return_value=client):
        with pytest.raises(ReplicateError, match="422"):
            ReplicateService(LIVE).create_training("https://s/zip")


def test_cancel_swallows_errors():
    client = mock_client(response(500))

    with patch("picpro.services.replicate_service.httpx.Client", return_value=client):
        assert ReplicateService(LIVE).cancel_prediction("tr-1") is False

    assert ReplicateService(LIVE).cancel_prediction("demo_training_x") is False


# ---------------------------------------------------------------------------
# Webhook signatures
# ---------------------------------------------------------------------------

SECRET = "whsec_" + base64.b64encode(b"signing-key").decode()


def signed_headers(body, webhook_id="msg_1", timestamp=None):
    timestamp = str(timestamp or int(time.time()))
    digest = hmac.new(
        b"signing-key", f"{webhook_id}.{timestamp}.{body}".encode(), hashlib.sha256
    ).digest()
    return {
        "webhook-id": webhook_id,
        "webhook-timestamp": timestamp,
        "webhook-signature": "v1,bogus v1," + base64.b64encode(digest).decode(),
    }


def test_verify_webhook_without_secret_accepts_everything():
    assert ReplicateService({}).verify_webhook(b"{}", {})


def test_verify_webhook_accepts_valid_signature():
    body = '{"id": "p-1", "status": "succeeded"}'

    assert ReplicateService({"REPLICATE_WEBHOOK_SECRET": SECRET}).verify_webhook(
        body.encode(), signed_headers(body)
    )


def test_verify_webhook_rejects_tampering_and_stale_deliveries():
    service = ReplicateService({"REPLICATE_WEBHOOK_SECRET": SECRET})
    body = '{"id": "p-1", "status": "succeeded"}'

    assert not service.verify_webhook(b'{"id": "p-2", "status": "succeeded"}', signed_headers(body))
    assert not service.verify_webhook(body.encode(), signed_headers(body, timestamp=int(time.time()) - 3600))
    assert not service.verify_webhook(body.encode(), {})
