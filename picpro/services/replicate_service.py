"""Replicate client for LoRA training and headshot generation.

Both kinds of job are plain predictions; results come back on the webhook
URL passed at submission time. Without an API token every call returns
synthetic ``demo_`` predictions so the rest of the pipeline still runs.
"""
import base64
import hashlib
import hmac
import logging
import time
import uuid
from dataclasses import dataclass, field
import httpx
from flask import current_app
from picpro.services.pricing import HEADSHOT_STYLES

logger = logging.getLogger(__name__)

FLUX_TRAINER = "ostris/flux-dev-lora-trainer:4ffd32160efd92e956d39c5338a9b8fbafca58e03f791f6d8011f3e20e8ea6fa"
FLUX_DEV_LORA = "lucataco/flux-dev-lora:a22c463f11808638ad5e2ebd582e07a469031f48dd567366fb4c6fdab91d614d"

TRAINING_DEFAULTS = {
    "trigger_word": "TOK",
    "steps": 1000,
    "lora_rank": 16,
    "optimizer": "adamw8bit",
    "batch_size": 1,
    "resolution": "512,768,1024",
    "autocaption": True,
    "autocaption_prefix": "a photo of TOK, ",
}

DEMO_WEIGHTS_URL = "https://demo.replicate.com/weights.safetensors"

# Signed webhooks older than this are rejected
WEBHOOK_TOLERANCE_SECONDS = 300


class ReplicateError(RuntimeError):
    pass


class ReplicateRateLimit(ReplicateError):
    pass


@dataclass
class Prediction:
    id: str
    status: str
    output: object = None
    error: str = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data):
        return cls(
            id=data.get("id", ""),
            status=data.get("status", ""),
            output=data.get("output"),
            error=data.get("error"),
            raw=data,
        )

    def as_callback(self):
        """Shape of the webhook body the provider would send for this prediction."""
        payload = {"id": self.id, "status": self.status}
        if self.output is not None:
            payload["output"] = self.output
        if self.error:
            payload["error"] = self.error
        return payload


def is_configured(config):
    return bool(config.get("REPLICATE_API_TOKEN"))


def is_demo_prediction(prediction_id):
    return str(prediction_id or "").startswith("demo_")


def is_demo_weights(weights_url):
    """Only the weights returned by a demo training run count as demo weights."""
    return weights_url == DEMO_WEIGHTS_URL


class ReplicateService:
    def __init__(self, config):
        self.config = config
        self.base_url = config.get("REPLICATE_API_URL", "https://api.replicate.com/v1").rstrip("/")
        self.timeout = config.get("REPLICATE_TIMEOUT_SECONDS", 60)
        self.rate_limit_retries = max(1, int(config.get("REPLICATE_RATE_LIMIT_RETRIES", 4)))
        self.rate_limit_base_wait = float(config.get("REPLICATE_RATE_LIMIT_BASE_WAIT", 10))

    @property
    def is_configured(self):
        return is_configured(self.config)

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.config['REPLICATE_API_TOKEN']}",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, json=None):
        """Call the API, backing off on 429 responses."""
        url = f"{self.base_url}{path}"
        for attempt in range(self.rate_limit_retries):
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.request(method, url, json=json, headers=self._headers())
            if resp.status_code == 429:
                if attempt < self.rate_limit_retries - 1:
                    wait = self.rate_limit_base_wait * (2 ** attempt)
                    logger.warning(
                        "Replicate rate limit (429), waiting %.0fs before retry %d/%d",
                        wait,
                        attempt + 1,
                        self.rate_limit_retries - 1,
                    )
                    time.sleep(wait)
                    continue
                raise ReplicateRateLimit("Rate limit exceeded after retries")
            if resp.status_code >= 400:
                raise ReplicateError(f"Replicate API error {resp.status_code}: {resp.text}")
            return resp.json()
        raise ReplicateRateLimit("Rate limit exceeded")

    def _create_prediction(self, version, inputs, webhook_url=None):
        payload = {"version": version, "input": inputs}
        if webhook_url:
            payload["webhook"] = webhook_url
            payload["webhook_events_filter"] = ["completed"]
        data = self._request("POST", "/predictions", json=payload)
        prediction = Prediction.from_api(data)
        if not prediction.id:
            raise ReplicateError("No prediction ID returned")
        return prediction

    def create_training(self, zip_url, webhook_url=None):
        """Submit a LoRA fine-tune on the zipped selfies."""
        if not self.is_configured:
            logger.info("Replicate not configured — demo training for %s", zip_url)
            return Prediction(id=f"demo_training_{uuid.uuid4().hex[:12]}", status="starting")

        prediction = self._create_prediction(
            FLUX_TRAINER,
            {"input_images": zip_url, **TRAINING_DEFAULTS},
            webhook_url,
        )
        logger.info("Training job submitted: %s", prediction.id)
        return prediction

    def create_generation(self, lora_url, style, num_images, webhook_url=None):
        """Submit one generation job for ``style`` using the trained weights."""
        style_config = HEADSHOT_STYLES.get(style)
        if style_config is None:
            raise ReplicateError(f"Unknown headshot style: {style}")

        if not self.is_configured or is_demo_weights(lora_url):
            logger.info("Replicate not configured or demo weights, demo generation for %s", style)
            return Prediction(
                id=f"demo_generation_{num_images}_{uuid.uuid4().hex[:12]}",
                status="starting",
            )

        prediction = self._create_prediction(
            FLUX_DEV_LORA,
            {
                "prompt": style_config["prompt"],
                "negative_prompt": style_config["negative_prompt"],
                "hf_lora": lora_url,
                "num_outputs": num_images,
                "num_inference_steps": 28,
                "guidance_scale": 3.5,
                "output_format": "webp",
                "output_quality": 90,
            },
            webhook_url,
        )
        logger.info("Generation job submitted: %s (%s)", prediction.id, style)
        return prediction

    def get_prediction(self, prediction_id):
        """Fetch a prediction; demo ids resolve to a finished result."""
        if is_demo_prediction(prediction_id) or not self.is_configured:
            return _demo_result(prediction_id)
        return Prediction.from_api(self._request("GET", f"/predictions/{prediction_id}"))

    def cancel_prediction(self, prediction_id):
        """Administrative cancel. Errors are logged, never raised."""
        if is_demo_prediction(prediction_id) or not self.is_configured:
            return False
        try:
            self._request("POST", f"/predictions/{prediction_id}/cancel")
        except ReplicateError:
            logger.exception("Cancel prediction %s failed", prediction_id)
            return False
        logger.info("Prediction %s cancelled", prediction_id)
        return True

    def verify_webhook(self, body, headers):
        """Check the ``webhook-signature`` header when a secret is configured.

        Signed content is ``{webhook-id}.{webhook-timestamp}.{body}``, HMAC-SHA256
        with the base64 part of the ``whsec_`` secret. Without a secret every
        delivery is accepted.
        """
        secret = self.config.get("REPLICATE_WEBHOOK_SECRET") or ""
        if not secret:
            return True

        webhook_id = headers.get("webhook-id", "")
        timestamp = headers.get("webhook-timestamp", "")
        signatures = headers.get("webhook-signature", "")
        if not webhook_id or not timestamp or not signatures:
            return False
        try:
            if abs(time.time() - int(timestamp)) > WEBHOOK_TOLERANCE_SECONDS:
                return False
            key = base64.b64decode(secret.split("_", 1)[-1])
        except ValueError:
            return False

        if isinstance(body, bytes):
            body = body.decode("utf-8")
        signed = f"{webhook_id}.{timestamp}.{body}".encode("utf-8")
        expected = base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode()
        for candidate in signatures.split():
            _, _, sig = candidate.partition(",")
            if sig and hmac.compare_digest(sig, expected):
                return True
        return False


def _demo_result(prediction_id):
    prediction_id = str(prediction_id)
    if prediction_id.startswith("demo_training_"):
        return Prediction(
            id=prediction_id,
            status="succeeded",
            output={"version": "demo_model_v1", "weights": DEMO_WEIGHTS_URL},
        )
    count = 4
    if prediction_id.startswith("demo_generation_"):
        try:
            count = int(prediction_id.split("_")[2])
        except (IndexError, ValueError):
            pass
    return Prediction(
        id=prediction_id,
        status="succeeded",
        output=[
            f"https://picsum.photos/seed/{prediction_id}{i}/1024/1024"
            for i in range(count)
        ],
    )


def get_replicate():
    return ReplicateService(current_app.config)
