from flask import Blueprint

webhooks_bp = Blueprint("webhooks", __name__)

from picpro.blueprints.webhooks import replicate_webhook, stripe_webhook  # noqa: F401, E402
