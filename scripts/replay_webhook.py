#!/usr/bin/env python3
"""Post a saved Replicate callback to a running instance.

Usage:
    python scripts/replay_webhook.py callback.json [--order ORDER_ID] [--times N]

Posts to APP_URL (default http://localhost:5000). Useful for checking that
redelivered callbacks are absorbed without duplicating headshots.
"""
import json
import os
import sys
import click
import httpx
from dotenv import load_dotenv

load_dotenv()


@click.command()
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--order", "order_id", default=None, help="Order id to pass as the callback hint")
@click.option("--times", default=1, show_default=True, help="How many times to deliver it")
@click.option("--app-url", default=None, help="Overrides APP_URL")
def main(payload_file, order_id, times, app_url):
    app_url = (app_url or os.environ.get("APP_URL", "http://localhost:5000")).rstrip("/")
    with open(payload_file) as f:
        payload = json.load(f)

    url = f"{app_url}/webhooks/replicate"
    params = {"order": order_id} if order_id else None

    for attempt in range(1, times + 1):
        resp = httpx.post(url, json=payload, params=params, timeout=60)
        click.echo(f"[{attempt}/{times}] {resp.status_code} {resp.text.strip()}")
        if resp.status_code >= 500 and resp.status_code != 503:
            sys.exit(1)


if __name__ == "__main__":
    main()
