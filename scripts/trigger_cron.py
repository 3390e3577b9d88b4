#!/usr/bin/env python3
"""Call a cron endpoint, for schedulers that can only run commands.

Usage:
    python scripts/trigger_cron.py process-photos
    python scripts/trigger_cron.py prune-photos --days 7

Reads APP_URL and CRON_SECRET from environment variables.
"""
import os
import sys
import click
import httpx
from dotenv import load_dotenv

load_dotenv()


@click.command()
@click.argument("job", type=click.Choice(["process-photos", "prune-photos"]))
@click.option("--days", type=int, default=None, help="Retention for prune-photos")
def main(job, days):
    secret = os.environ.get("CRON_SECRET")
    app_url = os.environ.get("APP_URL", "").rstrip("/")

    if not secret:
        print("Error: CRON_SECRET not set")
        sys.exit(1)
    if not app_url:
        print("Error: APP_URL not set")
        sys.exit(1)

    params = {}
    if job == "prune-photos" and days is not None:
        params["days"] = days

    resp = httpx.get(
        f"{app_url}/api/cron/{job}",
        params=params,
        headers={"Authorization": f"Bearer {secret}"},
        timeout=300,
    )

    if resp.status_code == 200:
        print(f"{job}: {resp.json()}")
    else:
        print(f"Error {resp.status_code}: {resp.text}")
        sys.exit(1)


if __name__ == "__main__":
    main()
