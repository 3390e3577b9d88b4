"""Periodic trigger endpoints, called by the scheduler."""
import hmac
import logging
from flask import request, current_app
from photomarket.blueprints.cron import cron_bp
from photomarket.services import prune_service
from photomarket.workers.photo_processing import process_batch

logger = logging.getLogger(__name__)


@cron_bp.before_request
def require_cron_secret():
    """Security: Authorization header must be `Bearer <CRON_SECRET>`."""
    expected = current_app.config["CRON_SECRET"]
    header = request.headers.get("Authorization", "")
    if not expected or not hmac.compare_digest(
        header.encode(), f"Bearer {expected}".encode()
    ):
        logger.warning("Rejected cron call to %s", request.path)
        return {"error": "Unauthorized"}, 401
    return None


@cron_bp.route("/process-photos", methods=["GET", "POST"])
def process_photos():
    """Claim one batch of NEW photos and process it."""
    counters = process_batch()
    return counters, 200


@cron_bp.route("/prune-photos", methods=["GET", "POST"])
def prune_photos():
    """Delete orphan photos older than ?days= (default PRUNE_ORPHAN_DAYS)."""
    days = request.args.get("days", type=int)
    if days is None:
        days = current_app.config["PRUNE_ORPHAN_DAYS"]
    if days < 0:
        return {"error": "days must be >= 0"}, 400
    return prune_service.prune_orphans(days), 200
