import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import exists
from sqlalchemy.exc import SQLAlchemyError

from photomarket.extensions import db
from photomarket.models.order_item import OrderItem
from photomarket.models.photo import Photo
from photomarket.services import storage_service

logger = logging.getLogger(__name__)


def find_orphans(retention_days, now=None):
    """Photos never attached to an album and older than the retention window.

    Sold photos are never orphans: an album delete detaches them, but
    buyers still download their blobs.

    Returns (id, url, url_watermark, url_thumb) rows, oldest first.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)
    sold = exists().where(OrderItem.photo_id == Photo.id)
    return (
        db.session.query(Photo.id, Photo.url, Photo.url_watermark, Photo.url_thumb)
        .filter(Photo.album_id.is_(None), Photo.created_at < cutoff, ~sold)
        .order_by(Photo.created_at.asc())
        .all()
    )


def _delete_blobs(orphan):
    """Delete every blob the photo references. False if any delete failed."""
    for url in (orphan.url, orphan.url_watermark, orphan.url_thumb):
        if not url:
            continue
        try:
            storage_service.delete_url(url)
        except Exception:
            logger.warning(
                "Blob delete failed for photo %s: %s", orphan.id, url, exc_info=True
            )
            return False
    return True


def prune_orphans(retention_days=None):
    """Remove orphan photos and their blobs.

    A row is only deleted after its blobs are confirmed gone; otherwise it
    stays for the next sweep so no blob is left without a record.

    Returns {"pruned": n, "scanned": m, "days": retention_days}.
    """
    if retention_days is None:
        retention_days = current_app.config["PRUNE_ORPHAN_DAYS"]

    orphans = find_orphans(retention_days)

    pruned = 0
    for orphan in orphans:
        if not _delete_blobs(orphan):
            continue

        try:
            Photo.query.filter_by(id=orphan.id).delete(synchronize_session=False)
            db.session.commit()
            pruned += 1
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("DB delete failed for orphan photo %s", orphan.id)

    logger.info(
        "Orphan sweep: pruned %d of %d (retention %d days)",
        pruned,
        len(orphans),
        retention_days,
    )
    return {"pruned": pruned, "scanned": len(orphans), "days": retention_days}
