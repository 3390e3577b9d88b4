"""Job queue on the photos table: claim, lease and finalize.

Every mutation here is a single conditional UPDATE. A claim only counts
when its UPDATE matched exactly one row, so two overlapping invocations
can never hold the same photo.

The value written to `processing_at` doubles as the lease token. Renewal
and the finalize writes only match while that token is unchanged, so a
worker whose lease was taken over can no longer touch the row.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import case, or_, select, update

from photomarket.extensions import db
from photomarket.models.photo import Photo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhotoRef:
    """What a worker needs to process one claimed photo."""

    id: str
    url: str
    album_id: str
    attempts: int
    leased_at: datetime = None


def _now():
    return datetime.now(timezone.utc)


def _lease_cutoff(now):
    return now - timedelta(seconds=current_app.config["PHOTO_LEASE_SECONDS"])


def _eligible(cutoff):
    """Filter for photos a claimer may take right now.

    A lease older than the cutoff belongs to a crashed worker and is
    taken over.
    """
    return (
        Photo.album_id.isnot(None),
        Photo.status == "NEW",
        Photo.url.isnot(None),
        Photo.deleted_at.is_(None),
        or_(Photo.processing_at.is_(None), Photo.processing_at < cutoff),
    )


def _held(photo_id, leased_at):
    """Filter matching the photo only while the given lease is still ours."""
    conditions = [Photo.id == photo_id]
    if leased_at is not None:
        conditions.append(Photo.processing_at == leased_at)
    return conditions


def _take_lease(photo_id, now, cutoff):
    """Compare-and-set the lease on one photo. True if we won it."""
    result = db.session.execute(
        update(Photo)
        .where(Photo.id == photo_id, *_eligible(cutoff))
        .values(processing_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def claim_batch(limit=None):
    """Reserve up to `limit` eligible photos, oldest first.

    Returns a list of PhotoRef; empty when nothing is eligible.
    """
    if limit is None:
        limit = current_app.config["PHOTO_BATCH_SIZE"]
    now = _now()
    cutoff = _lease_cutoff(now)

    stmt = (
        select(Photo.id, Photo.url, Photo.album_id, Photo.attempts)
        .where(*_eligible(cutoff))
        .order_by(Photo.created_at.asc(), Photo.id.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    )

    try:
        rows = db.session.execute(stmt).all()
        if not rows:
            db.session.rollback()
            return []

        claimed = []
        for row in rows:
            if _take_lease(row.id, now, cutoff):
                claimed.append(
                    PhotoRef(
                        id=row.id,
                        url=row.url,
                        album_id=row.album_id,
                        attempts=row.attempts,
                        leased_at=now,
                    )
                )
            else:
                logger.info("Photo %s claimed by another worker, skipping", row.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if claimed:
        logger.info("Claimed %d photo(s) for processing", len(claimed))
    return claimed


def claim_photo(photo_id):
    """Reserve a single photo. Returns a PhotoRef, or None if not claimable."""
    now = _now()
    cutoff = _lease_cutoff(now)
    try:
        if not _take_lease(photo_id, now, cutoff):
            db.session.rollback()
            return None
        row = db.session.execute(
            select(Photo.id, Photo.url, Photo.album_id, Photo.attempts).where(
                Photo.id == photo_id
            )
        ).one()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return PhotoRef(
        id=row.id,
        url=row.url,
        album_id=row.album_id,
        attempts=row.attempts,
        leased_at=now,
    )


def renew_lease(ref):
    """Restart the lease clock right before work on the photo begins.

    A batch is leased in one go but processed one photo at a time, so the
    photos at the end of a slow batch would otherwise run on an almost
    expired lease.

    Returns the ref carrying the new token, or None when the lease was
    taken over by another claimer or the photo left the queue.
    """
    now = _now()
    try:
        result = db.session.execute(
            update(Photo)
            .where(
                *_held(ref.id, ref.leased_at),
                Photo.status == "NEW",
                Photo.deleted_at.is_(None),
            )
            .values(processing_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if result.rowcount != 1:
        logger.warning("Lease on photo %s was lost before processing, skipping", ref.id)
        return None
    return replace(ref, leased_at=now)


def mark_done(photo_id, watermark_url, thumb_url, leased_at=None):
    """Finalize a successful run and release the lease.

    Returns False when nothing was written: the photo is gone, or
    `leased_at` no longer matches because the lease was taken over.
    """
    if not watermark_url or not thumb_url:
        raise ValueError("Both watermark and thumbnail URLs are required")

    result = db.session.execute(
        update(Photo)
        .where(*_held(photo_id, leased_at))
        .values(
            url_watermark=watermark_url,
            url_thumb=thumb_url,
            status="DONE",
            processing_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def mark_failed(photo_id, leased_at=None):
    """Count a failed attempt and release the lease.

    The increment happens in SQL so concurrent writers cannot lose one.
    Returns the resulting status ("NEW" or "FAILED"), or None if nothing
    was written (photo gone or lease taken over).
    """
    max_attempts = current_app.config["PHOTO_MAX_ATTEMPTS"]
    result = db.session.execute(
        update(Photo)
        .where(*_held(photo_id, leased_at))
        .values(
            attempts=Photo.attempts + 1,
            status=case(
                (Photo.attempts + 1 >= max_attempts, "FAILED"),
                else_="NEW",
            ),
            processing_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return None
    status = db.session.execute(
        select(Photo.status).where(Photo.id == photo_id)
    ).scalar_one()
    db.session.commit()
    return status
