"""Photo post-processing: derive the watermark and thumbnail, then finalize.

Runs from the cron endpoint, the CLI, or as an RQ job enqueued right
after photos are attached to an album.
"""
import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from flask import current_app, has_app_context

from photomarket.extensions import db
from photomarket.models.photo import Photo
from photomarket.services import image_service, processing_service, storage_service

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        from photomarket import create_app

        _worker_app = create_app()
    return _worker_app


def _submit(executor, app, fn, *args):
    """Run fn on the pool inside its own app context."""

    def run():
        with app.app_context():
            return fn(*args)

    return executor.submit(run)


def _join(futures, timeout):
    """Wait for every subtask under one shared deadline.

    The first failure propagates; so does running out of time.
    """
    done, pending = wait(futures, timeout=timeout, return_when=FIRST_EXCEPTION)
    for f in futures:
        if f in done and f.exception() is not None:
            raise f.exception()
    if pending:
        raise TimeoutError(f"{len(pending)} subtask(s) still running after {timeout}s")
    return [f.result() for f in futures]


def _derive_and_upload(ref, executor, app):
    """Fetch, transform and upload one photo. Returns (watermark_url, thumb_url).

    Each of the three steps waits at most PHOTO_CALL_TIMEOUT, so one photo
    never holds its lease longer than three timeouts plus the final write.
    """
    timeout = app.config["PHOTO_CALL_TIMEOUT"]
    (original,) = _join(
        [executor.submit(storage_service.fetch, ref.url, timeout)], timeout
    )

    watermark, thumbnail = _join(
        [
            executor.submit(
                image_service.make_watermark, original, app.config["WATERMARK_TEXT"]
            ),
            executor.submit(image_service.make_thumb, original),
        ],
        timeout,
    )

    prefix = f"albums/{ref.album_id}/" if ref.album_id else ""
    watermark_url, thumb_url = _join(
        [
            _submit(executor, app, storage_service.put_image, watermark, prefix),
            _submit(executor, app, storage_service.put_image, thumbnail, prefix),
        ],
        timeout,
    )
    return watermark_url, thumb_url


def _discard_blobs(urls):
    for url in urls:
        try:
            storage_service.delete_url(url)
        except Exception:
            logger.warning("Blob delete failed for %s", url, exc_info=True)


def process_claimed(ref, executor):
    """Process one claimed photo and write its outcome. True on success.

    Never raises: whatever happens, the lease is released by either the
    success or the failure write, unless it was already taken over.
    """
    app = current_app._get_current_object()
    try:
        watermark_url, thumb_url = _derive_and_upload(ref, executor, app)
        finalized = processing_service.mark_done(
            ref.id, watermark_url, thumb_url, leased_at=ref.leased_at
        )
    except Exception:
        logger.exception(
            "Photo processing failed for %s (attempt %d)", ref.id, ref.attempts + 1
        )
        db.session.rollback()
    else:
        if finalized:
            logger.info("Photo processed successfully: %s", ref.id)
            return True
        # Deleted or taken over mid-flight: the new variants belong to nobody
        logger.warning("Photo %s no longer leased at finalize, discarding variants", ref.id)
        _discard_blobs([watermark_url, thumb_url])
        return False

    try:
        status = processing_service.mark_failed(ref.id, leased_at=ref.leased_at)
        if status == "FAILED":
            logger.error("Photo %s gave up after max attempts", ref.id)
        elif status is None:
            logger.warning("Photo %s no longer leased, failure not recorded", ref.id)
    except Exception:
        db.session.rollback()
        logger.exception("Could not record failure for photo %s", ref.id)
    return False


def _renew(ref):
    try:
        return processing_service.renew_lease(ref)
    except Exception:
        logger.exception("Could not renew lease on photo %s, leaving it for a later run", ref.id)
        return None


def process_refs(refs):
    """Process already-claimed photos sequentially on one bounded pool.

    Each photo's lease is renewed just before its turn; photos whose lease
    was taken over in the meantime are skipped and counted nowhere.
    """
    counters = {"successful": 0, "failed": 0}
    if not refs:
        return counters

    executor = ThreadPoolExecutor(
        max_workers=current_app.config["PHOTO_MAX_WORKERS"],
        thread_name_prefix="photo-proc",
    )
    try:
        for ref in refs:
            held = _renew(ref)
            if held is None:
                continue
            if process_claimed(held, executor):
                counters["successful"] += 1
            else:
                counters["failed"] += 1
    finally:
        # Don't block on subtasks abandoned after a timeout
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info(
        "Processing batch finished: %d successful, %d failed",
        counters["successful"],
        counters["failed"],
    )
    return counters


def process_batch(limit=None):
    """Claim a batch of NEW photos and process it. Returns the counters."""
    refs = processing_service.claim_batch(limit)
    return process_refs(refs)


def process_photo(photo_id):
    """Claim and process a single photo now.

    Returns the photo's resulting status, or None when it could not be
    claimed (missing, not attached, terminal, or leased elsewhere).
    """
    ref = processing_service.claim_photo(photo_id)
    if ref is None:
        return None
    process_refs([ref])

    photo = db.session.get(Photo, photo_id)
    return photo.status if photo else None


def run_processing_batch():
    """RQ entry point for the out-of-band trigger."""
    app = _get_app()
    with app.app_context():
        return process_batch()
