import logging
import re
from datetime import datetime, timezone

from photomarket.extensions import db
from photomarket.models.album import Album
from photomarket.models.order_item import OrderItem
from photomarket.models.photo import Photo
from photomarket.services import storage_service

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ("jpeg", "jpg", "png", "webp")


class AdmissionError(ValueError):
    """Upload rejected before any photo record exists."""

    ID_COLLISION = "id_collision"
    INVALID_PATH = "invalid_path"
    MISSING_PHOTO_ID = "missing_photo_id"
    UNKNOWN_ALBUM = "unknown_album"
    NOT_ALBUM_OWNER = "not_album_owner"

    def __init__(self, reason, message):
        super().__init__(message)
        self.reason = reason


def build_path_regex(album_id):
    """Shape of a client-declared raw upload path.

    albums/{album_id}/raw/{21-char id}/{filename}.{jpg|jpeg|png|webp}

    - the id is 21 chars of [A-Za-z0-9_-]
    - the filename has no '/', starts with a letter or digit
    - the extension check is case-insensitive
    """
    return re.compile(
        rf"^albums/{re.escape(album_id)}/raw/[A-Za-z0-9_-]{{21}}/"
        rf"[A-Za-z0-9][A-Za-z0-9 ._-]*\.(?:{'|'.join(ALLOWED_EXTENSIONS)})$",
        re.IGNORECASE,
    )


def photo_exists(photo_id):
    return db.session.get(Photo, photo_id) is not None


def admit_upload(album_id, declared_path, client_photo_id, uploader_id=None):
    """Gate a client upload before it may become a photo record.

    When `uploader_id` is given, the album must belong to that uploader.

    Raises:
        AdmissionError with reason missing_photo_id, unknown_album,
        not_album_owner, id_collision or invalid_path
    """
    if not client_photo_id:
        raise AdmissionError(
            AdmissionError.MISSING_PHOTO_ID, "Photo ID is required."
        )

    album = db.session.get(Album, album_id)
    if album is None:
        raise AdmissionError(AdmissionError.UNKNOWN_ALBUM, "Album not found.")
    if uploader_id is not None and album.photographer_id != uploader_id:
        logger.warning("Upload by %s into album %s they don't own", uploader_id, album_id)
        raise AdmissionError(
            AdmissionError.NOT_ALBUM_OWNER, "Album doesn't belong to you."
        )

    if photo_exists(client_photo_id):
        logger.warning("Photo ID collision on upload: %s", client_photo_id)
        raise AdmissionError(
            AdmissionError.ID_COLLISION, "Photo ID collision happened."
        )

    if not declared_path or not build_path_regex(album_id).fullmatch(declared_path):
        logger.info("Invalid upload path for album %s: %r", album_id, declared_path)
        raise AdmissionError(
            AdmissionError.INVALID_PATH, "Invalid pathname for current album."
        )


def register_upload(
    photo_id,
    url,
    uploader_id=None,
    album_id=None,
    size_bytes=None,
    original_name=None,
):
    """Create a NEW photo record for a finished upload."""
    if not photo_id:
        raise AdmissionError(
            AdmissionError.MISSING_PHOTO_ID, "Photo ID is required."
        )
    if not url:
        raise ValueError("url is required")
    if photo_exists(photo_id):
        raise AdmissionError(
            AdmissionError.ID_COLLISION, "Photo ID collision happened."
        )

    photo = Photo(
        id=photo_id,
        url=url,
        uploader_id=uploader_id,
        album_id=album_id,
        size_bytes=size_bytes,
        original_name=original_name,
        status="NEW",
        attempts=0,
        processing_at=None,
    )
    db.session.add(photo)
    db.session.commit()
    logger.info("Registered photo %s (album=%s)", photo_id, album_id)
    return photo


def attach_photos(album_id, photo_ids):
    """Move orphan photos into an album.

    Photos that already belong to an album are left alone. Sets the album
    cover to the oldest of the given photos when the album has none yet.
    Returns the number of photos attached.

    Raises:
        LookupError if the album does not exist
    """
    album = db.session.get(Album, album_id)
    if not album:
        raise LookupError(f"Album {album_id} not found")
    if not photo_ids:
        return 0

    attached = (
        Photo.query.filter(
            Photo.id.in_(photo_ids),
            Photo.album_id.is_(None),
            Photo.deleted_at.is_(None),
        )
        .update({Photo.album_id: album_id}, synchronize_session=False)
    )

    if album.cover_photo_url is None and attached:
        first = (
            Photo.query.filter(
                Photo.id.in_(photo_ids),
                Photo.album_id == album_id,
                Photo.url.isnot(None),
            )
            .order_by(Photo.created_at.asc())
            .first()
        )
        if first:
            album.cover_photo_url = first.url

    db.session.commit()
    logger.info("Attached %d photo(s) to album %s", attached, album_id)
    return attached


def delete_photo(photo_id):
    """Delete a photo on the photographer's request.

    Sold photos are only soft-deleted so buyers keep their downloads.
    Unsold photos are removed along with their blobs.

    Returns "soft", "hard", or None if the photo does not exist.
    """
    photo = db.session.get(Photo, photo_id)
    if not photo:
        return None

    album = photo.album
    if album and photo.url and album.cover_photo_url == photo.url:
        album.cover_photo_url = None

    sales = OrderItem.query.filter_by(photo_id=photo_id).count()
    if sales:
        photo.deleted_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info("Soft-deleted photo %s (%d sale(s))", photo_id, sales)
        return "soft"

    urls = [u for u in (photo.url, photo.url_watermark, photo.url_thumb) if u]
    db.session.delete(photo)
    db.session.commit()

    for url in urls:
        try:
            storage_service.delete_url(url)
        except Exception:
            logger.warning("Blob delete failed for %s", url, exc_info=True)

    logger.info("Deleted photo %s", photo_id)
    return "hard"


def status_counts():
    """Photo counts by status, plus the number currently leased."""
    rows = (
        db.session.query(Photo.status, db.func.count(Photo.id))
        .group_by(Photo.status)
        .all()
    )
    counts = {status: 0 for status in sorted(Photo.STATUSES)}
    counts.update(dict(rows))
    counts["in_flight"] = Photo.query.filter(Photo.processing_at.isnot(None)).count()
    return counts
