"""Upload association endpoints used by the album editor.

Authentication is handled in front of this service.
"""
import logging
from flask import request
from photomarket import extensions
from photomarket.blueprints.api import api_bp
from photomarket.services import photo_service
from photomarket.services.photo_service import AdmissionError
from photomarket.workers import photo_processing

logger = logging.getLogger(__name__)


def _json_body():
    return request.get_json(silent=True) or {}


_ADMISSION_STATUS = {
    AdmissionError.UNKNOWN_ALBUM: 404,
    AdmissionError.NOT_ALBUM_OWNER: 403,
}


@api_bp.route("/albums/<album_id>/upload", methods=["POST"])
def admit_upload(album_id):
    """Validate a client upload before a storage token is issued."""
    body = _json_body()
    try:
        photo_service.admit_upload(
            album_id,
            declared_path=body.get("pathname", ""),
            client_photo_id=body.get("photoId", ""),
            uploader_id=body.get("uploaderId"),
        )
    except AdmissionError as e:
        status = _ADMISSION_STATUS.get(e.reason, 400)
        return {"error": str(e), "reason": e.reason}, status
    return {"ok": True}, 200


@api_bp.route("/photos", methods=["POST"])
def register_photo():
    """Record a finished upload as a NEW (orphan) photo."""
    body = _json_body()
    try:
        photo = photo_service.register_upload(
            photo_id=body.get("id", ""),
            url=body.get("url", ""),
            uploader_id=body.get("uploaderId"),
            size_bytes=body.get("sizeBytes"),
            original_name=body.get("originalName"),
        )
    except AdmissionError as e:
        return {"error": str(e), "reason": e.reason}, 400
    except ValueError as e:
        return {"error": str(e)}, 400

    return {
        "id": photo.id,
        "url": photo.url,
        "originalName": photo.original_name,
        "sizeBytes": photo.size_bytes,
        "status": photo.status,
    }, 201


@api_bp.route("/albums/<album_id>/photos", methods=["POST"])
def attach_photos(album_id):
    """Attach orphan photos to an album and kick processing early."""
    photo_ids = _json_body().get("photoIds") or []
    if not isinstance(photo_ids, list):
        return {"error": "photoIds must be a list"}, 400

    try:
        attached = photo_service.attach_photos(album_id, photo_ids)
    except LookupError:
        return {"error": "Album not found"}, 404

    if attached:
        try:
            extensions.task_queue.enqueue(
                photo_processing.run_processing_batch, job_timeout=600
            )
        except Exception:
            # The cron trigger picks the photos up anyway
            logger.exception("Failed to enqueue out-of-band processing")

    return {"attached": attached}, 200


@api_bp.route("/photos/<photo_id>", methods=["DELETE"])
def delete_photo(photo_id):
    mode = photo_service.delete_photo(photo_id)
    if mode is None:
        return {"error": "Not found"}, 404
    return {"ok": True, "mode": mode}, 200


@api_bp.route("/photos/<photo_id>/process", methods=["POST"])
def process_photo(photo_id):
    """Process one photo immediately instead of waiting for the cron."""
    if not photo_service.photo_exists(photo_id):
        return {"error": "Not found"}, 404

    status = photo_processing.process_photo(photo_id)
    if status is None:
        return {"error": "Photo is not claimable right now"}, 409
    return {"ok": status == "DONE", "status": status}, 200
