"""Tests for upload admission, association and deletion."""
from datetime import timedelta

import pytest

from photomarket.models.album import Album
from photomarket.models.order_item import OrderItem
from photomarket.models.photo import Photo
from photomarket.services import photo_service
from photomarket.services.photo_service import AdmissionError

NANOID = "V1StGXR8_Z5jdHi6B-myT"  # 21 chars


@pytest.mark.parametrize(
    "path",
    [
        f"albums/A1/raw/{NANOID}/photo.jpg",
        f"albums/A1/raw/{NANOID}/IMG 0042.JPEG",
        f"albums/A1/raw/{NANOID}/beach_day-1.png",
        f"albums/A1/raw/{NANOID}/x.webp",
    ],
)
def test_admission_accepts_expected_shape(db, album, path):
    photo_service.admit_upload("A1", path, "new-photo-id")


@pytest.mark.parametrize(
    "path",
    [
        "albums/A1/raw/x/evil.exe",
        f"albums/A1/raw/{NANOID}/evil.exe",
        f"albums/A2/raw/{NANOID}/photo.jpg",
        f"albums/A1/raw/{NANOID[:-1]}/photo.jpg",
        f"albums/A1/raw/{NANOID}/.hidden.jpg",
        f"albums/A1/raw/{NANOID}/../photo.jpg",
        f"albums/A1/raw/{NANOID}/photo.jpg\n",
        f"/albums/A1/raw/{NANOID}/photo.jpg",
        "",
    ],
)
def test_admission_rejects_bad_paths(db, album, path):
    with pytest.raises(AdmissionError) as exc:
        photo_service.admit_upload("A1", path, "new-photo-id")
    assert exc.value.reason == AdmissionError.INVALID_PATH


def test_admission_escapes_album_id(db):
    db.session.add(Album(id="A.1", photographer_id="u1", album_name="Dots"))
    db.session.commit()

    with pytest.raises(AdmissionError):
        photo_service.admit_upload("A.1", f"albums/AX1/raw/{NANOID}/photo.jpg", "pid")
    photo_service.admit_upload("A.1", f"albums/A.1/raw/{NANOID}/photo.jpg", "pid")


def test_admission_rejects_unknown_album_before_path_check(db):
    with pytest.raises(AdmissionError) as exc:
        photo_service.admit_upload("A1", "albums/A1/raw/x/evil.exe", "pid")
    assert exc.value.reason == AdmissionError.UNKNOWN_ALBUM


def test_admission_rejects_foreign_album(db, album):
    path = f"albums/A1/raw/{NANOID}/photo.jpg"

    with pytest.raises(AdmissionError) as exc:
        photo_service.admit_upload("A1", path, "pid", uploader_id="someone-else")
    assert exc.value.reason == AdmissionError.NOT_ALBUM_OWNER

    photo_service.admit_upload("A1", path, "pid", uploader_id="u1")


def test_admission_rejects_id_collision(db, album, make_photo):
    make_photo("taken")

    with pytest.raises(AdmissionError) as exc:
        photo_service.admit_upload("A1", f"albums/A1/raw/{NANOID}/photo.jpg", "taken")
    assert exc.value.reason == AdmissionError.ID_COLLISION


def test_admission_requires_photo_id(db):
    with pytest.raises(AdmissionError) as exc:
        photo_service.admit_upload("A1", f"albums/A1/raw/{NANOID}/photo.jpg", "")
    assert exc.value.reason == AdmissionError.MISSING_PHOTO_ID


def test_register_upload_creates_new_orphan(db):
    photo = photo_service.register_upload(
        "p1", "https://cdn.test/albums/A1/raw/p1.jpg", size_bytes=1234, original_name="p1.jpg"
    )

    assert photo.status == "NEW"
    assert photo.attempts == 0
    assert photo.processing_at is None
    assert photo.album_id is None
    assert photo.is_processing
    assert not photo.is_sellable


def test_register_upload_twice_is_rejected(db):
    photo_service.register_upload("p1", "https://cdn.test/a.jpg")

    with pytest.raises(AdmissionError) as exc:
        photo_service.register_upload("p1", "https://cdn.test/b.jpg")
    assert exc.value.reason == AdmissionError.ID_COLLISION
    assert db.session.get(Photo, "p1").url == "https://cdn.test/a.jpg"


def test_attach_photos_sets_album_and_cover(db, album, make_photo):
    make_photo("p1", age=timedelta(hours=1))
    oldest = make_photo("p0", age=timedelta(days=3))
    oldest_url = oldest.url

    attached = photo_service.attach_photos("A1", ["p1", "p0", "missing"])

    assert attached == 2
    assert db.session.get(Photo, "p1").album_id == "A1"
    assert db.session.get(Photo, "p0").album_id == "A1"
    assert db.session.get(Album, "A1").cover_photo_url == oldest_url


def test_attach_keeps_existing_cover(db, album, make_photo):
    album.cover_photo_url = "https://cdn.test/cover.jpg"
    db.session.commit()
    make_photo("p1")

    photo_service.attach_photos("A1", ["p1"])

    assert db.session.get(Album, "A1").cover_photo_url == "https://cdn.test/cover.jpg"


def test_attach_leaves_photos_of_other_albums_alone(db, album, make_photo):
    db.session.add(Album(id="A2", photographer_id="u1", album_name="Other"))
    db.session.commit()
    make_photo("theirs", album_id="A2")
    make_photo("loose")

    attached = photo_service.attach_photos("A1", ["theirs", "loose"])

    assert attached == 1
    assert db.session.get(Photo, "theirs").album_id == "A2"
    assert db.session.get(Photo, "loose").album_id == "A1"
    assert db.session.get(Album, "A1").cover_photo_url == db.session.get(Photo, "loose").url


def test_attach_only_foreign_photos_attaches_nothing(db, album, make_photo):
    db.session.add(Album(id="A2", photographer_id="u1", album_name="Other"))
    db.session.commit()
    make_photo("theirs", album_id="A2")

    assert photo_service.attach_photos("A1", ["theirs"]) == 0
    assert db.session.get(Album, "A1").cover_photo_url is None


def test_attach_to_unknown_album(db, make_photo):
    make_photo("p1")
    with pytest.raises(LookupError):
        photo_service.attach_photos("nope", ["p1"])


def test_delete_unsold_photo_removes_row_and_blobs(db, album, make_photo, blob_store):
    photo = make_photo(
        "p1",
        album_id="A1",
        status="DONE",
        url_watermark="https://cdn.test/w.jpg",
        url_thumb="https://cdn.test/t.jpg",
    )
    original_url = photo.url
    album.cover_photo_url = original_url
    db.session.commit()

    assert photo_service.delete_photo("p1") == "hard"

    assert db.session.get(Photo, "p1") is None
    assert db.session.get(Album, "A1").cover_photo_url is None
    assert sorted(blob_store.deleted) == sorted(
        [original_url, "https://cdn.test/w.jpg", "https://cdn.test/t.jpg"]
    )


def test_delete_sold_photo_is_soft(db, album, make_photo, blob_store):
    make_photo("p1", album_id="A1", status="DONE", url_watermark="w", url_thumb="t")
    db.session.add(OrderItem(order_id="o1", photo_id="p1", price_cents=1500))
    db.session.commit()

    assert photo_service.delete_photo("p1") == "soft"

    photo = db.session.get(Photo, "p1")
    assert photo.deleted_at is not None
    assert not photo.is_sellable
    assert blob_store.deleted == []


def test_delete_missing_photo(db):
    assert photo_service.delete_photo("nope") is None


def test_blob_cleanup_failure_does_not_fail_delete(db, make_photo, blob_store):
    photo = make_photo("p1")
    blob_store.delete_errors.add(photo.url)

    assert photo_service.delete_photo("p1") == "hard"
    assert db.session.get(Photo, "p1") is None


def test_status_counts(db, album, make_photo):
    make_photo("a", album_id="A1")
    make_photo("b", album_id="A1", status="FAILED", attempts=3)
    make_photo("c", album_id="A1", status="DONE", url_watermark="w", url_thumb="t")
    make_photo("d", album_id="A1")

    counts = photo_service.status_counts()

    assert counts == {"DONE": 1, "FAILED": 1, "NEW": 2, "in_flight": 0}
