import io
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image as PILImage

from photomarket import create_app
from photomarket.extensions import db as _db
from photomarket.models.album import Album
from photomarket.models.photo import Photo
from photomarket.services import image_service, storage_service


@pytest.fixture
def app():
    """Create application for testing with a fresh in-memory database."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def cron_headers(app):
    return {"Authorization": f"Bearer {app.config['CRON_SECRET']}"}


@pytest.fixture
def album(db):
    a = Album(id="A1", photographer_id="u1", album_name="Beach Day", price_per_photo_cents=1500)
    db.session.add(a)
    db.session.commit()
    return a


@pytest.fixture
def make_photo(db):
    """Factory: make_photo("p1", album_id="A1", age=timedelta(minutes=5), ...)."""
    counter = {"n": 0}

    def _make(photo_id, album_id=None, age=None, **fields):
        counter["n"] += 1
        # Strictly increasing creation times keep FIFO order deterministic
        created = datetime.now(timezone.utc) - (age or timedelta(hours=1)) + timedelta(
            microseconds=counter["n"]
        )
        fields.setdefault("url", f"https://cdn.test/albums/{album_id or 'none'}/raw/{photo_id}.jpg")
        photo = Photo(id=photo_id, album_id=album_id, created_at=created, **fields)
        db.session.add(photo)
        db.session.commit()
        return photo

    return _make


@pytest.fixture
def jpeg_bytes():
    img = PILImage.new("RGB", (2400, 1600), (30, 120, 200))
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


class FakeBlobStore:
    """Records calls to storage_service; failures are switched on per URL."""

    def __init__(self):
        self.fetched = []
        self.stored = []
        self.deleted = []
        self.fetch_errors = set()
        self.delete_errors = set()
        self.fail_uploads = False

    def fetch(self, url, timeout=None):
        self.fetched.append(url)
        if url in self.fetch_errors:
            raise RuntimeError(f"404 fetching {url}")
        return b"original-bytes"

    def put_image(self, data, prefix=""):
        if self.fail_uploads:
            raise RuntimeError("upload failed")
        url = f"https://cdn.test/{prefix}{uuid.uuid4().hex}.jpg"
        self.stored.append((url, data))
        return url

    def delete_url(self, url):
        if url in self.delete_errors:
            raise RuntimeError(f"delete failed for {url}")
        self.deleted.append(url)


@pytest.fixture
def blob_store(monkeypatch):
    fake = FakeBlobStore()
    monkeypatch.setattr(storage_service, "fetch", fake.fetch)
    monkeypatch.setattr(storage_service, "put_image", fake.put_image)
    monkeypatch.setattr(storage_service, "delete_url", fake.delete_url)
    return fake


@pytest.fixture
def fake_transforms(monkeypatch):
    monkeypatch.setattr(
        image_service, "make_watermark", lambda data, text="SAMPLE": b"wm:" + data
    )
    monkeypatch.setattr(image_service, "make_thumb", lambda data: b"th:" + data)
