from datetime import datetime, timezone
from photomarket.extensions import db


class Album(db.Model):
    __tablename__ = "albums"

    id = db.Column(db.String(64), primary_key=True)
    photographer_id = db.Column(db.String(64), nullable=False, index=True)
    album_name = db.Column(db.String(255), nullable=False)
    price_per_photo_cents = db.Column(db.Integer, nullable=False, default=0)
    cover_photo_url = db.Column(db.String(1024))
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Deleting an album orphans its photos; the pruner sweeps them later
    photos = db.relationship("Photo", backref="album", lazy="dynamic")

    def __repr__(self):
        return f"<Album {self.id}: {self.album_name}>"
