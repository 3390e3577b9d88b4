from datetime import datetime, timezone
from photomarket.extensions import db


class Photo(db.Model):
    __tablename__ = "photos"

    # Client-chosen before upload so association is idempotent
    id = db.Column(db.String(64), primary_key=True)
    uploader_id = db.Column(db.String(64), index=True)
    album_id = db.Column(
        db.String(64),
        db.ForeignKey("albums.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    url = db.Column(db.String(1024))
    url_watermark = db.Column(db.String(1024))
    url_thumb = db.Column(db.String(1024))
    size_bytes = db.Column(db.Integer)
    original_name = db.Column(db.String(255))
    status = db.Column(db.String(20), nullable=False, default="NEW")
    # Lease: non-null while a worker holds the claim
    processing_at = db.Column(db.DateTime(timezone=True))
    attempts = db.Column(db.Integer, nullable=False, default=0)
    deleted_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    order_items = db.relationship("OrderItem", backref="photo", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_photos_status_created_at", "status", "created_at"),
    )

    STATUSES = {"NEW", "DONE", "FAILED"}

    @property
    def is_processing(self):
        return self.status == "NEW"

    @property
    def processing_failed(self):
        return self.status == "FAILED"

    @property
    def is_sellable(self):
        """Only processed, non-deleted photos are shown to buyers."""
        return (
            self.status == "DONE"
            and self.deleted_at is None
            and self.url_watermark is not None
            and self.url_thumb is not None
        )

    def __repr__(self):
        return f"<Photo {self.id} [{self.status}] attempts={self.attempts}>"
