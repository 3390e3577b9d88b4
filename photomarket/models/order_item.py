from datetime import datetime, timezone
from photomarket.extensions import db


class OrderItem(db.Model):
    """One sold photo. Checkout owns the rest of the order."""

    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), nullable=False, index=True)
    photo_id = db.Column(
        db.String(64),
        db.ForeignKey("photos.id"),
        nullable=False,
        index=True,
    )
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<OrderItem {self.order_id}/{self.photo_id}>"
