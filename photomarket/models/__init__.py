from photomarket.models.album import Album
from photomarket.models.photo import Photo
from photomarket.models.order_item import OrderItem

__all__ = ["Album", "Photo", "OrderItem"]
