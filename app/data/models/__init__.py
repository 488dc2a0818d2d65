#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel

__all__ = ["OrderModel", "OrderItemModel"]
