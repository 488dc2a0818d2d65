from sqlalchemy import Column, Integer, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from app.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)

    #snapshot z momentu checkoutu, nie odświeżany z katalogu
    product_id = Column(String(128), nullable=False)
    product_name = Column(String(255), nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    size = Column(String(16), nullable=True)
    image = Column(String(512), nullable=True)

    order = relationship("OrderModel", back_populates="items")
