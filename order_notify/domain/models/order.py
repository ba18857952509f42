"""Order tables owned by the ordering backend. Read-only here."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from order_notify.infrastructure.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_number = Column(Integer, nullable=False, index=True)
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    table_number = Column(String(16), nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(32), nullable=False)
    payment_method = Column(String(32), nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    items = relationship("OrderItem", back_populates="order", lazy="selectin")

    def __repr__(self):
        return f"<Order #{self.order_number} - {self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    item_name = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
