# backend/models/order.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Order lifecycle states; cancelled and completed are terminal for inventory purposes
class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    notes = Column(String, nullable=True)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    products = relationship(
        "OrderProduct", back_populates="order",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="OrderProduct.id",
    )
    creator = relationship("User")

# A single order line. Price fields are a snapshot taken when the order was placed
# and must not follow later changes of Product.price.
class OrderProduct(Base):
    __tablename__ = "order_products"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity >= 1", name="ck_order_products_quantity_positive"), nullable=False, default=1)
    price = Column(Integer, nullable=False, default=0) # Unit price snapshot (cents)
    total_price = Column(Integer, nullable=False, default=0) # price * quantity at creation time

    order = relationship("Order", back_populates="products")
    product = relationship("Product")
