# backend/models/product.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Model Product
# A sellable bundle built from articles. Price is kept in minor currency
# units (cents). Availability is derived from the linked articles.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=False)

    price = Column(Integer, CheckConstraint("price >= 0", name="ck_products_price_nonneg"), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    articles = relationship(
        "ProductArticle", back_populates="product",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="ProductArticle.id",
    )


# Composition link: how many units of an article one unit of product consumes
class ProductArticle(Base):
    __tablename__ = "product_articles"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), index=True, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity >= 1", name="ck_product_articles_quantity_positive"), nullable=False, default=1)

    product = relationship("Product", back_populates="articles")
    article = relationship("Article", back_populates="compositions")
