# backend/models/article.py
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Represents a raw stock unit kept in the warehouse.
# The stock status (available/low/critical/out) is never stored,
# it is derived from quantity and threshold on every read.
class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=False)

    # Current stock and reorder point
    quantity = Column(Integer, CheckConstraint("quantity >= 0", name="ck_articles_quantity_nonneg"), nullable=False, default=0)
    threshold = Column(Integer, CheckConstraint("threshold >= 0", name="ck_articles_threshold_nonneg"), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Composition rows are removed by the database when the article goes away
    compositions = relationship(
        "ProductArticle", back_populates="article",
        cascade="all, delete-orphan", passive_deletes=True,
    )
