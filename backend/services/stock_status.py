# backend/services/stock_status.py
import enum
from typing import List

from sqlalchemy.orm import Session

from models.article import Article

# Share of the threshold at or below which stock is critical
CRITICAL_RATIO = 0.25


class StockStatus(str, enum.Enum):
    AVAILABLE = "available"
    LOW = "low"
    CRITICAL = "critical"
    OUT = "out"


# Statuses reported by the low stock query
LOW_STOCK_STATUSES = {StockStatus.LOW, StockStatus.CRITICAL, StockStatus.OUT}


def classify_quantity(quantity: int, threshold: int) -> StockStatus:
    # Order matters: out wins over critical, critical over low
    if quantity == 0:
        return StockStatus.OUT
    if quantity <= threshold * CRITICAL_RATIO:
        return StockStatus.CRITICAL
    if quantity <= threshold:
        return StockStatus.LOW
    return StockStatus.AVAILABLE


def classify_article(article: Article) -> StockStatus:
    """Derive the stock status of an article from its quantity and threshold."""
    return classify_quantity(article.quantity or 0, article.threshold or 0)


def low_stock_articles(db: Session) -> List[Article]:
    """All articles whose derived status is low, critical or out."""
    articles = db.query(Article).order_by(Article.quantity.asc(), Article.id.asc()).all()
    return [a for a in articles if classify_article(a) in LOW_STOCK_STATUSES]
