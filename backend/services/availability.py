# backend/services/availability.py
import enum
from typing import Iterable, Optional

from models.product import Product, ProductArticle
from services.stock_status import StockStatus, classify_article


class ProductAvailability(str, enum.Enum):
    AVAILABLE = "available"
    LIMITED = "limited"
    UNAVAILABLE = "unavailable"


def classify_product(product: Product, compositions: Optional[Iterable[ProductArticle]] = None) -> ProductAvailability:
    """
    Availability of a product follows its worst component.

    - no compositions: available
    - any article out, or holding less than the required quantity: unavailable
    - otherwise any article low or critical: limited
    - otherwise: available

    ``compositions`` defaults to ``product.articles``; rows whose article
    no longer resolves are ignored.
    """
    if compositions is None:
        compositions = product.articles

    limited = False
    for composition in compositions:
        article = composition.article
        if article is None:
            continue

        status = classify_article(article)
        if status == StockStatus.OUT or article.quantity < composition.quantity:
            return ProductAvailability.UNAVAILABLE
        if status in (StockStatus.CRITICAL, StockStatus.LOW):
            limited = True

    return ProductAvailability.LIMITED if limited else ProductAvailability.AVAILABLE
