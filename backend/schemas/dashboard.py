from pydantic import BaseModel
from typing import List

from schemas.article import ArticleOut
from schemas.order import OrderResponse


# Summary box shown on the dashboard page
class DashboardSummary(BaseModel):
    total_articles: int
    total_products: int
    total_orders: int
    total_orders_value: int  # cents, sum of all order line totals
    low_stock_articles: List[ArticleOut]
    recent_orders: List[OrderResponse]
