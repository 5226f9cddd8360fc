# backend/routes/dashboard.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func

from config import settings
from database import get_db
from utils.tokenJWT import get_current_user
from models.users import User
from models.article import Article
from models.product import Product
from models.order import Order, OrderProduct
from services.stock_status import low_stock_articles
from routes.articles import article_to_out
from routes.orders import order_to_out
from schemas.dashboard import DashboardSummary

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardSummary)
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    # Value of all orders, summed over the frozen line totals
    total_orders_value = db.query(func.coalesce(func.sum(OrderProduct.total_price), 0)).scalar()

    recent_orders = (
        db.query(Order)
        .options(joinedload(Order.products).joinedload(OrderProduct.product))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(settings.RECENT_ORDERS_LIMIT)
        .all()
    )

    return DashboardSummary(
        total_articles=db.query(Article).count(),
        total_products=db.query(Product).count(),
        total_orders=db.query(Order).count(),
        total_orders_value=int(total_orders_value or 0),
        low_stock_articles=[article_to_out(a) for a in low_stock_articles(db)],
        recent_orders=[order_to_out(o) for o in recent_orders],
    )
