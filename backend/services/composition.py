# backend/services/composition.py
"""
Bookkeeping for the two many-to-many links:

* product -> article (ProductArticle, required quantity per unit of product)
* order -> product   (OrderProduct, ordered quantity and frozen price)

Nothing in here touches Article.quantity; stock arithmetic belongs to
services.inventory only.
"""
import logging
from typing import Iterable, List, NamedTuple

from sqlalchemy.orm import Session, joinedload

from models.article import Article
from models.order import Order, OrderProduct
from models.product import Product, ProductArticle
from services.errors import NotFoundError, ValidationError
from services.transaction import atomic

logger = logging.getLogger(__name__)


class CompositionSpec(NamedTuple):
    article_id: int
    quantity: int


def _check_required_quantity(required_quantity: int) -> None:
    if required_quantity is None or required_quantity < 1:
        raise ValidationError(
            f"Required quantity must be at least 1, got {required_quantity}",
            field="quantity",
        )


def _get_or_404(db: Session, model, resource: str, resource_id: int, lock: bool = False):
    query = db.query(model).filter(model.id == resource_id)
    if lock:
        query = query.with_for_update()
    obj = query.first()
    if obj is None:
        raise NotFoundError(resource, resource_id)
    return obj


def link_article_to_product(db: Session, product_id: int, article_id: int, required_quantity: int) -> ProductArticle:
    _check_required_quantity(required_quantity)
    with atomic(db):
        _get_or_404(db, Product, "Product", product_id)
        _get_or_404(db, Article, "Article", article_id)

        link = ProductArticle(product_id=product_id, article_id=article_id, quantity=required_quantity)
        db.add(link)
        db.flush()
    return link


def link_product_to_order(db: Session, order_id: int, product_id: int, quantity: int, unit_price: int) -> OrderProduct:
    """Add an order line; total_price is computed here once and never recomputed."""
    if quantity is None or quantity < 1:
        raise ValidationError(f"Order quantity must be at least 1, got {quantity}", field="quantity")
    if unit_price is None or unit_price < 0:
        raise ValidationError(f"Unit price cannot be negative, got {unit_price}", field="price")

    with atomic(db):
        _get_or_404(db, Order, "Order", order_id)
        _get_or_404(db, Product, "Product", product_id)

        line = OrderProduct(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            price=unit_price,
            total_price=unit_price * quantity,
        )
        db.add(line)
        db.flush()
    return line


def replace_product_compositions(db: Session, product_id: int, new_list: Iterable[CompositionSpec]) -> List[ProductArticle]:
    """
    Swap the whole article list of a product in one transaction.
    Readers see either the old list or the new one, never a mix.
    """
    new_list = [CompositionSpec(*item) for item in new_list]
    for item in new_list:
        _check_required_quantity(item.quantity)

    with atomic(db):
        product = _get_or_404(db, Product, "Product", product_id, lock=True)

        removed = remove_all_for_product(db, product_id)
        links = [link_article_to_product(db, product_id, item.article_id, item.quantity) for item in new_list]

        db.expire(product, ["articles"])

    logger.info("Product %s compositions replaced: %d removed, %d added", product_id, removed, len(links))
    return links


def remove_all_for_product(db: Session, product_id: int) -> int:
    with atomic(db):
        removed = (
            db.query(ProductArticle)
            .filter(ProductArticle.product_id == product_id)
            .delete(synchronize_session="fetch")
        )
        product = db.get(Product, product_id)
        if product is not None:
            db.expire(product, ["articles"])
    return removed


def remove_all_for_order(db: Session, order_id: int) -> int:
    with atomic(db):
        removed = (
            db.query(OrderProduct)
            .filter(OrderProduct.order_id == order_id)
            .delete(synchronize_session="fetch")
        )
        order = db.get(Order, order_id)
        if order is not None:
            db.expire(order, ["products"])
    return removed


def get_product_compositions(db: Session, product_id: int) -> List[ProductArticle]:
    return (
        db.query(ProductArticle)
        .options(joinedload(ProductArticle.article))
        .filter(ProductArticle.product_id == product_id)
        .order_by(ProductArticle.id.asc())
        .all()
    )


def get_order_lines(db: Session, order_id: int) -> List[OrderProduct]:
    return (
        db.query(OrderProduct)
        .options(joinedload(OrderProduct.product))
        .filter(OrderProduct.order_id == order_id)
        .order_by(OrderProduct.id.asc())
        .all()
    )
