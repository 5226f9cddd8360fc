# backend/services/orders.py
"""
Order lifecycle: keeps stock in step with order creation, cancellation and deletion.

    pending --cancel--> cancelled
    pending --complete--> completed
    any --delete--> removed

Each call below is a single transaction; on any error nothing is committed.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from models.order import Order, OrderStatus
from models.product import Product
from services.composition import link_product_to_order, remove_all_for_order
from services.errors import NotFoundError, ValidationError
from services.inventory import EffectDirection, InventoryEffectResult, apply_order_effect
from services.transaction import atomic

logger = logging.getLogger(__name__)

# Order fields that may be edited next to the status
EDITABLE_FIELDS = {"code", "notes"}


class OrderLine(NamedTuple):
    product_id: int
    quantity: int


@dataclass
class LifecycleResult:
    order: Optional[Order]
    effect: Optional[InventoryEffectResult] = None


def _parse_status(status) -> OrderStatus:
    try:
        return OrderStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid order status '{status}', expected one of: {allowed}", field="status")


def _lock_order(db: Session, order_id: int) -> Order:
    """
    Take the order row for the rest of the transaction and re-read it.

    The row is written before it is read: SQLite ignores FOR UPDATE, and the
    write lock is what makes a concurrent cancel or delete wait and then see
    the committed status (or no row at all).
    """
    touched = db.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(updated_at=func.now())
        .execution_options(synchronize_session=False)
    ).rowcount
    if not touched:
        raise NotFoundError("Order", order_id)

    return (
        db.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def on_order_created(
    db: Session,
    code: str,
    lines: Iterable[OrderLine],
    notes: Optional[str] = None,
    created_by: Optional[int] = None,
) -> LifecycleResult:
    """Persist a pending order with its lines and consume the stock it needs."""
    lines = [OrderLine(*line) for line in lines]
    for line in lines:
        if line.quantity is None or line.quantity < 1:
            raise ValidationError(f"Order quantity must be at least 1, got {line.quantity}", field="quantity")

    with atomic(db):
        order = Order(code=code, notes=notes, status=OrderStatus.PENDING.value, created_by=created_by)
        db.add(order)
        db.flush()

        for line in lines:
            product = db.query(Product).filter(Product.id == line.product_id).first()
            if product is None:
                raise NotFoundError("Product", line.product_id)
            # Price snapshot: the current product price is frozen on the line
            link_product_to_order(db, order.id, product.id, line.quantity, product.price)

        effect = apply_order_effect(db, order.id, EffectDirection.CONSUME)

    db.refresh(order)
    logger.info("Order %s (%s) created with %d lines", order.id, order.code, len(lines))
    return LifecycleResult(order=order, effect=effect)


def on_order_status_changed(db: Session, order_id: int, new_status=None, **changes) -> LifecycleResult:
    """
    Apply a status change (and optional code/notes edits) to an order.

    Moving into ``cancelled`` gives the order's stock back, once: the order row
    is locked and the old status re-read inside the transaction, so a second
    cancellation finds ``cancelled`` and leaves inventory alone. Any other
    status change is stored without touching stock.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    status = _parse_status(new_status) if new_status is not None else None
    effect = None

    with atomic(db):
        order = _lock_order(db, order_id)
        old_status = order.status

        if status == OrderStatus.CANCELLED and old_status != OrderStatus.CANCELLED.value:
            effect = apply_order_effect(db, order_id, EffectDirection.RESTORE)

        if status is not None:
            order.status = status.value
        for key, value in changes.items():
            setattr(order, key, value)
        db.flush()

    db.refresh(order)
    if status is not None and status.value != old_status:
        logger.info("Order %s status %s -> %s", order_id, old_status, status.value)
    return LifecycleResult(order=order, effect=effect)


def on_order_deleted(db: Session, order_id: int) -> LifecycleResult:
    """
    Give the order's stock back, then delete its lines and the order.

    The restore runs whatever the status is, including ``cancelled``: such an
    order already returned its stock on cancellation and is credited again here.
    """
    with atomic(db):
        order = _lock_order(db, order_id)
        if order.status == OrderStatus.CANCELLED.value:
            logger.warning("Deleting cancelled order %s restores its stock a second time", order_id)

        effect = apply_order_effect(db, order_id, EffectDirection.RESTORE)

        removed = remove_all_for_order(db, order_id)
        db.delete(order)
        db.flush()

    logger.info("Order %s deleted (%d lines)", order_id, removed)
    return LifecycleResult(order=None, effect=effect)
