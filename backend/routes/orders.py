# backend/routes/orders.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Response, Query, status
from sqlalchemy.orm import Session, joinedload
import logging

from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from models.users import User
from models.order import Order, OrderProduct, OrderStatus
from services.errors import PersistenceError
from services.orders import OrderLine, on_order_created, on_order_deleted, on_order_status_changed
from schemas.order import OrderCreate, OrderUpdate, OrderResponse, OrderLineOut

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)

# Check permissions for order handling (Admin or Operator roles)
def _can_edit(user: User) -> bool:
    return (user.role or "").lower() in {"admin", "operator"}

def _code_taken(db: Session, code: Optional[str], exclude_id: Optional[int] = None) -> bool:
    if code is None:
        return False
    query = db.query(Order).filter(Order.code == code)
    if exclude_id is not None:
        query = query.filter(Order.id != exclude_id)
    return query.first() is not None

def _order_query(db: Session):
    return db.query(Order).options(joinedload(Order.products).joinedload(OrderProduct.product))

def _get_order_or_404(db: Session, order_id: int) -> Order:
    order = _order_query(db).filter(Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order

# Map Order model to OrderResponse schema; line prices are the stored snapshot
def order_to_out(order: Order) -> OrderResponse:
    items: List[OrderLineOut] = []
    for it in order.products:
        items.append(OrderLineOut(
            id=it.id,
            product_id=it.product_id,
            product_code=it.product.code if it.product else None,
            product_name=it.product.name if it.product else "Deleted product",
            quantity=it.quantity,
            price=it.price,
            total_price=it.total_price,
        ))
    return OrderResponse(
        id=order.id,
        code=order.code,
        notes=order.notes,
        status=order.status,
        created_by=order.created_by,
        created_at=order.created_at,
        updated_at=order.updated_at,
        total_price=sum(i.total_price for i in items),
        products=items,
    )


@router.get("", response_model=List[OrderResponse])
def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    q: Optional[str] = Query(None, description="Search by order code"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = _order_query(db)
    if order_status:
        query = query.filter(Order.status == order_status.value)
    if q:
        query = query.filter(Order.code.ilike(f"%{q}%"))
    rows = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return [order_to_out(o) for o in rows]


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return order_to_out(_get_order_or_404(db, order_id))


# Create an order and consume the stock of every article its products need
@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to create orders")

    code = payload.code
    if _code_taken(db, code):
        raise HTTPException(status_code=409, detail="Order code already exists")

    try:
        result = on_order_created(
            db,
            code=code,
            lines=[OrderLine(p.product_id, p.quantity) for p in payload.products],
            notes=payload.notes,
            created_by=current_user.id,
        )
    except PersistenceError:
        # Lost the code to a concurrent insert
        if _code_taken(db, code):
            raise HTTPException(status_code=409, detail="Order code already exists")
        raise
    order_id = result.order.id
    if not result.effect.fully_applied:
        logger.warning("Order %s created with %d dangling references", code, len(result.effect.skipped))

    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders",
              ip=client_ip(request), meta=result.effect.to_meta())
    db.expire_all()
    return order_to_out(_get_order_or_404(db, order_id))


# Update order data; moving to "cancelled" returns the stock
@router.put("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to edit orders")

    order = _get_order_or_404(db, order_id)
    old_status = order.status
    changes = payload.model_dump(exclude_unset=True, exclude={"status"})

    if _code_taken(db, changes.get("code"), exclude_id=order_id):
        raise HTTPException(status_code=409, detail="Order code already exists")

    try:
        result = on_order_status_changed(db, order_id, payload.status, **changes)
    except PersistenceError:
        if _code_taken(db, changes.get("code"), exclude_id=order_id):
            raise HTTPException(status_code=409, detail="Order code already exists")
        raise

    meta = {"order_id": order_id, "old": old_status, "new": result.order.status}
    if result.effect is not None:
        meta["inventory"] = result.effect.to_meta()
    write_log(db, user_id=current_user.id, action="ORDER_UPDATE", resource="orders",
              ip=client_ip(request), meta=meta)
    db.expire_all()
    return order_to_out(_get_order_or_404(db, order_id))


# Delete an order; its stock is always given back first
@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to delete orders")

    order = _get_order_or_404(db, order_id)
    old_status = order.status
    result = on_order_deleted(db, order_id)

    write_log(db, user_id=current_user.id, action="ORDER_DELETE", resource="orders",
              ip=client_ip(request), meta={"status": old_status, **result.effect.to_meta()})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
