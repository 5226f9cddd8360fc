import pytest
from sqlalchemy.exc import OperationalError

import services.orders as orders
from models.order import Order, OrderProduct, OrderStatus
from services.errors import NotFoundError, PersistenceError, ValidationError
from services.orders import OrderLine, on_order_created, on_order_deleted, on_order_status_changed


@pytest.fixture
def kit(make_article, make_product):
    """Article X with 10 units, product P needs 2 X and costs 500."""
    x = make_article(quantity=10, threshold=2, code="X")
    p = make_product([(x, 2)], price=500, code="P")
    return x, p


def test_create_consumes_stock_and_freezes_price(db_session, kit, stock):
    x, p = kit

    result = on_order_created(db_session, "ORD-1", [OrderLine(p.id, 3)], notes="rush", created_by=None)

    order = result.order
    assert order.status == OrderStatus.PENDING.value
    assert order.notes == "rush"
    assert stock(x.id) == 4
    [line] = db_session.query(OrderProduct).filter_by(order_id=order.id).all()
    assert (line.quantity, line.price, line.total_price) == (3, 500, 1500)

    p.price = 600
    db_session.commit()
    db_session.refresh(line)
    assert line.total_price == 1500


def test_create_with_overdraw_pins_stock_at_zero(db_session, kit, stock):
    x, p = kit

    result = on_order_created(db_session, "ORD-BIG", [(p.id, 6)])

    assert stock(x.id) == 0
    assert [o.article_id for o in result.effect.clamped] == [x.id]


def test_delete_pending_order_restores_stock(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 3)]).order

    result = on_order_deleted(db_session, order.id)

    assert result.order is None
    assert stock(x.id) == 10
    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderProduct).count() == 0


def test_cancel_restores_stock_once(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 3)]).order

    first = on_order_status_changed(db_session, order.id, "cancelled")
    assert first.order.status == "cancelled"
    assert first.effect is not None
    assert stock(x.id) == 10

    second = on_order_status_changed(db_session, order.id, OrderStatus.CANCELLED)
    assert second.effect is None
    assert stock(x.id) == 10


def test_complete_leaves_stock_alone(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 3)]).order

    result = on_order_status_changed(db_session, order.id, "completed")

    assert result.order.status == "completed"
    assert result.effect is None
    assert stock(x.id) == 4


def test_cancel_completed_order_restores(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 3)]).order
    on_order_status_changed(db_session, order.id, "completed")

    on_order_status_changed(db_session, order.id, "cancelled")

    assert stock(x.id) == 10


def test_deleting_cancelled_order_credits_again(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 3)]).order
    on_order_status_changed(db_session, order.id, "cancelled")

    on_order_deleted(db_session, order.id)

    assert stock(x.id) == 16


def test_edit_fields_without_status(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 1)]).order

    result = on_order_status_changed(db_session, order.id, notes="call before delivery", code="ORD-1A")

    assert result.order.code == "ORD-1A"
    assert result.order.notes == "call before delivery"
    assert result.order.status == "pending"
    assert stock(x.id) == 8


def test_edit_rejects_unknown_fields(db_session, kit):
    _, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 1)]).order
    with pytest.raises(ValidationError):
        on_order_status_changed(db_session, order.id, created_by=5)


def test_invalid_status(db_session, kit, stock):
    x, p = kit
    order = on_order_created(db_session, "ORD-1", [(p.id, 1)]).order

    with pytest.raises(ValidationError) as exc:
        on_order_status_changed(db_session, order.id, "shipped")

    assert exc.value.field == "status"
    db_session.expire_all()
    assert db_session.get(Order, order.id).status == "pending"


def test_unknown_order(db_session):
    with pytest.raises(NotFoundError):
        on_order_status_changed(db_session, 404, "cancelled")
    with pytest.raises(NotFoundError):
        on_order_deleted(db_session, 404)


def test_create_with_missing_product_persists_nothing(db_session, kit, stock):
    x, p = kit

    with pytest.raises(NotFoundError):
        on_order_created(db_session, "ORD-1", [(p.id, 1), (999, 1)])

    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderProduct).count() == 0
    assert stock(x.id) == 10


def test_create_rejects_quantity_below_one(db_session, kit):
    _, p = kit
    with pytest.raises(ValidationError):
        on_order_created(db_session, "ORD-1", [(p.id, 0)])
    assert db_session.query(Order).count() == 0


def test_inventory_failure_rolls_back_order(db_session, kit, stock, monkeypatch):
    x, p = kit

    def broken_effect(*args, **kwargs):
        raise OperationalError("UPDATE articles", {}, Exception("disk I/O error"))

    monkeypatch.setattr(orders, "apply_order_effect", broken_effect)

    with pytest.raises(PersistenceError):
        on_order_created(db_session, "ORD-1", [(p.id, 3)])

    assert db_session.query(Order).count() == 0
    assert stock(x.id) == 10


def test_order_without_lines(db_session, kit, stock):
    x, _ = kit
    result = on_order_created(db_session, "ORD-EMPTY", [])
    assert result.effect.outcomes == []
    assert stock(x.id) == 10
