import pytest
from sqlalchemy.exc import OperationalError

import services.inventory as inventory
from models.order import Order, OrderProduct
from models.product import ProductArticle
from services.composition import link_product_to_order
from services.errors import NotFoundError, PersistenceError, ValidationError
from services.inventory import EffectDirection, OutcomeKind, apply_order_effect


@pytest.fixture
def make_order(db_session):
    """make_order([(product, qty), ...]) -> order with lines, stock untouched."""
    counter = {"n": 0}

    def _make(lines=(), session=None):
        counter["n"] += 1
        db = session or db_session
        order = Order(code=f"ORD-{counter['n']:03d}")
        db.add(order)
        db.commit()
        for product, quantity in lines:
            link_product_to_order(db, order.id, product.id, quantity, product.price)
        return order

    return _make


def test_consume_then_restore(db_session, make_article, make_product, make_order, stock):
    a = make_article(quantity=100)
    b = make_article(quantity=50)
    product = make_product([(a, 2), (b, 5)])
    order = make_order([(product, 3)])

    result = apply_order_effect(db_session, order.id, EffectDirection.CONSUME)

    assert stock(a.id) == 94
    assert stock(b.id) == 35
    assert result.fully_applied
    assert [(o.article_id, o.delta, o.quantity_before, o.quantity_after) for o in result.applied] == [
        (a.id, 6, 100, 94),
        (b.id, 15, 50, 35),
    ]

    apply_order_effect(db_session, order.id, "restore")

    assert stock(a.id) == 100
    assert stock(b.id) == 50


def test_consume_clamps_at_zero(db_session, make_article, make_product, make_order, stock):
    a = make_article(quantity=5)
    product = make_product([(a, 2)])
    order = make_order([(product, 4)])

    result = apply_order_effect(db_session, order.id, EffectDirection.CONSUME)

    assert stock(a.id) == 0
    [outcome] = result.clamped
    assert outcome.quantity_before == 5
    assert outcome.delta == 8
    assert outcome.quantity_after == 0
    assert result.to_meta()["clamped_articles"] == [a.id]

    # The deficit is lost: restore credits the full amount
    restored = apply_order_effect(db_session, order.id, EffectDirection.RESTORE)
    assert stock(a.id) == 8
    assert restored.clamped == []


def test_article_shared_by_two_lines_moves_twice(db_session, make_article, make_product, make_order, stock):
    a = make_article(quantity=100)
    first = make_product([(a, 2)])
    second = make_product([(a, 3)])
    order = make_order([(first, 1), (second, 2), (first, 4)])

    result = apply_order_effect(db_session, order.id, EffectDirection.CONSUME)

    assert stock(a.id) == 100 - 2 - 6 - 8
    assert len(result.applied) == 3


def test_order_without_lines_is_a_no_op(db_session, make_article, make_order, stock):
    a = make_article(quantity=10)
    order = make_order()

    result = apply_order_effect(db_session, order.id, EffectDirection.CONSUME)

    assert result.outcomes == []
    assert stock(a.id) == 10


def test_product_without_articles_changes_nothing(db_session, make_article, make_product, make_order, stock):
    a = make_article(quantity=10)
    order = make_order([(make_product(), 5)])

    result = apply_order_effect(db_session, order.id, EffectDirection.CONSUME)

    assert result.outcomes == []
    assert stock(a.id) == 10


def test_missing_product_is_skipped(loose_db_session, make_article, make_product, stock):
    db = loose_db_session
    a = make_article(quantity=10, session=db)
    product = make_product([(a, 1)], session=db)
    order = Order(code="ORD-DANGLING")
    db.add(order)
    db.flush()
    db.add_all([
        OrderProduct(order_id=order.id, product_id=999, quantity=2, price=0, total_price=0),
        OrderProduct(order_id=order.id, product_id=product.id, quantity=3, price=0, total_price=0),
    ])
    db.commit()

    result = apply_order_effect(db, order.id, EffectDirection.CONSUME)

    assert stock(a.id, session=db) == 7
    assert not result.fully_applied
    [skipped] = result.skipped
    assert skipped.kind == OutcomeKind.SKIPPED_MISSING_REFERENCE
    assert skipped.product_id == 999
    assert skipped.article_id is None


def test_missing_article_is_skipped(loose_db_session, make_article, make_product, stock):
    db = loose_db_session
    a = make_article(quantity=10, session=db)
    product = make_product([(a, 1)], session=db)
    db.add(ProductArticle(product_id=product.id, article_id=999, quantity=4))
    order = Order(code="ORD-DANGLING")
    db.add(order)
    db.flush()
    db.add(OrderProduct(order_id=order.id, product_id=product.id, quantity=2, price=0, total_price=0))
    db.commit()

    result = apply_order_effect(db, order.id, EffectDirection.CONSUME)

    assert stock(a.id, session=db) == 8
    [skipped] = result.skipped
    assert skipped.article_id == 999
    assert skipped.delta == 8
    assert result.to_meta()["skipped"] == [
        {"line_id": skipped.line_id, "product_id": product.id, "article_id": 999},
    ]


def test_failure_mid_pass_rolls_everything_back(db_session, make_article, make_product, make_order, stock, monkeypatch):
    a = make_article(quantity=100)
    b = make_article(quantity=100)
    product = make_product([(a, 1), (b, 1)])
    order = make_order([(product, 10)])

    original = inventory._adjust_article
    calls = {"n": 0}

    def failing_adjust(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("UPDATE articles", {}, Exception("database is locked"))
        return original(*args, **kwargs)

    monkeypatch.setattr(inventory, "_adjust_article", failing_adjust)

    with pytest.raises(PersistenceError):
        apply_order_effect(db_session, order.id, EffectDirection.CONSUME)

    assert stock(a.id) == 100
    assert stock(b.id) == 100


def test_unknown_direction(db_session, make_order):
    order = make_order()
    with pytest.raises(ValidationError):
        apply_order_effect(db_session, order.id, "sideways")


def test_missing_order(db_session):
    with pytest.raises(NotFoundError):
        apply_order_effect(db_session, 12345, EffectDirection.RESTORE)
