"""
Order completion credits stock exactly once per item, atomically by default
"""
from decimal import Decimal

import pytest
from sqlalchemy import update

from stockroom import db
from stockroom.business.errors import (
    InvalidStateTransition,
    NotAuthenticated,
    NotFound,
    PartialFulfillment,
)
from stockroom.business.inventory.stock.stock_manager import StockManager
from stockroom.business.ordering.fulfillment import OrderFulfillmentEngine, completion_note
from stockroom.data.inventory.product import Product
from stockroom.data.inventory.stock_transaction import StockTransaction
from stockroom.data.ordering.order import Order


def _stock(product):
    db.session.expire_all()
    return db.session.get(Product, product.id).current_stock


def _order(order_id):
    db.session.expire_all()
    return db.session.get(Order, order_id)


def _order_transactions(order_id):
    return StockTransaction.query.filter_by(order_id=order_id).order_by(StockTransaction.id).all()


def test_completing_order_credits_single_product(owner, make_product, make_order):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5)])

    result = OrderFulfillmentEngine().complete_order(order.id, owner.id)

    assert _stock(flour) == Decimal('15')
    completed = _order(order.id)
    assert completed.status == 'completed'
    assert completed.completed_at is not None
    credits = _order_transactions(order.id)
    assert len(credits) == 1
    assert credits[0].transaction_type == 'add'
    assert credits[0].amount == Decimal('5')
    assert credits[0].previous_stock == Decimal('10')
    assert credits[0].new_stock == Decimal('15')
    assert credits[0].notes == completion_note(order.id) == f"Order completion - Order ID: {order.id}"
    assert credits[0].order_item_id == completed.items[0].id
    assert result.credited_product_ids == [flour.id]
    assert result.transaction_ids == [credits[0].id]


def test_completing_order_credits_each_distinct_product(owner, make_product, make_order):
    flour = make_product('Flour', current_stock=10)
    sugar = make_product('Sugar', current_stock=0)
    salt = make_product('Salt', current_stock='2.5', unit='g')
    order = make_order([(flour, 5), (sugar, 3), (salt, '1.25')])

    OrderFulfillmentEngine().complete_order(order.id, owner.id)

    assert _stock(flour) == Decimal('15')
    assert _stock(sugar) == Decimal('3')
    assert _stock(salt) == Decimal('3.75')
    credits = _order_transactions(order.id)
    assert [tx.product_id for tx in credits] == [flour.id, sugar.id, salt.id]
    for tx in credits:
        assert tx.transaction_type == 'add'
        assert tx.new_stock - tx.previous_stock == tx.amount


def test_same_product_twice_accumulates(owner, make_product, make_order):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5), (flour, 2)])

    OrderFulfillmentEngine().complete_order(order.id, owner.id)

    assert _stock(flour) == Decimal('17')
    credits = _order_transactions(order.id)
    assert [(tx.previous_stock, tx.new_stock) for tx in credits] == [
        (Decimal('10'), Decimal('15')),
        (Decimal('15'), Decimal('17')),
    ]


def test_completing_twice_fails_without_writes(owner, make_product, make_order):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5)])
    engine = OrderFulfillmentEngine()
    engine.complete_order(order.id, owner.id)

    with pytest.raises(InvalidStateTransition):
        engine.complete_order(order.id, owner.id)

    assert _stock(flour) == Decimal('15')
    assert len(_order_transactions(order.id)) == 1


def test_cancelled_order_cannot_complete(owner, make_product, make_order):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5)])
    db.session.execute(update(Order).where(Order.id == order.id).values(status='cancelled'))
    db.session.commit()

    with pytest.raises(InvalidStateTransition):
        OrderFulfillmentEngine().complete_order(order.id, owner.id)
    assert _stock(flour) == Decimal('10')


@pytest.mark.parametrize('status', ['shipped', 'delivered'])
def test_shipped_and_delivered_orders_complete(owner, make_product, make_order, status):
    flour = make_product('Flour', current_stock=1)
    order = make_order([(flour, 1)])
    db.session.execute(update(Order).where(Order.id == order.id).values(status=status))
    db.session.commit()

    OrderFulfillmentEngine().complete_order(order.id, owner.id)

    assert _order(order.id).status == 'completed'
    assert _stock(flour) == Decimal('2')


def test_order_without_items_is_rejected(owner):
    empty = Order(owner_id=owner.id, supplier_name='Nobody', status='pending')
    db.session.add(empty)
    db.session.commit()

    with pytest.raises(InvalidStateTransition):
        OrderFulfillmentEngine().complete_order(empty.id, owner.id)

    assert _order(empty.id).status == 'pending'
    assert StockTransaction.query.count() == 0


def test_requires_identity(make_product, make_order):
    order = make_order([(make_product('Flour', current_stock=1), 1)])

    with pytest.raises(NotAuthenticated):
        OrderFulfillmentEngine().complete_order(order.id, None)
    assert _order(order.id).status == 'pending'


def test_other_owner_gets_not_found(make_product, make_order, other_user):
    flour = make_product('Flour', current_stock=1)
    order = make_order([(flour, 1)])

    with pytest.raises(NotFound):
        OrderFulfillmentEngine().complete_order(order.id, other_user.id)
    assert _order(order.id).status == 'pending'
    assert _stock(flour) == Decimal('1')


def test_unknown_order_not_found(owner):
    with pytest.raises(NotFound):
        OrderFulfillmentEngine().complete_order(9999, owner.id)


def test_concurrent_adjustment_during_completion_is_kept(owner, make_product, make_order, monkeypatch):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5)])
    manager = StockManager()
    original = manager._compare_and_set
    raced = []

    def racing(product_id, owner_id, expected, new_stock):
        if not raced:
            raced.append(expected)
            # A manual 'add 2' lands after the engine read the stock
            db.session.execute(
                update(Product).where(Product.id == product_id).values(current_stock=expected + 2)
            )
        return original(product_id, owner_id, expected, new_stock)

    monkeypatch.setattr(manager, '_compare_and_set', racing)

    OrderFulfillmentEngine(manager).complete_order(order.id, owner.id)

    assert raced == [Decimal('10')]
    assert _stock(flour) == Decimal('17')
    credit = _order_transactions(order.id)[0]
    assert (credit.previous_stock, credit.new_stock) == (Decimal('12'), Decimal('17'))


def _fail_on_item(manager, monkeypatch, item_id):
    """Make record_movement blow up for one order item until the returned switch is cleared"""
    original = manager.record_movement
    switch = {'fail': True}

    def flaky(*args, **kwargs):
        if switch['fail'] and kwargs.get('order_item_id') == item_id:
            raise RuntimeError("store unavailable")
        return original(*args, **kwargs)

    monkeypatch.setattr(manager, 'record_movement', flaky)
    return switch


def test_atomic_failure_rolls_everything_back(owner, make_product, make_order, monkeypatch):
    flour = make_product('Flour', current_stock=10)
    sugar = make_product('Sugar', current_stock=1)
    order = make_order([(flour, 5), (sugar, 3)])
    manager = StockManager()
    _fail_on_item(manager, monkeypatch, order.items[1].id)

    with pytest.raises(RuntimeError):
        OrderFulfillmentEngine(manager, atomic=True).complete_order(order.id, owner.id)

    assert _order(order.id).status == 'pending'
    assert _stock(flour) == Decimal('10')
    assert _stock(sugar) == Decimal('1')
    assert _order_transactions(order.id) == []


def test_atomic_mode_can_retry_after_failure(owner, make_product, make_order, monkeypatch):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5)])
    manager = StockManager()
    switch = _fail_on_item(manager, monkeypatch, order.items[0].id)
    engine = OrderFulfillmentEngine(manager, atomic=True)

    with pytest.raises(RuntimeError):
        engine.complete_order(order.id, owner.id)
    switch['fail'] = False
    engine.complete_order(order.id, owner.id)

    assert _stock(flour) == Decimal('15')
    assert len(_order_transactions(order.id)) == 1


def test_step_commit_reports_partial_fulfillment_and_resumes(owner, make_product, make_order, monkeypatch):
    flour = make_product('Flour', current_stock=10)
    sugar = make_product('Sugar', current_stock=1)
    salt = make_product('Salt', current_stock=0)
    order = make_order([(flour, 5), (sugar, 3), (salt, 2)])
    item_ids = [item.id for item in order.items]
    manager = StockManager()
    switch = _fail_on_item(manager, monkeypatch, item_ids[1])
    engine = OrderFulfillmentEngine(manager, atomic=False)

    with pytest.raises(PartialFulfillment) as excinfo:
        engine.complete_order(order.id, owner.id)

    partial = excinfo.value
    assert partial.order_id == order.id
    assert partial.credited_item_ids == [item_ids[0]]
    assert partial.uncredited_item_ids == [item_ids[1], item_ids[2]]
    assert partial.credited_product_ids == [flour.id]
    assert partial.uncredited_product_ids == [sugar.id, salt.id]
    assert _order(order.id).status == 'completed'
    assert _stock(flour) == Decimal('15')
    assert _stock(sugar) == Decimal('1')

    switch['fail'] = False
    result = engine.resume_fulfillment(order.id, owner.id)

    assert [credit.order_item_id for credit in result.credits] == item_ids[1:]
    assert _stock(flour) == Decimal('15')
    assert _stock(sugar) == Decimal('4')
    assert _stock(salt) == Decimal('2')
    assert len(_order_transactions(order.id)) == 3

    # Nothing left to credit
    again = engine.resume_fulfillment(order.id, owner.id)
    assert again.credits == ()
    assert _stock(flour) == Decimal('15')
    assert len(_order_transactions(order.id)) == 3


def test_step_commit_success_matches_atomic(owner, make_product, make_order):
    flour = make_product('Flour', current_stock=10)
    order = make_order([(flour, 5), (flour, 2)])

    result = OrderFulfillmentEngine(atomic=False).complete_order(order.id, owner.id)

    assert len(result.credits) == 2
    assert _stock(flour) == Decimal('17')


def test_resume_requires_completed_order(owner, make_product, make_order):
    order = make_order([(make_product('Flour', current_stock=1), 1)])

    with pytest.raises(InvalidStateTransition):
        OrderFulfillmentEngine().resume_fulfillment(order.id, owner.id)


def test_fulfillment_mode_read_from_config(app):
    app.config['FULFILLMENT_ATOMIC'] = False
    assert OrderFulfillmentEngine().atomic is False
