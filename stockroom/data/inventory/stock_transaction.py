from stockroom import db
from sqlalchemy import event
from stockroom.business.errors import ImmutableLedgerError
from stockroom.data.core.owned_base import OwnedBase

TRANSACTION_ADD = 'add'
TRANSACTION_USE = 'use'
TRANSACTION_TYPES = (TRANSACTION_ADD, TRANSACTION_USE)


class StockTransaction(OwnedBase):
    """Append-only audit record of one change to a product's stock"""
    __tablename__ = 'stock_transactions'
    __table_args__ = (
        db.CheckConstraint("transaction_type IN ('add', 'use')", name='ck_stock_transactions_type'),
        db.CheckConstraint('amount > 0', name='ck_stock_transactions_amount_positive'),
        db.CheckConstraint('previous_stock >= 0', name='ck_stock_transactions_previous_stock_non_negative'),
        db.CheckConstraint('new_stock >= 0', name='ck_stock_transactions_new_stock_non_negative'),
    )

    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    transaction_type = db.Column(db.String(10), nullable=False)
    amount = db.Column(db.Numeric(12, 3), nullable=False)
    previous_stock = db.Column(db.Numeric(12, 3), nullable=False)
    new_stock = db.Column(db.Numeric(12, 3), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Provenance for credits made by order completion
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey('order_items.id'), nullable=True, unique=True)

    product = db.relationship('Product', back_populates='stock_transactions')
    order = db.relationship('Order')
    order_item = db.relationship('OrderItem')

    def __repr__(self):
        return f'<StockTransaction {self.transaction_type}: Product {self.product_id}, {self.previous_stock} -> {self.new_stock}>'


@event.listens_for(StockTransaction, 'before_update')
def _refuse_update(mapper, connection, target):
    raise ImmutableLedgerError(f"Stock transaction {target.id} is immutable")


@event.listens_for(StockTransaction, 'before_delete')
def _refuse_delete(mapper, connection, target):
    raise ImmutableLedgerError(f"Stock transaction {target.id} cannot be deleted")
