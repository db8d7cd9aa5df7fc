from stockroom import db
from stockroom.data.core.owned_base import OwnedBase

# Units a product's stock can be counted in. Extend here; nothing else hardcodes them.
STOCK_UNITS = ('kg', 'g', 'lb', 'oz')


class Product(OwnedBase):
    """An inventory product whose stock is tracked by weight"""
    __tablename__ = 'products'
    __table_args__ = (
        db.CheckConstraint('current_stock >= 0', name='ck_products_stock_non_negative'),
        db.CheckConstraint('min_stock_alert >= 0', name='ck_products_alert_non_negative'),
    )

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    current_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit = db.Column(db.String(10), nullable=False, default='kg')
    min_stock_alert = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    # Relationships
    stock_transactions = db.relationship(
        'StockTransaction',
        back_populates='product',
        lazy='dynamic',
        order_by='StockTransaction.id.desc()',
    )
    order_items = db.relationship('OrderItem', back_populates='product', lazy='dynamic')

    def __repr__(self):
        return f'<Product {self.id}: {self.name} {self.current_stock} {self.unit}>'

    @property
    def is_low_stock(self):
        """Stock at or below the alert threshold; a threshold of 0 disables the alert"""
        threshold = self.min_stock_alert or 0
        return threshold > 0 and (self.current_stock or 0) <= threshold
