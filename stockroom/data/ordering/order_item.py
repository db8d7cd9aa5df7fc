from stockroom import db


class OrderItem(db.Model):
    """One product/quantity line within an order"""
    __tablename__ = 'order_items'
    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        db.CheckConstraint('unit_price IS NULL OR unit_price >= 0', name='ck_order_items_price_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    order = db.relationship('Order', back_populates='items')
    product = db.relationship('Product', back_populates='order_items')

    def __repr__(self):
        return f'<OrderItem {self.id}: Product {self.product_id}, Qty {self.quantity}>'

    @property
    def line_total(self):
        if self.unit_price is None:
            return None
        return self.quantity * self.unit_price
