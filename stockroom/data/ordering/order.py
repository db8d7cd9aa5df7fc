from stockroom import db
from stockroom.data.core.owned_base import OwnedBase
from datetime import date
from decimal import Decimal

ORDER_PENDING = 'pending'
ORDER_SHIPPED = 'shipped'
ORDER_DELIVERED = 'delivered'
ORDER_COMPLETED = 'completed'
ORDER_CANCELLED = 'cancelled'
ORDER_STATUSES = (ORDER_PENDING, ORDER_SHIPPED, ORDER_DELIVERED, ORDER_COMPLETED, ORDER_CANCELLED)


class Order(OwnedBase):
    """Purchase order from a supplier; completing it credits stock"""
    __tablename__ = 'orders'
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'shipped', 'delivered', 'completed', 'cancelled')",
            name='ck_orders_status',
        ),
    )

    supplier_name = db.Column(db.String(200), nullable=False)
    order_date = db.Column(db.Date, nullable=False, default=date.today)
    expected_arrival_date = db.Column(db.Date, nullable=True)
    tracking_number = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=ORDER_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    items = db.relationship(
        'OrderItem',
        back_populates='order',
        order_by='OrderItem.id',
        cascade='all, delete-orphan',
    )

    def __repr__(self):
        return f'<Order {self.id}: {self.supplier_name} ({self.status})>'

    @property
    def is_completed(self):
        return self.status == ORDER_COMPLETED

    @property
    def is_terminal(self):
        return self.status in (ORDER_COMPLETED, ORDER_CANCELLED)

    @property
    def items_count(self):
        return len(self.items)

    def calculate_total(self):
        """Sum of line totals over priced items"""
        total = sum((item.line_total for item in self.items if item.line_total is not None), Decimal('0'))
        return total.quantize(Decimal('0.01'))
