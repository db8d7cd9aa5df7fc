from __future__ import annotations

from decimal import Decimal

from stockroom import db
from stockroom.business.core.values import clean_text, ensure_identity, to_quantity
from stockroom.business.errors import InvalidStateTransition, NotFound, ValidationError
from stockroom.business.inventory.products.product_factory import validate_name, validate_unit
from stockroom.business.inventory.stock.stock_manager import StockManager
from stockroom.data.inventory.product import Product
from stockroom.data.inventory.stock_transaction import StockTransaction
from stockroom.data.ordering.order_item import OrderItem
from stockroom.logger import get_logger

logger = get_logger("stockroom.business.inventory.products.context")

EDITABLE_FIELDS = ('name', 'description', 'unit', 'min_stock_alert')


class ProductContext:
    """
    Business wrapper around one product, scoped to the acting identity.

    Stock itself is never edited here directly; it moves through StockManager so every
    change lands in the ledger.
    """

    def __init__(self, product_id: int, acting_identity, *, stock_manager: StockManager | None = None):
        self.product_id = product_id
        self.owner_id = ensure_identity(acting_identity)
        self.stock_manager = stock_manager or StockManager()

    @property
    def product(self) -> Product:
        product = Product.owned_by(self.owner_id).filter_by(id=self.product_id).first()
        if product is None:
            raise NotFound('Product', self.product_id)
        return product

    def get_transactions(self, limit: int | None = None) -> list[StockTransaction]:
        query = self.product.stock_transactions
        if limit:
            query = query.limit(limit)
        return query.all()

    def update(self, **fields) -> Product:
        """
        Update descriptive fields. Passing current_stock is an error: use adjust_stock.
        """
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Cannot edit {', '.join(sorted(unknown))} directly; stock changes go through adjustments"
            )

        cleaners = {
            'name': validate_name,
            'description': clean_text,
            'unit': validate_unit,
            'min_stock_alert': lambda value: to_quantity(value, 'min_stock_alert'),
        }
        # Validate everything before touching the row
        values = {field: cleaners[field](value) for field, value in fields.items()}

        product = self.product
        for field, value in values.items():
            setattr(product, field, value)

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info(f"User {self.owner_id} updated product {self.product_id}: {sorted(fields)}")
        return product

    def adjust_stock(self, direction: str, amount, notes: str | None = None) -> Decimal:
        return self.stock_manager.adjust_stock(self.product_id, direction, amount, self.owner_id, notes=notes)

    def delete(self) -> None:
        """
        Delete the product. Refused once anything references it: the ledger is
        append-only and order lines must keep pointing at a real product.
        """
        product = self.product
        if product.stock_transactions.count() or OrderItem.query.filter_by(product_id=product.id).count():
            raise InvalidStateTransition(
                f"Product {product.name!r} has stock history or order lines and cannot be deleted"
            )
        try:
            db.session.delete(product)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info(f"User {self.owner_id} deleted product {self.product_id}")
