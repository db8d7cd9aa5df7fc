from __future__ import annotations

from stockroom import db
from stockroom.business.core.values import clean_text, ensure_identity, to_quantity
from stockroom.business.errors import ValidationError
from stockroom.business.inventory.stock.stock_manager import StockManager
from stockroom.data.inventory.product import STOCK_UNITS, Product
from stockroom.data.inventory.stock_transaction import TRANSACTION_ADD
from stockroom.logger import get_logger

logger = get_logger("stockroom.business.inventory.products.factory")


def validate_unit(unit) -> str:
    unit = (unit or '').strip().lower()
    if unit not in STOCK_UNITS:
        raise ValidationError(f"Unit must be one of {', '.join(STOCK_UNITS)}, got {unit!r}")
    return unit


def validate_name(name) -> str:
    name = clean_text(name)
    if not name:
        raise ValidationError("Product name is required")
    return name


class ProductFactory:
    """Creates products. Opening stock is booked through the ledger like any other movement."""

    def __init__(self, stock_manager: StockManager | None = None):
        self.stock_manager = stock_manager or StockManager()

    def create_product(
        self,
        acting_identity,
        name: str,
        *,
        unit: str = 'kg',
        current_stock=0,
        min_stock_alert=0,
        description: str | None = None,
    ) -> Product:
        """
        Create a product owned by the acting identity.

        Args:
            acting_identity: Owner of the new product
            name: Product name (required)
            unit: One of STOCK_UNITS
            current_stock: Opening stock, recorded as an 'add' transaction when > 0
            min_stock_alert: Low-stock threshold
            description: Optional description

        Returns:
            Product: The committed product

        Raises:
            NotAuthenticated: No acting identity
            ValidationError: Bad name, unit, or negative numbers
        """
        owner_id = ensure_identity(acting_identity)
        opening_stock = to_quantity(current_stock, 'current_stock')

        product = Product(
            owner_id=owner_id,
            name=validate_name(name),
            description=clean_text(description),
            unit=validate_unit(unit),
            current_stock=0,
            min_stock_alert=to_quantity(min_stock_alert, 'min_stock_alert'),
        )

        try:
            db.session.add(product)
            db.session.flush()
            if opening_stock > 0:
                self.stock_manager.record_movement(
                    product.id,
                    TRANSACTION_ADD,
                    opening_stock,
                    owner_id,
                    notes="Opening stock",
                )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"User {owner_id} created product {product.id} ({product.name}) with {opening_stock} {product.unit}")
        return product
