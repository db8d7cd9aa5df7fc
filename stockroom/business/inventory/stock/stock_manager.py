from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import select, update

from stockroom import db
from stockroom.business.core.values import MAX_QUANTITY, clean_text, ensure_identity, to_quantity
from stockroom.business.errors import (
    ConflictRetryExhausted,
    InsufficientStock,
    NotFound,
    ValidationError,
)
from stockroom.data.inventory.product import Product
from stockroom.data.inventory.stock_transaction import (
    TRANSACTION_ADD,
    TRANSACTION_TYPES,
    StockTransaction,
)
from stockroom.logger import get_logger

logger = get_logger("stockroom.business.inventory.stock")

DEFAULT_MAX_RETRIES = 5


class StockManager:
    """
    Core stock operations.

    Responsibilities:
    - Keep Product.current_stock correct under concurrent writers (compare-and-set, retried)
    - Write exactly one StockTransaction per applied movement
    - Never let stock go below zero
    """

    def __init__(self, max_retries: int | None = None):
        if max_retries is None:
            max_retries = current_app.config.get('STOCK_CAS_MAX_RETRIES', DEFAULT_MAX_RETRIES)
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.max_retries = max_retries

    def get_product(self, product_id: int, owner_id: int) -> Product:
        product = Product.owned_by(owner_id).filter_by(id=product_id).first()
        if product is None:
            raise NotFound('Product', product_id)
        return product

    def read_stock(self, product_id: int, owner_id: int) -> Decimal | None:
        """Fresh read of the stored stock, bypassing any stale ORM state"""
        return db.session.execute(
            select(Product.current_stock).where(
                Product.id == product_id,
                Product.owner_id == owner_id,
            )
        ).scalar_one_or_none()

    def _compare_and_set(self, product_id: int, owner_id: int, expected: Decimal, new_stock: Decimal) -> bool:
        """Write new_stock only if the stored value still equals expected"""
        result = db.session.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.owner_id == owner_id,
                Product.current_stock == expected,
            )
            .values(current_stock=new_stock, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def record_movement(
        self,
        product_id: int,
        direction: str,
        amount,
        acting_identity,
        *,
        notes: str | None = None,
        expected_stock: Decimal | None = None,
        order_id: int | None = None,
        order_item_id: int | None = None,
    ) -> StockTransaction:
        """
        Apply one stock movement inside the caller's unit of work (no commit).

        Args:
            product_id: Product to move stock for
            direction: 'add' or 'use'
            amount: Positive quantity
            acting_identity: User performing the change (owner of the product)
            notes: Free text stored on the transaction
            expected_stock: Stock the caller believes is current; skips the first read.
                A wrong guess only costs one extra compare-and-set round.
            order_id / order_item_id: Provenance when the movement comes from an order

        Returns:
            StockTransaction: The flushed audit row

        Raises:
            NotFound: Product missing or owned by someone else
            InsufficientStock: 'use' larger than the stock on hand
            ConflictRetryExhausted: Lost the compare-and-set race max_retries times
        """
        owner_id = ensure_identity(acting_identity)
        if direction not in TRANSACTION_TYPES:
            raise ValidationError(f"Unknown stock direction: {direction!r}")
        amount = to_quantity(amount, 'amount', positive=True)

        baseline = expected_stock
        for attempt in range(1, self.max_retries + 1):
            if baseline is None:
                baseline = self.read_stock(product_id, owner_id)
                if baseline is None:
                    raise NotFound('Product', product_id)

            if direction == TRANSACTION_ADD:
                new_stock = baseline + amount
                if new_stock > MAX_QUANTITY:
                    raise ValidationError(f"Stock of product {product_id} would exceed {MAX_QUANTITY}")
            else:
                new_stock = baseline - amount
                if new_stock < 0:
                    raise InsufficientStock(product_id, baseline, amount)

            if self._compare_and_set(product_id, owner_id, baseline, new_stock):
                transaction = StockTransaction(
                    product_id=product_id,
                    owner_id=owner_id,
                    transaction_type=direction,
                    amount=amount,
                    previous_stock=baseline,
                    new_stock=new_stock,
                    notes=clean_text(notes),
                    order_id=order_id,
                    order_item_id=order_item_id,
                )
                db.session.add(transaction)
                db.session.flush()
                logger.debug(
                    f"Product {product_id} stock {baseline} -> {new_stock} ({direction} {amount}, attempt {attempt})"
                )
                return transaction

            logger.debug(f"Compare-and-set lost for product {product_id} at attempt {attempt}; re-reading")
            baseline = None

        logger.warning(f"Giving up on stock update for product {product_id} after {self.max_retries} attempts")
        raise ConflictRetryExhausted(product_id, self.max_retries)

    def adjust_stock(self, product_id: int, direction: str, amount, acting_identity, notes: str | None = None) -> Decimal:
        """
        Manual stock adjustment as its own unit of work.

        Returns:
            Decimal: The new stock level
        """
        owner_id = ensure_identity(acting_identity)
        self.get_product(product_id, owner_id)

        try:
            transaction = self.record_movement(product_id, direction, amount, owner_id, notes=notes)
            new_stock = transaction.new_stock
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"User {owner_id} adjusted product {product_id}: {direction} {transaction.amount}, now {new_stock}")
        return new_stock
