from __future__ import annotations

from datetime import date
from typing import Iterable, Mapping

from stockroom import db
from stockroom.business.core.values import MAX_MONEY, clean_text, ensure_identity, to_money, to_quantity
from stockroom.business.errors import NotFound, ValidationError
from stockroom.data.inventory.product import Product
from stockroom.data.ordering.order import ORDER_PENDING, Order
from stockroom.data.ordering.order_item import OrderItem
from stockroom.logger import get_logger

logger = get_logger("stockroom.business.ordering.factory")


class OrderFactory:
    """
    Creates supplier orders together with their items.

    Header and items are one unit of work: an order without items is never stored.
    """

    @staticmethod
    def _validate_item(item: Mapping, line_number: int, owner_id: int) -> dict:
        """
        Validate and normalise one item mapping.

        Args:
            item: Mapping with keys product_id (required), quantity (required),
                unit_price (optional), notes (optional)
            line_number: 1-based position, used in error messages
            owner_id: Acting identity; the product must belong to it

        Raises:
            ValidationError: Missing product or bad quantity/price
            NotFound: Product does not exist for this identity
        """
        product_id = item.get('product_id')
        if product_id in (None, ''):
            raise ValidationError(f"Product is required for item {line_number}")
        try:
            product_id = int(product_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Product is invalid for item {line_number}")

        if Product.owned_by(owner_id).filter_by(id=product_id).first() is None:
            raise NotFound('Product', product_id)

        try:
            quantity = to_quantity(item.get('quantity'), 'quantity', positive=True)
            unit_price = to_money(item.get('unit_price'), 'unit_price')
        except ValidationError as exc:
            raise ValidationError(f"{exc} for item {line_number}") from exc

        return {
            'product_id': product_id,
            'quantity': quantity,
            'unit_price': unit_price,
            'notes': clean_text(item.get('notes')),
        }

    @classmethod
    def create_order(
        cls,
        acting_identity,
        supplier_name: str,
        items: Iterable[Mapping],
        *,
        order_date: date | None = None,
        expected_arrival_date: date | None = None,
        tracking_number: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Create a pending order.

        total_amount is the sum of quantity * unit_price over priced items.

        Raises:
            NotAuthenticated: No acting identity
            ValidationError: Empty supplier, no items, or an invalid item
            NotFound: An item references a product the identity does not own
        """
        owner_id = ensure_identity(acting_identity)

        supplier_name = clean_text(supplier_name)
        if not supplier_name:
            raise ValidationError("Supplier name is required")

        items = list(items or [])
        if not items:
            raise ValidationError("At least one item is required")
        validated = [cls._validate_item(item, index, owner_id) for index, item in enumerate(items, start=1)]

        order = Order(
            owner_id=owner_id,
            supplier_name=supplier_name,
            order_date=order_date or date.today(),
            expected_arrival_date=expected_arrival_date,
            tracking_number=clean_text(tracking_number),
            notes=clean_text(notes),
            status=ORDER_PENDING,
        )
        order.items = [OrderItem(**fields) for fields in validated]
        order.total_amount = order.calculate_total()
        if order.total_amount is not None and order.total_amount > MAX_MONEY:
            raise ValidationError(f"Order total must not exceed {MAX_MONEY}")

        try:
            db.session.add(order)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(
            f"User {owner_id} created order {order.id} from {supplier_name} with {len(validated)} item(s), total {order.total_amount}"
        )
        return order
