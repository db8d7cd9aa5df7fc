"""
Read-side queries for products and the stock ledger, always scoped to one owner.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import joinedload

from stockroom.business.core.values import ensure_identity
from stockroom.business.errors import NotFound
from stockroom.business.ordering.order_state_machine import OrderStateMachine
from stockroom.data.inventory.product import Product
from stockroom.data.inventory.stock_transaction import StockTransaction
from stockroom.data.ordering.order import Order


class ProductService:
    """Listing helpers used by the dashboard and the inventory pages."""

    @staticmethod
    def list_products(acting_identity, search: Optional[str] = None) -> list[Product]:
        owner_id = ensure_identity(acting_identity)
        query = Product.owned_by(owner_id)
        search = (search or '').strip()
        if search:
            query = query.filter(Product.name.ilike(f"%{search}%"))
        return query.order_by(Product.name.asc(), Product.id.asc()).all()

    @staticmethod
    def low_stock_products(acting_identity) -> list[Product]:
        """Products at or below their alert threshold (threshold 0 means no alert)"""
        owner_id = ensure_identity(acting_identity)
        return (
            Product.owned_by(owner_id)
            .filter(Product.min_stock_alert > 0, Product.current_stock <= Product.min_stock_alert)
            .order_by(Product.name.asc())
            .all()
        )

    @staticmethod
    def list_transactions(
        acting_identity,
        product_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[StockTransaction]:
        """Ledger rows newest first, optionally for a single product"""
        owner_id = ensure_identity(acting_identity)
        query = StockTransaction.owned_by(owner_id).options(joinedload(StockTransaction.product))
        if product_id is not None:
            if Product.owned_by(owner_id).filter_by(id=product_id).first() is None:
                raise NotFound('Product', product_id)
            query = query.filter(StockTransaction.product_id == product_id)
        query = query.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_dashboard_counts(acting_identity) -> dict[str, Any]:
        owner_id = ensure_identity(acting_identity)
        return {
            'total_products': Product.owned_by(owner_id).count(),
            'total_transactions': StockTransaction.owned_by(owner_id).count(),
            'open_orders': Order.owned_by(owner_id).filter(Order.status.in_(OrderStateMachine.OPEN_STATES)).count(),
            'completed_orders': Order.owned_by(owner_id).filter(Order.status == OrderStateMachine.COMPLETED).count(),
        }
