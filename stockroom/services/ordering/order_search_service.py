"""stockroom.services.ordering.order_search_service

Order listing for the orders page: owner-scoped, newest first, items and their
products loaded up front so templates never trigger per-row queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from stockroom.business.core.values import ensure_identity
from stockroom.business.errors import ValidationError
from stockroom.data.ordering.order import ORDER_STATUSES, Order
from stockroom.data.ordering.order_item import OrderItem


@dataclass(frozen=True)
class OrderSearchFilters:
    status: Optional[str] = None
    search_term: Optional[str] = None  # supplier name or tracking number


class OrderSearchService:

    @staticmethod
    def parse_filters(args: Any) -> OrderSearchFilters:
        """Build filters from a request.args-like mapping. Unknown statuses are ignored."""
        status = (args.get('status') or '').strip().lower() or None
        if status not in ORDER_STATUSES:
            status = None
        search_term = (args.get('search') or '').strip() or None
        return OrderSearchFilters(status=status, search_term=search_term)

    @staticmethod
    def list_orders(
        acting_identity,
        status: Optional[str] = None,
        search_term: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Order]:
        """
        Orders of the acting identity, newest first.

        Raises:
            NotAuthenticated: No acting identity
            ValidationError: status is not a known order status
        """
        owner_id = ensure_identity(acting_identity)
        query = Order.owned_by(owner_id).options(
            selectinload(Order.items).selectinload(OrderItem.product)
        )
        if status:
            if status not in ORDER_STATUSES:
                raise ValidationError(f"Unknown order status: {status!r}")
            query = query.filter(Order.status == status)
        if search_term:
            pattern = f"%{search_term}%"
            query = query.filter(or_(Order.supplier_name.ilike(pattern), Order.tracking_number.ilike(pattern)))
        query = query.order_by(Order.created_at.desc(), Order.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @classmethod
    def search(cls, acting_identity, filters: OrderSearchFilters) -> list[Order]:
        return cls.list_orders(acting_identity, status=filters.status, search_term=filters.search_term)
