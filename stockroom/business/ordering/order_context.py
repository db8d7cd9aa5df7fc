from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from stockroom import db
from stockroom.business.core.values import clean_text, ensure_identity
from stockroom.business.errors import InvalidStateTransition, NotFound
from stockroom.business.ordering.fulfillment import FulfillmentResult, OrderFulfillmentEngine
from stockroom.business.ordering.order_state_machine import OrderStateMachine
from stockroom.data.ordering.order import Order
from stockroom.logger import get_logger

logger = get_logger("stockroom.business.ordering.context")


class OrderContext:
    """
    Business wrapper around one order, scoped to the acting identity.

    Status changes are validated by OrderStateMachine. Completion is never a plain
    status write: it is handed to OrderFulfillmentEngine so stock gets credited.
    """

    def __init__(self, order_id: int, acting_identity, *, engine: OrderFulfillmentEngine | None = None):
        self.order_id = order_id
        self.owner_id = ensure_identity(acting_identity)
        self._engine = engine

    @property
    def engine(self) -> OrderFulfillmentEngine:
        if self._engine is None:
            self._engine = OrderFulfillmentEngine()
        return self._engine

    @property
    def order(self) -> Order:
        order = Order.owned_by(self.owner_id).filter_by(id=self.order_id).first()
        if order is None:
            raise NotFound('Order', self.order_id)
        return order

    def _write_open_order(self, values: dict, description: str) -> None:
        """Conditional update that only touches the order while it is still open"""
        values = dict(values, updated_at=datetime.utcnow())
        try:
            result = db.session.execute(
                update(Order)
                .where(
                    Order.id == self.order_id,
                    Order.owner_id == self.owner_id,
                    Order.status.in_(OrderStateMachine.OPEN_STATES),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateTransition(f"Order {self.order_id} was closed before {description}")
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def set_status(self, new_status: str) -> FulfillmentResult | None:
        """
        Move the order to new_status.

        Returns:
            FulfillmentResult when new_status is 'completed', otherwise None

        Raises:
            InvalidStateTransition: The move is not allowed from the current status
        """
        new_status = (new_status or '').strip().lower()
        order = self.order
        OrderStateMachine.validate_transition(order.status, new_status)

        if new_status == OrderStateMachine.COMPLETED:
            return self.complete()

        previous = order.status
        self._write_open_order({'status': new_status}, f"moving to {new_status}")
        logger.info(f"User {self.owner_id} moved order {self.order_id}: {previous} -> {new_status}")
        return None

    def mark_shipped(self) -> None:
        self.set_status(OrderStateMachine.SHIPPED)

    def mark_delivered(self) -> None:
        self.set_status(OrderStateMachine.DELIVERED)

    def cancel(self) -> None:
        self.set_status(OrderStateMachine.CANCELLED)

    def complete(self) -> FulfillmentResult:
        return self.engine.complete_order(self.order_id, self.owner_id)

    def resume_fulfillment(self) -> FulfillmentResult:
        return self.engine.resume_fulfillment(self.order_id, self.owner_id)

    def update_tracking_number(self, tracking_number: str | None) -> None:
        """Set or clear (blank) the tracking number of an open order"""
        order = self.order
        if order.is_terminal:
            raise InvalidStateTransition(
                f"Order is already {order.status}; the tracking number can no longer change"
            )
        tracking_number = clean_text(tracking_number)
        self._write_open_order({'tracking_number': tracking_number}, "updating the tracking number")
        logger.info(f"User {self.owner_id} set tracking number of order {self.order_id} to {tracking_number!r}")
