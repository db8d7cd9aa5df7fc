"""
Order fulfillment: complete an order and credit its lines to stock.

Completion is one unit of work: the order's status flip, every product credit and every
ledger row commit together or not at all. Stores that cannot give us a multi-row
transaction run in step-commit mode instead; there a failed credit surfaces as
PartialFulfillment and resume_fulfillment() finishes the job without crediting any
line twice (a line is credited iff a StockTransaction points at it).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from flask import current_app
from sqlalchemy import select, update

from stockroom import db
from stockroom.business.core.values import ensure_identity
from stockroom.business.errors import InvalidStateTransition, NotFound, PartialFulfillment
from stockroom.business.inventory.stock.stock_manager import StockManager
from stockroom.business.ordering.order_state_machine import OrderStateMachine
from stockroom.data.inventory.stock_transaction import TRANSACTION_ADD, StockTransaction
from stockroom.data.ordering.order import Order
from stockroom.logger import get_logger

logger = get_logger("stockroom.business.ordering.fulfillment")


class _Line(NamedTuple):
    item_id: int
    product_id: int
    quantity: Decimal


@dataclass(frozen=True)
class StockCredit:
    order_item_id: int
    product_id: int
    amount: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    transaction_id: int


@dataclass(frozen=True)
class FulfillmentResult:
    order_id: int
    credits: tuple[StockCredit, ...] = ()

    @property
    def credited_product_ids(self) -> list[int]:
        return [credit.product_id for credit in self.credits]

    @property
    def transaction_ids(self) -> list[int]:
        return [credit.transaction_id for credit in self.credits]


def completion_note(order_id: int) -> str:
    return f"Order completion - Order ID: {order_id}"


class OrderFulfillmentEngine:
    """Moves an open order to completed and credits stock for each of its lines"""

    def __init__(self, stock_manager: StockManager | None = None, *, atomic: bool | None = None):
        self.stock_manager = stock_manager or StockManager()
        if atomic is None:
            atomic = current_app.config.get('FULFILLMENT_ATOMIC', True)
        self.atomic = atomic

    @staticmethod
    def _load_order(order_id: int, owner_id: int) -> Order:
        order = Order.owned_by(owner_id).filter_by(id=order_id).first()
        if order is None:
            raise NotFound('Order', order_id)
        return order

    @staticmethod
    def _snapshot_lines(order: Order) -> list[_Line]:
        # Plain values: ORM rows expire on commit/rollback and we must not depend on them
        return [_Line(item.id, item.product_id, item.quantity) for item in order.items]

    def _read_baselines(self, lines: list[_Line], owner_id: int) -> dict[int, Decimal]:
        baselines: dict[int, Decimal] = {}
        for line in lines:
            if line.product_id in baselines:
                continue
            stock = self.stock_manager.read_stock(line.product_id, owner_id)
            if stock is None:
                raise NotFound('Product', line.product_id)
            baselines[line.product_id] = stock
        return baselines

    @staticmethod
    def _mark_completed(order_id: int, owner_id: int) -> None:
        """Conditional status flip; fails if another request completed/cancelled first"""
        now = datetime.utcnow()
        result = db.session.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.owner_id == owner_id,
                Order.status.in_(OrderStateMachine.OPEN_STATES),
            )
            .values(status=OrderStateMachine.COMPLETED, completed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateTransition(f"Order {order_id} was completed or cancelled concurrently")

    def _credit_line(self, order_id: int, line: _Line, running: dict[int, Decimal], owner_id: int) -> StockCredit:
        transaction = self.stock_manager.record_movement(
            line.product_id,
            TRANSACTION_ADD,
            line.quantity,
            owner_id,
            notes=completion_note(order_id),
            expected_stock=running.get(line.product_id),
            order_id=order_id,
            order_item_id=line.item_id,
        )
        # Later lines for the same product build on this credit, not on the original read
        running[line.product_id] = transaction.new_stock
        return StockCredit(
            order_item_id=line.item_id,
            product_id=line.product_id,
            amount=transaction.amount,
            previous_stock=transaction.previous_stock,
            new_stock=transaction.new_stock,
            transaction_id=transaction.id,
        )

    def _credit_stepwise(
        self,
        order_id: int,
        pending: list[_Line],
        running: dict[int, Decimal],
        owner_id: int,
        already_credited: list[_Line],
    ) -> FulfillmentResult:
        credits: list[StockCredit] = []
        for index, line in enumerate(pending):
            try:
                credit = self._credit_line(order_id, line, running, owner_id)
                db.session.commit()
            except Exception as exc:
                db.session.rollback()
                credited = already_credited + pending[:index]
                uncredited = pending[index:]
                logger.error(
                    f"Order {order_id} partially fulfilled: item {line.item_id} (product {line.product_id}) failed: {exc}",
                    exc_info=True,
                )
                raise PartialFulfillment(
                    order_id,
                    credited_item_ids=[l.item_id for l in credited],
                    uncredited_item_ids=[l.item_id for l in uncredited],
                    credited_product_ids=[l.product_id for l in credited],
                    uncredited_product_ids=[l.product_id for l in uncredited],
                ) from exc
            credits.append(credit)
        return FulfillmentResult(order_id, tuple(credits))

    def complete_order(self, order_id: int, acting_identity) -> FulfillmentResult:
        """
        Complete an open order and credit every line to stock.

        Raises:
            NotAuthenticated: No acting identity
            NotFound: Order (or a referenced product) missing or not owned by the identity
            InvalidStateTransition: Order already completed/cancelled, or has no items
            ConflictRetryExhausted: A product's stock kept changing under us (atomic mode)
            PartialFulfillment: Step-commit mode only, some lines were not credited
        """
        owner_id = ensure_identity(acting_identity)
        order = self._load_order(order_id, owner_id)

        OrderStateMachine.validate_transition(order.status, OrderStateMachine.COMPLETED)
        lines = self._snapshot_lines(order)
        if not lines:
            raise InvalidStateTransition(f"Order {order_id} has no items to fulfill")

        running = self._read_baselines(lines, owner_id)

        if not self.atomic:
            try:
                self._mark_completed(order_id, owner_id)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            result = self._credit_stepwise(order_id, lines, running, owner_id, already_credited=[])
        else:
            credits = []
            try:
                self._mark_completed(order_id, owner_id)
                for line in lines:
                    credits.append(self._credit_line(order_id, line, running, owner_id))
                db.session.commit()
            except Exception:
                db.session.rollback()
                logger.warning(f"Completion of order {order_id} rolled back; nothing was credited")
                raise
            result = FulfillmentResult(order_id, tuple(credits))

        logger.info(f"Order {order_id} completed by user {owner_id}: {len(result.credits)} line(s) credited")
        return result

    def resume_fulfillment(self, order_id: int, acting_identity) -> FulfillmentResult:
        """
        Credit the lines of a completed order that have no ledger row yet.

        Safe to call repeatedly: a fully credited order returns an empty result.
        """
        owner_id = ensure_identity(acting_identity)
        order = self._load_order(order_id, owner_id)
        if not order.is_completed:
            raise InvalidStateTransition(
                f"Order {order_id} is {order.status}; only completed orders can be resumed"
            )

        lines = self._snapshot_lines(order)
        credited_item_ids = set(
            db.session.execute(
                select(StockTransaction.order_item_id).where(
                    StockTransaction.order_id == order_id,
                    StockTransaction.order_item_id.is_not(None),
                )
            ).scalars()
        )
        already_credited = [line for line in lines if line.item_id in credited_item_ids]
        pending = [line for line in lines if line.item_id not in credited_item_ids]
        if not pending:
            logger.debug(f"Order {order_id} already fully credited")
            return FulfillmentResult(order_id, ())

        logger.info(f"Resuming order {order_id}: {len(pending)} line(s) left to credit")
        running = self._read_baselines(pending, owner_id)
        return self._credit_stepwise(order_id, pending, running, owner_id, already_credited)
