"""
State machine for the Order.status lifecycle

Encodes valid transitions. Keeps "what is allowed" separate from "how persistence occurs".
"""

from typing import Dict, Set

from stockroom.business.errors import InvalidStateTransition
from stockroom.data.ordering.order import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    ORDER_SHIPPED,
    ORDER_STATUSES,
)


class OrderStateMachine:
    """
    Orders move forward only. Any open order may be completed or cancelled directly;
    completed and cancelled are absorbing.
    """

    PENDING = ORDER_PENDING
    SHIPPED = ORDER_SHIPPED
    DELIVERED = ORDER_DELIVERED
    COMPLETED = ORDER_COMPLETED
    CANCELLED = ORDER_CANCELLED

    TERMINAL_STATES = {COMPLETED, CANCELLED}
    OPEN_STATES = {PENDING, SHIPPED, DELIVERED}

    TRANSITIONS: Dict[str, Set[str]] = {
        PENDING: {SHIPPED, DELIVERED, COMPLETED, CANCELLED},
        SHIPPED: {DELIVERED, COMPLETED, CANCELLED},
        DELIVERED: {COMPLETED, CANCELLED},
        # COMPLETED and CANCELLED are terminal - no transitions out
    }

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL_STATES

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if transition is valid.

        Unlike request workflows, re-setting the current status is not a no-op here:
        "completed -> completed" must fail so stock is never credited twice.
        """
        if from_status in cls.TERMINAL_STATES:
            return False
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """
        Raises:
            InvalidStateTransition: If the target is unknown or the move is not allowed
        """
        if to_status not in ORDER_STATUSES:
            raise InvalidStateTransition(f"Unknown order status: {to_status!r}")
        if from_status in cls.TERMINAL_STATES:
            raise InvalidStateTransition(
                f"Order is already {from_status}; no further status changes are allowed"
            )
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransition(
                f"Invalid order status transition: {from_status} → {to_status}"
            )

    @classmethod
    def get_allowed_transitions(cls, from_status: str) -> Set[str]:
        """Get set of allowed target statuses from current status"""
        if from_status in cls.TERMINAL_STATES:
            return set()
        return set(cls.TRANSITIONS.get(from_status, set()))
