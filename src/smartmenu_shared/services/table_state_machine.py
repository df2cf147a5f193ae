"""
Table State Machine - the single place that decides whether a table may move
from one status to another.

Every component that reads or mutates `Table.status` goes through this module:
the QR resolver and the cart ask `is_orderable()`, the order placer and the
admin routes call `transition()`.
"""

from __future__ import annotations

import logging

from smartmenu_shared.constants import (
    BLOCKED_TABLE_STATUSES,
    TABLE_STATUS_TRANSITIONS,
    TableStatus,
)
from smartmenu_shared.models import Table
from smartmenu_shared.validation import ConflictError, ValidationError

logger = logging.getLogger(__name__)

ACTOR_STAFF = "staff"
ACTOR_SYSTEM = "system"


class TableStateError(ConflictError):
    """Error raised when a table status transition is not allowed."""

    def __init__(self, message: str, current_status: TableStatus, target_status: TableStatus):
        super().__init__(
            message,
            current_status=current_status.value,
            target_status=target_status.value,
        )
        self.current_status = current_status
        self.target_status = target_status


def parse_status(value: str) -> TableStatus:
    try:
        return TableStatus(value)
    except ValueError as exc:
        allowed = ", ".join(sorted(TableStatus.all_values()))
        raise ValidationError(f"Unknown table status '{value}'. Allowed: {allowed}") from exc


def is_orderable(status: str | TableStatus) -> bool:
    """Whether a table in this status accepts QR scans and cart activity."""
    return parse_status(status) not in BLOCKED_TABLE_STATUSES


class TableStateMachine:
    """Validates and applies table status transitions."""

    def can_transition(
        self, current: TableStatus, target: TableStatus, actor: str = ACTOR_STAFF
    ) -> bool:
        if current == target:
            return True
        return actor in TABLE_STATUS_TRANSITIONS.get((current, target), set())

    def transition(self, table: Table, target: str | TableStatus, actor: str = ACTOR_STAFF) -> bool:
        """
        Move `table` to `target`.

        Returns True when the status changed, False for a no-op (same status).

        Raises:
            TableStateError: if the transition is not in the transition table
                for this actor
        """
        current = parse_status(table.status)
        target = parse_status(target)

        if current == target:
            return False

        if not self.can_transition(current, target, actor):
            raise TableStateError(
                f"Invalid table status transition: {current.value} -> {target.value}",
                current,
                target,
            )

        table.status = target.value
        logger.info(
            "Table status changed",
            extra={
                "table_id": table.id,
                "restaurant_id": table.restaurant_id,
                "from_status": current.value,
                "to_status": target.value,
                "actor": actor,
            },
        )
        return True


table_state_machine = TableStateMachine()
