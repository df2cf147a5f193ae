import pytest

from smartmenu_shared.constants import TableStatus
from smartmenu_shared.models import Table
from smartmenu_shared.services.table_state_machine import (
    ACTOR_STAFF,
    ACTOR_SYSTEM,
    TableStateError,
    is_orderable,
    table_state_machine,
)
from smartmenu_shared.validation import ValidationError


def _table(status: TableStatus) -> Table:
    return Table(id="T1", restaurant_id="R1", area_id="A1", table_number="1", status=status.value)


@pytest.mark.parametrize(
    "status, orderable",
    [
        (TableStatus.AVAILABLE, True),
        (TableStatus.OCCUPIED, True),
        (TableStatus.RESERVED, True),
        (TableStatus.CLEANING, False),
        (TableStatus.OUT_OF_SERVICE, False),
    ],
)
def test_is_orderable(status, orderable) -> None:
    assert is_orderable(status) is orderable
    assert is_orderable(status.value) is orderable


def test_unknown_status_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        is_orderable("on_fire")


def test_staff_transition_changes_status() -> None:
    table = _table(TableStatus.OCCUPIED)
    assert table_state_machine.transition(table, "cleaning", actor=ACTOR_STAFF) is True
    assert table.status == "cleaning"


def test_same_status_is_a_noop() -> None:
    table = _table(TableStatus.AVAILABLE)
    assert table_state_machine.transition(table, TableStatus.AVAILABLE) is False


def test_disallowed_transition_raises_conflict() -> None:
    table = _table(TableStatus.CLEANING)
    with pytest.raises(TableStateError) as exc_info:
        table_state_machine.transition(table, TableStatus.OCCUPIED)
    assert exc_info.value.status == 409
    assert exc_info.value.extra == {"current_status": "cleaning", "target_status": "occupied"}
    assert table.status == "cleaning"


def test_system_cannot_take_a_table_out_of_service() -> None:
    assert table_state_machine.can_transition(
        TableStatus.AVAILABLE, TableStatus.OUT_OF_SERVICE, ACTOR_STAFF
    )
    assert not table_state_machine.can_transition(
        TableStatus.AVAILABLE, TableStatus.OUT_OF_SERVICE, ACTOR_SYSTEM
    )
    assert not table_state_machine.can_transition(
        TableStatus.OUT_OF_SERVICE, TableStatus.AVAILABLE, ACTOR_SYSTEM
    )
