"""
Tests for QueueStateMachine - status transitions and timestamp stamping.
"""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import BASE_TIME, OTHER_SHOP_ID, SHOP_ID
from shopqueue.exceptions import QueueError, QueueErrorType
from shopqueue.models import QueueStatus
from shopqueue.services.queue_state_machine import QueueStateMachine
from shopqueue.utils.status_utils import TERMINAL_STATUSES, VALID_TRANSITIONS, can_transition, is_terminal

ALLOWED_PAIRS = [
    (current, new)
    for current, targets in VALID_TRANSITIONS.items()
    for new in sorted(targets, key=lambda s: s.value)
]
DISALLOWED_PAIRS = [
    (current, new)
    for current in QueueStatus
    for new in QueueStatus
    if new not in VALID_TRANSITIONS[current]
]
CALLED_AT = BASE_TIME + timedelta(minutes=10)


@pytest.fixture
def state_machine(memory_store, clock):
    return QueueStateMachine(memory_store, clock=clock)


def _pair_id(pair):
    return f"{pair[0].value}->{pair[1].value}"


class TestTransitionTable:
    """Every pair in the table succeeds, every other pair is rejected."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current,new", ALLOWED_PAIRS, ids=[_pair_id(p) for p in ALLOWED_PAIRS])
    async def test_allowed_transition(self, state_machine, make_entry, clock, current, new):
        called_at = CALLED_AT if current == QueueStatus.SERVING else None
        entry = make_entry(status=current, called_at=called_at)

        updated = await state_machine.transition(entry.id, SHOP_ID, new, employee_id="emp-1")

        assert updated.status == new
        if new == QueueStatus.SERVING:
            assert updated.called_at == clock.now
            assert updated.served_by_employee_id == "emp-1"
        elif new == QueueStatus.COMPLETED:
            assert updated.completed_at == clock.now
            assert updated.actual_wait_time == 20
        elif new in (QueueStatus.CANCELLED, QueueStatus.NO_SHOW):
            assert updated.completed_at == clock.now
            assert updated.actual_wait_time is None
        else:
            assert updated.completed_at is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current,new", DISALLOWED_PAIRS, ids=[_pair_id(p) for p in DISALLOWED_PAIRS])
    async def test_disallowed_transition(self, state_machine, make_entry, current, new):
        entry = make_entry(status=current, notes="original")

        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(entry.id, SHOP_ID, new, employee_id="emp-1", notes="changed")

        assert exc_info.value.error_type == QueueErrorType.VALIDATION_ERROR
        assert entry.status == current
        assert entry.notes == "original"
        assert entry.completed_at is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    async def test_terminal_states_reject_everything(self, state_machine, make_entry, terminal):
        entry = make_entry(status=terminal)

        for new in QueueStatus:
            with pytest.raises(QueueError) as exc_info:
                await state_machine.transition(entry.id, SHOP_ID, new, employee_id="emp-1")
            assert exc_info.value.error_type == QueueErrorType.VALIDATION_ERROR

        assert entry.status == terminal

    def test_can_transition(self):
        assert can_transition(QueueStatus.WAITING, QueueStatus.SERVING)
        assert can_transition("confirmed", "waiting")
        assert not can_transition(QueueStatus.SERVING, QueueStatus.WAITING)
        assert not can_transition(QueueStatus.COMPLETED, QueueStatus.CANCELLED)
        assert not can_transition("waiting", "bogus")
        assert QueueStateMachine.can_transition(QueueStatus.WAITING, QueueStatus.NO_SHOW)
        assert is_terminal("no_show")
        assert not is_terminal(QueueStatus.CONFIRMED)


class TestTransitionSideEffects:

    @pytest.mark.asyncio
    async def test_called_at_not_overwritten(self, state_machine, make_entry):
        entry = make_entry(status=QueueStatus.WAITING, called_at=CALLED_AT)

        updated = await state_machine.transition(entry.id, SHOP_ID, QueueStatus.SERVING)

        assert updated.called_at == CALLED_AT
        assert updated.served_by_employee_id is None

    @pytest.mark.asyncio
    async def test_completed_without_called_at_has_no_actual_wait(self, state_machine, make_entry, clock):
        entry = make_entry(status=QueueStatus.SERVING)

        updated = await state_machine.transition(entry.id, SHOP_ID, QueueStatus.COMPLETED)

        assert updated.completed_at == clock.now
        assert updated.actual_wait_time is None

    @pytest.mark.asyncio
    async def test_actual_wait_rounds_to_nearest_minute(self, state_machine, make_entry, clock):
        entry = make_entry(status=QueueStatus.SERVING, called_at=clock.now - timedelta(minutes=4, seconds=30))

        updated = await state_machine.transition(entry.id, SHOP_ID, QueueStatus.COMPLETED)

        assert updated.actual_wait_time == 5

    @pytest.mark.asyncio
    async def test_notes_overwritten_when_supplied(self, state_machine, make_entry):
        entry = make_entry(status=QueueStatus.WAITING, notes="old")

        updated = await state_machine.transition(entry.id, SHOP_ID, QueueStatus.CONFIRMED, notes="new")
        assert updated.notes == "new"

        updated = await state_machine.transition(entry.id, SHOP_ID, QueueStatus.WAITING)
        assert updated.notes == "new"

    @pytest.mark.asyncio
    async def test_string_status_accepted(self, state_machine, make_entry):
        entry = make_entry(status="waiting")

        updated = await state_machine.transition(entry.id, SHOP_ID, "confirmed")

        assert updated.status == QueueStatus.CONFIRMED


class TestTransitionErrors:

    @pytest.mark.asyncio
    async def test_no_show_requires_employee(self, state_machine, make_entry):
        entry = make_entry(status=QueueStatus.WAITING)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(entry.id, SHOP_ID, QueueStatus.NO_SHOW)

        assert exc_info.value.error_type == QueueErrorType.VALIDATION_ERROR
        assert entry.status == QueueStatus.WAITING

    @pytest.mark.asyncio
    async def test_no_show_on_missing_entry_is_not_found(self, state_machine):
        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition("missing", SHOP_ID, QueueStatus.NO_SHOW)
        assert exc_info.value.error_type == QueueErrorType.NOT_FOUND

    @pytest.mark.asyncio
    async def test_no_show_on_other_shop_is_unauthorized(self, state_machine, make_entry):
        entry = make_entry(shop_id=OTHER_SHOP_ID)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(entry.id, SHOP_ID, QueueStatus.NO_SHOW)

        assert exc_info.value.error_type == QueueErrorType.UNAUTHORIZED
        assert entry.status == QueueStatus.WAITING

    @pytest.mark.asyncio
    async def test_no_show_from_terminal_reports_transition_first(self, state_machine, make_entry):
        entry = make_entry(status=QueueStatus.COMPLETED)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(entry.id, SHOP_ID, QueueStatus.NO_SHOW)

        assert "Invalid status transition" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("queue_id,shop_id,new_status", [
        ("", SHOP_ID, QueueStatus.SERVING),
        ("q-1", "", QueueStatus.SERVING),
        ("q-1", SHOP_ID, None),
        ("q-1", SHOP_ID, "teleported"),
    ])
    async def test_missing_or_invalid_arguments(self, state_machine, queue_id, shop_id, new_status):
        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(queue_id, shop_id, new_status)
        assert exc_info.value.error_type == QueueErrorType.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_not_found(self, state_machine):
        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition("missing", SHOP_ID, QueueStatus.SERVING)
        assert exc_info.value.error_type == QueueErrorType.NOT_FOUND
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_other_shop_is_unauthorized(self, state_machine, make_entry):
        entry = make_entry(shop_id=OTHER_SHOP_ID)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(entry.id, SHOP_ID, QueueStatus.SERVING)

        assert exc_info.value.error_type == QueueErrorType.UNAUTHORIZED
        assert entry.status == QueueStatus.WAITING

    @pytest.mark.asyncio
    async def test_store_failure_wrapped_as_unknown(self, state_machine, memory_store, make_entry):
        entry = make_entry(status=QueueStatus.WAITING)
        failure = RuntimeError("connection reset")
        memory_store.update = AsyncMock(side_effect=failure)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.transition(entry.id, SHOP_ID, QueueStatus.SERVING)

        assert exc_info.value.error_type == QueueErrorType.UNKNOWN
        assert exc_info.value.cause is failure
        assert exc_info.value.__cause__ is failure
        assert not exc_info.value.is_user_facing


class TestAssignToEmployee:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [QueueStatus.WAITING, QueueStatus.CONFIRMED])
    async def test_assign_promotes_to_serving(self, state_machine, make_entry, clock, status):
        entry = make_entry(status=status)

        updated = await state_machine.assign_to_employee(entry.id, SHOP_ID, "emp-7")

        assert updated.status == QueueStatus.SERVING
        assert updated.served_by_employee_id == "emp-7"
        assert updated.called_at == clock.now

    @pytest.mark.asyncio
    async def test_reassign_serving_keeps_called_at(self, state_machine, make_entry):
        entry = make_entry(status=QueueStatus.SERVING, called_at=CALLED_AT, served_by_employee_id="emp-1")

        updated = await state_machine.assign_to_employee(entry.id, SHOP_ID, "emp-2")

        assert updated.served_by_employee_id == "emp-2"
        assert updated.called_at == CALLED_AT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    async def test_terminal_entries_cannot_be_assigned(self, state_machine, make_entry, status):
        entry = make_entry(status=status)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.assign_to_employee(entry.id, SHOP_ID, "emp-7")

        assert exc_info.value.error_type == QueueErrorType.VALIDATION_ERROR
        assert entry.served_by_employee_id is None

    @pytest.mark.asyncio
    async def test_assign_requires_employee(self, state_machine, make_entry):
        entry = make_entry()

        with pytest.raises(QueueError) as exc_info:
            await state_machine.assign_to_employee(entry.id, SHOP_ID, "")

        assert exc_info.value.error_type == QueueErrorType.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_assign_other_shop(self, state_machine, make_entry):
        entry = make_entry(shop_id=OTHER_SHOP_ID)

        with pytest.raises(QueueError) as exc_info:
            await state_machine.assign_to_employee(entry.id, SHOP_ID, "emp-7")

        assert exc_info.value.error_type == QueueErrorType.UNAUTHORIZED
