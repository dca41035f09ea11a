"""
Queue entry status lifecycle.

WAITING -> CONFIRMED / SERVING -> COMPLETED, with CANCELLED and NO_SHOW
reachable from any non-terminal state. Terminal entries never change again.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from shopqueue.exceptions import QueueError, QueueErrorType, QueueValidationError
from shopqueue.models.queue_entry import QueueEntry, QueueStatus
from shopqueue.repositories.interface import QueueStore
from shopqueue.utils.math_utils import minutes_between
from shopqueue.utils.status_utils import (
    ASSIGNABLE_STATUSES,
    can_transition,
    to_queue_status,
)

logger = logging.getLogger(__name__)


class QueueStateMachine:
    def __init__(self, store: QueueStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or datetime.utcnow

    @staticmethod
    def can_transition(current: Union[str, QueueStatus], new: Union[str, QueueStatus]) -> bool:
        return can_transition(current, new)

    async def transition(
        self,
        queue_id: str,
        shop_id: str,
        new_status: Union[str, QueueStatus],
        employee_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> QueueEntry:
        """
        Moves an entry to new_status, stamping called_at / completed_at /
        actual_wait_time as the target status requires.
        """
        operation = "updateQueueStatus"
        context = {"queue_id": queue_id, "shop_id": shop_id, "new_status": str(new_status)}

        if not queue_id or not shop_id or not new_status:
            raise QueueValidationError(
                "Queue ID, shop ID and new status are required.",
                operation=operation,
                context=context,
            )
        try:
            target = to_queue_status(new_status)
        except ValueError:
            raise QueueValidationError(f"Unknown queue status: {new_status}", operation=operation, context=context)

        try:
            entry = await self.store.get_for_shop(queue_id, shop_id, operation)
            current = to_queue_status(entry.status)

            if not can_transition(current, target):
                raise QueueValidationError(
                    f"Invalid status transition from {current.value} to {target.value}",
                    operation=operation,
                    context={**context, "current_status": current.value},
                )

            if target == QueueStatus.NO_SHOW and not employee_id:
                raise QueueValidationError(
                    "Employee ID is required to mark a queue entry as no-show.",
                    operation=operation,
                    context=context,
                )

            fields = self._transition_fields(entry, target, employee_id, notes)
            updated = await self.store.update(queue_id, fields)
            logger.info(f"Queue {queue_id} moved {current.value} -> {target.value}")
            return updated
        except QueueError:
            raise
        except Exception as e:
            logger.error(f"Failed to update status of queue {queue_id}: {e}", exc_info=True)
            raise QueueError(
                QueueErrorType.UNKNOWN,
                f"Failed to update queue status: {e}",
                operation=operation,
                context=context,
                cause=e,
            ) from e

    def _transition_fields(
        self,
        entry: QueueEntry,
        target: QueueStatus,
        employee_id: Optional[str],
        notes: Optional[str],
    ) -> Dict[str, Any]:
        now = self.clock()
        fields: Dict[str, Any] = {"status": target}

        if target == QueueStatus.SERVING:
            if entry.called_at is None:
                fields["called_at"] = now
            if employee_id:
                fields["served_by_employee_id"] = employee_id
        elif target == QueueStatus.COMPLETED:
            fields["completed_at"] = now
            if entry.called_at is not None:
                fields["actual_wait_time"] = minutes_between(entry.called_at, now)
        elif target in (QueueStatus.CANCELLED, QueueStatus.NO_SHOW):
            fields["completed_at"] = now

        if notes is not None:
            fields["notes"] = notes
        return fields

    async def assign_to_employee(self, queue_id: str, shop_id: str, employee_id: str) -> QueueEntry:
        """
        Hands an open entry to an employee and marks it SERVING.
        """
        operation = "assignQueueToEmployee"
        context = {"queue_id": queue_id, "shop_id": shop_id, "employee_id": employee_id}

        if not queue_id or not shop_id or not employee_id:
            raise QueueValidationError(
                "Queue ID, shop ID and employee ID are required.",
                operation=operation,
                context=context,
            )

        try:
            entry = await self.store.get_for_shop(queue_id, shop_id, operation)
            current = to_queue_status(entry.status)
            if current not in ASSIGNABLE_STATUSES:
                raise QueueValidationError(
                    f"Cannot assign a queue entry with status {current.value}",
                    operation=operation,
                    context={**context, "current_status": current.value},
                )

            fields: Dict[str, Any] = {
                "status": QueueStatus.SERVING,
                "served_by_employee_id": employee_id,
            }
            if entry.called_at is None:
                fields["called_at"] = self.clock()

            updated = await self.store.update(queue_id, fields)
            logger.info(f"Queue {queue_id} assigned to employee {employee_id}")
            return updated
        except QueueError:
            raise
        except Exception as e:
            logger.error(f"Failed to assign queue {queue_id}: {e}", exc_info=True)
            raise QueueError(
                QueueErrorType.UNKNOWN,
                f"Failed to assign queue entry: {e}",
                operation=operation,
                context=context,
                cause=e,
            ) from e
