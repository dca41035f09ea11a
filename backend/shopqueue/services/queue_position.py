import logging
from typing import Iterable, List, Optional

from shopqueue.exceptions import QueueError, QueueErrorType, QueueValidationError
from shopqueue.models.queue_entry import QueueEntry, QueuePriority, QueueStatus
from shopqueue.repositories.interface import QueueStore
from shopqueue.schemas.queue_entry import QueueFilters, QueuePositionInfo
from shopqueue.utils.math_utils import round_half_up
from shopqueue.utils.status_utils import is_waiting, priority_rank, to_queue_status

logger = logging.getLogger(__name__)

WAIT_BUFFER_RATIO = 0.1


def sort_by_priority(entries: Iterable[QueueEntry]) -> List[QueueEntry]:
    """
    Ranks entries URGENT < HIGH < NORMAL, oldest first within a priority.
    """
    return sorted(entries, key=lambda e: (priority_rank(e.priority), e.created_at))


def calculate_estimated_wait_time(ahead: List[QueueEntry], own_estimate: int) -> int:
    """
    Sum of the estimates of every entry ahead plus a 10% buffer.
    Entries without an estimate count with the target's own estimate.
    """
    total = sum((e.estimated_wait_time or own_estimate or 0) for e in ahead)
    return total + round_half_up(WAIT_BUFFER_RATIO * total)


class QueuePositionService:
    def __init__(self, store: QueueStore):
        self.store = store

    async def _waiting_entries(self, shop_id: str, priority_only: bool = False) -> List[QueueEntry]:
        filters = QueueFilters(
            shop_id=shop_id,
            status_filter=[QueueStatus.WAITING],
            priority_filter=[QueuePriority.URGENT, QueuePriority.HIGH] if priority_only else None,
        )
        return await self.store.list_all(filters)

    async def estimate(self, queue_id: str, shop_id: str) -> QueuePositionInfo:
        operation = "getQueuePosition"
        context = {"queue_id": queue_id, "shop_id": shop_id}

        if not queue_id or not shop_id:
            raise QueueValidationError("Queue ID and shop ID are required.", operation=operation, context=context)

        try:
            entry = await self.store.get_for_shop(queue_id, shop_id, operation)
            status = to_queue_status(entry.status)
            not_queued = QueuePositionInfo(position=0, total_ahead=0, estimated_wait_time=0, status=status)

            if not is_waiting(status):
                return not_queued

            ranked = sort_by_priority(await self._waiting_entries(shop_id))
            index = next((i for i, e in enumerate(ranked) if e.id == queue_id), None)
            if index is None:
                # Entry left the waiting set between the lookup and the listing
                return not_queued

            wait = calculate_estimated_wait_time(ranked[:index], entry.estimated_wait_time or 0)
            return QueuePositionInfo(
                position=index + 1,
                total_ahead=index,
                estimated_wait_time=wait,
                status=status,
            )
        except QueueError:
            raise
        except Exception as e:
            logger.error(f"Failed to compute position for queue {queue_id}: {e}", exc_info=True)
            raise QueueError(
                QueueErrorType.UNKNOWN,
                f"Failed to compute queue position: {e}",
                operation=operation,
                context=context,
                cause=e,
            ) from e

    async def get_next_to_serve(
        self,
        shop_id: str,
        employee_id: Optional[str] = None,
        priority_only: bool = False,
    ) -> Optional[QueueEntry]:
        """
        Head of the ranked waiting line, skipping entries already held by
        another employee. Returns None when nobody is waiting.
        """
        operation = "getNextQueueToServe"
        context = {"shop_id": shop_id, "employee_id": employee_id, "priority_only": priority_only}

        if not shop_id:
            raise QueueValidationError("Shop ID is required.", operation=operation, context=context)

        try:
            candidates = [
                e for e in await self._waiting_entries(shop_id, priority_only)
                if not e.served_by_employee_id or e.served_by_employee_id == employee_id
            ]
            ranked = sort_by_priority(candidates)
            return ranked[0] if ranked else None
        except QueueError:
            raise
        except Exception as e:
            logger.error(f"Failed to pick next queue for shop {shop_id}: {e}", exc_info=True)
            raise QueueError(
                QueueErrorType.UNKNOWN,
                f"Failed to get next queue to serve: {e}",
                operation=operation,
                context=context,
                cause=e,
            ) from e
