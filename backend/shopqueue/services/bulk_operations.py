"""
Bulk queue mutations (delete / reassign / field update).

Ids are validated up front; any pre-flight violation fails the whole call
before anything is mutated. Items are then processed in fixed-size batches:
batches run one after another, items within a batch run concurrently, and a
failing item is recorded in the result without stopping the rest.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from shopqueue.core.config import settings
from shopqueue.exceptions import (
    QueueError,
    QueueErrorType,
    QueueNotFoundError,
    QueueUnauthorizedError,
    QueueValidationError,
)
from shopqueue.models.queue_entry import QueueEntry, QueueStatus
from shopqueue.repositories.interface import QueueStore
from shopqueue.schemas.bulk import BulkOperationResult, FailedItem
from shopqueue.schemas.queue_entry import QueueEntryUpdate
from shopqueue.utils.status_utils import is_completed, is_serving, is_waiting

logger = logging.getLogger(__name__)

ItemHandler = Callable[[str], Awaitable[Any]]


def chunk(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BulkQueueOperationsService:
    def __init__(
        self,
        store: QueueStore,
        batch_size: Optional[int] = None,
        max_items: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.batch_size = batch_size or settings.BULK_BATCH_SIZE
        self.max_items = max_items or settings.BULK_MAX_ITEMS
        self.clock = clock or datetime.utcnow

    # ==================== Pre-flight ====================

    def _unique_ids(self, queue_ids: Sequence[str], operation: str) -> List[str]:
        if not queue_ids:
            raise QueueValidationError("At least one queue ID is required.", operation=operation)

        unique_ids = list(dict.fromkeys(queue_ids))
        if len(unique_ids) > self.max_items:
            raise QueueValidationError(
                f"Cannot process more than {self.max_items} queue entries at once.",
                operation=operation,
                context={"requested": len(unique_ids)},
            )
        return unique_ids

    async def _resolve_entries(
        self,
        queue_ids: List[str],
        shop_id: Optional[str],
        operation: str,
    ) -> Dict[str, QueueEntry]:
        entries = {e.id: e for e in await self.store.get_by_ids(queue_ids)}

        missing = [qid for qid in queue_ids if qid not in entries]
        if missing:
            raise QueueNotFoundError(
                f"Queue entries not found: {', '.join(missing)}",
                operation=operation,
                context={"missing_ids": missing},
            )

        if shop_id is not None:
            shops = {e.shop_id for e in entries.values()}
            if len(shops) > 1:
                raise QueueValidationError(
                    "All queue entries must belong to the same shop.",
                    operation=operation,
                    context={"shop_ids": sorted(shops)},
                )
            if shops.pop() != shop_id:
                raise QueueUnauthorizedError(
                    "Queue entries do not belong to the specified shop.",
                    operation=operation,
                    context={"shop_id": shop_id},
                )
        return entries

    # ==================== Execution ====================

    async def _run_batches(self, queue_ids: List[str], handler: ItemHandler, operation: str) -> BulkOperationResult:
        succeeded: List[str] = []
        failed: List[FailedItem] = []

        for batch_number, batch in enumerate(chunk(queue_ids, self.batch_size), start=1):
            results = await asyncio.gather(*(handler(qid) for qid in batch), return_exceptions=True)

            for queue_id, result in zip(batch, results):
                if isinstance(result, BaseException):
                    message = result.message if isinstance(result, QueueError) else str(result)
                    logger.warning(f"{operation}: item {queue_id} failed: {message}")
                    failed.append(FailedItem(id=queue_id, error=message or type(result).__name__))
                else:
                    succeeded.append(queue_id)

            logger.debug(f"{operation}: batch {batch_number} done ({len(batch)} items)")

        total = len(queue_ids)
        result = BulkOperationResult(
            success=not failed,
            total_requested=total,
            succeeded_ids=succeeded,
            failed_items=failed,
            success_rate=len(succeeded) / total if total else 0.0,
        )
        logger.info(
            f"{operation} finished: {result.succeeded_count}/{total} succeeded, {result.failed_count} failed"
        )
        return result

    async def _execute(
        self,
        operation: str,
        queue_ids: Sequence[str],
        shop_id: Optional[str],
        prepare: Callable[[Dict[str, QueueEntry]], ItemHandler],
    ) -> BulkOperationResult:
        try:
            unique_ids = self._unique_ids(queue_ids, operation)
            entries = await self._resolve_entries(unique_ids, shop_id, operation)
            handler = prepare(entries)
            return await self._run_batches(unique_ids, handler, operation)
        except QueueError:
            raise
        except Exception as e:
            logger.error(f"{operation} failed: {e}", exc_info=True)
            raise QueueError(
                QueueErrorType.OPERATION_FAILED,
                f"Bulk operation failed: {e}",
                operation=operation,
                context={"shop_id": shop_id, "requested": len(queue_ids or [])},
                cause=e,
            ) from e

    # ==================== Operations ====================

    async def bulk_delete(self, queue_ids: Sequence[str], shop_id: str) -> BulkOperationResult:
        operation = "bulkDeleteQueues"
        if not shop_id:
            raise QueueValidationError("Shop ID is required.", operation=operation)

        def prepare(entries: Dict[str, QueueEntry]) -> ItemHandler:
            blocked = [e.id for e in entries.values() if is_serving(e.status) or is_completed(e.status)]
            if blocked:
                raise QueueValidationError(
                    "Cannot delete queue entries that are being served or completed.",
                    operation=operation,
                    context={"blocked_ids": blocked},
                )

            async def delete_one(queue_id: str) -> None:
                if not await self.store.delete(queue_id):
                    raise QueueError(QueueErrorType.OPERATION_FAILED, "Queue entry could not be deleted.")

            return delete_one

        return await self._execute(operation, queue_ids, shop_id, prepare)

    async def bulk_reassign(
        self,
        queue_ids: Sequence[str],
        target_employee_id: str,
        shop_id: Optional[str] = None,
    ) -> BulkOperationResult:
        operation = "bulkReassignQueues"
        if not target_employee_id:
            raise QueueValidationError("Target employee ID is required.", operation=operation)

        def prepare(entries: Dict[str, QueueEntry]) -> ItemHandler:
            completed = [e.id for e in entries.values() if is_completed(e.status)]
            if completed:
                raise QueueValidationError(
                    "Cannot reassign completed queue entries.",
                    operation=operation,
                    context={"completed_ids": completed},
                )

            async def reassign_one(queue_id: str) -> None:
                entry = entries[queue_id]
                fields: Dict[str, Any] = {"served_by_employee_id": target_employee_id}
                if is_waiting(entry.status):
                    fields["status"] = QueueStatus.SERVING
                    if entry.called_at is None:
                        fields["called_at"] = self.clock()
                await self.store.update(queue_id, fields)

            return reassign_one

        return await self._execute(operation, queue_ids, shop_id, prepare)

    async def bulk_update(
        self,
        queue_ids: Sequence[str],
        updates: Union[QueueEntryUpdate, Dict[str, Any]],
        shop_id: Optional[str] = None,
    ) -> BulkOperationResult:
        operation = "bulkUpdateQueues"
        if updates is None:
            updates = QueueEntryUpdate()
        elif isinstance(updates, dict):
            updates = QueueEntryUpdate.model_validate(updates)

        fields = updates.to_fields()
        if not fields:
            raise QueueValidationError("Update data must contain at least one field.", operation=operation)

        def prepare(entries: Dict[str, QueueEntry]) -> ItemHandler:
            async def update_one(queue_id: str) -> None:
                await self.store.update(queue_id, dict(fields))

            return update_one

        return await self._execute(operation, queue_ids, shop_id, prepare)
