from typing import Optional

from fastapi import APIRouter, Depends, status

from shopqueue.api.dependencies.services import (
    get_bulk_operations_service,
    get_position_service,
    get_queue_store,
    get_state_machine,
)
from shopqueue.repositories.interface import QueueStore
from shopqueue.schemas.bulk import (
    BulkDeleteRequest,
    BulkOperationResult,
    BulkReassignRequest,
    BulkUpdateRequest,
)
from shopqueue.schemas.queue_entry import (
    AssignEmployeeRequest,
    QueueEntryCreate,
    QueueEntrySchema,
    QueuePositionInfo,
    StatusTransitionRequest,
)
from shopqueue.services.bulk_operations import BulkQueueOperationsService
from shopqueue.services.queue_position import QueuePositionService
from shopqueue.services.queue_state_machine import QueueStateMachine

router = APIRouter()


@router.post("/", response_model=QueueEntrySchema, status_code=status.HTTP_201_CREATED)
async def join_queue(
    shop_id: str,
    payload: QueueEntryCreate,
    store: QueueStore = Depends(get_queue_store),
):
    """
    Adds a customer to the shop's queue as WAITING.
    """
    entry = await store.create_entry(shop_id, payload)
    return QueueEntrySchema.model_validate(entry)


@router.get("/next", response_model=Optional[QueueEntrySchema])
async def get_next_to_serve(
    shop_id: str,
    employee_id: Optional[str] = None,
    priority_only: bool = False,
    position_service: QueuePositionService = Depends(get_position_service),
):
    """
    Returns the entry that should be served next, or null when nobody is waiting.
    """
    entry = await position_service.get_next_to_serve(shop_id, employee_id, priority_only)
    return QueueEntrySchema.model_validate(entry) if entry else None


@router.post("/bulk/delete", response_model=BulkOperationResult)
async def bulk_delete_queues(
    shop_id: str,
    payload: BulkDeleteRequest,
    bulk_service: BulkQueueOperationsService = Depends(get_bulk_operations_service),
):
    return await bulk_service.bulk_delete(payload.queue_ids, shop_id)


@router.post("/bulk/reassign", response_model=BulkOperationResult)
async def bulk_reassign_queues(
    shop_id: str,
    payload: BulkReassignRequest,
    bulk_service: BulkQueueOperationsService = Depends(get_bulk_operations_service),
):
    return await bulk_service.bulk_reassign(payload.queue_ids, payload.target_employee_id, shop_id)


@router.post("/bulk/update", response_model=BulkOperationResult)
async def bulk_update_queues(
    shop_id: str,
    payload: BulkUpdateRequest,
    bulk_service: BulkQueueOperationsService = Depends(get_bulk_operations_service),
):
    return await bulk_service.bulk_update(payload.queue_ids, payload.updates, shop_id)


@router.get("/{queue_id}", response_model=QueueEntrySchema)
async def get_queue_entry(
    shop_id: str,
    queue_id: str,
    store: QueueStore = Depends(get_queue_store),
):
    entry = await store.get_for_shop(queue_id, shop_id, "getQueue")
    return QueueEntrySchema.model_validate(entry)


@router.get("/{queue_id}/position", response_model=QueuePositionInfo)
async def get_queue_position(
    shop_id: str,
    queue_id: str,
    position_service: QueuePositionService = Depends(get_position_service),
):
    """
    Rank and estimated wait of a waiting entry. Entries that are not waiting report position 0.
    """
    return await position_service.estimate(queue_id, shop_id)


@router.post("/{queue_id}/status", response_model=QueueEntrySchema)
async def update_queue_status(
    shop_id: str,
    queue_id: str,
    payload: StatusTransitionRequest,
    state_machine: QueueStateMachine = Depends(get_state_machine),
):
    entry = await state_machine.transition(
        queue_id, shop_id, payload.status, employee_id=payload.employee_id, notes=payload.notes
    )
    return QueueEntrySchema.model_validate(entry)


@router.post("/{queue_id}/assign", response_model=QueueEntrySchema)
async def assign_queue_to_employee(
    shop_id: str,
    queue_id: str,
    payload: AssignEmployeeRequest,
    state_machine: QueueStateMachine = Depends(get_state_machine),
):
    entry = await state_machine.assign_to_employee(queue_id, shop_id, payload.employee_id)
    return QueueEntrySchema.model_validate(entry)
