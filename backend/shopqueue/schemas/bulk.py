from typing import List

from pydantic import BaseModel, Field

from shopqueue.schemas.queue_entry import QueueEntryUpdate


class BulkDeleteRequest(BaseModel):
    queue_ids: List[str]


class BulkReassignRequest(BaseModel):
    queue_ids: List[str]
    target_employee_id: str


class BulkUpdateRequest(BaseModel):
    queue_ids: List[str]
    updates: QueueEntryUpdate


class FailedItem(BaseModel):
    id: str
    error: str


class BulkOperationResult(BaseModel):
    success: bool
    total_requested: int
    succeeded_ids: List[str] = Field(default_factory=list)
    failed_items: List[FailedItem] = Field(default_factory=list)
    success_rate: float = 0.0

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_items)
