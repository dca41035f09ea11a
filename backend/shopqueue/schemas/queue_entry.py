from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shopqueue.models.queue_entry import QueuePriority, QueueStatus

T = TypeVar("T")


class ServiceLineSchema(BaseModel):
    service_id: str
    service_name: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(Decimal("0"), ge=Decimal("0"))

    model_config = ConfigDict(from_attributes=True)

    @field_validator("unit_price", mode="before")
    @classmethod
    def convert_float_to_decimal(cls, v):
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class QueueEntrySchema(BaseModel):
    id: str
    shop_id: str
    queue_number: str
    status: QueueStatus
    priority: QueuePriority
    estimated_wait_time: int = 0
    actual_wait_time: Optional[int] = None
    created_at: datetime
    called_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    served_by_employee_id: Optional[str] = None
    service_lines: List[ServiceLineSchema] = []
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("estimated_wait_time", mode="before")
    @classmethod
    def default_estimated_wait_time(cls, v):
        return v or 0


class QueueEntryCreate(BaseModel):
    """Payload for a customer joining the queue."""
    priority: QueuePriority = QueuePriority.NORMAL
    estimated_wait_time: int = Field(0, ge=0)
    service_lines: List[ServiceLineSchema] = []
    notes: Optional[str] = None


class QueueEntryUpdate(BaseModel):
    """
    Mutable field subset accepted by bulk update.
    Only explicitly provided fields are forwarded to the store.
    """
    status: Optional[QueueStatus] = None
    priority: Optional[QueuePriority] = None
    estimated_wait_time: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    called_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    served_by_employee_id: Optional[str] = None
    service_lines: Optional[List[ServiceLineSchema]] = None

    def to_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


class StatusTransitionRequest(BaseModel):
    status: QueueStatus
    employee_id: Optional[str] = None
    notes: Optional[str] = None


class AssignEmployeeRequest(BaseModel):
    employee_id: str = Field(..., min_length=1)


class QueuePositionInfo(BaseModel):
    position: int
    total_ahead: int
    estimated_wait_time: int
    status: QueueStatus


class QueueFilters(BaseModel):
    """
    Listing filters understood by every queue store.
    date_from / date_to bound created_at inclusively.
    """
    shop_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    employee_id: Optional[str] = None
    service_id: Optional[str] = None
    status_filter: Optional[List[QueueStatus]] = None
    priority_filter: Optional[List[QueuePriority]] = None


class Page(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total
