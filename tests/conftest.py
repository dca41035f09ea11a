import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shopqueue.models import QueueEntry, QueuePriority, QueueServiceLine, QueueStatus
from shopqueue.repositories.memory_store import InMemoryQueueStore
from shopqueue.services.analytics_cache import InMemoryAnalyticsCache

BASE_TIME = datetime(2024, 3, 4, 9, 0, 0)
SHOP_ID = "shop-1"
OTHER_SHOP_ID = "shop-2"


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def build_entry(
    shop_id=SHOP_ID,
    status=QueueStatus.WAITING,
    priority=QueuePriority.NORMAL,
    created_at=None,
    estimated_wait_time=0,
    queue_id=None,
    service_lines=None,
    **kwargs,
) -> QueueEntry:
    lines = [
        QueueServiceLine(
            position=i,
            service_id=line["service_id"],
            service_name=line.get("service_name"),
            quantity=line.get("quantity", 1),
            unit_price=Decimal(str(line.get("unit_price", 0))),
        )
        for i, line in enumerate(service_lines or [])
    ]
    return QueueEntry(
        id=queue_id or str(uuid.uuid4()),
        shop_id=shop_id,
        queue_number=kwargs.pop("queue_number", "Q001"),
        status=status,
        priority=priority,
        estimated_wait_time=estimated_wait_time,
        created_at=created_at or BASE_TIME,
        updated_at=created_at or BASE_TIME,
        called_at=kwargs.pop("called_at", None),
        completed_at=kwargs.pop("completed_at", None),
        actual_wait_time=kwargs.pop("actual_wait_time", None),
        served_by_employee_id=kwargs.pop("served_by_employee_id", None),
        notes=kwargs.pop("notes", None),
        service_lines=lines,
    )


@pytest.fixture
def clock():
    return FakeClock(BASE_TIME + timedelta(minutes=30))


@pytest.fixture
def memory_store():
    return InMemoryQueueStore()


@pytest.fixture
def analytics_cache(clock):
    return InMemoryAnalyticsCache(clock=clock)


@pytest.fixture
def make_entry(memory_store):
    """Builds an entry and stores it in memory_store."""
    def _make(**kwargs) -> QueueEntry:
        return memory_store.add_entry(build_entry(**kwargs))
    return _make
