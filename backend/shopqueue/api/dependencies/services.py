from fastapi import Request

from shopqueue.repositories.interface import QueueStore
from shopqueue.services.analytics_cache import AnalyticsCache
from shopqueue.services.analytics_service import QueueAnalyticsService
from shopqueue.services.bulk_operations import BulkQueueOperationsService
from shopqueue.services.queue_position import QueuePositionService
from shopqueue.services.queue_state_machine import QueueStateMachine


def init_queue_services(state, store: QueueStore, analytics_cache: AnalyticsCache) -> None:
    """Wires the queue services onto app.state around one store and one analytics cache."""
    state.queue_store = store
    state.queue_state_machine = QueueStateMachine(store)
    state.queue_position_service = QueuePositionService(store)
    state.bulk_operations_service = BulkQueueOperationsService(store)
    state.analytics_service = QueueAnalyticsService(store, analytics_cache)


def get_queue_store(request: Request) -> QueueStore:
    return request.app.state.queue_store


def get_state_machine(request: Request) -> QueueStateMachine:
    return request.app.state.queue_state_machine


def get_position_service(request: Request) -> QueuePositionService:
    return request.app.state.queue_position_service


def get_bulk_operations_service(request: Request) -> BulkQueueOperationsService:
    return request.app.state.bulk_operations_service


def get_analytics_service(request: Request) -> QueueAnalyticsService:
    return request.app.state.analytics_service
