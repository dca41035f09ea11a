"""
Utility functions for consistent status comparison across the application.
Handles the enum/string status inconsistency where QueueStatus may be stored
as a string in the database but loaded as an enum (or vice versa).
"""
from typing import Dict, FrozenSet, Union

from shopqueue.models.queue_entry import QueuePriority, QueueStatus

VALID_TRANSITIONS: Dict[QueueStatus, FrozenSet[QueueStatus]] = {
    QueueStatus.WAITING: frozenset({
        QueueStatus.CONFIRMED,
        QueueStatus.SERVING,
        QueueStatus.CANCELLED,
        QueueStatus.NO_SHOW,
    }),
    QueueStatus.CONFIRMED: frozenset({
        QueueStatus.SERVING,
        QueueStatus.CANCELLED,
        QueueStatus.NO_SHOW,
        QueueStatus.WAITING,
    }),
    QueueStatus.SERVING: frozenset({
        QueueStatus.COMPLETED,
        QueueStatus.CANCELLED,
        QueueStatus.NO_SHOW,
    }),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.CANCELLED: frozenset(),
    QueueStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset({
    QueueStatus.COMPLETED,
    QueueStatus.CANCELLED,
    QueueStatus.NO_SHOW,
})

ASSIGNABLE_STATUSES = frozenset({
    QueueStatus.WAITING,
    QueueStatus.CONFIRMED,
    QueueStatus.SERVING,
})

PRIORITY_RANK = {
    QueuePriority.URGENT.value: 1,
    QueuePriority.HIGH.value: 2,
    QueuePriority.NORMAL.value: 3,
}


def normalize_queue_status(status: Union[str, QueueStatus, None]) -> str:
    """
    Normalize a queue status to a lowercase string for consistent comparison.

    Args:
        status: Can be a QueueStatus enum, string, or None

    Returns:
        Lowercase string representation of the status, or empty string if None
    """
    if status is None:
        return ""

    if isinstance(status, QueueStatus):
        return status.value.lower()

    if hasattr(status, 'value'):
        return str(status.value).lower()

    return str(status).lower().replace('queuestatus.', '')


def to_queue_status(status: Union[str, QueueStatus, None]) -> QueueStatus:
    """Coerces a stored status into the enum. Raises ValueError on unknown values."""
    return QueueStatus(normalize_queue_status(status))


def normalize_priority(priority: Union[str, QueuePriority, None]) -> str:
    if priority is None:
        return ""

    if hasattr(priority, 'value'):
        return str(priority.value).lower()

    return str(priority).lower().replace('queuepriority.', '')


def priority_rank(priority: Union[str, QueuePriority, None]) -> int:
    """URGENT=1 < HIGH=2 < NORMAL=3. Unknown priorities rank with NORMAL."""
    return PRIORITY_RANK.get(normalize_priority(priority), PRIORITY_RANK[QueuePriority.NORMAL.value])


def is_queue_status(status: Union[str, QueueStatus, None], target: QueueStatus) -> bool:
    """
    Check if a queue status matches the target status.
    Handles both enum and string representations.
    """
    return normalize_queue_status(status) == target.value


def is_terminal(status: Union[str, QueueStatus, None]) -> bool:
    """
    Check if an entry is in a terminal state.
    Terminal states: COMPLETED, CANCELLED, NO_SHOW
    """
    return normalize_queue_status(status) in {s.value for s in TERMINAL_STATUSES}


def is_waiting(status: Union[str, QueueStatus, None]) -> bool:
    """Check if a queue status indicates WAITING."""
    return is_queue_status(status, QueueStatus.WAITING)


def is_serving(status: Union[str, QueueStatus, None]) -> bool:
    """Check if a queue status indicates SERVING."""
    return is_queue_status(status, QueueStatus.SERVING)


def is_completed(status: Union[str, QueueStatus, None]) -> bool:
    """Check if a queue status indicates COMPLETED."""
    return is_queue_status(status, QueueStatus.COMPLETED)


def can_transition(current: Union[str, QueueStatus, None], new: Union[str, QueueStatus, None]) -> bool:
    """True if (current -> new) appears in the transition table."""
    try:
        current_status = to_queue_status(current)
        new_status = to_queue_status(new)
    except ValueError:
        return False
    return new_status in VALID_TRANSITIONS[current_status]
