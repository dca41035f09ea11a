from .base import Base
from .queue_entry import QueueEntry, QueuePriority, QueueServiceLine, QueueStatus

__all__ = [
    "Base",
    "QueueEntry",
    "QueuePriority",
    "QueueServiceLine",
    "QueueStatus",
]
