"""Store adapters translating native records into canonical entities."""

from .base import BoardStore, RecordStore, TrackerStore
from .board import BoardAdapter
from .tracker import TrackerAdapter

__all__ = [
    "BoardAdapter",
    "BoardStore",
    "RecordStore",
    "TrackerAdapter",
    "TrackerStore",
]
