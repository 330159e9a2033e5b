"""
Core infrastructure module.

Exports:
- EventBus, Event, SaveEvent, GameEvent: Event system
- Clock, SystemClock, ManualClock: Time sources
- IntervalTask: Clock-driven periodic task
- StorageBackend, MemoryStorage, FileStorage: Key -> bytes stores
"""

from crawlsave.core.events import EventBus, Event, SaveEvent, GameEvent
from crawlsave.core.clock import Clock, SystemClock, ManualClock
from crawlsave.core.scheduling import IntervalTask
from crawlsave.core.storage import StorageBackend, MemoryStorage, FileStorage

__all__ = [
    # Events
    "EventBus",
    "Event",
    "SaveEvent",
    "GameEvent",
    # Time
    "Clock",
    "SystemClock",
    "ManualClock",
    "IntervalTask",
    # Storage
    "StorageBackend",
    "MemoryStorage",
    "FileStorage",
]
