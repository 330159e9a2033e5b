"""
crawlsave

Save/load persistence for a first-person dungeon crawler.

Quick Start:
    from crawlsave import SaveManager, AutoSaveManager, FileStorage, GameState

    state = GameState(party=party, inventory=inventory, movement=movement)
    manager = SaveManager(FileStorage("saves"), game_state=state)
    manager.save_game(1)

    auto = AutoSaveManager(manager)
    auto.start()
"""

__version__ = "2.0.0"

from crawlsave.config import SaveConfig
from crawlsave.errors import (
    SaveError,
    ValidationError,
    SerializationError,
    DeserializationError,
    StorageError,
    RecoveryExhausted,
    InvalidSlotError,
)
from crawlsave.core import (
    EventBus,
    Event,
    SaveEvent,
    GameEvent,
    SystemClock,
    ManualClock,
    MemoryStorage,
    FileStorage,
)
from crawlsave.save import (
    SaveRecord,
    GameState,
    SaveValidator,
    SaveManager,
    AutoSaveManager,
    AutoSaveTrigger,
    RecoveryManager,
    AUTO_SLOT,
)

__all__ = [
    "SaveConfig",
    # Errors
    "SaveError",
    "ValidationError",
    "SerializationError",
    "DeserializationError",
    "StorageError",
    "RecoveryExhausted",
    "InvalidSlotError",
    # Core
    "EventBus",
    "Event",
    "SaveEvent",
    "GameEvent",
    "SystemClock",
    "ManualClock",
    "MemoryStorage",
    "FileStorage",
    # Save
    "SaveRecord",
    "GameState",
    "SaveValidator",
    "SaveManager",
    "AutoSaveManager",
    "AutoSaveTrigger",
    "RecoveryManager",
    "AUTO_SLOT",
]
