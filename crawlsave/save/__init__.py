"""
Save module - game state persistence.

Provides:
- Save/load game state across 3 manual slots and 1 auto slot
- Checksum-verified, compressed save blobs
- Structural and semantic save validation
- Auto-save on a timer and on gameplay events
- Backup rotation and corrupted-save recovery
- Save-slot preview thumbnails
"""

from crawlsave.save.record import (
    SaveRecord,
    DisplayMetadata,
    FORMAT_VERSION,
    INVENTORY_SLOTS,
)
from crawlsave.save.interfaces import GameState
from crawlsave.save.validator import SaveValidator, ValidationResult, ValidationIssue
from crawlsave.save.manager import (
    SaveManager,
    SaveResult,
    LoadResult,
    CorruptSlot,
    AUTO_SLOT,
)
from crawlsave.save.recovery import RecoveryManager, RecoveryResult
from crawlsave.save.autosave import AutoSaveManager, AutoSaveTrigger, SaveCheck
from crawlsave.save.preview import PygamePreviewCapture

__all__ = [
    # Records
    "SaveRecord",
    "DisplayMetadata",
    "FORMAT_VERSION",
    "INVENTORY_SLOTS",
    "GameState",
    # Validation
    "SaveValidator",
    "ValidationResult",
    "ValidationIssue",
    # Slots
    "SaveManager",
    "SaveResult",
    "LoadResult",
    "CorruptSlot",
    "AUTO_SLOT",
    # Recovery / auto-save
    "RecoveryManager",
    "RecoveryResult",
    "AutoSaveManager",
    "AutoSaveTrigger",
    "SaveCheck",
    "PygamePreviewCapture",
]
