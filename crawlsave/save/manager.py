"""
Save/Load system - slot-oriented game state persistence.

Provides:
- 3 manual save slots plus 1 auto-save slot (configurable)
- Validation gate before every write
- Checksum-verified, compressed blobs via the record codec
- Transparent recovery on unreadable slots
- Lifecycle events through a typed EventBus
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from crawlsave.config import SaveConfig
from crawlsave.core.clock import Clock, SystemClock
from crawlsave.core.events import EventBus, SaveEvent
from crawlsave.core.storage import StorageBackend
from crawlsave.errors import (
    DeserializationError,
    InvalidSlotError,
    SaveError,
    ValidationError,
)
from crawlsave.save import codec
from crawlsave.save.interfaces import GameState
from crawlsave.save.record import DisplayMetadata, SaveRecord
from crawlsave.save.recovery import RecoveryManager
from crawlsave.save.validator import SaveValidator, ValidationResult, ValidationRules

logger = logging.getLogger(__name__)

AUTO_SLOT = "auto"

SlotId = Union[int, str]


@dataclass
class SaveResult:
    """Outcome of a save_game() call."""
    success: bool
    slot: Optional[SlotId] = None
    duration: float = 0.0
    size: int = 0
    metadata: Optional[DisplayMetadata] = None
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None


@dataclass
class LoadResult:
    """
    Outcome of a load_game() call.

    Attributes:
        recovered_from: "auto" or "backup_<n>" when the requested slot was
            unreadable and another save was substituted
        recovery_notice: Human-readable explanation of the substitution
    """
    success: bool
    slot: Optional[SlotId] = None
    duration: float = 0.0
    record: Optional[SaveRecord] = None
    metadata: Optional[DisplayMetadata] = None
    validation: Optional[ValidationResult] = None
    recovered_from: Optional[str] = None
    backup_index: Optional[int] = None
    recovery_notice: Optional[str] = None
    error: Optional[str] = None

    @property
    def recovered(self) -> bool:
        return self.recovered_from is not None


@dataclass
class CorruptSlot:
    """Placeholder metadata for a slot whose blob could not be read."""
    error: str
    corrupted: bool = True


def format_bytes(size: int) -> str:
    """Human readable byte count."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


class SaveManager:
    """
    Manages saving and loading game state across named slots.

    Features:
    - Manual slots 1..N plus the "auto" slot
    - Full validation before every write; invalid records are never stored
    - Per-key locks so two writers never interleave on one slot
    - Automatic fallback to the auto-save (or its backups) on corrupt loads
    - Event publishing for every save/load/delete

    Usage:
        manager = SaveManager(FileStorage("saves"), game_state=state)
        manager.save_game(1)
        result = manager.load_game(1)
        if result.recovered:
            show_notice(result.recovery_notice)
    """

    AUTO_SLOT = AUTO_SLOT

    def __init__(
        self,
        storage: StorageBackend,
        config: Optional[SaveConfig] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        game_state: Optional[GameState] = None,
        validator: Optional[SaveValidator] = None,
    ):
        self.storage = storage
        self.config = config or SaveConfig()
        self.clock = clock or SystemClock()
        self.events = event_bus or EventBus()
        self.game_state = game_state
        self.validator = validator or SaveValidator(
            required_version=self.config.format_version,
            rules=ValidationRules(
                inventory_slots=self.config.inventory_slots,
                max_characters=self.config.max_party_size,
            ),
        )
        self.recovery = RecoveryManager(self)

        self._current_slot: Optional[SlotId] = None
        self._key_locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def attach(self, game_state: GameState) -> None:
        """Set the live game state used for saving and applying loads."""
        self.game_state = game_state

    # Slot space

    @property
    def manual_slots(self) -> list[int]:
        return list(range(1, self.config.manual_slots + 1))

    def is_valid_slot(self, slot: Any) -> bool:
        if slot == AUTO_SLOT and isinstance(slot, str):
            return True
        return (
            isinstance(slot, int)
            and not isinstance(slot, bool)
            and 1 <= slot <= self.config.manual_slots
        )

    def _check_slot(self, slot: Any) -> None:
        if not self.is_valid_slot(slot):
            raise InvalidSlotError(
                f"Invalid slot ID: {slot!r} (expected 1-{self.config.manual_slots} or '{AUTO_SLOT}')"
            )

    def save_key(self, slot: SlotId) -> str:
        """Storage key for a slot."""
        self._check_slot(slot)
        return self.config.save_key(slot)

    def key_lock(self, key: str) -> threading.RLock:
        """Re-entrant lock guarding writes to one storage key."""
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    def slot_lock(self, slot: SlotId) -> threading.RLock:
        return self.key_lock(self.save_key(slot))

    # Blob access

    def read_blob(self, key: str) -> Optional[bytes]:
        return self.storage.get(key)

    def write_blob(self, key: str, blob: bytes) -> None:
        with self.key_lock(key):
            self.storage.set(key, blob)

    def remove_blob(self, key: str) -> None:
        with self.key_lock(key):
            self.storage.remove(key)

    def decode_and_validate(self, blob: bytes) -> tuple[SaveRecord, ValidationResult]:
        """
        Decode a blob and run full validation on it.

        Raises:
            DeserializationError: If the blob is unreadable
            ValidationError: If the decoded record fails validation
        """
        record = codec.deserialize(blob, self.config.inventory_slots)
        validation = self.validator.validate(record)
        if not validation.is_valid:
            first = validation.errors[0]
            raise ValidationError(
                first.section,
                f"Save validation failed: {validation.summary()}",
                validation,
            )
        return record, validation

    # Operations

    def save_game(self, slot: SlotId, include_preview: bool = False) -> SaveResult:
        """
        Save the current game state.

        Args:
            slot: Manual slot number or "auto"
            include_preview: Capture a preview image for the slot menu

        Returns:
            SaveResult; on failure success is False and error explains why
        """
        start = time.perf_counter()
        validation: Optional[ValidationResult] = None

        try:
            key = self.save_key(slot)
            if self.game_state is None:
                raise SaveError("Game state not initialized")

            record = SaveRecord.from_game_state(self.game_state, clock=self.clock, config=self.config)

            if include_preview and self.game_state.preview is not None:
                self._capture_preview(record)

            validation = self.validator.validate(record)
            if not validation.is_valid:
                first = validation.errors[0]
                raise ValidationError(
                    first.section,
                    f"Save validation failed: {validation.summary()}",
                    validation,
                )

            blob = codec.serialize(record)
            self.write_blob(key, blob)

            duration = time.perf_counter() - start
            metadata = record.display_metadata()
            self._current_slot = slot

            logger.info(f"Game saved to slot {slot} in {duration * 1000:.0f}ms ({len(blob)} bytes)")
            self.events.publish(
                SaveEvent.GAME_SAVED,
                slot=slot,
                duration=duration,
                size=len(blob),
                metadata=metadata,
            )
            return SaveResult(
                success=True,
                slot=slot,
                duration=duration,
                size=len(blob),
                metadata=metadata,
                validation=validation,
            )

        except Exception as e:
            message = e.message if isinstance(e, ValidationError) else str(e)
            if isinstance(e, SaveError):
                logger.error(f"Failed to save game to slot {slot}: {message}")
            else:
                logger.exception(f"Failed to save game to slot {slot}")
            self.events.publish(SaveEvent.SAVE_ERROR, slot=slot, error=message)
            return SaveResult(success=False, slot=slot, validation=validation, error=message)

    def load_game(self, slot: SlotId, apply: bool = False) -> LoadResult:
        """
        Load a saved game.

        An unreadable or invalid manual slot is replaced by a valid
        auto-save; an unreadable auto slot by its newest valid backup.
        The substitution is reported on the result, never silent.

        Args:
            slot: Manual slot number or "auto"
            apply: Push the loaded record into the attached game state

        Returns:
            LoadResult with the reconstructed record on success
        """
        start = time.perf_counter()
        validation: Optional[ValidationResult] = None

        try:
            key = self.save_key(slot)
            blob = self.read_blob(key)
            if blob is None:
                raise SaveError(f"No save found in slot {slot}")

            recovered_from: Optional[str] = None
            backup_index: Optional[int] = None
            notice: Optional[str] = None

            try:
                record, validation = self.decode_and_validate(blob)
            except (DeserializationError, ValidationError) as failure:
                validation = getattr(failure, "result", None)
                fallback = self.recovery.find_load_fallback(slot)
                if fallback is None:
                    raise
                record, validation = fallback.record, fallback.validation
                recovered_from, backup_index = fallback.source, fallback.backup_index
                notice = f"Save slot {slot} is corrupted; loaded {fallback.describe()} instead"
                logger.warning(f"{notice} ({failure})")

            if not record.is_compatible(self.config.format_version):
                logger.warning(f"Save version {record.metadata.version} may not be fully compatible")

            if apply and self.game_state is not None:
                record.apply_to_game_state(self.game_state)

            duration = time.perf_counter() - start
            metadata = record.display_metadata()
            self._current_slot = slot

            logger.info(f"Game loaded from slot {slot} in {duration * 1000:.0f}ms")
            self.events.publish(
                SaveEvent.GAME_LOADED,
                slot=slot,
                duration=duration,
                metadata=metadata,
                recovered_from=recovered_from,
            )
            return LoadResult(
                success=True,
                slot=slot,
                duration=duration,
                record=record,
                metadata=metadata,
                validation=validation,
                recovered_from=recovered_from,
                backup_index=backup_index,
                recovery_notice=notice,
            )

        except Exception as e:
            message = e.message if isinstance(e, ValidationError) else str(e)
            if isinstance(e, SaveError):
                logger.error(f"Failed to load game from slot {slot}: {message}")
            else:
                logger.exception(f"Failed to load game from slot {slot}")
            self.events.publish(SaveEvent.LOAD_ERROR, slot=slot, error=message)
            return LoadResult(success=False, slot=slot, validation=validation, error=message)

    def delete_save(self, slot: SlotId) -> bool:
        """Delete a save slot. Deleting an empty slot succeeds."""
        try:
            self.remove_blob(self.save_key(slot))
        except SaveError as e:
            logger.error(f"Failed to delete save from slot {slot}: {e}")
            return False

        if self._current_slot == slot:
            self._current_slot = None
        logger.info(f"Save deleted from slot {slot}")
        self.events.publish(SaveEvent.SAVE_DELETED, slot=slot)
        return True

    def has_save(self, slot: SlotId) -> bool:
        """Check whether a slot holds a blob (no decoding)."""
        if not self.is_valid_slot(slot):
            return False
        try:
            return self.storage.exists(self.save_key(slot))
        except SaveError as e:
            logger.error(f"Failed to check slot {slot}: {e}")
            return False

    def get_all_save_metadata(self) -> dict[str, Any]:
        """
        Display metadata for every slot.

        Returns:
            {"manual": {1: meta, 2: meta, ...}, "auto": meta} where each
            meta is DisplayMetadata, CorruptSlot, or None for empty slots
        """
        return {
            "manual": {slot: self._slot_metadata(slot) for slot in self.manual_slots},
            "auto": self._slot_metadata(AUTO_SLOT),
        }

    def _slot_metadata(self, slot: SlotId) -> Union[DisplayMetadata, CorruptSlot, None]:
        try:
            blob = self.read_blob(self.save_key(slot))
            if blob is None:
                return None
            record = codec.deserialize(blob, self.config.inventory_slots)
            if not self.validator.quick_validate(record):
                return CorruptSlot(error="Save failed integrity check")
            return record.display_metadata()
        except Exception as e:
            logger.error(f"Failed to load metadata for slot {slot}: {e}")
            return CorruptSlot(error=str(e))

    def get_storage_stats(self) -> dict[str, Any]:
        """Bytes used per slot and in total."""
        slot_sizes: dict[SlotId, int] = {}
        for slot in [*self.manual_slots, AUTO_SLOT]:
            try:
                blob = self.read_blob(self.save_key(slot))
            except SaveError as e:
                logger.error(f"Failed to read slot {slot} for storage stats: {e}")
                continue
            if blob is not None:
                slot_sizes[slot] = len(blob)
        total = sum(slot_sizes.values())
        return {
            "total_size": total,
            "slot_sizes": slot_sizes,
            "total_size_formatted": format_bytes(total),
        }

    def _capture_preview(self, record: SaveRecord) -> None:
        try:
            record.set_preview(self.game_state.preview.capture())
        except Exception as e:
            logger.warning(f"Failed to capture preview: {e}")

    @property
    def current_slot(self) -> Optional[SlotId]:
        """Slot most recently saved to or loaded from."""
        return self._current_slot
