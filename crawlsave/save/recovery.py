"""
Save recovery from auto-save backups.

The auto-save keeps a rolling set of backups (1 = most recent). When a
slot is unreadable, the auto slot is restored from the first valid backup
and a manual slot from a valid auto-save.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from crawlsave.core.events import SaveEvent
from crawlsave.errors import DeserializationError, RecoveryExhausted, SaveError, ValidationError

if TYPE_CHECKING:
    from crawlsave.save.manager import SaveManager
    from crawlsave.save.record import SaveRecord
    from crawlsave.save.validator import ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class RecoveredSave:
    """A decoded, fully valid blob found by a recovery scan."""
    record: SaveRecord
    validation: ValidationResult
    blob: bytes
    source: str
    backup_index: Optional[int] = None

    def describe(self) -> str:
        if self.backup_index is not None:
            return f"auto-save backup {self.backup_index}"
        return "the auto-save"


@dataclass
class RecoveryResult:
    success: bool
    slot: Union[int, str, None] = None
    message: str = ""
    backup_index: Optional[int] = None
    source: Optional[str] = None
    error: Optional[str] = None


class RecoveryManager:
    """
    Finds and restores valid saves for a corrupted slot.

    Reads never write: find_load_fallback() only reports what could be
    used. recover_save() persists the recovered blob into the slot.
    """

    def __init__(self, manager: SaveManager):
        self.manager = manager

    @property
    def config(self):
        return self.manager.config

    def backup_count(self) -> int:
        """Number of backup keys currently holding a blob."""
        storage = self.manager.storage
        return sum(
            1 for i in range(1, self.config.backup_count + 1)
            if storage.exists(self.config.backup_key(i))
        )

    def _try_decode(self, key: str) -> Optional[tuple[bytes, SaveRecord, ValidationResult]]:
        blob = self.manager.read_blob(key)
        if blob is None:
            return None
        try:
            record, validation = self.manager.decode_and_validate(blob)
        except (DeserializationError, ValidationError) as e:
            logger.warning(f"Skipping unusable save {key}: {e}")
            return None
        return blob, record, validation

    def find_valid_backup(self) -> Optional[RecoveredSave]:
        """First valid auto-save backup, scanning from the most recent."""
        for i in range(1, self.config.backup_count + 1):
            found = self._try_decode(self.config.backup_key(i))
            if found is not None:
                blob, record, validation = found
                return RecoveredSave(record, validation, blob, source=f"backup_{i}", backup_index=i)
        return None

    def find_valid_auto_save(self) -> Optional[RecoveredSave]:
        found = self._try_decode(self.config.auto_save_key)
        if found is None:
            return None
        blob, record, validation = found
        return RecoveredSave(record, validation, blob, source="auto")

    def find_load_fallback(self, slot: Union[int, str]) -> Optional[RecoveredSave]:
        """Substitute save for an unreadable slot, or None."""
        if slot == self.manager.AUTO_SLOT:
            return self.find_valid_backup()
        return self.find_valid_auto_save()

    def has_recovery_options(self, slot: Union[int, str]) -> bool:
        return self.find_load_fallback(slot) is not None

    def recover_save(self, slot: Union[int, str]) -> RecoveryResult:
        """
        Restore a slot from its recovery source.

        Args:
            slot: Manual slot number or "auto"

        Returns:
            RecoveryResult; success is False when no valid source exists
        """
        try:
            key = self.manager.save_key(slot)
            with self.manager.key_lock(key):
                found = self.find_load_fallback(slot)
                if found is None:
                    if slot == self.manager.AUTO_SLOT:
                        raise RecoveryExhausted("No valid backups found")
                    raise RecoveryExhausted("No valid recovery source found")
                self.manager.write_blob(key, found.blob)

        except RecoveryExhausted as e:
            logger.warning(f"Recovery of slot {slot} failed: {e}")
            return RecoveryResult(success=False, slot=slot, message=str(e), error=str(e))
        except SaveError as e:
            logger.error(f"Recovery of slot {slot} failed: {e}")
            return RecoveryResult(success=False, slot=slot, message=f"Recovery failed: {e}", error=str(e))

        message = f"Recovered from {found.describe()}"
        logger.info(f"Slot {slot}: {message}")
        self.manager.events.publish(
            SaveEvent.SAVE_RECOVERED,
            slot=slot,
            source=found.source,
            backup_index=found.backup_index,
        )
        return RecoveryResult(
            success=True,
            slot=slot,
            message=message,
            backup_index=found.backup_index,
            source=found.source,
        )
