"""
Auto-save scheduler.

Writes the "auto" slot on a timer and on gameplay events, keeping a
rolling set of backups of the previous auto-save for recovery.

Each attempt runs:
    trigger -> cooldown check -> state gate -> backup rotation -> write

Usage:
    auto = AutoSaveManager(manager)
    auto.bind_events(game_bus)
    auto.start()
    ...
    auto.update()  # every frame
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from crawlsave.config import SaveConfig
from crawlsave.core.clock import Clock
from crawlsave.core.events import Event, EventBus, GameEvent, SaveEvent
from crawlsave.core.scheduling import IntervalTask
from crawlsave.errors import DeserializationError, SaveError, ValidationError
from crawlsave.save.manager import AUTO_SLOT, SaveManager
from crawlsave.save.recovery import RecoveryResult
from crawlsave.save.record import Settings

logger = logging.getLogger(__name__)


class AutoSaveTrigger(Enum):
    """What caused an auto-save attempt."""
    TIMER = "timer"
    COMBAT_VICTORY = "combat_victory"
    ZONE_TRANSITION = "zone_transition"
    LEVEL_UP = "level_up"
    SHUTDOWN = "shutdown"


# Triggers sharing the cooldown window
EVENT_TRIGGERS = frozenset({
    AutoSaveTrigger.COMBAT_VICTORY,
    AutoSaveTrigger.ZONE_TRANSITION,
    AutoSaveTrigger.LEVEL_UP,
})

_GAME_EVENT_TRIGGERS = {
    GameEvent.COMBAT_VICTORY: AutoSaveTrigger.COMBAT_VICTORY,
    GameEvent.ZONE_TRANSITION: AutoSaveTrigger.ZONE_TRANSITION,
    GameEvent.CHARACTER_LEVEL_UP: AutoSaveTrigger.LEVEL_UP,
}


@dataclass
class SaveCheck:
    """Result of validate_save()."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None
    can_recover: bool = False


class AutoSaveManager:
    """
    Timer- and event-driven writes to the auto slot.

    Attributes:
        manager: Slot orchestrator performing the actual writes
        enabled: Whether auto-saving is on
        interval: Seconds between timer saves (never below the configured minimum)
        last_auto_save: Clock time of the last successful auto-save
        last_triggered_save: Clock time of the last successful event-triggered save
    """

    def __init__(
        self,
        manager: SaveManager,
        config: Optional[SaveConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.manager = manager
        self.config = config or manager.config
        self.clock = clock or manager.clock

        self.enabled = self.config.auto_save_enabled
        self.interval = max(self.config.min_auto_save_interval, self.config.auto_save_interval)
        self.last_auto_save: Optional[float] = None
        self.last_triggered_save: Optional[float] = None
        self.is_auto_saving = False

        self._task = IntervalTask(self._on_timer, self.interval, self.clock)
        self._bound_bus: Optional[EventBus] = None
        self._shutdown_thread: Optional[threading.Thread] = None

    # Lifecycle

    def start(self, background: bool = False, poll_seconds: float = 1.0) -> None:
        """
        Start the interval timer.

        Args:
            background: Poll from a daemon thread instead of update()
            poll_seconds: Background poll period
        """
        if not self.enabled:
            logger.info("Auto-save disabled; timer not started")
            return
        if background:
            self._task.start_background(poll_seconds)
        else:
            self._task.start()
        logger.info(f"Auto-save started (interval {self.interval:.0f}s)")

    def stop(self) -> None:
        self._task.stop()
        logger.info("Auto-save stopped")

    def update(self) -> bool:
        """Poll the timer; returns True if a timer attempt ran."""
        return self._task.update()

    @property
    def is_running(self) -> bool:
        return self._task.is_running

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self.enabled:
            return
        was_running = self._task.is_running
        self.enabled = enabled
        if not enabled and was_running:
            self._task.stop()
        elif enabled and not was_running:
            self._task.start()
        logger.info(f"Auto-save {'enabled' if enabled else 'disabled'}")
        self.manager.events.publish(SaveEvent.AUTO_SAVE_TOGGLED, enabled=enabled)

    def set_interval(self, seconds: float) -> float:
        """
        Change the timer interval.

        Values below the configured minimum are raised to it.

        Returns:
            The interval actually applied
        """
        self.interval = max(self.config.min_auto_save_interval, float(seconds))
        self._task.reschedule(self.interval)
        logger.info(f"Auto-save interval set to {self.interval:.0f}s")
        self.manager.events.publish(SaveEvent.AUTO_SAVE_INTERVAL_CHANGED, interval=self.interval)
        return self.interval

    def apply_settings(self, settings: Union[Settings, Mapping[str, Any]]) -> None:
        """Apply saved player preferences (auto_save_enabled, auto_save_interval)."""
        if isinstance(settings, Settings):
            settings = settings.model_dump()
        if "auto_save_interval" in settings:
            self.set_interval(settings["auto_save_interval"])
        if "auto_save_enabled" in settings:
            self.set_enabled(bool(settings["auto_save_enabled"]))

    # Game events

    def bind_events(self, event_bus: EventBus) -> None:
        """Subscribe to gameplay events that trigger auto-saves."""
        self.unbind_events()
        for event_type in _GAME_EVENT_TRIGGERS:
            event_bus.subscribe(event_type, self._on_game_event)
        event_bus.subscribe(GameEvent.APPLICATION_SHUTDOWN, self._on_shutdown)
        self._bound_bus = event_bus

    def unbind_events(self) -> None:
        bus = self._bound_bus
        if bus is None:
            return
        for event_type in _GAME_EVENT_TRIGGERS:
            bus.unsubscribe(event_type, self._on_game_event)
        bus.unsubscribe(GameEvent.APPLICATION_SHUTDOWN, self._on_shutdown)
        self._bound_bus = None

    def _on_game_event(self, event: Event) -> None:
        self.perform_auto_save(_GAME_EVENT_TRIGGERS[event.type])

    def _on_shutdown(self, event: Event) -> None:
        self.save_on_shutdown()

    def _on_timer(self) -> None:
        self.perform_auto_save(AutoSaveTrigger.TIMER)

    def save_on_shutdown(self) -> Optional[threading.Thread]:
        """
        Start one best-effort shutdown save on a daemon thread.

        The thread is never joined, so process exit does not wait for it.
        Later calls return the already-started thread.
        """
        if self._shutdown_thread is not None:
            return self._shutdown_thread
        if not self.enabled:
            return None
        self._task.stop()
        self._shutdown_thread = threading.Thread(
            target=self.perform_auto_save,
            args=(AutoSaveTrigger.SHUTDOWN,),
            name="crawlsave-shutdown",
            daemon=True,
        )
        self._shutdown_thread.start()
        return self._shutdown_thread

    # Attempts

    def perform_auto_save(self, trigger: AutoSaveTrigger = AutoSaveTrigger.TIMER) -> bool:
        """
        Attempt one auto-save.

        Refusals (disabled, cooldown, state gate) return False without
        touching storage.

        Returns:
            True if the auto slot was written
        """
        if not self.enabled:
            return False

        with self.manager.slot_lock(AUTO_SLOT):
            if self.is_auto_saving:
                return False

            now = self.clock.now()
            if not self._cooldown_elapsed(trigger, now):
                logger.debug(f"Auto-save ({trigger.value}) skipped: cooldown active")
                return False

            reason = self.blocking_reason()
            if reason:
                logger.info(f"Auto-save ({trigger.value}) skipped: {reason}")
                return False

            self.is_auto_saving = True
            try:
                self.rotate_backups()
                result = self.manager.save_game(AUTO_SLOT)

                if not result.success:
                    logger.error(f"Auto-save ({trigger.value}) failed: {result.error}")
                    self.manager.events.publish(
                        SaveEvent.AUTO_SAVE_FAILED,
                        slot=AUTO_SLOT,
                        trigger=trigger,
                        error=result.error,
                    )
                    return False

                self.last_auto_save = now
                if trigger in EVENT_TRIGGERS:
                    self.last_triggered_save = now

                logger.info(f"Auto-save completed ({trigger.value}) in {result.duration * 1000:.0f}ms")
                self.manager.events.publish(
                    SaveEvent.AUTO_SAVE_COMPLETED,
                    slot=AUTO_SLOT,
                    trigger=trigger,
                    duration=result.duration,
                    size=result.size,
                    metadata=result.metadata,
                )
                return True

            except Exception as e:
                logger.exception(f"Auto-save ({trigger.value}) error")
                self.manager.events.publish(
                    SaveEvent.AUTO_SAVE_ERROR,
                    slot=AUTO_SLOT,
                    trigger=trigger,
                    error=str(e),
                )
                return False
            finally:
                self.is_auto_saving = False

    def _cooldown_elapsed(self, trigger: AutoSaveTrigger, now: float) -> bool:
        if trigger is AutoSaveTrigger.TIMER:
            last = self.last_auto_save
            return last is None or now - last >= self.interval
        if trigger in EVENT_TRIGGERS:
            last = self.last_triggered_save
            return last is None or now - last >= self.config.trigger_cooldown
        return True

    def blocking_reason(self) -> Optional[str]:
        """Why the current game state may not be auto-saved, or None."""
        state = self.manager.game_state
        if state is None:
            return "no game state attached"
        if not self.config.validation_enabled:
            return None
        party = state.party
        if party is None or party.party_size() == 0:
            return "no party or empty party"
        if party.is_party_dead():
            return "all party members are dead"
        if state.combat is not None and state.combat.is_in_combat():
            return "combat in progress"
        if state.movement is not None and state.movement.is_animating():
            return "movement animation in progress"
        return None

    def rotate_backups(self) -> None:
        """
        Shift backups up one place and copy the current auto-save into backup 1.

        Runs high to low so no backup overwrites its own source. A missing
        source clears the target. Without an auto-save nothing changes.
        """
        config = self.config
        current = self.manager.read_blob(config.auto_save_key)
        if current is None or config.backup_count < 1:
            return

        for i in range(config.backup_count, 1, -1):
            source = self.manager.read_blob(config.backup_key(i - 1))
            if source is None:
                self.manager.remove_blob(config.backup_key(i))
            else:
                self.manager.write_blob(config.backup_key(i), source)

        self.manager.write_blob(config.backup_key(1), current)
        logger.debug("Auto-save backups rotated")

    # Inspection and recovery

    def validate_save(self, slot: Union[int, str] = AUTO_SLOT) -> SaveCheck:
        """Decode and fully validate one slot without substituting a fallback."""
        recovery = self.manager.recovery
        try:
            blob = self.manager.read_blob(self.manager.save_key(slot))
            if blob is None:
                return SaveCheck(is_valid=False, error="Save does not exist")
            _, validation = self.manager.decode_and_validate(blob)
        except ValidationError as e:
            result = e.result
            return SaveCheck(
                is_valid=False,
                errors=[str(issue) for issue in result.errors] if result else [e.message],
                warnings=[str(issue) for issue in result.warnings] if result else [],
                error=e.message,
                can_recover=recovery.has_recovery_options(slot),
            )
        except DeserializationError as e:
            return SaveCheck(is_valid=False, error=str(e), can_recover=recovery.has_recovery_options(slot))
        except SaveError as e:
            return SaveCheck(is_valid=False, error=str(e))

        return SaveCheck(
            is_valid=True,
            warnings=[str(issue) for issue in validation.warnings],
        )

    def recover_save(self, slot: Union[int, str] = AUTO_SLOT) -> RecoveryResult:
        return self.manager.recovery.recover_save(slot)

    def get_status(self) -> dict[str, Any]:
        now = self.clock.now()
        since = None if self.last_auto_save is None else now - self.last_auto_save
        return {
            "enabled": self.enabled,
            "running": self._task.is_running,
            "interval": self.interval,
            "last_auto_save": self.last_auto_save,
            "time_since_last_save": since,
            "time_until_next_save": 0.0 if since is None else max(0.0, self.interval - since),
            "has_auto_save": self.manager.has_save(AUTO_SLOT),
            "backup_count": self.manager.recovery.backup_count(),
            "is_auto_saving": self.is_auto_saving,
        }
