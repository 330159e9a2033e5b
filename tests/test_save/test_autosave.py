import threading

import pytest
from unittest.mock import MagicMock

from crawlsave.config import SaveConfig
from crawlsave.core.events import GameEvent, SaveEvent
from crawlsave.errors import StorageError
from crawlsave.save.autosave import AutoSaveManager, AutoSaveTrigger
from crawlsave.save.manager import AUTO_SLOT
from crawlsave.save.record import Settings


def _backups(storage, config):
    return [storage.get(config.backup_key(i)) for i in range(1, config.backup_count + 1)]


def test_timer_save(auto_saver, storage, config, clock):
    assert auto_saver.perform_auto_save(AutoSaveTrigger.TIMER)

    assert storage.exists(config.auto_save_key)
    assert auto_saver.last_auto_save == clock.now()
    assert auto_saver.last_triggered_save is None


def test_second_timer_save_without_elapsed_interval_is_refused(auto_saver, storage):
    assert auto_saver.perform_auto_save(AutoSaveTrigger.TIMER)
    storage.set = MagicMock(wraps=storage.set)

    assert auto_saver.perform_auto_save(AutoSaveTrigger.TIMER) is False
    storage.set.assert_not_called()


def test_timer_save_after_interval(auto_saver, clock):
    auto_saver.perform_auto_save()
    clock.advance(auto_saver.interval)

    assert auto_saver.perform_auto_save()


def test_event_cooldown_collapses_bursts(auto_saver, clock, event_bus):
    completed = []
    event_bus.subscribe(SaveEvent.AUTO_SAVE_COMPLETED, completed.append)

    results = [auto_saver.perform_auto_save(AutoSaveTrigger.LEVEL_UP)]
    for _ in range(4):
        clock.advance(2)
        results.append(auto_saver.perform_auto_save(AutoSaveTrigger.LEVEL_UP))

    assert results == [True, False, False, False, False]
    assert len(completed) == 1

    clock.advance(2)
    assert auto_saver.perform_auto_save(AutoSaveTrigger.COMBAT_VICTORY)


def test_event_trigger_ignores_timer_cadence(auto_saver, clock):
    assert auto_saver.perform_auto_save(AutoSaveTrigger.TIMER)
    clock.advance(10)
    assert auto_saver.perform_auto_save(AutoSaveTrigger.ZONE_TRANSITION)


def test_disabled_refuses(auto_saver, storage, config):
    auto_saver.set_enabled(False)
    assert not auto_saver.perform_auto_save()
    assert not storage.exists(config.auto_save_key)


@pytest.mark.parametrize("setup, reason", [
    (lambda s: setattr(s.party, "characters", []), "no party or empty party"),
    (lambda s: setattr(s.party, "dead", True), "all party members are dead"),
    (lambda s: setattr(s.combat, "in_combat", True), "combat in progress"),
    (lambda s: setattr(s.movement, "animating", True), "movement animation in progress"),
    (lambda s: setattr(s, "party", None), "no party or empty party"),
])
def test_state_gate(auto_saver, game_state, storage, config, setup, reason):
    setup(game_state)

    assert auto_saver.blocking_reason() == reason
    assert not auto_saver.perform_auto_save()
    assert not storage.exists(config.auto_save_key)
    assert auto_saver.last_auto_save is None


def test_state_gate_can_be_disabled(manager, game_state, clock):
    game_state.combat.in_combat = True
    auto = AutoSaveManager(manager, config=SaveConfig(validation_enabled=False), clock=clock)

    assert auto.blocking_reason() is None
    assert auto.perform_auto_save()


def test_no_rotation_without_auto_save(auto_saver, storage, config):
    auto_saver.rotate_backups()
    assert _backups(storage, config) == [None, None, None]


def test_first_save_creates_no_backup(auto_saver, storage, config):
    auto_saver.perform_auto_save()
    assert _backups(storage, config) == [None, None, None]


def test_backup_rotation_is_bounded(auto_saver, storage, config, clock, game_state):
    blobs = []
    for i in range(6):
        game_state.playtime = 1000.0 + i
        assert auto_saver.perform_auto_save()
        blobs.append(storage.get(config.auto_save_key))
        clock.advance(auto_saver.interval)

    assert storage.get(config.auto_save_key) == blobs[5]
    assert _backups(storage, config) == [blobs[4], blobs[3], blobs[2]]
    assert storage.get(config.backup_key(4)) is None
    assert auto_saver.manager.recovery.backup_count() == 3


def test_rotation_clears_target_when_source_missing(auto_saver, storage, config):
    storage.set(config.auto_save_key, b"current")
    storage.set(config.backup_key(3), b"stale")

    auto_saver.rotate_backups()

    assert _backups(storage, config) == [b"current", None, None]


def test_failed_save_emits_failure(auto_saver, storage, party, event_bus):
    failed = []
    event_bus.subscribe(SaveEvent.AUTO_SAVE_FAILED, failed.append)
    # Passes the gate but fails validation
    party.characters[0]["class"] = "bard"

    assert not auto_saver.perform_auto_save()

    assert failed[0]["trigger"] is AutoSaveTrigger.TIMER
    assert "invalid class" in failed[0]["error"]
    assert auto_saver.last_auto_save is None


def test_unexpected_error_emits_error_event(auto_saver, storage, config, event_bus):
    errors = []
    event_bus.subscribe(SaveEvent.AUTO_SAVE_ERROR, errors.append)
    storage.set(config.auto_save_key, b"previous")
    storage.set = MagicMock(side_effect=StorageError("read-only"))

    assert not auto_saver.perform_auto_save()
    assert errors[0]["error"] == "read-only"
    assert not auto_saver.is_auto_saving


def test_game_events_trigger_saves(auto_saver, event_bus, clock, storage, config):
    auto_saver.bind_events(event_bus)

    event_bus.publish(GameEvent.COMBAT_VICTORY)
    assert storage.exists(config.auto_save_key)
    assert auto_saver.last_triggered_save == clock.now()

    auto_saver.unbind_events()
    clock.advance(60)
    storage.remove(config.auto_save_key)
    event_bus.publish(GameEvent.ZONE_TRANSITION)
    assert not storage.exists(config.auto_save_key)


def test_shutdown_save_runs_once_in_background(auto_saver, event_bus, storage, config):
    auto_saver.perform_auto_save(AutoSaveTrigger.LEVEL_UP)
    storage.remove(config.auto_save_key)
    auto_saver.bind_events(event_bus)

    event_bus.publish(GameEvent.APPLICATION_SHUTDOWN)
    thread = auto_saver.save_on_shutdown()

    assert thread.daemon
    thread.join(timeout=5.0)
    # Cooldown does not apply to shutdown
    assert storage.exists(config.auto_save_key)
    assert auto_saver.save_on_shutdown() is thread


def test_shutdown_respects_state_gate(auto_saver, game_state, storage, config):
    game_state.combat.in_combat = True

    thread = auto_saver.save_on_shutdown()
    thread.join(timeout=5.0)

    assert not storage.exists(config.auto_save_key)


def test_shutdown_disabled(auto_saver):
    auto_saver.set_enabled(False)
    assert auto_saver.save_on_shutdown() is None


def test_concurrent_attempts_write_once(auto_saver, storage, config):
    results = []
    barrier = threading.Barrier(4)

    def attempt():
        barrier.wait()
        results.append(auto_saver.perform_auto_save(AutoSaveTrigger.LEVEL_UP))

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5.0)

    assert sorted(results) == [False, False, False, True]
    assert _backups(storage, config) == [None, None, None]


def test_interval_clamped(auto_saver, event_bus):
    changes = []
    event_bus.subscribe(SaveEvent.AUTO_SAVE_INTERVAL_CHANGED, changes.append)

    assert auto_saver.set_interval(5) == 60.0
    assert auto_saver.set_interval(600) == 600.0
    assert [e["interval"] for e in changes] == [60.0, 600.0]


def test_config_interval_clamped():
    assert SaveConfig(auto_save_interval=10).auto_save_interval == 60.0


def test_timer_drives_saves(auto_saver, clock, storage, config):
    auto_saver.start()
    assert auto_saver.is_running

    clock.advance(299)
    auto_saver.update()
    assert not storage.exists(config.auto_save_key)

    clock.advance(1)
    assert auto_saver.update()
    assert storage.exists(config.auto_save_key)

    auto_saver.stop()
    assert not auto_saver.is_running


def test_set_enabled_toggles_timer(auto_saver, event_bus):
    toggles = []
    event_bus.subscribe(SaveEvent.AUTO_SAVE_TOGGLED, toggles.append)
    auto_saver.start()

    auto_saver.set_enabled(False)
    assert not auto_saver.is_running
    auto_saver.set_enabled(False)
    auto_saver.set_enabled(True)
    assert auto_saver.is_running

    assert [e["enabled"] for e in toggles] == [False, True]


def test_start_when_disabled(manager):
    auto = AutoSaveManager(manager, config=SaveConfig(auto_save_enabled=False))
    auto.start()
    assert not auto.is_running


def test_apply_settings(auto_saver):
    auto_saver.apply_settings({"auto_save_enabled": False, "auto_save_interval": 900})
    assert auto_saver.interval == 900
    assert not auto_saver.enabled

    auto_saver.apply_settings(Settings(auto_save_enabled=True, auto_save_interval=30))
    assert auto_saver.interval == 60
    assert auto_saver.enabled


def test_status(auto_saver, clock):
    status = auto_saver.get_status()
    assert status["last_auto_save"] is None
    assert status["has_auto_save"] is False
    assert status["time_until_next_save"] == 0.0

    auto_saver.perform_auto_save()
    clock.advance(100)
    status = auto_saver.get_status()

    assert status["has_auto_save"] is True
    assert status["time_since_last_save"] == 100
    assert status["time_until_next_save"] == 200
    assert status["backup_count"] == 0


def test_validate_save(auto_saver, storage, config):
    check = auto_saver.validate_save(AUTO_SLOT)
    assert not check.is_valid
    assert check.error == "Save does not exist"

    auto_saver.perform_auto_save()
    assert auto_saver.validate_save(AUTO_SLOT).is_valid

    storage.set(config.auto_save_key, b"junk")
    check = auto_saver.validate_save(AUTO_SLOT)
    assert not check.is_valid
    assert not check.can_recover


def test_validate_invalid_slot(auto_saver):
    check = auto_saver.validate_save(9)
    assert not check.is_valid
    assert "Invalid slot" in check.error
