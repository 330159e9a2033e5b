import logging

from crawlsave.config import SaveConfig


def test_defaults():
    config = SaveConfig()
    assert config.format_version == "2.0.0"
    assert config.manual_slots == 3
    assert config.auto_save_interval == 300.0
    assert config.trigger_cooldown == 10.0
    assert config.backup_count == 3


def test_keys():
    config = SaveConfig()
    assert config.save_key(2) == "dungeon_crawler_save_2"
    assert config.save_key("auto") == "dungeon_crawler_autosave"
    assert config.backup_key(1) == "dungeon_crawler_autosave_backup_1"


def test_from_dict_ignores_unknown_keys(caplog):
    with caplog.at_level(logging.WARNING):
        config = SaveConfig.from_dict({"manual_slots": 5, "fullscreen": True})

    assert config.manual_slots == 5
    assert "fullscreen" in caplog.text


def test_interval_minimum():
    assert SaveConfig(auto_save_interval=1).auto_save_interval == 60.0
    assert SaveConfig(auto_save_interval=30, min_auto_save_interval=10).auto_save_interval == 30


def test_repr():
    assert "manual_slots=3" in repr(SaveConfig())
