import pytest

from crawlsave.cli import main
from crawlsave.core.storage import FileStorage
from crawlsave.save.manager import AUTO_SLOT, SaveManager


@pytest.fixture
def save_dir(tmp_path, clock, game_state):
    manager = SaveManager(FileStorage(tmp_path), clock=clock, game_state=game_state)
    manager.save_game(1)
    manager.save_game(AUTO_SLOT)
    return tmp_path


def test_list(save_dir, capsys):
    (save_dir / "dungeon_crawler_save_3.sav").write_bytes(b"broken")

    assert main([str(save_dir), "list"]) == 0

    out = capsys.readouterr().out
    assert "Slot 1: Crypt B2" in out
    assert "Slot 2: empty" in out
    assert "Slot 3: CORRUPTED" in out
    assert "Auto:   Crypt B2" in out


def test_validate_all(save_dir, capsys):
    assert main([str(save_dir), "validate"]) == 0
    out = capsys.readouterr().out
    assert "1: valid" in out
    assert "auto: valid" in out


def test_validate_corrupt_slot(save_dir, capsys):
    (save_dir / "dungeon_crawler_save_1.sav").write_bytes(b"broken")

    assert main([str(save_dir), "validate", "1"]) == 1
    assert "recoverable" in capsys.readouterr().out


def test_recover(save_dir):
    (save_dir / "dungeon_crawler_save_2.sav").write_bytes(b"broken")

    assert main([str(save_dir), "recover", "2"]) == 0
    assert main([str(save_dir), "validate", "2"]) == 0


def test_recover_without_source(save_dir):
    assert main([str(save_dir), "recover", "auto"]) == 1


def test_delete(save_dir):
    assert main([str(save_dir), "delete", "1"]) == 0
    assert not (save_dir / "dungeon_crawler_save_1.sav").exists()


def test_invalid_slot(save_dir):
    assert main([str(save_dir), "delete", "9"]) == 1


def test_bad_slot_argument(save_dir):
    with pytest.raises(SystemExit):
        main([str(save_dir), "delete", "first"])
