import pytest

from crawlsave.core.storage import FileStorage, MemoryStorage
from crawlsave.errors import StorageError


@pytest.fixture(params=["memory", "file"])
def backend(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return FileStorage(tmp_path / "saves")


def test_get_missing_returns_none(backend):
    assert backend.get("dungeon_crawler_save_1") is None
    assert not backend.exists("dungeon_crawler_save_1")


def test_set_get_remove(backend):
    backend.set("dungeon_crawler_save_1", b"blob")
    assert backend.get("dungeon_crawler_save_1") == b"blob"
    assert backend.exists("dungeon_crawler_save_1")

    backend.remove("dungeon_crawler_save_1")
    assert backend.get("dungeon_crawler_save_1") is None


def test_remove_missing_is_not_an_error(backend):
    backend.remove("dungeon_crawler_autosave")


def test_set_replaces(backend):
    backend.set("k", b"one")
    backend.set("k", b"two")
    assert backend.get("k") == b"two"


def test_keys(backend):
    backend.set("b", b"2")
    backend.set("a", b"1")
    assert list(backend.keys()) == ["a", "b"]


def test_memory_rejects_text():
    with pytest.raises(StorageError):
        MemoryStorage().set("k", "not bytes")


def test_file_storage_layout(tmp_path):
    storage = FileStorage(tmp_path)
    storage.set("dungeon_crawler_save_2", b"data")

    assert (tmp_path / "dungeon_crawler_save_2.sav").read_bytes() == b"data"
    # No temp files left behind
    assert [p.name for p in tmp_path.iterdir()] == ["dungeon_crawler_save_2.sav"]


def test_file_storage_rejects_path_keys(tmp_path):
    storage = FileStorage(tmp_path)
    with pytest.raises(StorageError):
        storage.set("../escape", b"x")


def test_file_storage_creates_directory(tmp_path):
    root = tmp_path / "nested" / "saves"
    FileStorage(root)
    assert root.is_dir()
