import base64

import pygame
import pytest
from unittest.mock import MagicMock

from crawlsave.save.preview import PygamePreviewCapture

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def _frame(flags=pygame.SRCALPHA, depth=32):
    surface = pygame.Surface((640, 360), flags, depth)
    surface.fill((40, 80, 120, 255))
    return surface


def test_capture_returns_base64_png():
    capture = PygamePreviewCapture(lambda: _frame())

    data = base64.b64decode(capture.capture())

    assert data.startswith(PNG_MAGIC)


def test_capture_scales_to_thumbnail(monkeypatch):
    saved = []
    real_save = pygame.image.save

    def spy(surface, target, namehint=""):
        saved.append(surface.get_size())
        real_save(surface, target, namehint)

    monkeypatch.setattr(pygame.image, "save", spy)
    PygamePreviewCapture(lambda: _frame(), size=(80, 45)).capture()

    assert saved == [(80, 45)]


def test_capture_handles_8bit_surfaces():
    capture = PygamePreviewCapture(lambda: _frame(flags=0, depth=8))

    assert base64.b64decode(capture.capture()).startswith(PNG_MAGIC)


def test_capture_without_frame():
    with pytest.raises(RuntimeError):
        PygamePreviewCapture(lambda: None).capture()


def test_preview_in_save(manager, game_state):
    game_state.preview = PygamePreviewCapture(lambda: _frame())

    result = manager.save_game(1, include_preview=True)

    assert result.success
    assert base64.b64decode(result.metadata.preview).startswith(PNG_MAGIC)
