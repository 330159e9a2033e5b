"""
Save-slot preview capture using pygame.

Renders the current frame through a callback, scales it down to a
thumbnail and returns it as a base64 PNG string for the record metadata.
"""

from __future__ import annotations

import base64
import io
import logging
from typing import Callable

import pygame

logger = logging.getLogger(__name__)

PREVIEW_SIZE = (160, 90)


class PygamePreviewCapture:
    """
    PreviewCapture backed by a pygame Surface.

    Args:
        render_frame: Returns the Surface to capture (e.g. the display surface)
        size: Thumbnail size in pixels

    Usage:
        preview = PygamePreviewCapture(pygame.display.get_surface)
        state.preview = preview
    """

    def __init__(
        self,
        render_frame: Callable[[], pygame.Surface],
        size: tuple[int, int] = PREVIEW_SIZE,
    ):
        self.render_frame = render_frame
        self.size = size

    def _scale(self, surface: pygame.Surface) -> pygame.Surface:
        # smoothscale only accepts 24/32-bit surfaces
        if surface.get_bitsize() in (24, 32):
            return pygame.transform.smoothscale(surface, self.size)
        return pygame.transform.scale(surface, self.size)

    def capture(self) -> str:
        """Render, scale and encode the current frame as base64 PNG."""
        surface = self.render_frame()
        if surface is None:
            raise RuntimeError("No frame available for preview")

        thumbnail = self._scale(surface)
        buffer = io.BytesIO()
        pygame.image.save(thumbnail, buffer, "preview.png")
        data = buffer.getvalue()
        logger.debug(f"Captured {self.size[0]}x{self.size[1]} preview ({len(data)} bytes)")
        return base64.b64encode(data).decode('ascii')
