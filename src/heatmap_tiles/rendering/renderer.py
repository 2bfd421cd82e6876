"""
Tile Renderer
=============

Turns a DensityGrid into PNG bytes.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Output is lossless RGBA PNG, tile_size x tile_size
    - Encoding is deterministic: the same grid always yields the same bytes
    - Encoder failures raise RenderError; nothing is silently degraded
"""

import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

from heatmap_tiles.aggregation.density import DensityGrid
from heatmap_tiles.errors import RenderError
from heatmap_tiles.geometry.tiles import TILE_SIZE
from heatmap_tiles.rendering.colors import ColorScale


logger = logging.getLogger(__name__)


PNG_MEDIA_TYPE = "image/png"


class TileRenderer:
    """
    Colour and encode density grids.

    Attributes:
        color_scale: Count-to-colour mapping
        tile_size: Expected grid size
        png_compression: zlib level passed to the PNG encoder (0-9)

    Example:
        renderer = TileRenderer(ColorScale(), tile_size=256)
        png_bytes = renderer.render(grid)
    """

    media_type = PNG_MEDIA_TYPE

    def __init__(
        self,
        color_scale: Optional[ColorScale] = None,
        tile_size: int = TILE_SIZE,
        png_compression: int = 3,
    ) -> None:
        if not 0 <= png_compression <= 9:
            raise ValueError("png_compression must be in [0, 9]")

        self.color_scale = color_scale or ColorScale()
        self.tile_size = tile_size
        self.png_compression = png_compression

        # Transparent tile, encoded on first use
        self._empty_tile: Optional[bytes] = None
        self._empty_lock = threading.Lock()

    def render(self, grid: DensityGrid) -> bytes:
        """
        Render a grid to PNG bytes.

        Args:
            grid: Per-pixel counts

        Returns:
            Encoded PNG

        Raises:
            RenderError: If the grid has the wrong size or encoding fails
        """
        if grid.tile_size != self.tile_size:
            raise RenderError(
                f"Grid size {grid.tile_size} does not match tile size {self.tile_size}"
            )

        if grid.is_empty:
            return self.empty_tile()

        start_time = time.time()
        rgba = self.color_scale.apply(grid.counts)
        content = self.encode(rgba)

        elapsed_ms = (time.time() - start_time) * 1000
        if elapsed_ms > 50:
            logger.warning(f"Tile render took {elapsed_ms:.1f}ms (>50ms threshold)")

        return content

    def encode(self, rgba: np.ndarray) -> bytes:
        """
        Encode an RGBA raster as PNG.

        Raises:
            RenderError: If OpenCV rejects the raster or fails to encode
        """
        if rgba.ndim != 3 or rgba.shape[2] != 4 or rgba.dtype != np.uint8:
            raise RenderError(f"Expected (H, W, 4) uint8 raster, got {rgba.shape} {rgba.dtype}")

        try:
            # OpenCV expects BGRA channel order
            bgra = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)
            ok, buffer = cv2.imencode(
                ".png",
                bgra,
                [cv2.IMWRITE_PNG_COMPRESSION, self.png_compression],
            )
        except cv2.error as e:
            raise RenderError(f"PNG encoding failed: {e}") from e

        if not ok:
            raise RenderError("PNG encoding failed: cv2.imencode returned False")

        return buffer.tobytes()

    def empty_tile(self) -> bytes:
        """Fully transparent tile."""
        if self._empty_tile is None:
            with self._empty_lock:
                if self._empty_tile is None:
                    blank = np.zeros((self.tile_size, self.tile_size, 4), dtype=np.uint8)
                    self._empty_tile = self.encode(blank)
        return self._empty_tile
