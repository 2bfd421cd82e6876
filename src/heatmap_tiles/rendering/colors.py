"""
Colour Scale
============

Monotonic count-to-colour mapping for density tiles.

Point density is heavily skewed, so counts are compressed before colouring:

    ceiling = saturation_count or max(grid)
    v = log1p(min(c, ceiling)) / log1p(ceiling)     (scale="log")
    v = min(c, ceiling) / ceiling                   (scale="linear")
    v = v ** gamma

v in [0, 1] is then interpolated linearly through the colour stops, which
are spaced evenly from 0 to 1. A count of zero is always fully transparent.

The default (blue -> red, gamma 0.5, log scale) ramps dense areas toward red.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from heatmap_tiles.config import RenderingConfig


TRANSPARENT = (0, 0, 0, 0)

DEFAULT_STOPS: Tuple[Tuple[int, int, int, int], ...] = (
    (0, 0, 255, 255),
    (255, 0, 0, 255),
)


class ColorScale:
    """
    Count-to-RGBA mapping.

    Attributes:
        stops: (k, 4) uint8 array of RGBA colours, lowest density first
        scale: 'log' or 'linear'
        gamma: Exponent applied after normalisation
        saturation_count: Fixed ceiling, or None to use the grid maximum
    """

    def __init__(
        self,
        stops: Sequence[Tuple[int, int, int, int]] = DEFAULT_STOPS,
        scale: str = "log",
        gamma: float = 0.5,
        saturation_count: Optional[int] = None,
    ) -> None:
        if len(stops) < 2:
            raise ValueError("At least two colour stops are required")
        if scale not in ("log", "linear"):
            raise ValueError(f"Unknown scale: {scale}")
        if gamma <= 0:
            raise ValueError("gamma must be positive")
        if saturation_count is not None and saturation_count < 1:
            raise ValueError("saturation_count must be >= 1")

        self.stops = np.asarray(stops, dtype=np.float64)
        if self.stops.shape[1] != 4:
            raise ValueError("Colour stops must be RGBA quadruples")
        self.scale = scale
        self.gamma = gamma
        self.saturation_count = saturation_count
        self._positions = np.linspace(0.0, 1.0, len(stops))

    @classmethod
    def from_config(cls, config: RenderingConfig) -> "ColorScale":
        return cls(
            stops=config.color_stops,
            scale=config.scale,
            gamma=config.gamma,
            saturation_count=config.saturation_count,
        )

    def normalize(self, counts: np.ndarray, max_count: int) -> np.ndarray:
        """
        Map counts to [0, 1].

        Args:
            counts: Non-negative counts
            max_count: Largest count in the tile

        Returns:
            float64 array, same shape as counts
        """
        ceiling = self.saturation_count or max_count
        if ceiling <= 0:
            return np.zeros(counts.shape, dtype=np.float64)

        clipped = np.minimum(counts, ceiling).astype(np.float64)
        if self.scale == "log":
            v = np.log1p(clipped) / np.log1p(float(ceiling))
        else:
            v = clipped / float(ceiling)

        return np.clip(v ** self.gamma, 0.0, 1.0)

    def apply(self, counts: np.ndarray) -> np.ndarray:
        """
        Colour a count grid.

        Args:
            counts: (H, W) non-negative counts

        Returns:
            (H, W, 4) uint8 RGBA raster
        """
        max_count = int(counts.max()) if counts.size else 0
        rgba = np.zeros(counts.shape + (4,), dtype=np.uint8)
        if max_count == 0:
            return rgba

        v = self.normalize(counts, max_count)
        for channel in range(4):
            rgba[..., channel] = np.rint(
                np.interp(v, self._positions, self.stops[:, channel])
            ).astype(np.uint8)

        rgba[counts == 0] = TRANSPARENT
        return rgba

    def __repr__(self) -> str:
        return (
            f"ColorScale(scale={self.scale}, gamma={self.gamma}, "
            f"stops={len(self.stops)}, saturation={self.saturation_count})"
        )
