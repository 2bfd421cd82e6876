"""
Output Models
=============

Results handed to the HTTP layer.

    - TileResult: rendered image bytes plus request statistics
    - ErrorResponse: JSON body for failed requests
"""

from dataclasses import dataclass

from pydantic import BaseModel, Field


@dataclass(frozen=True, slots=True)
class TileResult:
    """
    Rendered tile.

    Attributes:
        content: Encoded image bytes
        media_type: MIME type of content
        point_count: Number of points aggregated into the tile
        max_count: Highest per-pixel count
        elapsed_ms: Wall time spent in the pipeline
    """

    content: bytes
    media_type: str
    point_count: int
    max_count: int
    elapsed_ms: float

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image."""
        return (
            f"TileResult(bytes={len(self.content)}, "
            f"points={self.point_count}, max={self.max_count}, "
            f"elapsed_ms={self.elapsed_ms:.2f})"
        )


class ErrorResponse(BaseModel):
    """JSON body returned for a failed request."""

    error: str = Field(..., description="Error class name")
    detail: str = Field(..., description="Human-readable message")
