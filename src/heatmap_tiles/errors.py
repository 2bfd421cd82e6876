"""
Error Taxonomy
==============

Exceptions raised by the tile pipeline.

Two families reach the HTTP layer:
    - InvalidRequest: bad client input (HTTP 400), never fatal
    - TileServerError: failure while querying or rendering (HTTP 500)

IndexBuildError and DataLoadError only occur during startup and abort it.
"""


class HeatmapError(Exception):
    """Base class for all heatmap_tiles errors."""

    is_client_error: bool = False


class InvalidRequest(HeatmapError):
    """Raised when a tile request cannot be parsed or is out of range."""

    is_client_error = True


class InvalidTileCoordinate(InvalidRequest):
    """Raised when zoom/x/y fall outside the tile pyramid."""
    pass


class InvalidTimeRange(InvalidRequest):
    """Raised when a time bound is malformed or the range is inverted."""
    pass


class IndexBuildError(HeatmapError):
    """Raised when no usable spatial index can be built from the input."""
    pass


class DataLoadError(HeatmapError):
    """Raised when the input data location cannot be read at all."""
    pass


class TileServerError(HeatmapError):
    """Raised when a valid request fails inside the pipeline."""
    pass


class RenderError(TileServerError):
    """Raised when the image encoder fails."""
    pass
