"""
Ingest Module
=============

Startup-time loading of point records from columnar files.
"""

from heatmap_tiles.ingest.parquet_loader import (
    discover_files,
    load_file,
    load_points_from_dir,
)

__all__ = [
    "discover_files",
    "load_file",
    "load_points_from_dir",
]
