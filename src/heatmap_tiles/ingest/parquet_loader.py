"""
Parquet Point Loader
====================

Startup-only ingestion of point records from a directory of Parquet files.

This loader:
    - Recursively discovers files with the configured extension
    - Reads only the longitude, latitude and timestamp columns (pyarrow)
    - Drops rows with missing coordinates
    - Keeps rows with a missing or unparsable timestamp as "untimed"
    - Skips unreadable files with a warning

Timestamp Column Types:
    - timestamp[s|ms|us|ns] (naive values are taken as UTC)
    - date32 / date64 (midnight UTC)
    - integer (epoch seconds)
    - string (ISO-8601 / RFC 3339, or "YYYY-MM-DD HH:MM:SS" as UTC)

All I/O happens here, once, before the server accepts requests.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from heatmap_tiles.config import DataConfig
from heatmap_tiles.errors import DataLoadError
from heatmap_tiles.index.store import PointStore
from heatmap_tiles.models.point import to_epoch_micros


logger = logging.getLogger(__name__)


def discover_files(directory: Path, extension: str = "parquet") -> List[Path]:
    """
    Find input files below directory.

    Args:
        directory: Root directory
        extension: File extension, matched case-insensitively

    Returns:
        Sorted list of file paths
    """
    suffix = "." + extension.lower().lstrip(".")
    return sorted(
        path for path in directory.rglob("*")
        if path.is_file() and path.suffix.lower() == suffix
    )


def _coordinates(column: pa.ChunkedArray) -> np.ndarray:
    """Numeric column -> float64 array with NaN for nulls."""
    as_float = pc.cast(column, pa.float64())
    return np.asarray(pc.fill_null(as_float, float("nan")).to_numpy(), dtype=np.float64)


def _parse_timestamp_string(value: str) -> Optional[int]:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return to_epoch_micros(parsed)


def _string_timestamps(column: pa.ChunkedArray) -> pa.ChunkedArray:
    cache: Dict[str, Optional[int]] = {}
    values = []
    for value in column.to_pylist():
        if value is None:
            values.append(None)
            continue
        if value not in cache:
            cache[value] = _parse_timestamp_string(value)
        values.append(cache[value])
    return pa.chunked_array([pa.array(values, type=pa.int64())])


def _timestamps(column: pa.ChunkedArray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Timestamp column -> (epoch microseconds, presence mask).

    Unsupported column types yield an all-missing mask.
    """
    col_type = column.type

    if pa.types.is_timestamp(col_type):
        micros = pc.cast(
            pc.cast(column, pa.timestamp("us", tz=col_type.tz), safe=False),
            pa.int64(),
        )
    elif pa.types.is_date(col_type):
        micros = pc.cast(pc.cast(column, pa.timestamp("us")), pa.int64())
    elif pa.types.is_integer(col_type):
        micros = pc.multiply(pc.cast(column, pa.int64()), 1_000_000)
    elif pa.types.is_string(col_type) or pa.types.is_large_string(col_type):
        micros = _string_timestamps(column)
    else:
        logger.warning(f"Unsupported timestamp column type {col_type}, treating as missing")
        n = len(column)
        return np.zeros(n, dtype=np.int64), np.zeros(n, dtype=bool)

    has_ts = np.asarray(pc.is_valid(micros).to_numpy(), dtype=bool)
    values = np.asarray(pc.fill_null(micros, 0).to_numpy(), dtype=np.int64)
    return values, has_ts


def load_file(
    path: Path,
    config: DataConfig,
) -> Optional[Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]]:
    """
    Read one Parquet file.

    Args:
        path: File to read
        config: Column names

    Returns:
        (lon, lat, ts, has_ts) arrays for rows with coordinates, or None
        if the file lacks a coordinate column
    """
    schema = pq.read_schema(path)
    names = set(schema.names)

    if config.longitude_column not in names or config.latitude_column not in names:
        logger.warning(
            f"Skipping {path}: missing {config.longitude_column!r} "
            f"or {config.latitude_column!r} column"
        )
        return None

    columns = [config.longitude_column, config.latitude_column]
    has_ts_column = config.timestamp_column in names
    if has_ts_column:
        columns.append(config.timestamp_column)

    table = pq.read_table(path, columns=columns)
    lon = _coordinates(table.column(config.longitude_column))
    lat = _coordinates(table.column(config.latitude_column))

    if has_ts_column:
        ts, has_ts = _timestamps(table.column(config.timestamp_column))
    else:
        ts = np.zeros(len(lon), dtype=np.int64)
        has_ts = np.zeros(len(lon), dtype=bool)

    keep = ~(np.isnan(lon) | np.isnan(lat))
    dropped = len(lon) - int(keep.sum())
    if dropped:
        logger.debug(f"{path}: dropped {dropped} rows without coordinates")

    return lon[keep], lat[keep], ts[keep], has_ts[keep]


def load_points_from_dir(directory: str, config: Optional[DataConfig] = None) -> PointStore:
    """
    Load every point below directory into a PointStore.

    Args:
        directory: Root directory searched recursively
        config: Column names and file extension (defaults when None)

    Returns:
        PointStore (possibly empty)

    Raises:
        DataLoadError: If directory does not exist
    """
    config = config or DataConfig()
    root = Path(directory)

    if not root.is_dir():
        raise DataLoadError(f"Data directory not found: {directory}")

    start_time = time.time()
    files = discover_files(root, config.file_extension)
    if not files:
        logger.warning(f"No .{config.file_extension} files found under {directory}")

    parts = []
    for path in files:
        try:
            part = load_file(path, config)
        except (OSError, pa.ArrowException) as e:
            logger.warning(f"Skipping unreadable file {path}: {e}")
            continue
        if part is not None:
            logger.debug(f"Loaded {len(part[0])} points from {path}")
            parts.append(part)

    if parts:
        lon, lat, ts, has_ts = (np.concatenate(cols) for cols in zip(*parts))
    else:
        lon = lat = np.empty(0, dtype=np.float64)
        ts = np.empty(0, dtype=np.int64)
        has_ts = np.empty(0, dtype=bool)

    store = PointStore.from_arrays(lon, lat, ts, has_ts)

    elapsed_s = time.time() - start_time
    logger.info(
        f"Loaded {len(store)} points from {len(parts)}/{len(files)} files "
        f"in {elapsed_s:.2f}s ({int(store.has_ts.sum())} timestamped)"
    )
    return store
