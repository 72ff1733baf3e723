"""Heuristic CSV → boundary vertex import.

Operators upload whatever their GPS unit or GIS export produced, so the
importer guesses the delimiter and the latitude/longitude columns instead of
asking for a format:

1. Delimiter: comma if the first line has one, else semicolon, else tab.
2. Header: the first line is a header when one cell looks like latitude
   (``lat``, ``north``, ``y``) and another like longitude (``lon``, ``lng``,
   ``east``, ``x``). Columns come from the header.
3. No header match but the first line is numeric: columns 0/1, no header.
4. Neither: columns 0/1, and the first line is skipped as an unknown header.

Rows whose designated cells don't parse or fall outside valid ranges are
dropped silently. The import is all-or-nothing: either a full vertex list
or a ``BoundaryImportError``.
"""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass, field
from pathlib import PurePath

from geoprospector.geo.primitives import is_simple_polygon
from geoprospector.models.geo import Coordinate

logger = logging.getLogger(__name__)

_LAT_KEYWORDS = ("lat", "north", "y")
_LNG_KEYWORDS = ("lon", "lng", "east", "x")
_QUOTE_CHARS = "\"'"

ALLOWED_EXTENSIONS = (".csv",)


class BoundaryImportError(Exception):
    """Base class for rejected boundary imports."""


class EmptyInputError(BoundaryImportError):
    def __init__(self) -> None:
        super().__init__("file contains no data")


class NoValidRowsError(BoundaryImportError):
    def __init__(self, rows_scanned: int) -> None:
        self.rows_scanned = rows_scanned
        super().__init__(f"no valid coordinates found in {rows_scanned} data rows")


class TooLargeError(BoundaryImportError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"file is {size} bytes, limit is {limit}")


class WrongExtensionError(BoundaryImportError):
    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"{filename!r} is not a .csv file")


class TooManyVerticesError(BoundaryImportError):
    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"boundary has {count} vertices, limit is {limit}")


@dataclass(frozen=True)
class ColumnMapping:
    """How the importer read the file. Shown back to the operator."""

    delimiter: str
    lat_column: int
    lng_column: int
    has_header: bool
    # "header" | "numeric" | "default"
    detected_by: str


@dataclass
class ImportResult:
    coordinates: list[Coordinate]
    mapping: ColumnMapping
    rows_skipped: int = 0
    self_intersecting: bool = False
    warnings: list[str] = field(default_factory=list)


def detect_delimiter(first_line: str) -> str:
    if "," in first_line:
        return ","
    if ";" in first_line:
        return ";"
    return "\t"


def _clean(cell: str) -> str:
    return cell.strip().strip(_QUOTE_CHARS).strip()


def _parse_float(cell: str) -> float | None:
    try:
        value = float(cell)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _find_column(tokens: list[str], keywords: tuple[str, ...], exclude: int = -1) -> int:
    for i, token in enumerate(tokens):
        if i == exclude:
            continue
        if any(k in token for k in keywords):
            return i
    return -1


def detect_columns(first_row: list[str], delimiter: str) -> ColumnMapping:
    """Decide which columns hold latitude/longitude and whether row 0 is a header."""
    tokens = [cell.lower() for cell in first_row]

    lat_idx = _find_column(tokens, _LAT_KEYWORDS)
    lng_idx = _find_column(tokens, _LNG_KEYWORDS, exclude=lat_idx)
    if lat_idx >= 0 and lng_idx >= 0:
        return ColumnMapping(delimiter, lat_idx, lng_idx, has_header=True, detected_by="header")

    numeric = len(first_row) >= 2 and all(_parse_float(c) is not None for c in first_row[:2])
    if numeric:
        return ColumnMapping(delimiter, 0, 1, has_header=False, detected_by="numeric")

    return ColumnMapping(delimiter, 0, 1, has_header=True, detected_by="default")


def _row_to_coordinate(row: list[str], mapping: ColumnMapping) -> Coordinate | None:
    if max(mapping.lat_column, mapping.lng_column) >= len(row):
        return None
    lat = _parse_float(row[mapping.lat_column])
    lng = _parse_float(row[mapping.lng_column])
    if lat is None or lng is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return Coordinate(lat=lat, lng=lng)


def import_boundary(text: str, max_vertices: int | None = None) -> ImportResult:
    """Parse delimited text into an ordered vertex list.

    Raises:
        EmptyInputError: no non-blank lines.
        NoValidRowsError: every data row was rejected.
        TooManyVerticesError: more accepted vertices than ``max_vertices``.
    """
    lines = [line for line in text.lstrip("\ufeff").splitlines() if line.strip()]
    if not lines:
        raise EmptyInputError()

    delimiter = detect_delimiter(lines[0])
    rows = [[_clean(cell) for cell in row] for row in csv.reader(lines, delimiter=delimiter)]
    mapping = detect_columns(rows[0], delimiter)

    data_rows = rows[1:] if mapping.has_header else rows
    coordinates: list[Coordinate] = []
    for row in data_rows:
        coord = _row_to_coordinate(row, mapping)
        if coord is not None:
            coordinates.append(coord)

    if not coordinates:
        raise NoValidRowsError(len(data_rows))

    if max_vertices is not None and len(coordinates) > max_vertices:
        raise TooManyVerticesError(len(coordinates), max_vertices)

    result = ImportResult(
        coordinates=coordinates,
        mapping=mapping,
        rows_skipped=len(data_rows) - len(coordinates),
    )
    if not is_simple_polygon(coordinates):
        result.self_intersecting = True
        result.warnings.append("boundary edges cross each other")
        logger.warning("Imported boundary with %d vertices is self-intersecting", len(coordinates))

    logger.info(
        "Boundary import: %d vertices (%d rows skipped, columns by %s)",
        len(coordinates),
        result.rows_skipped,
        mapping.detected_by,
    )
    return result


def validate_upload(filename: str, size: int, max_bytes: int) -> None:
    """Caller-side checks done before the text is even decoded."""
    if PurePath(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise WrongExtensionError(filename)
    if size > max_bytes:
        raise TooLargeError(size, max_bytes)
