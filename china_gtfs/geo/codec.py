"""Decoder for the Baidu Maps delta-encoded geometry strings."""

import logging
from dataclasses import dataclass, field
from enum import IntEnum

from china_gtfs.errors import (
    InvalidSymbolError,
    TruncatedBlockError,
    UnknownGeometryKindError,
)
from china_gtfs.geo.coordinates import Coordinate, Mercator, mercator_to_wgs84

logger = logging.getLogger(__name__)

ABSOLUTE_BLOCK_SIZE = 13
DELTA_BLOCK_SIZE = 8
MAX_DELTA_VALUE = 1 << 23
SEGMENT_SEPARATOR = "|"


class GeoType(IntEnum):
    """Kind of geometry selected by the first character of a segment."""

    AREA = 0
    LINE = 1
    POINT = 2


GEO_TYPE_SELECTORS = {
    ".": GeoType.POINT,
    "-": GeoType.LINE,
    "*": GeoType.AREA,
}


@dataclass
class Geometry:
    """A decoded segment: its kind and projected points (already divided by 100)."""

    geo_type: GeoType | None = None
    points: list[Mercator] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.points

    def to_wgs84(self) -> list[Coordinate]:
        """Project every point through the Mercator -> WGS-84 pipeline."""
        return [mercator_to_wgs84(point) for point in self.points]


def decode_symbol(char: str) -> int:
    """Map one alphabet character to its 6-bit value."""
    if len(char) == 1:
        if "A" <= char <= "Z":
            return ord(char) - ord("A")
        if "a" <= char <= "z":
            return ord(char) - ord("a") + 26
        if "0" <= char <= "9":
            return ord(char) - ord("0") + 52
        if char == "+":
            return 62
        if char == "/":
            return 63
    raise InvalidSymbolError(f"Invalid geometry symbol: {char!r}")


def decode_group(group: str) -> int:
    """Decode a little-endian group of base-64 digits."""
    value = 0
    for i, char in enumerate(group):
        value += decode_symbol(char) << (6 * i)
    return value


def fold_delta(delta: int) -> int:
    """Undo the signed-as-unsigned wraparound of a delta value."""
    # 2^23 itself folds to 0 as well, not only values above it
    if delta >= MAX_DELTA_VALUE:
        return MAX_DELTA_VALUE - delta
    return delta


def geo_type_for(selector: str) -> GeoType:
    try:
        return GEO_TYPE_SELECTORS[selector]
    except KeyError:
        raise UnknownGeometryKindError(f"Unknown geometry selector: {selector!r}") from None


def _take(data: str, index: int, size: int) -> str:
    if len(data) - index < size:
        raise TruncatedBlockError(
            f"Block at offset {index} needs {size} characters, {len(data) - index} left"
        )
    return data[index : index + size]


def _decode_points(data: str) -> list[Mercator]:
    points: list[Mercator] = []
    x, y = 0, 0
    index = 0

    while index < len(data):
        char = data[index]

        if char in ("=", "-"):
            block = _take(data, index, ABSOLUTE_BLOCK_SIZE)
            x = decode_group(block[1:7])
            y = decode_group(block[7:13])
            index += ABSOLUTE_BLOCK_SIZE
            points.append(Mercator(x=x, y=y))
        elif char == ";":
            x, y = 0, 0
            index += 1
        else:
            block = _take(data, index, DELTA_BLOCK_SIZE)
            x += fold_delta(decode_group(block[0:4]))
            y += fold_delta(decode_group(block[4:8]))
            index += DELTA_BLOCK_SIZE
            points.append(Mercator(x=x, y=y))

    return [Mercator(x=p.x / 100, y=p.y / 100) for p in points]


def decode_geometry(encoded: str) -> Geometry:
    """
    Decode a single geometry segment.

    Truncated blocks and invalid symbols yield an empty geometry. An unknown
    leading selector raises UnknownGeometryKindError.
    """
    if not encoded:
        return Geometry()

    geo_type = geo_type_for(encoded[0])

    try:
        points = _decode_points(encoded[1:])
    except (TruncatedBlockError, InvalidSymbolError) as e:
        logger.debug(f"Discarding geometry segment: {e}")
        return Geometry()

    return Geometry(geo_type=geo_type, points=points)


def decode_combined_geometry(encoded: str) -> list[Geometry]:
    """Decode a '|' separated string, keeping only non-empty segments in order."""
    result: list[Geometry] = []
    for segment in encoded.split(SEGMENT_SEPARATOR):
        try:
            geometry = decode_geometry(segment)
        except UnknownGeometryKindError as e:
            logger.warning(f"Skipping geometry segment: {e}")
            continue

        if not geometry.is_empty():
            result.append(geometry)
    return result
