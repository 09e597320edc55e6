"""Conversions between Baidu Mercator, BD-09, GCJ-02 and WGS-84.

The pipeline used for provider coordinates is::

    Baidu Mercator -> BD-09 -> GCJ-02 -> WGS-84

The GCJ-02 -> WGS-84 step is a first-order correction, not an exact inverse.
Applying it twice does not give the same result as applying it once.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinate:
    """Geographic position in degrees."""

    lat: float
    lng: float


@dataclass(frozen=True)
class Mercator:
    """Projected position in Baidu Mercator units."""

    x: float
    y: float


# Northing breakpoints, largest first. The first band whose breakpoint is
# <= |y| selects the matching row of MC2LL.
MC_BAND = [12890594.86, 8362377.87, 5591021, 3481989.83, 1678043.12, 0]

MC2LL = [
    [
        1.410526172116255e-8, 0.00000898305509648872, -1.9939833816331,
        200.9824383106796, -187.2403703815547, 91.6087516669843,
        -23.38765649603339, 2.57121317296198, -0.03801003308653,
        17337981.2,
    ],
    [
        -7.435856389565537e-9, 0.000008983055097726239, -0.78625201886289,
        96.32687599759846, -1.85204757529826, -59.36935905485877,
        47.40033549296737, -16.50741931063887, 2.28786674699375,
        10260144.86,
    ],
    [
        -3.030883460898826e-8, 0.00000898305509983578, 0.30071316287616,
        59.74293618442277, 7.357984074871, -25.38371002664745,
        13.45380521110908, -3.29883767235584, 0.32710905363475,
        6856817.37,
    ],
    [
        -1.981981304930552e-8, 0.000008983055099779535, 0.03278182852591,
        40.31678527705744, 0.65659298677277, -4.44255534477492,
        0.85341911805263, 0.12923347998204, -0.04625736007561,
        4482777.06,
    ],
    [
        3.09191371068437e-9, 0.000008983055096812155, 0.00006995724062,
        23.10934304144901, -0.00023663490511, -0.6321817810242,
        -0.00663494467273, 0.03430082397953, -0.00466043876332,
        2555164.4,
    ],
    [
        2.890871144776878e-9, 0.000008983055095805407, -3.068298e-8,
        7.47137025468032, -0.00000353937994, -0.02145144861037,
        -0.00001234426596, 0.00010322952773, -0.00000323890364,
        826088.5,
    ],
]

X_PI = math.pi * 3000.0 / 180.0

# Krasovsky 1940 ellipsoid
KRASOVSKY_AXIS = 6378245.0
KRASOVSKY_EE = 0.00669342162296594323

CHINA_LNG_RANGE = (72.004, 137.8347)
CHINA_LAT_RANGE = (0.8293, 55.8271)


def _sign(value: float) -> float:
    return -1.0 if math.copysign(1.0, value) < 0 else 1.0


def _apply_band(x: float, y: float, table: list[float]) -> tuple[float, float]:
    lng = table[0] + table[1] * abs(x)
    d = abs(y) / table[9]
    lat = (
        table[2]
        + table[3] * d
        + table[4] * d**2
        + table[5] * d**3
        + table[6] * d**4
        + table[7] * d**5
        + table[8] * d**6
    )
    return lng * _sign(x), lat * _sign(y)


def mercator_to_bd09(point: Mercator) -> Coordinate:
    """Invert the Baidu Mercator projection into BD-09 degrees."""
    y_abs = abs(point.y)
    table = MC2LL[-1]
    for band, row in zip(MC_BAND, MC2LL):
        if y_abs >= band:
            table = row
            break

    lng, lat = _apply_band(point.x, point.y, table)
    return Coordinate(lat=lat, lng=lng)


def bd09_to_gcj02(coord: Coordinate) -> Coordinate:
    """Remove the BD-09 polar offset."""
    x = coord.lng - 0.0065
    y = coord.lat - 0.006
    z = math.sqrt(x * x + y * y) - 0.00002 * math.sin(y * X_PI)
    theta = math.atan2(y, x) - 0.000003 * math.cos(x * X_PI)
    return Coordinate(lat=z * math.sin(theta), lng=z * math.cos(theta))


def gcj02_to_bd09(coord: Coordinate) -> Coordinate:
    """Apply the BD-09 polar offset."""
    x = coord.lng
    y = coord.lat
    z = math.sqrt(x * x + y * y) + 0.00002 * math.sin(y * X_PI)
    theta = math.atan2(y, x) + 0.000003 * math.cos(x * X_PI)
    return Coordinate(lat=z * math.sin(theta) + 0.006, lng=z * math.cos(theta) + 0.0065)


def out_of_china(lng: float, lat: float) -> bool:
    """Return True if the GCJ-02 obfuscation does not apply at this position."""
    if lng < CHINA_LNG_RANGE[0] or lng > CHINA_LNG_RANGE[1]:
        return True
    if lat < CHINA_LAT_RANGE[0] or lat > CHINA_LAT_RANGE[1]:
        return True
    return False


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lng(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def gcj02_delta(lng: float, lat: float) -> tuple[float, float]:
    """Return the (d_lng, d_lat) offset GCJ-02 adds to WGS-84 at this position."""
    d_lat = _transform_lat(lng - 105.0, lat - 35.0)
    d_lng = _transform_lng(lng - 105.0, lat - 35.0)
    rad_lat = lat / 180.0 * math.pi
    magic = math.sin(rad_lat)
    magic = 1 - KRASOVSKY_EE * magic * magic
    sqrt_magic = math.sqrt(magic)
    d_lat = (d_lat * 180.0) / ((KRASOVSKY_AXIS * (1 - KRASOVSKY_EE)) / (magic * sqrt_magic) * math.pi)
    d_lng = (d_lng * 180.0) / (KRASOVSKY_AXIS / sqrt_magic * math.cos(rad_lat) * math.pi)
    return d_lng, d_lat


def gcj02_to_wgs84(coord: Coordinate) -> Coordinate:
    """Approximate WGS-84 position of a GCJ-02 coordinate."""
    if out_of_china(coord.lng, coord.lat):
        return coord
    d_lng, d_lat = gcj02_delta(coord.lng, coord.lat)
    return Coordinate(lat=coord.lat - d_lat, lng=coord.lng - d_lng)


def wgs84_to_gcj02(coord: Coordinate) -> Coordinate:
    """Obfuscate a WGS-84 coordinate into GCJ-02."""
    if out_of_china(coord.lng, coord.lat):
        return coord
    d_lng, d_lat = gcj02_delta(coord.lng, coord.lat)
    return Coordinate(lat=coord.lat + d_lat, lng=coord.lng + d_lng)


def mercator_to_wgs84(point: Mercator) -> Coordinate:
    """Run the full provider pipeline on one projected point."""
    return gcj02_to_wgs84(bd09_to_gcj02(mercator_to_bd09(point)))
