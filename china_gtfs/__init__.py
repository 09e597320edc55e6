"""China GTFS - Convert MetroMan subway archives to GTFS feeds."""

from china_gtfs.api import convert, load_city, load_city_from_archive, validate
from china_gtfs.version import SCHEMA_VERSION, VERSION

__version__ = VERSION
__all__ = [
    "SCHEMA_VERSION",
    "VERSION",
    "convert",
    "load_city",
    "load_city_from_archive",
    "validate",
]
