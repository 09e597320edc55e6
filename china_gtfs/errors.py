"""All china-gtfs errors."""


class ChinaGTFSError(Exception):
    """Base class for every error raised by china-gtfs."""


class GeometryDecodeError(ChinaGTFSError):
    """Raised when an encoded geometry string cannot be decoded."""


class InvalidSymbolError(GeometryDecodeError):
    """Raised when a character is outside the 64-symbol geometry alphabet."""


class UnknownGeometryKindError(GeometryDecodeError):
    """Raised when the leading selector of a geometry segment is not recognized."""


class TruncatedBlockError(GeometryDecodeError):
    """Raised when fewer characters remain than the current block requires."""


class MissingTableError(ChinaGTFSError):
    """Raised when a required table is absent from a city archive."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Table not found in archive: {path}")
        self.path = path


class RouteTimingMissingError(MissingTableError):
    """Raised when a route has no timing table (walking connectors and similar)."""


class CityNotFoundError(ChinaGTFSError):
    """Raised when a city code is absent from the archive version table."""

    def __init__(self, code: str) -> None:
        super().__init__(f"City with code '{code}' does not exist")
        self.code = code


class ArchiveFetchError(ChinaGTFSError):
    """Raised when a remote archive or version list cannot be fetched."""
