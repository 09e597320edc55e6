"""Access to the tables packaged inside a MetroMan city archive."""

import io
import logging
import re
import zipfile

from china_gtfs.errors import MissingTableError, RouteTimingMissingError

logger = logging.getLogger(__name__)

# Field delimiters used by the archive tables
WIDE_DELIMITER = "<,>"
COMMA_DELIMITER = ","

_RECORD_SEPARATOR = re.compile(r"\r?\n")


class ArchiveBundle:
    """Read named tables from an archive held in memory."""

    def __init__(self, payload: bytes, version: str) -> None:
        """Open the zip payload; tables live under the '{version}/' prefix."""
        self.version = version
        self.payload = payload
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(payload))
        except zipfile.BadZipFile as e:
            raise ValueError(f"Archive for version {version} is not a valid zip: {e}") from e
        self._names = set(self._zip.namelist())

    def table_path(self, name: str) -> str:
        """Full path of a table; accepts names with or without the .csv suffix."""
        if not name.endswith(".csv"):
            name = f"{name}.csv"
        return f"{self.version}/{name}"

    def has_table(self, name: str) -> bool:
        return self.table_path(name) in self._names

    def read_text(self, name: str) -> str:
        """Return the decoded contents of a table."""
        path = self.table_path(name)
        if path not in self._names:
            raise MissingTableError(path)
        with self._zip.open(path) as f:
            raw = f.read()
        try:
            return raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            logger.warning(f"{path}: invalid UTF-8 at byte {e.start}, replacing undecodable bytes")
            return raw.decode("utf-8-sig", errors="replace")

    def read_table(self, name: str, delimiter: str = COMMA_DELIMITER) -> list[list[str]]:
        """Return the non-blank records of a table split into fields."""
        text = self.read_text(name)
        records = [line.split(delimiter) for line in _RECORD_SEPARATOR.split(text) if line.strip()]
        logger.debug(f"Read {len(records)} records from {self.table_path(name)}")
        return records

    def read_timing_table(self, route_code: str) -> list[list[str]]:
        """Return the timing records of a route."""
        try:
            return self.read_table(route_code)
        except MissingTableError as e:
            raise RouteTimingMissingError(e.path) from None

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> "ArchiveBundle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
