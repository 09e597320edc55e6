"""Read-only lookup of the archive version published for each city."""

import csv
import io
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from china_gtfs.errors import CityNotFoundError


class VersionTable(Mapping[str, str]):
    """Immutable city code -> archive version mapping, built once per process."""

    def __init__(self, versions: Mapping[str, str]) -> None:
        self._versions = MappingProxyType(dict(versions))

    @classmethod
    def from_text(cls, text: str) -> "VersionTable":
        """Parse version.txt; only three-field rows (code, version, extra) are kept."""
        versions: dict[str, str] = {}
        for row in csv.reader(io.StringIO(text)):
            if len(row) == 3:
                versions[row[0].strip()] = row[1].strip()
        return cls(versions)

    def version_for(self, code: str) -> str:
        try:
            return self._versions[code]
        except KeyError:
            raise CityNotFoundError(code) from None

    def __getitem__(self, code: str) -> str:
        return self._versions[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)
