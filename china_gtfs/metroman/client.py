"""HTTP client for the MetroMan archive host."""

import logging
import time

import requests

from china_gtfs.errors import ArchiveFetchError
from china_gtfs.metroman.versions import VersionTable

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://metroman.oss-cn-hangzhou.aliyuncs.com/app/metromanandroid/v202005"


class MetromanClient:
    """Fetch the version list and per-city archives."""

    MAX_RETRIES = 3
    RETRY_DELAY = 2  # seconds, doubled on every attempt

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get(self, url: str) -> bytes:
        """GET a URL and return its body, retrying connection errors and HTTP 429."""
        for attempt in range(self.MAX_RETRIES):
            logger.debug(f"GET {url}" + (f" (retry {attempt})" if attempt > 0 else ""))

            try:
                response = self.session.get(url, timeout=self.timeout)

                if response.status_code == 429:
                    retry_delay = self.RETRY_DELAY * (2**attempt)
                    logger.warning(f"Rate limited by {url}, waiting {retry_delay}s")
                    time.sleep(retry_delay)
                    continue

                response.raise_for_status()
                return response.content

            except requests.exceptions.HTTPError as e:
                raise ArchiveFetchError(f"HTTP error fetching {url}: {e}") from e

            except requests.exceptions.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    retry_delay = self.RETRY_DELAY * (2**attempt)
                    logger.warning(f"Request to {url} failed ({e}), retrying in {retry_delay}s")
                    time.sleep(retry_delay)
                else:
                    raise ArchiveFetchError(f"Request to {url} failed: {e}") from e

        raise ArchiveFetchError(f"Giving up on {url} after {self.MAX_RETRIES} attempts")

    def fetch_versions(self) -> VersionTable:
        """Download version.txt into a VersionTable."""
        body = self.get(f"{self.base_url}/version.txt")
        versions = VersionTable.from_text(body.decode("utf-8-sig"))
        logger.info(f"Fetched archive versions for {len(versions)} cities")
        return versions

    def fetch_archive(self, code: str, version: str) -> bytes:
        """Download the zip archive of one city."""
        payload = self.get(f"{self.base_url}/{code}/{version}.zip")
        logger.info(f"Fetched archive {code}/{version} ({len(payload)} bytes)")
        return payload
