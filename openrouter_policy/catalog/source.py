"""Data sources that supply raw model rows to the catalog."""

from __future__ import annotations

import json
import shutil
import time
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from openrouter_policy.exceptions import CatalogUnavailableError

logger = structlog.get_logger()

CACHE_DATA_FILE = "models_data.json"
CACHE_METADATA_FILE = "cache_metadata.json"


@runtime_checkable
class CatalogDataSource(Protocol):
    """Anything that can return the raw OpenRouter model rows."""

    def fetch_all(self) -> list[dict[str, Any]]:
        ...


class StaticCatalogSource:
    """A fixed list of raw model rows (offline use and tests)."""

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = [dict(row) for row in rows]

    def fetch_all(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._rows]


class HttpCatalogSource:
    """Fetches ``GET {base_url}/models`` from the OpenRouter API."""

    def __init__(
        self,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 30.0,
        retries: int = 3,
        client: httpx.Client | None = None,
        max_wait: float = 10.0,
    ) -> None:
        """Initialize the HTTP source.

        Args:
            base_url: OpenRouter API base URL.
            timeout: Connect/read timeout in seconds.
            retries: Attempts made on transport errors before giving up.
            client: Pre-built httpx client (tests inject a MockTransport one).
            max_wait: Upper bound for the exponential wait between attempts.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retries = max(1, retries)
        self._client = client
        self._max_wait = max_wait

    @property
    def url(self) -> str:
        return f"{self._base_url}/models"

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def fetch_all(self) -> list[dict[str, Any]]:
        """Fetch all model rows.

        Raises:
            CatalogUnavailableError: On transport failure after retries, a
                non-200 status, or an unparsable body.
        """

        @retry(
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=1, min=0, max=self._max_wait),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        def _get() -> httpx.Response:
            logger.debug("Fetching model catalog", url=self.url)
            return self._get_client().get(self.url)

        try:
            response = _get()
        except (httpx.TransportError, RetryError) as e:
            raise CatalogUnavailableError(
                f"Network error fetching models: {e}"
            ) from e

        if response.status_code != 200:
            raise CatalogUnavailableError(
                f"Failed to fetch models from OpenRouter API: "
                f"HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CatalogUnavailableError(
                f"Failed to parse OpenRouter API response: {e}"
            ) from e

        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise CatalogUnavailableError(
                "OpenRouter API response has no 'data' list"
            )
        return rows

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


class CachedCatalogSource:
    """Wraps another source with an on-disk JSON cache and a TTL.

    The cache directory holds the raw rows plus a metadata file recording
    when they were written. Reads within ``ttl`` seconds skip the upstream
    source entirely.
    """

    def __init__(
        self,
        source: CatalogDataSource,
        cache_dir: Path,
        ttl: int,
        max_size_mb: float = 50.0,
    ) -> None:
        self._source = source
        self._cache_dir = Path(cache_dir)
        self._ttl = ttl
        self._max_size_mb = max_size_mb

    @property
    def data_file(self) -> Path:
        return self._cache_dir / CACHE_DATA_FILE

    @property
    def metadata_file(self) -> Path:
        return self._cache_dir / CACHE_METADATA_FILE

    def is_stale(self) -> bool:
        """True when there is no cache or it is older than the TTL."""
        if not self.metadata_file.exists():
            return True
        try:
            metadata = json.loads(self.metadata_file.read_text(encoding="utf-8"))
            cached_at = int(metadata["cached_at"])
        except (OSError, ValueError, KeyError, TypeError):
            return True
        return time.time() - cached_at > self._ttl

    def read_if_fresh(self) -> list[dict[str, Any]] | None:
        if self.is_stale() or not self.data_file.exists():
            return None
        try:
            rows = json.loads(self.data_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Unreadable catalog cache, refetching", path=str(self.data_file))
            return None
        return rows if isinstance(rows, list) else None

    def write(self, rows: list[dict[str, Any]]) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self.data_file.write_text(json.dumps(rows, indent=2), encoding="utf-8")
        metadata = {
            "cached_at": int(time.time()),
            "version": "1.0",
            "source": "openrouter_api",
        }
        self.metadata_file.write_text(json.dumps(metadata, indent=2), encoding="utf-8")
        self._cleanup_oversized()

    def clear(self) -> None:
        """Remove the cache directory."""
        if self._cache_dir.exists():
            shutil.rmtree(self._cache_dir, ignore_errors=True)

    def fetch_all(self, force: bool = False) -> list[dict[str, Any]]:
        """Rows from the cache when fresh, otherwise from the wrapped source.

        With *force* the cache is never read. It is only overwritten after
        the wrapped source succeeds, so a failing fetch leaves it in place.
        """
        cached = None if force else self.read_if_fresh()
        if cached is not None:
            logger.debug("Model catalog served from cache", models=len(cached))
            return cached

        rows = self._source.fetch_all()
        try:
            self.write(rows)
        except OSError as e:
            # A read-only cache dir must not make the catalog unavailable
            logger.warning("Could not write catalog cache", error=str(e))
        return rows

    def _cache_size_mb(self) -> float:
        total = sum(
            f.stat().st_size for f in self._cache_dir.rglob("*") if f.is_file()
        )
        return total / (1024.0 * 1024.0)

    def _cleanup_oversized(self) -> None:
        if self._cache_size_mb() > self._max_size_mb:
            logger.warning(
                "Catalog cache exceeds size limit, removing",
                limit_mb=self._max_size_mb,
            )
            self.clear()
