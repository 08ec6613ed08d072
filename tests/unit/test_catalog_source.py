"""Tests for catalog data sources."""

import json
import time

import httpx
import pytest

from openrouter_policy.catalog.source import (
    CachedCatalogSource,
    HttpCatalogSource,
    StaticCatalogSource,
)
from openrouter_policy.exceptions import CatalogUnavailableError


def _http_source(handler, retries: int = 3) -> HttpCatalogSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpCatalogSource(
        base_url="https://openrouter.test/api/v1/",
        retries=retries,
        client=client,
        max_wait=0,
    )


class TestHttpCatalogSource:
    """Tests for HttpCatalogSource."""

    def test_fetch_returns_data_rows(self, api_rows) -> None:
        """The data list of the /models payload is returned."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"data": api_rows})

        rows = _http_source(handler).fetch_all()

        assert rows == api_rows
        assert seen == ["https://openrouter.test/api/v1/models"]

    def test_non_200_raises(self) -> None:
        """HTTP errors make the catalog unavailable."""
        source = _http_source(lambda request: httpx.Response(503))

        with pytest.raises(CatalogUnavailableError, match="HTTP 503"):
            source.fetch_all()

    def test_invalid_json_raises(self) -> None:
        """An unparsable body makes the catalog unavailable."""
        source = _http_source(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(CatalogUnavailableError, match="parse"):
            source.fetch_all()

    def test_missing_data_raises(self) -> None:
        """A body without a data list is rejected."""
        source = _http_source(lambda request: httpx.Response(200, json={"models": []}))

        with pytest.raises(CatalogUnavailableError, match="data"):
            source.fetch_all()

    def test_transport_errors_retried(self, api_rows) -> None:
        """Transport errors are retried before succeeding."""
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"data": api_rows})

        rows = _http_source(handler, retries=3).fetch_all()

        assert rows == api_rows
        assert calls["n"] == 3

    def test_retries_exhausted_raises(self) -> None:
        """Persistent transport errors end in CatalogUnavailableError."""
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogUnavailableError, match="Network error"):
            _http_source(handler, retries=2).fetch_all()
        assert calls["n"] == 2


class TestCachedCatalogSource:
    """Tests for CachedCatalogSource."""

    def test_first_fetch_writes_cache(self, tmp_path, api_rows) -> None:
        """Rows and metadata are written on the first fetch."""
        source = CachedCatalogSource(StaticCatalogSource(api_rows), tmp_path / "cache", ttl=3600)

        rows = source.fetch_all()

        assert rows == api_rows
        assert json.loads(source.data_file.read_text()) == api_rows
        metadata = json.loads(source.metadata_file.read_text())
        assert "cached_at" in metadata

    def test_fresh_cache_skips_upstream(self, tmp_path, api_rows) -> None:
        """A fresh cache is served without calling the wrapped source."""
        upstream = StaticCatalogSource(api_rows)
        source = CachedCatalogSource(upstream, tmp_path, ttl=3600)
        source.fetch_all()

        class Exploding:
            def fetch_all(self):
                raise AssertionError("upstream should not be called")

        cached = CachedCatalogSource(Exploding(), tmp_path, ttl=3600)
        assert cached.fetch_all() == api_rows

    def test_stale_cache_refetches(self, tmp_path, api_rows) -> None:
        """Entries older than the TTL are refetched."""
        source = CachedCatalogSource(StaticCatalogSource(api_rows), tmp_path, ttl=60)
        source.write([{"id": "old/model"}])
        source.metadata_file.write_text(json.dumps({"cached_at": int(time.time()) - 3600}))

        assert source.is_stale()
        assert source.fetch_all() == api_rows

    def test_missing_metadata_is_stale(self, tmp_path) -> None:
        """No metadata file means no usable cache."""
        source = CachedCatalogSource(StaticCatalogSource([]), tmp_path, ttl=60)
        assert source.is_stale()
        assert source.read_if_fresh() is None

    def test_clear_removes_directory(self, tmp_path, api_rows) -> None:
        """clear() deletes the cache directory."""
        cache_dir = tmp_path / "cache"
        source = CachedCatalogSource(StaticCatalogSource(api_rows), cache_dir, ttl=60)
        source.fetch_all()

        source.clear()

        assert not cache_dir.exists()

    def test_oversized_cache_removed(self, tmp_path, api_rows) -> None:
        """A cache larger than the size limit is discarded after writing."""
        cache_dir = tmp_path / "cache"
        source = CachedCatalogSource(
            StaticCatalogSource(api_rows), cache_dir, ttl=60, max_size_mb=0.000001
        )

        assert source.fetch_all() == api_rows
        assert not cache_dir.exists()

    def test_upstream_failure_propagates(self, tmp_path) -> None:
        """Errors from the wrapped source are not swallowed."""

        class Failing:
            def fetch_all(self):
                raise CatalogUnavailableError("down")

        source = CachedCatalogSource(Failing(), tmp_path, ttl=60)
        with pytest.raises(CatalogUnavailableError):
            source.fetch_all()

    def test_force_skips_fresh_cache(self, tmp_path, api_rows) -> None:
        """force=True fetches upstream even when the cache is fresh."""
        source = CachedCatalogSource(StaticCatalogSource(api_rows), tmp_path, ttl=3600)
        source.write([{"id": "old/model"}])

        assert source.fetch_all(force=True) == api_rows
        assert json.loads(source.data_file.read_text()) == api_rows

    def test_failed_forced_fetch_keeps_cache(self, tmp_path, api_rows) -> None:
        """A failing forced fetch leaves the cached rows on disk."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        source = CachedCatalogSource(_http_source(handler, retries=1), tmp_path, ttl=3600)
        source.write(api_rows)

        with pytest.raises(CatalogUnavailableError):
            source.fetch_all(force=True)

        assert source.read_if_fresh() == api_rows
