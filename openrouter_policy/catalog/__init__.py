"""Model catalog: model metadata snapshot and its data sources."""

from __future__ import annotations

from openrouter_policy.catalog.catalog import ModelCatalog
from openrouter_policy.catalog.source import (
    CachedCatalogSource,
    CatalogDataSource,
    HttpCatalogSource,
    StaticCatalogSource,
)
from openrouter_policy.catalog.types import (
    Capability,
    ModelRecord,
    PerformanceTier,
    TokenCost,
)
from openrouter_policy.config.settings import CatalogConfig, get_settings


def build_catalog(config: CatalogConfig | None = None) -> ModelCatalog:
    """Assemble the cached HTTP catalog described by *config*.

    Falls back to the process-wide settings when no config is given.
    """
    config = config or get_settings().catalog
    source = CachedCatalogSource(
        HttpCatalogSource(
            base_url=config.base_url,
            timeout=config.registry_timeout,
            retries=config.registry_retries,
        ),
        cache_dir=config.cache_dir,
        ttl=config.cache_ttl,
        max_size_mb=config.max_cache_size_mb,
    )
    return ModelCatalog(source)


__all__ = [
    "CachedCatalogSource",
    "Capability",
    "CatalogDataSource",
    "HttpCatalogSource",
    "ModelCatalog",
    "ModelRecord",
    "PerformanceTier",
    "StaticCatalogSource",
    "TokenCost",
    "build_catalog",
]
