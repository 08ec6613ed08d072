"""In-memory snapshot of model metadata."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from types import MappingProxyType

import structlog
from pydantic import ValidationError

from openrouter_policy.catalog.source import (
    CachedCatalogSource,
    CatalogDataSource,
)
from openrouter_policy.catalog.types import Capability, ModelRecord
from openrouter_policy.exceptions import CatalogUnavailableError, UnknownModelError

logger = structlog.get_logger()


class ModelCatalog:
    """Read-mostly catalog of :class:`ModelRecord` keyed by model id.

    The snapshot is loaded lazily on first access and replaced wholesale by
    :meth:`refresh`. Readers always see either the old or the new mapping,
    never a partially built one, so concurrent reads need no locking.
    """

    def __init__(self, source: CatalogDataSource | None) -> None:
        self._source = source
        self._snapshot: Mapping[str, ModelRecord] | None = None

    @classmethod
    def from_records(cls, records: Iterable[ModelRecord]) -> ModelCatalog:
        """Build a catalog around already-constructed records.

        Such a catalog has no data source; :meth:`refresh` keeps the records.
        """
        catalog = cls(None)
        catalog._snapshot = MappingProxyType({r.id: r for r in records})
        return catalog

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    def all(self) -> Mapping[str, ModelRecord]:
        """Return the current snapshot, loading it on first use.

        Raises:
            CatalogUnavailableError: If nothing is loaded yet and the data
                source fails.
        """
        snapshot = self._snapshot
        if snapshot is None:
            snapshot = self._load()
            self._snapshot = snapshot
        return snapshot

    def refresh(self) -> None:
        """Reload from the data source, bypassing any disk cache.

        On failure the previous snapshot (if any) and the disk cache stay
        usable and the error propagates as :class:`CatalogUnavailableError`.
        """
        if self._source is None:
            logger.debug("Catalog built from records, nothing to refresh")
            return
        self._snapshot = self._load(force=True)

    def get(self, model_id: str) -> ModelRecord:
        record = self.all().get(model_id)
        if record is None:
            raise UnknownModelError(model_id)
        return record

    def find(self, model_id: str) -> ModelRecord | None:
        return self.all().get(model_id)

    def exists(self, model_id: str) -> bool:
        return model_id in self.all()

    def has_capability(self, model_id: str, capability: Capability | str) -> bool:
        """False for unknown models rather than raising."""
        record = self.find(model_id)
        return record is not None and record.has_capability(capability)

    def filter(self, predicate: Callable[[ModelRecord], bool]) -> list[ModelRecord]:
        """Records satisfying *predicate*, in catalog order."""
        return [r for r in self.all().values() if predicate(r)]

    def providers(self) -> list[str]:
        return sorted({r.provider for r in self.all().values()})

    def __len__(self) -> int:
        return len(self.all())

    def __contains__(self, model_id: object) -> bool:
        return model_id in self.all()

    def __iter__(self) -> Iterator[ModelRecord]:
        return iter(list(self.all().values()))

    def _load(self, force: bool = False) -> Mapping[str, ModelRecord]:
        if self._source is None:
            return MappingProxyType({})
        try:
            if force and isinstance(self._source, CachedCatalogSource):
                rows = self._source.fetch_all(force=True)
            else:
                rows = self._source.fetch_all()
        except CatalogUnavailableError:
            raise
        except Exception as e:
            raise CatalogUnavailableError(f"Model catalog source failed: {e}") from e

        records: dict[str, ModelRecord] = {}
        for row in rows:
            if not isinstance(row, dict) or not row.get("id"):
                logger.warning("Skipping catalog row without id")
                continue
            try:
                record = ModelRecord.from_api(row)
            except (ValidationError, ValueError, TypeError) as e:
                logger.warning("Skipping malformed catalog row", model=row.get("id"), error=str(e))
                continue
            records[record.id] = record

        logger.info("Model catalog loaded", models=len(records))
        return MappingProxyType(records)
