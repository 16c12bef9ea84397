"""Compatibility data service.

Owns the loaded dataset index and the derived lookup caches. Analyzers
receive the service explicitly; there is no module-level instance.

The index and every cache are replaced wholesale (attribute swap), never
cleared entry by entry, so lookups running on worker threads always see
either the old or the new state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from threading import Lock
from typing import Any

import httpx
import structlog
from cachetools import LRUCache

from ..config.schema import DatasetConfig
from ..models.compat import CacheStats, FeatureRecord, WebFeature, WebFeatureDetails
from ..models.feature import BaselineStatus, BaselineTier, BrowserSupport
from ..utils.async_helpers import DataLoadError
from ..utils.logging import LogEventNames
from ..utils.metrics import get_metrics
from . import dataset
from .dataset import DatasetIndex, DatasetSource

log = structlog.get_logger()

DEFAULT_DESCRIPTION = "No description available"


def derive_status(raw: dict[str, Any] | None) -> BaselineStatus:
    """Derive a BaselineStatus from a dataset ``status`` object.

    Pure: equal inputs always give equal snapshots.

    Args:
        raw: The ``status`` object of a dataset entry

    Returns:
        The classification snapshot
    """
    if not raw:
        return BaselineStatus(status=BaselineTier.LIMITED_AVAILABILITY)

    baseline = raw.get("baseline")
    if baseline == "high":
        tier = BaselineTier.WIDELY_AVAILABLE
    elif baseline == "low":
        tier = BaselineTier.NEWLY_AVAILABLE
    else:
        tier = BaselineTier.LIMITED_AVAILABILITY

    support: dict[str, BrowserSupport] = {}
    for browser, version in (raw.get("support") or {}).items():
        if isinstance(version, dict):
            support[browser] = BrowserSupport(
                version_added=_version_string(version.get("version_added")),
                version_removed=_version_string(version.get("version_removed")),
                notes=version.get("notes"),
            )
        else:
            support[browser] = BrowserSupport(version_added=_version_string(version))

    low_date = raw.get("baseline_low_date")
    return BaselineStatus(
        status=tier,
        baseline_date=low_date,
        high_date=raw.get("baseline_high_date"),
        low_date=low_date,
        support=support,
    )


def _version_string(value: Any) -> str | None:
    if value is None or value is False:
        return None
    return str(value)


def synthesize_status(feature_id: str) -> BaselineStatus:
    """Status used for ids the dataset does not know.

    Unknown features are treated as limited availability so they are never
    silently reported as safe.
    """
    return BaselineStatus(status=BaselineTier.LIMITED_AVAILABILITY)


class CompatibilityDataService:
    """Index over the compatibility dataset.

    Example:
        service = CompatibilityDataService(DatasetConfig(path=Path("data.json")))
        await service.initialize()
        status = service.get_feature_status("grid")
        results = service.search_features("grid")
    """

    def __init__(
        self,
        config: DatasetConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Dataset sources. Defaults to the built-in dataset only.
            transport: Optional httpx transport for dataset downloads.
        """
        self._config = config or DatasetConfig()
        self._transport = transport
        self._index = DatasetIndex()
        self._ready = False
        self._init_lock = asyncio.Lock()
        self._upgrade_task: asyncio.Task[None] | None = None

        self._cache_lock = Lock()
        self._status_cache: dict[str, BaselineStatus] = {}
        self._search_cache: LRUCache[str, tuple[WebFeature, ...]] = LRUCache(
            maxsize=self._config.search_cache_size
        )

    @classmethod
    def from_data(cls, raw: dict[str, Any]) -> CompatibilityDataService:
        """Create a ready service over an in-memory dataset document."""
        service = cls()
        service._install(dataset.build_index(raw, DatasetSource.INLINE))
        return service

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load the dataset.

        Sources are tried in order: configured file, configured URL, then
        the built-in dataset. Repeated calls after success are no-ops.

        Raises:
            DataLoadError: If every source fails
        """
        if self._ready:
            return

        async with self._init_lock:
            if self._ready:
                return

            index = await self._load_primary()
            if index is None:
                try:
                    index = dataset.load_builtin()
                except DataLoadError as e:
                    log.error(LogEventNames.DATASET_SOURCE_FAILED, source="builtin", error=str(e))
                    raise DataLoadError(
                        "Compatibility data unavailable: primary and built-in datasets failed"
                    ) from e
                if self._has_primary_source():
                    log.warning(LogEventNames.DATASET_FALLBACK, total_features=len(index))
                    if self._config.upgrade_in_background:
                        self._upgrade_task = asyncio.create_task(self._upgrade())

            self._install(index)

    def _has_primary_source(self) -> bool:
        return self._config.path is not None or self._config.url is not None

    async def _load_primary(self) -> DatasetIndex | None:
        if self._config.path is not None:
            try:
                return dataset.load_file(self._config.path)
            except DataLoadError as e:
                log.warning(LogEventNames.DATASET_SOURCE_FAILED, source="file", error=str(e))

        if self._config.url is not None:
            try:
                return await dataset.download(
                    self._config.url,
                    timeout=self._config.request_timeout,
                    transport=self._transport,
                )
            except DataLoadError as e:
                log.warning(LogEventNames.DATASET_SOURCE_FAILED, source="url", error=str(e))

        return None

    async def _upgrade(self) -> None:
        await asyncio.sleep(self._config.upgrade_delay)
        index = await self._load_primary()
        if index is None:
            return
        self._install(index)
        log.info(
            LogEventNames.DATASET_UPGRADED, source=index.source.value, total_features=len(index)
        )

    async def wait_for_upgrade(self) -> None:
        """Wait for a scheduled background upgrade, if any."""
        if self._upgrade_task is not None:
            await self._upgrade_task

    def _install(self, index: DatasetIndex) -> None:
        self._index = index
        self._reset_caches()
        self._ready = True
        log.info(
            LogEventNames.DATASET_LOADED,
            source=index.source.value,
            total_features=len(index),
            compat_keys=len(index.compat_keys),
        )

    def is_ready(self) -> bool:
        return self._ready

    @property
    def source(self) -> DatasetSource | None:
        """Which source the current index was loaded from."""
        return self._index.source if self._ready else None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def has_feature(self, feature_id: str) -> bool:
        return feature_id in self._index.features

    def get_feature_status(self, feature_id: str) -> BaselineStatus | None:
        """Baseline status of a feature id.

        Returns None for unknown ids and before initialization.
        """
        if not self._ready:
            return None

        cache = self._status_cache
        cached = cache.get(feature_id)
        if cached is not None:
            get_metrics().cache_hits.inc()
            return cached

        record = self._index.features.get(feature_id)
        if record is None:
            return None

        get_metrics().cache_misses.inc()
        status = derive_status(record.status)
        cache[feature_id] = status
        return status

    def status_for(self, feature_id: str) -> BaselineStatus:
        """Status of a feature id, synthesized when the dataset lacks it."""
        return self.get_feature_status(feature_id) or synthesize_status(feature_id)

    def resolve_compat_key(self, key: str) -> str | None:
        """Feature id owning a browser-compat-data key, if any."""
        return self._index.compat_keys.get(key)

    def resolve_first(self, candidates: Iterable[str]) -> tuple[str, str] | None:
        """First candidate key the index knows.

        Returns:
            ``(feature_id, key)`` for the first hit, or None
        """
        compat_keys = self._index.compat_keys
        for key in candidates:
            feature_id = compat_keys.get(key)
            if feature_id is not None:
                return feature_id, key
        return None

    def search_features(self, query: str) -> list[WebFeature]:
        """Case-insensitive substring search over id, name and description."""
        if not self._ready or not query:
            return []

        needle = query.lower()
        with self._cache_lock:
            cached = self._search_cache.get(needle)
        if cached is not None:
            get_metrics().cache_hits.inc()
            return list(cached)

        get_metrics().cache_misses.inc()
        results = tuple(
            WebFeature(
                id=record.id,
                name=record.name,
                description=record.description or DEFAULT_DESCRIPTION,
                baseline=self.status_for(record.id),
            )
            for record in self._index.features.values()
            if _matches(record, needle)
        )
        with self._cache_lock:
            self._search_cache[needle] = results
        return list(results)

    def get_feature_details(self, feature_id: str) -> WebFeatureDetails | None:
        """Full description of a feature, or None when unknown."""
        if not self._ready:
            return None
        record = self._index.features.get(feature_id)
        if record is None:
            return None
        return self._details(record)

    def get_all_features(self) -> list[WebFeatureDetails]:
        """Every feature, sorted by name."""
        if not self._ready:
            return []
        details = [self._details(record) for record in self._index.features.values()]
        return sorted(details, key=lambda d: (d.name.lower(), d.id))

    def _details(self, record: FeatureRecord) -> WebFeatureDetails:
        return WebFeatureDetails(
            id=record.id,
            name=record.name,
            description=record.description or DEFAULT_DESCRIPTION,
            baseline=self.status_for(record.id),
            mdn_url=record.mdn_url,
            spec_url=record.spec_url,
            caniuse_id=record.caniuse_id,
            group=record.group,
        )

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def _reset_caches(self) -> None:
        with self._cache_lock:
            self._status_cache = {}
            self._search_cache = LRUCache(maxsize=self._config.search_cache_size)

    def clear_cache(self) -> None:
        """Drop derived caches; the loaded index stays."""
        self._reset_caches()
        log.debug(LogEventNames.DATASET_CACHE_CLEARED)

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(
            total_features=len(self._index),
            bcd_cache=len(self._status_cache),
            search_cache=len(self._search_cache),
        )


def _matches(record: FeatureRecord, needle: str) -> bool:
    return (
        needle in record.id.lower()
        or needle in record.name.lower()
        or (record.description is not None and needle in record.description.lower())
    )

