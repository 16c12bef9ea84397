"""Data models for compatibility dataset records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .feature import BaselineStatus


@dataclass(frozen=True)
class WebFeature:
    """A dataset feature as returned by search."""

    id: str
    name: str
    description: str
    baseline: BaselineStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "baseline": self.baseline.to_dict(),
        }


@dataclass(frozen=True)
class WebFeatureDetails:
    """Full description of a dataset feature for hover and reports."""

    id: str
    name: str
    description: str  # Never empty; synthesized when the dataset has none
    baseline: BaselineStatus
    mdn_url: str | None = None
    spec_url: str | None = None
    caniuse_id: str | None = None
    group: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "baseline": self.baseline.to_dict(),
        }
        for key, value in (
            ("mdnUrl", self.mdn_url),
            ("specUrl", self.spec_url),
            ("caniuseId", self.caniuse_id),
            ("group", self.group),
        ):
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class FeatureRecord:
    """One indexed dataset entry.

    Holds the raw fields the service needs to answer lookups; the
    ``BaselineStatus`` is derived from ``status`` on demand.
    """

    id: str
    name: str
    description: str | None
    status: dict  # Raw "status" object from the dataset
    compat_features: tuple[str, ...] = ()
    spec_url: str | None = None
    mdn_url: str | None = None
    caniuse_id: str | None = None
    group: str | None = None


@dataclass(frozen=True)
class CacheStats:
    """Size of the derived caches and the loaded index."""

    total_features: int
    bcd_cache: int
    search_cache: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalFeatures": self.total_features,
            "bcdCache": self.bcd_cache,
            "searchCache": self.search_cache,
        }
