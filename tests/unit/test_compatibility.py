"""Tests for the compatibility data service."""

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from baseline_lens.config.schema import DatasetConfig
from baseline_lens.core.compatibility import (
    DEFAULT_DESCRIPTION,
    CompatibilityDataService,
    derive_status,
)
from baseline_lens.core.dataset import DatasetSource
from baseline_lens.models.feature import BaselineTier


class TestDeriveStatus:
    """Tests for derive_status."""

    def test_high_is_widely_available(self) -> None:
        """Test baseline "high" maps to widely available."""
        status = derive_status(
            {
                "baseline": "high",
                "baseline_low_date": "2020-01-15",
                "baseline_high_date": "2022-07-15",
            }
        )
        assert status.status == BaselineTier.WIDELY_AVAILABLE
        assert status.low_date == "2020-01-15"
        assert status.baseline_date == "2020-01-15"
        assert status.high_date == "2022-07-15"

    def test_low_is_newly_available(self) -> None:
        """Test baseline "low" maps to newly available."""
        assert derive_status({"baseline": "low"}).status == BaselineTier.NEWLY_AVAILABLE

    @pytest.mark.parametrize("raw", [None, {}, {"baseline": False}, {"baseline": "unknown"}])
    def test_everything_else_is_limited(self, raw: dict[str, Any] | None) -> None:
        """Test missing or false baselines map to limited availability."""
        assert derive_status(raw).status == BaselineTier.LIMITED_AVAILABILITY

    def test_support_forms(self) -> None:
        """Test plain version strings and BCD-style objects are both read."""
        status = derive_status(
            {
                "baseline": "high",
                "support": {
                    "chrome": "29",
                    "firefox": {"version_added": "28", "notes": "Unprefixed"},
                    "ie": {"version_added": False},
                },
            }
        )
        assert status.support["chrome"].version_added == "29"
        assert status.support["firefox"].notes == "Unprefixed"
        assert status.support["ie"].version_added is None

    def test_pure(self) -> None:
        """Test equal inputs give equal snapshots."""
        raw = {"baseline": "low", "baseline_low_date": "2023-05-09"}
        assert derive_status(raw) == derive_status(dict(raw))


class TestLookups:
    """Tests for lookups over a loaded index."""

    def test_get_feature_status(self, service: CompatibilityDataService) -> None:
        """Test known ids return their derived status."""
        status = service.get_feature_status("has")
        assert status is not None
        assert status.status == BaselineTier.LIMITED_AVAILABILITY

    def test_unknown_status_is_none(self, service: CompatibilityDataService) -> None:
        """Test unknown ids return None."""
        assert service.get_feature_status("no-such-feature") is None

    def test_status_for_synthesizes_limited(self, service: CompatibilityDataService) -> None:
        """Test status_for never reports unknown ids as safe."""
        status = service.status_for("no-such-feature")
        assert status.status == BaselineTier.LIMITED_AVAILABILITY

    def test_status_is_cached(self, service: CompatibilityDataService) -> None:
        """Test repeated lookups return the same snapshot."""
        first = service.get_feature_status("grid")
        assert service.get_feature_status("grid") is first
        assert service.get_cache_stats().bcd_cache == 1

    def test_status_before_initialize(self) -> None:
        """Test lookups before initialization return None."""
        service = CompatibilityDataService()
        assert service.is_ready() is False
        assert service.get_feature_status("grid") is None
        assert service.search_features("grid") == []
        assert service.get_feature_details("grid") is None
        assert service.get_all_features() == []

    def test_resolve_first(self, service: CompatibilityDataService) -> None:
        """Test the first known candidate key wins."""
        hit = service.resolve_first(["css.properties.nope", "css.properties.display.flex"])
        assert hit == ("flexbox", "css.properties.display.flex")
        assert service.resolve_first(["css.properties.nope"]) is None

    def test_search_matches_id_name_and_description(
        self, service: CompatibilityDataService
    ) -> None:
        """Test search is a case-insensitive substring match."""
        assert [f.id for f in service.search_features("FLEXBOX")] == ["flexbox"]
        assert {f.id for f in service.search_features("layout")} == {"flexbox", "grid"}

    def test_search_empty_query(self, service: CompatibilityDataService) -> None:
        """Test an empty query returns nothing."""
        assert service.search_features("") == []

    def test_search_cached(self, service: CompatibilityDataService) -> None:
        """Test search results are cached per query."""
        service.search_features("grid")
        service.search_features("grid")
        assert service.get_cache_stats().search_cache == 1

    def test_feature_details(self, service: CompatibilityDataService) -> None:
        """Test details carry the dataset's links."""
        details = service.get_feature_details("flexbox")
        assert details is not None
        assert details.spec_url == "https://drafts.csswg.org/css-flexbox-1/"
        assert details.caniuse_id == "flexbox"
        assert details.group == "flexbox"
        assert details.to_dict()["specUrl"] == details.spec_url

    def test_details_default_description(self, service: CompatibilityDataService) -> None:
        """Test features without a description get a placeholder."""
        details = service.get_feature_details("intersection-observer")
        assert details is not None
        assert details.description == DEFAULT_DESCRIPTION

    def test_all_features_sorted_by_name(self, service: CompatibilityDataService) -> None:
        """Test get_all_features orders by name."""
        names = [d.name.lower() for d in service.get_all_features()]
        assert names == sorted(names)

    def test_clear_cache_keeps_index(self, service: CompatibilityDataService) -> None:
        """Test clearing caches does not drop the loaded dataset."""
        service.get_feature_status("grid")
        service.search_features("grid")
        service.clear_cache()
        stats = service.get_cache_stats()
        assert stats.bcd_cache == 0
        assert stats.search_cache == 0
        assert stats.total_features > 0
        assert service.has_feature("grid")


class TestInitialize:
    """Tests for dataset source selection."""

    async def test_builtin_by_default(self) -> None:
        """Test the built-in dataset loads when nothing is configured."""
        service = CompatibilityDataService()
        await service.initialize()
        assert service.source == DatasetSource.BUILTIN
        assert service.has_feature("flexbox")

    async def test_initialize_is_idempotent(self) -> None:
        """Test repeated initialization is a no-op."""
        service = CompatibilityDataService()
        await service.initialize()
        stats = service.get_cache_stats()
        await service.initialize()
        assert service.get_cache_stats() == stats

    async def test_configured_file(self, dataset_file: Path) -> None:
        """Test a configured file takes precedence."""
        service = CompatibilityDataService(DatasetConfig(path=dataset_file))
        await service.initialize()
        assert service.source == DatasetSource.FILE
        assert service.has_feature("duplicate-owner")

    async def test_missing_file_falls_back_to_builtin(self, tmp_path: Path) -> None:
        """Test an unreadable primary source falls back to the built-in dataset."""
        service = CompatibilityDataService(DatasetConfig(path=tmp_path / "missing.json"))
        await service.initialize()
        assert service.source == DatasetSource.BUILTIN

    async def test_url_not_found_falls_back(self) -> None:
        """Test an HTTP 404 falls back to the built-in dataset."""
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        service = CompatibilityDataService(
            DatasetConfig(url="https://data.example/web-features.json"),
            transport=transport,
        )
        await service.initialize()
        assert service.source == DatasetSource.BUILTIN

    async def test_background_upgrade(self, dataset_raw: dict[str, Any]) -> None:
        """Test a failed primary source is retried in the background."""
        responses = iter(
            [httpx.Response(503), httpx.Response(200, content=json.dumps(dataset_raw).encode())]
        )
        transport = httpx.MockTransport(lambda request: next(responses))
        service = CompatibilityDataService(
            DatasetConfig(
                url="https://data.example/web-features.json",
                upgrade_in_background=True,
                upgrade_delay=0,
            ),
            transport=transport,
        )
        await service.initialize()
        assert service.source == DatasetSource.BUILTIN

        await service.wait_for_upgrade()
        assert service.source == DatasetSource.URL
        assert service.has_feature("duplicate-owner")
