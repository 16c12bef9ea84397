"""Tests for detected feature models."""

import pytest

from baseline_lens.models.feature import (
    BaselineStatus,
    BaselineTier,
    BrowserSupport,
    DetectedFeature,
    FeatureType,
    Position,
    Range,
    Severity,
)


def feature(line: int = 0, start: int = 0, end: int = 4) -> DetectedFeature:
    return DetectedFeature(
        id="grid",
        name="display",
        type=FeatureType.CSS,
        range=Range(Position(line, start), Position(line, end)),
        baseline_status=BaselineStatus(
            status=BaselineTier.WIDELY_AVAILABLE,
            support={"firefox": BrowserSupport("52"), "chrome": BrowserSupport("57")},
        ),
        context="CSS property: display",
        severity=Severity.INFO,
    )


class TestPositions:
    """Tests for Position and Range."""

    def test_positions_order_by_line_then_character(self) -> None:
        assert Position(0, 9) < Position(1, 0) < Position(1, 2)

    def test_range_is_half_open(self) -> None:
        """Test the end position is outside the range."""
        span = Range(Position(0, 2), Position(0, 5))
        assert span.contains(Position(0, 2))
        assert span.contains(Position(0, 4))
        assert not span.contains(Position(0, 5))
        assert not span.is_empty

    def test_empty_range(self) -> None:
        assert Range(Position(1, 1), Position(1, 1)).is_empty


class TestSeverity:
    @pytest.mark.parametrize(
        ("tier", "severity"),
        [
            (BaselineTier.WIDELY_AVAILABLE, Severity.INFO),
            (BaselineTier.NEWLY_AVAILABLE, Severity.WARNING),
            (BaselineTier.LIMITED_AVAILABILITY, Severity.ERROR),
        ],
    )
    def test_from_tier(self, tier: BaselineTier, severity: Severity) -> None:
        """Test each tier has a default severity."""
        assert Severity.from_tier(tier) == severity


class TestDetectedFeature:
    """Tests for DetectedFeature."""

    def test_to_dict(self) -> None:
        """Test the serialized shape and key names."""
        data = feature().to_dict()

        assert data["id"] == "grid"
        assert data["type"] == "css"
        assert data["severity"] == "info"
        assert data["range"] == {
            "start": {"line": 0, "character": 0},
            "end": {"line": 0, "character": 4},
        }
        assert data["baselineStatus"]["status"] == "widely_available"
        assert list(data["baselineStatus"]["support"]) == ["chrome", "firefox"]
        assert data["baselineStatus"]["support"]["chrome"] == {"version_added": "57"}

    def test_keys(self) -> None:
        """Test sort and dedupe keys follow the range."""
        early, late = feature(0, 1, 3), feature(2, 0, 1)
        assert early.sort_key < late.sort_key
        assert early.dedupe_key == feature(0, 1, 3).dedupe_key
        assert early.dedupe_key != late.dedupe_key

    def test_equal_features_hash_alike(self) -> None:
        assert len({feature(), feature()}) == 1

    def test_support_notes_serialized(self) -> None:
        support = BrowserSupport("15", version_removed="16", notes="behind a flag")
        assert support.to_dict() == {
            "version_added": "15",
            "version_removed": "16",
            "notes": "behind a flag",
        }
