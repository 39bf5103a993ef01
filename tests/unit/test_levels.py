"""Unit tests for level resolution and score range validation."""

import pytest

from resilience_assessment.core.entities import UNKNOWN_LEVEL, ScoreRange
from resilience_assessment.core.levels import (
    check_partition,
    overall_level_for_score,
    resolve_level,
    resolve_range,
)
from resilience_assessment.errors import ScoreRangeError, ValidationError


def _range(low: float, high: float, code: str, name: str | None = None) -> ScoreRange:
    return ScoreRange(
        id=code,
        min_score=low,
        max_score=high,
        level_name=code.title() if name is None else name,
        level_code=code,
        color="#000000",
    )


@pytest.fixture()
def ranges() -> list[ScoreRange]:
    return [
        _range(0, 40, "developing"),
        _range(40, 60, "emerging"),
        _range(60, 80, "strong"),
        _range(80, 100, "exceptional"),
    ]


class TestResolveLevel:
    """Half-open interval matching with top-range fallback."""

    @pytest.mark.parametrize(
        ("score", "expected"),
        [
            (0.0, "developing"),
            (39.99, "developing"),
            (40.0, "emerging"),
            (59.99, "emerging"),
            (60.0, "strong"),
            (79.99, "strong"),
            (80.0, "exceptional"),
            (99.99, "exceptional"),
        ],
    )
    def test_boundaries(self, ranges: list[ScoreRange], score: float, expected: str) -> None:
        """Lower bounds are inclusive and upper bounds exclusive."""
        assert resolve_level(score, ranges).code == expected

    def test_perfect_score_falls_back_to_top_range(self, ranges: list[ScoreRange]) -> None:
        """100 is outside [80,100) and resolves to the range with the greatest max."""
        assert resolve_level(100.0, ranges).code == "exceptional"

    def test_fallback_ignores_input_order(self, ranges: list[ScoreRange]) -> None:
        assert resolve_level(100.0, list(reversed(ranges))).code == "exceptional"

    def test_gap_falls_back_to_top_range(self) -> None:
        gapped = [_range(0, 40, "low"), _range(50, 100, "high")]
        assert resolve_level(45.0, gapped).code == "high"

    def test_no_ranges_gives_unknown_sentinel(self) -> None:
        level = resolve_level(55.0, [])
        assert level == UNKNOWN_LEVEL
        assert (level.name, level.code, level.color) == ("Unknown", "unknown", "#888888")

    def test_resolve_range_returns_none_without_ranges(self) -> None:
        assert resolve_range(10.0, []) is None

    def test_level_carries_range_colour(self) -> None:
        colored = ScoreRange("r", 0, 100, "All", "all", color="#123456")
        assert resolve_level(50.0, [colored]).color == "#123456"


class TestOverallLevel:
    """Fixed overall tiers."""

    @pytest.mark.parametrize(
        ("score", "code", "color"),
        [
            (100.0, "exceptional", "#2ECC71"),
            (80.0, "exceptional", "#2ECC71"),
            (79.99, "strong", "#4ECDC4"),
            (60.0, "strong", "#4ECDC4"),
            (59.99, "emerging", "#FFE66D"),
            (40.0, "emerging", "#FFE66D"),
            (39.99, "developing", "#FF6B6B"),
            (0.0, "developing", "#FF6B6B"),
        ],
    )
    def test_tiers(self, score: float, code: str, color: str) -> None:
        level = overall_level_for_score(score)
        assert level.code == code
        assert level.color == color


class TestCheckPartition:
    """Validation of configured ranges before they are stored."""

    def test_continuous_ranges_are_returned_sorted(self, ranges: list[ScoreRange]) -> None:
        ordered = check_partition(list(reversed(ranges)))
        assert [r.level_code for r in ordered] == [
            "developing", "emerging", "strong", "exceptional",
        ]

    def test_gap_is_rejected(self) -> None:
        with pytest.raises(ScoreRangeError, match="continuous"):
            check_partition([_range(0, 40, "low"), _range(41, 100, "high")])

    def test_overlap_is_rejected(self) -> None:
        with pytest.raises(ScoreRangeError, match="continuous"):
            check_partition([_range(0, 50, "low"), _range(40, 100, "high")])

    def test_inverted_range_is_rejected(self) -> None:
        with pytest.raises(ScoreRangeError, match="min must be less than max"):
            check_partition([_range(50, 50, "flat")])

    def test_missing_level_name_is_rejected(self) -> None:
        with pytest.raises(ScoreRangeError, match="Level name and code"):
            check_partition([_range(0, 100, "all", name=" ")])

    def test_range_error_is_a_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            check_partition([_range(10, 0, "bad")])

    def test_empty_input_is_accepted(self) -> None:
        assert check_partition([]) == []
