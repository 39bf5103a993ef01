"""Level resolution for area, sub-area, and overall scores.

Ranges are matched as half-open intervals ``[min_score, max_score)``. A score
that falls outside every range (typically exactly 100 when the top range ends
at 100) resolves to the range with the greatest ``max_score``. Seeded
boundary data depends on this fallback, so ranges must not be treated as
closed intervals.
"""

from collections.abc import Sequence

from resilience_assessment.core.entities import UNKNOWN_LEVEL, Level, ScoreRange
from resilience_assessment.errors import ScoreRangeError

# Fixed overall tiers (inclusive lower bound). Independent of the configurable
# overall feedback bands, which only select feedback text.
_OVERALL_TIERS: list[tuple[float, Level]] = [
    (80.0, Level(name="Exceptional", code="exceptional", color="#2ECC71")),
    (60.0, Level(name="Strong", code="strong", color="#4ECDC4")),
    (40.0, Level(name="Emerging", code="emerging", color="#FFE66D")),
]

_OVERALL_FLOOR = Level(name="Developing", code="developing", color="#FF6B6B")


def resolve_range(score: float, ranges: Sequence[ScoreRange]) -> ScoreRange | None:
    """Find the range containing ``score``, falling back to the top range.

    Args:
        score: Score on the 0-100 scale.
        ranges: Ranges configured for one area, sub-area, or band set.

    Returns:
        The first range with ``min_score <= score < max_score``; otherwise the
        range with the greatest ``max_score``; None if ``ranges`` is empty.
    """
    for candidate in ranges:
        if candidate.min_score <= score < candidate.max_score:
            return candidate
    if not ranges:
        return None
    return max(ranges, key=lambda r: r.max_score)


def resolve_level(score: float, ranges: Sequence[ScoreRange]) -> Level:
    """Map a score to its Level, or the Unknown sentinel when no ranges exist."""
    matched = resolve_range(score, ranges)
    if matched is None:
        return UNKNOWN_LEVEL
    return matched.to_level()


def overall_level_for_score(score: float) -> Level:
    """Map an overall score to the fixed four-tier overall level.

    Level        Score
    -----------  -------
    Exceptional  >= 80
    Strong       >= 60
    Emerging     >= 40
    Developing   below 40

    Args:
        score: Overall score 0-100.

    Returns:
        The overall Level for this score.
    """
    for threshold, level in _OVERALL_TIERS:
        if score >= threshold:
            return level
    return _OVERALL_FLOOR


def check_partition(ranges: Sequence[ScoreRange]) -> list[ScoreRange]:
    """Validate that ranges form a continuous sequence without gaps or overlaps.

    Used by configuration writers before ranges are stored; the resolver
    itself tolerates any input.

    Args:
        ranges: Candidate ranges for one area or sub-area.

    Returns:
        The ranges sorted by ``min_score``.

    Raises:
        ScoreRangeError: If a range is empty or inverted, lacks a level name or
            code, or does not start exactly where the previous one ends.
    """
    for candidate in ranges:
        if candidate.min_score >= candidate.max_score:
            raise ScoreRangeError(
                f"Invalid range: min must be less than max for {candidate.level_name!r}"
            )
        if not candidate.level_name.strip() or not candidate.level_code.strip():
            raise ScoreRangeError("Level name and code are required for all ranges")

    ordered = sorted(ranges, key=lambda r: r.min_score)
    for previous, current in zip(ordered, ordered[1:]):
        if current.min_score != previous.max_score:
            raise ScoreRangeError(
                "Score ranges must be continuous without gaps or overlaps"
            )
    return ordered
