"""Immutable value types shared by the scoring engine and retake state machine.

Repositories translate data store rows into these types before any
computation begins, so the engine works only on fully materialised,
read-only input. Every collection field is a tuple or frozenset.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Likert scale maximums by question type
SCALE_MAX: dict[str, int] = {
    "likert_5": 5,
    "likert_7": 7,
}

DEFAULT_SCALE_MAX: int = 5


class ContentType(str, Enum):
    """Feedback text block types attached to a score range or overall band."""

    SUMMARY = "summary"
    STRENGTHS = "strengths"
    GROWTH_AREAS = "growth_areas"
    RECOMMENDATIONS = "recommendations"


class CodeStatus(str, Enum):
    """Lifecycle status of an assessment code."""

    UNUSED = "unused"
    STARTED = "started"
    COMPLETED = "completed"


@dataclass(frozen=True)
class QuestionConfig:
    """Scoring configuration of a single active question.

    Attributes:
        id: Question identifier.
        area_id: Owning resilience area.
        weight: Positive scoring weight, default 1.
        is_reverse_scored: Whether the answer is flipped on its scale before weighting.
        question_type: Scale selector, e.g. 'likert_5' or 'likert_7'.
        sub_area_ids: Sub-areas this question is assigned to (many-to-many).
    """

    id: str
    area_id: str
    weight: float = 1.0
    is_reverse_scored: bool = False
    question_type: str = "likert_5"
    sub_area_ids: frozenset[str] = frozenset()

    @property
    def scale_max(self) -> int:
        """Highest answer value on this question's scale."""
        return SCALE_MAX.get(self.question_type, DEFAULT_SCALE_MAX)


@dataclass(frozen=True)
class ResponseValue:
    """One stored answer: a question id and its integer scale value."""

    question_id: str
    value: int


@dataclass(frozen=True)
class Level:
    """A named, coloured band of the 0-100 score scale."""

    name: str
    code: str
    color: str


UNKNOWN_LEVEL = Level(name="Unknown", code="unknown", color="#888888")


@dataclass(frozen=True)
class Feedback:
    """Feedback text bundle keyed by content type; absent blocks are empty strings."""

    summary: str = ""
    strengths: str = ""
    growth_areas: str = ""
    recommendations: str = ""


@dataclass(frozen=True)
class FeedbackContentItem:
    """A single feedback text block attached to a score range."""

    content_type: str
    body: str
    display_order: int = 0


@dataclass(frozen=True)
class ScoreRange:
    """A [min_score, max_score) band of an area or sub-area.

    Attributes:
        id: Range identifier.
        min_score: Inclusive lower bound.
        max_score: Exclusive upper bound (see levels.resolve_range for the top-band fallback).
        level_name: Display name, e.g. 'Strong'.
        level_code: Machine code referenced by feedback rule conditions, e.g. 'strong'.
        color: Hex colour, or None to use the unknown-level grey.
        feedback: Active feedback blocks for this range, in display order.
    """

    id: str
    min_score: float
    max_score: float
    level_name: str
    level_code: str
    color: str | None = None
    feedback: tuple[FeedbackContentItem, ...] = ()

    def to_level(self) -> Level:
        """Return the Level this range assigns."""
        return Level(
            name=self.level_name,
            code=self.level_code,
            color=self.color or UNKNOWN_LEVEL.color,
        )


@dataclass(frozen=True)
class AreaConfig:
    """A top-level resilience area with its score ranges."""

    id: str
    slug: str
    name: str
    display_order: int = 0
    score_ranges: tuple[ScoreRange, ...] = ()


@dataclass(frozen=True)
class SubAreaConfig:
    """A sub-area within an area, with its own score ranges."""

    id: str
    area_id: str
    slug: str
    name: str
    display_order: int = 0
    score_ranges: tuple[ScoreRange, ...] = ()


@dataclass(frozen=True)
class FeedbackCondition:
    """A rule condition on one sub-area's resolved level.

    An empty ``level_codes`` set is a wildcard: any resolved level matches,
    but the sub-area must still have been scored.
    """

    sub_area_id: str
    level_codes: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FeedbackRule:
    """An admin-ordered conditional feedback rule belonging to one area."""

    id: str
    area_id: str
    priority: int
    feedback_text: str
    conditions: tuple[FeedbackCondition, ...] = ()
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class OverallFeedbackContent:
    """A feedback block for an overall score band, independent of any area."""

    min_overall_score: float
    max_overall_score: float
    content_type: str
    body: str
    display_order: int = 0


@dataclass(frozen=True)
class ScoringConfig:
    """Read-only configuration bundle consumed by the scoring engine."""

    questions: tuple[QuestionConfig, ...] = ()
    areas: tuple[AreaConfig, ...] = ()
    sub_areas: tuple[SubAreaConfig, ...] = ()
    rules: tuple[FeedbackRule, ...] = ()
    overall_feedback: tuple[OverallFeedbackContent, ...] = ()


@dataclass(frozen=True)
class Cohort:
    """Organisational grouping of codes sharing a retake policy and access window.

    Attributes:
        max_retakes: Maximum completed attempts per code; 0 means unlimited.
        retake_cooldown_days: Days after completion before another attempt may start.
    """

    id: str
    name: str = ""
    is_active: bool = True
    allow_retakes: bool = False
    max_retakes: int = 0
    retake_cooldown_days: int = 0
    access_start_date: datetime | None = None
    access_end_date: datetime | None = None


@dataclass(frozen=True)
class AssessmentCode:
    """An access code bound to one cohort."""

    id: str
    code: str
    cohort_id: str
    times_used: int = 0
    status: str = CodeStatus.UNUSED.value
    expires_at: datetime | None = None
    first_accessed_at: datetime | None = None
    last_accessed_at: datetime | None = None


@dataclass(frozen=True)
class AssessmentSession:
    """One attempt by a respondent using a code."""

    id: str
    code_id: str
    attempt_number: int
    is_complete: bool = False
    completed_at: datetime | None = None
    current_area_index: int = 0
    overall_score: float | None = None
    area_scores: dict[str, float] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class SubAreaScore:
    """Score and resolved level of one sub-area."""

    sub_area_id: str
    slug: str
    name: str
    score: float
    level: Level


@dataclass(frozen=True)
class AreaScore:
    """Scored area with its level, per-level feedback, and sub-area breakdown.

    ``conditional_feedback`` supersedes ``feedback.summary`` in presentation
    when present; the summary is always computed for fallback.
    """

    area_id: str
    slug: str
    name: str
    score: float
    level: Level
    feedback: Feedback
    sub_area_scores: tuple[SubAreaScore, ...] = ()
    conditional_feedback: str | None = None


@dataclass(frozen=True)
class ScoringResult:
    """Complete scoring output for one session."""

    overall_score: float
    overall_level: Level
    overall_feedback: Feedback
    area_scores: tuple[AreaScore, ...] = ()
