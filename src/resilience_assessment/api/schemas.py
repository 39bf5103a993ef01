"""Pydantic presentation schemas for scoring results and code validation.

These are the JSON shapes consumed by the results page and PDF export. Field
names serialise in camelCase (``overallScore``, ``areaScores``) via aliases;
``model_dump(by_alias=True)`` produces the wire form.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from resilience_assessment.core.entities import (
    AreaScore,
    AssessmentSession,
    Feedback,
    Level,
    ScoringResult,
    SubAreaScore,
)
from resilience_assessment.core.retake import RetakeValidation


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LevelSchema(_CamelModel):
    """A named, coloured score level."""

    name: str
    code: str
    color: str = Field(description="Hex colour, e.g. #4ECDC4")

    @classmethod
    def from_level(cls, level: Level) -> "LevelSchema":
        return cls(name=level.name, code=level.code, color=level.color)


class FeedbackSchema(_CamelModel):
    """Feedback text blocks; absent blocks are empty strings."""

    summary: str = ""
    strengths: str = ""
    growth_areas: str = ""
    recommendations: str = ""

    @classmethod
    def from_feedback(cls, feedback: Feedback) -> "FeedbackSchema":
        return cls(
            summary=feedback.summary,
            strengths=feedback.strengths,
            growth_areas=feedback.growth_areas,
            recommendations=feedback.recommendations,
        )


class SubAreaScoreSchema(_CamelModel):
    """Score and level of one sub-area."""

    sub_area_id: str
    slug: str
    name: str
    score: float = Field(ge=0.0, le=100.0)
    level: LevelSchema

    @classmethod
    def from_sub_area(cls, sub_area: SubAreaScore) -> "SubAreaScoreSchema":
        return cls(
            sub_area_id=sub_area.sub_area_id,
            slug=sub_area.slug,
            name=sub_area.name,
            score=sub_area.score,
            level=LevelSchema.from_level(sub_area.level),
        )


class AreaScoreSchema(_CamelModel):
    """Scored area with feedback and sub-area breakdown.

    When ``conditional_feedback`` is set it replaces ``feedback.summary`` in
    presentation; the summary is still included for fallback.
    """

    area_id: str
    slug: str
    name: str
    score: float = Field(ge=0.0, le=100.0)
    level: LevelSchema
    feedback: FeedbackSchema
    sub_area_scores: list[SubAreaScoreSchema] = Field(default_factory=list)
    conditional_feedback: str | None = None

    @classmethod
    def from_area(cls, area: AreaScore) -> "AreaScoreSchema":
        return cls(
            area_id=area.area_id,
            slug=area.slug,
            name=area.name,
            score=area.score,
            level=LevelSchema.from_level(area.level),
            feedback=FeedbackSchema.from_feedback(area.feedback),
            sub_area_scores=[SubAreaScoreSchema.from_sub_area(s) for s in area.sub_area_scores],
            conditional_feedback=area.conditional_feedback,
        )


class ScoringResultSchema(_CamelModel):
    """Complete scoring output for one session."""

    overall_score: float = Field(ge=0.0, le=100.0)
    overall_level: LevelSchema
    overall_feedback: FeedbackSchema
    area_scores: list[AreaScoreSchema] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ScoringResult) -> "ScoringResultSchema":
        return cls(
            overall_score=result.overall_score,
            overall_level=LevelSchema.from_level(result.overall_level),
            overall_feedback=FeedbackSchema.from_feedback(result.overall_feedback),
            area_scores=[AreaScoreSchema.from_area(a) for a in result.area_scores],
        )


class SessionSummarySchema(_CamelModel):
    """Identifying fields of a session exposed alongside a validation verdict."""

    session_id: str
    attempt_number: int
    is_complete: bool
    completed_at: str | None = None
    current_area_index: int = 0

    @classmethod
    def from_session(cls, session: AssessmentSession) -> "SessionSummarySchema":
        return cls(
            session_id=session.id,
            attempt_number=session.attempt_number,
            is_complete=session.is_complete,
            completed_at=session.completed_at.isoformat() if session.completed_at else None,
            current_area_index=session.current_area_index,
        )


class RetakeValidationSchema(_CamelModel):
    """Verdict of validating an access code."""

    valid: bool
    state: str
    code_id: str | None = None
    cohort_name: str | None = None
    error: str | None = None
    can_retake: bool = False
    previous_attempts: int = 0
    completed_session: SessionSummarySchema | None = None

    @classmethod
    def from_validation(cls, validation: RetakeValidation) -> "RetakeValidationSchema":
        completed = validation.completed_session
        return cls(
            valid=validation.valid,
            state=validation.state.value,
            code_id=validation.code.id if validation.code else None,
            cohort_name=validation.cohort.name if validation.cohort else None,
            error=validation.error,
            can_retake=validation.can_retake,
            previous_attempts=validation.code.times_used if validation.code else 0,
            completed_session=SessionSummarySchema.from_session(completed) if completed else None,
        )
