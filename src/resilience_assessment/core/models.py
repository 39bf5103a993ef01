"""SQLAlchemy ORM models for the Resilience Assessment data store.

Tables:
    resilience_areas           : top-level areas, display-ordered
    sub_areas                  : finer scoring dimensions within an area
    questions                  : Likert questions owned by an area
    question_sub_areas         : many-to-many question/sub-area assignment
    score_ranges               : area level bands
    sub_area_score_ranges      : sub-area level bands
    feedback_content           : text blocks per area score range and content type
    area_feedback_rules        : priority-ordered conditional area feedback
    area_feedback_conditions   : sub-area level conditions of a rule
    overall_feedback_content   : text blocks per overall score band
    cohorts                    : retake policy and access window
    assessment_codes           : access codes bound to a cohort
    assessment_sessions        : attempts per code, unique per attempt number
    responses                  : one answer per session and question
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class ResilienceBase(DeclarativeBase):
    """Base class for Resilience Assessment ORM models."""


def _pk() -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Primary key UUID",
    )


class ResilienceArea(ResilienceBase):
    """A top-level resilience area.

    Table: resilience_areas
    """

    __tablename__ = "resilience_areas"

    id: Mapped[uuid.UUID] = _pk()
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Ordering of areas in results"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SubArea(ResilienceBase):
    """A sub-area scored from a subset of its area's questions.

    Table: sub_areas
    """

    __tablename__ = "sub_areas"

    id: Mapped[uuid.UUID] = _pk()
    resilience_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("resilience_areas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color_hex: Mapped[str | None] = mapped_column(String(7), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (UniqueConstraint("resilience_area_id", "slug"),)


class Question(ResilienceBase):
    """A Likert-scale question.

    Table: questions
    """

    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = _pk()
    resilience_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("resilience_areas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="likert_5",
        comment="Scale selector: likert_5 | likert_7",
    )
    weight: Mapped[float] = mapped_column(
        Numeric(5, 2), nullable=False, default=1, comment="Positive scoring weight"
    )
    is_reverse_scored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class QuestionSubArea(ResilienceBase):
    """Assignment of a question to a sub-area.

    Table: question_sub_areas
    """

    __tablename__ = "question_sub_areas"

    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    sub_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sub_areas.id", ondelete="CASCADE"),
        primary_key=True,
    )


class ScoreRangeRow(ResilienceBase):
    """An area's [min_score, max_score) level band.

    Table: score_ranges
    """

    __tablename__ = "score_ranges"

    id: Mapped[uuid.UUID] = _pk()
    resilience_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("resilience_areas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    min_score: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    max_score: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    level_name: Mapped[str] = mapped_column(String(100), nullable=False)
    level_code: Mapped[str] = mapped_column(String(50), nullable=False)
    color_hex: Mapped[str | None] = mapped_column(String(7), nullable=True)


class SubAreaScoreRangeRow(ResilienceBase):
    """A sub-area's [min_score, max_score) level band.

    Table: sub_area_score_ranges
    """

    __tablename__ = "sub_area_score_ranges"

    id: Mapped[uuid.UUID] = _pk()
    sub_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sub_areas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    min_score: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    max_score: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    level_name: Mapped[str] = mapped_column(String(100), nullable=False)
    level_code: Mapped[str] = mapped_column(String(50), nullable=False)
    color_hex: Mapped[str | None] = mapped_column(String(7), nullable=True)


class FeedbackContentRow(ResilienceBase):
    """A feedback text block for an area score range.

    Table: feedback_content
    """

    __tablename__ = "feedback_content"

    id: Mapped[uuid.UUID] = _pk()
    score_range_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("score_ranges.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="summary | strengths | growth_areas | recommendations",
    )
    content_body: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class AreaFeedbackRuleRow(ResilienceBase):
    """A conditional feedback rule; lower priority is evaluated first.

    Table: area_feedback_rules
    """

    __tablename__ = "area_feedback_rules"

    id: Mapped[uuid.UUID] = _pk()
    resilience_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("resilience_areas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    feedback_content: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (UniqueConstraint("resilience_area_id", "priority"),)


class AreaFeedbackConditionRow(ResilienceBase):
    """A sub-area level condition of a feedback rule; empty level_codes matches any level.

    Table: area_feedback_conditions
    """

    __tablename__ = "area_feedback_conditions"

    id: Mapped[uuid.UUID] = _pk()
    rule_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("area_feedback_rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sub_area_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sub_areas.id", ondelete="CASCADE"),
        nullable=False,
    )
    level_codes: Mapped[list[str]] = mapped_column(
        ARRAY(String(50)), nullable=False, server_default="{}"
    )


class OverallFeedbackContentRow(ResilienceBase):
    """A feedback text block for an overall score band.

    Table: overall_feedback_content
    """

    __tablename__ = "overall_feedback_content"

    id: Mapped[uuid.UUID] = _pk()
    min_overall_score: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    max_overall_score: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)
    content_body: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class CohortRow(ResilienceBase):
    """A cohort with its retake policy and access window.

    Table: cohorts
    """

    __tablename__ = "cohorts"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_retakes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_retakes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="0 means unlimited"
    )
    retake_cooldown_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    access_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    access_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class AssessmentCodeRow(ResilienceBase):
    """An access code; the URL token is stored only as its SHA-256 hash.

    Table: assessment_codes
    """

    __tablename__ = "assessment_codes"

    id: Mapped[uuid.UUID] = _pk()
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cohorts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="unused",
        comment="unused | started | completed",
    )
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class AssessmentSessionRow(ResilienceBase):
    """One attempt by a code. At most one row per (code, attempt_number).

    Table: assessment_sessions
    """

    __tablename__ = "assessment_sessions"

    id: Mapped[uuid.UUID] = _pk()
    assessment_code_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_codes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    current_area_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overall_score: Mapped[float | None] = mapped_column(Numeric(5, 2), nullable=True)
    area_scores: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default="{}",
        comment="Compact score map: {area_slug: score, 'area_slug.sub_area_slug': score}",
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "assessment_code_id",
            "attempt_number",
            name="uq_assessment_sessions_code_attempt",
        ),
    )


class ResponseRow(ResilienceBase):
    """One answer per session and question; overwritten while the session is open.

    Table: responses
    """

    __tablename__ = "responses"

    id: Mapped[uuid.UUID] = _pk()
    assessment_session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    response_value: Mapped[int] = mapped_column(Integer, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "assessment_session_id",
            "question_id",
            name="uq_responses_session_question",
        ),
    )
