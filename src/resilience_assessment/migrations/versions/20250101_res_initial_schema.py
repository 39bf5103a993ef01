"""res: initial schema, scoring configuration, cohorts, codes, sessions, responses.

Creates every table used by the scoring engine and session lifecycle. The
unique constraint on (assessment_code_id, attempt_number) makes concurrent
session starts for one code fail instead of producing duplicate attempts.

Revision ID: res_001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "res_001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _fk(name: str, target: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete="CASCADE"),
        nullable=nullable,
    )


def _range_columns() -> list[sa.Column]:
    return [
        sa.Column("min_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("max_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("level_name", sa.String(100), nullable=False),
        sa.Column("level_code", sa.String(50), nullable=False),
        sa.Column("color_hex", sa.String(7), nullable=True),
    ]


def _flag(name: str, default: bool) -> sa.Column:
    return sa.Column(
        name,
        sa.Boolean,
        nullable=False,
        server_default=sa.text("true" if default else "false"),
    )


def upgrade() -> None:
    """Create the resilience assessment tables."""
    op.create_table(
        "resilience_areas",
        _id(),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        _flag("is_active", True),
    )

    op.create_table(
        "sub_areas",
        _id(),
        _fk("resilience_area_id", "resilience_areas.id"),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("color_hex", sa.String(7), nullable=True),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        _flag("is_active", True),
        sa.UniqueConstraint("resilience_area_id", "slug"),
    )

    op.create_table(
        "questions",
        _id(),
        _fk("resilience_area_id", "resilience_areas.id"),
        sa.Column("question_text", sa.Text, nullable=False),
        sa.Column(
            "question_type",
            sa.String(20),
            nullable=False,
            server_default="likert_5",
            comment="Scale selector: likert_5 | likert_7",
        ),
        sa.Column("weight", sa.Numeric(5, 2), nullable=False, server_default="1"),
        _flag("is_reverse_scored", False),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        _flag("is_active", True),
        sa.CheckConstraint("weight > 0", name="ck_questions_weight_positive"),
    )

    op.create_table(
        "question_sub_areas",
        sa.Column(
            "question_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("questions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "sub_area_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sub_areas.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "score_ranges",
        _id(),
        _fk("resilience_area_id", "resilience_areas.id"),
        *_range_columns(),
    )

    op.create_table(
        "sub_area_score_ranges",
        _id(),
        _fk("sub_area_id", "sub_areas.id"),
        *_range_columns(),
    )

    op.create_table(
        "feedback_content",
        _id(),
        _fk("score_range_id", "score_ranges.id"),
        sa.Column(
            "content_type",
            sa.String(50),
            nullable=False,
            comment="summary | strengths | growth_areas | recommendations",
        ),
        sa.Column("content_body", sa.Text, nullable=False),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        _flag("is_active", True),
    )

    op.create_table(
        "area_feedback_rules",
        _id(),
        _fk("resilience_area_id", "resilience_areas.id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("feedback_content", sa.Text, nullable=False),
        sa.Column("priority", sa.Integer, nullable=False),
        _flag("is_active", True),
        sa.UniqueConstraint("resilience_area_id", "priority"),
    )

    op.create_table(
        "area_feedback_conditions",
        _id(),
        _fk("rule_id", "area_feedback_rules.id"),
        _fk("sub_area_id", "sub_areas.id"),
        sa.Column(
            "level_codes",
            postgresql.ARRAY(sa.String(50)),
            nullable=False,
            server_default="{}",
            comment="Accepted sub-area level codes; empty matches any level",
        ),
    )

    op.create_table(
        "overall_feedback_content",
        _id(),
        sa.Column("min_overall_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("max_overall_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("content_body", sa.Text, nullable=False),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        _flag("is_active", True),
    )

    op.create_table(
        "cohorts",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        _flag("is_active", True),
        _flag("allow_retakes", False),
        sa.Column(
            "max_retakes",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="0 means unlimited",
        ),
        sa.Column("retake_cooldown_days", sa.Integer, nullable=False, server_default="0"),
        sa.Column("access_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("access_end_date", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "assessment_codes",
        _id(),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        _fk("cohort_id", "cohorts.id"),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="unused",
            comment="unused | started | completed",
        ),
        sa.Column("times_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "assessment_sessions",
        _id(),
        _fk("assessment_code_id", "assessment_codes.id"),
        sa.Column("attempt_number", sa.Integer, nullable=False, server_default="1"),
        _flag("is_complete", False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_area_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("overall_score", sa.Numeric(5, 2), nullable=True),
        sa.Column(
            "area_scores",
            postgresql.JSONB,
            nullable=False,
            server_default="{}",
            comment="Compact score map: {area_slug: score, 'area_slug.sub_area_slug': score}",
        ),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column("ip_address_hash", sa.String(64), nullable=True),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "assessment_code_id",
            "attempt_number",
            name="uq_assessment_sessions_code_attempt",
        ),
    )

    op.create_table(
        "responses",
        _id(),
        _fk("assessment_session_id", "assessment_sessions.id"),
        _fk("question_id", "questions.id"),
        sa.Column("response_value", sa.Integer, nullable=False),
        sa.Column(
            "answered_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "assessment_session_id",
            "question_id",
            name="uq_responses_session_question",
        ),
    )

    for table, column in [
        ("sub_areas", "resilience_area_id"),
        ("questions", "resilience_area_id"),
        ("score_ranges", "resilience_area_id"),
        ("sub_area_score_ranges", "sub_area_id"),
        ("feedback_content", "score_range_id"),
        ("area_feedback_rules", "resilience_area_id"),
        ("area_feedback_conditions", "rule_id"),
        ("assessment_codes", "cohort_id"),
        ("assessment_sessions", "assessment_code_id"),
        ("responses", "assessment_session_id"),
    ]:
        op.create_index(f"ix_{table}_{column}", table, [column])


def downgrade() -> None:
    """Drop the resilience assessment tables."""
    for table in [
        "responses",
        "assessment_sessions",
        "assessment_codes",
        "cohorts",
        "overall_feedback_content",
        "area_feedback_conditions",
        "area_feedback_rules",
        "feedback_content",
        "sub_area_score_ranges",
        "score_ranges",
        "question_sub_areas",
        "questions",
        "sub_areas",
        "resilience_areas",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
