"""Test fixtures for resilience-assessment.

Provides in-memory implementations of the repository Protocols and a small
two-area scoring configuration so services can be exercised with
deterministic fixture data instead of a live data store.
"""

import dataclasses
from collections.abc import Mapping, Sequence
from datetime import datetime

import pytest

from resilience_assessment.core.codes import hash_value
from resilience_assessment.core.entities import (
    AreaConfig,
    AssessmentCode,
    AssessmentSession,
    CodeStatus,
    Cohort,
    FeedbackCondition,
    FeedbackContentItem,
    FeedbackRule,
    OverallFeedbackContent,
    QuestionConfig,
    ResponseValue,
    ScoreRange,
    ScoringConfig,
    SubAreaConfig,
)
from resilience_assessment.errors import ConflictError, NotFoundError, ValidationError
from resilience_assessment.settings import Settings


def standard_ranges(owner: str, with_feedback: bool = False) -> tuple[ScoreRange, ...]:
    """Four continuous bands [0,40) [40,60) [60,80) [80,100]."""
    bands = [
        (0.0, 40.0, "Developing", "developing", "#FF6B6B"),
        (40.0, 60.0, "Emerging", "emerging", "#FFE66D"),
        (60.0, 80.0, "Strong", "strong", "#4ECDC4"),
        (80.0, 100.0, "Exceptional", "exceptional", "#2ECC71"),
    ]
    return tuple(
        ScoreRange(
            id=f"{owner}-{code}",
            min_score=low,
            max_score=high,
            level_name=name,
            level_code=code,
            color=color,
            feedback=(
                (
                    FeedbackContentItem("summary", f"{owner} {code} summary", 0),
                    FeedbackContentItem("strengths", f"{owner} {code} strengths", 1),
                )
                if with_feedback
                else ()
            ),
        )
        for low, high, name, code, color in bands
    )


def build_config(rules: Sequence[FeedbackRule] = ()) -> ScoringConfig:
    """Two areas; 'emotional' is displayed after 'social'."""
    questions = (
        QuestionConfig("q1", "emotional", sub_area_ids=frozenset({"awareness"})),
        QuestionConfig(
            "q2", "emotional", is_reverse_scored=True,
            sub_area_ids=frozenset({"awareness", "regulation"}),
        ),
        QuestionConfig(
            "q3", "emotional", weight=2.0, question_type="likert_7",
            sub_area_ids=frozenset({"regulation"}),
        ),
        QuestionConfig("q4", "social", sub_area_ids=frozenset({"connection"})),
        QuestionConfig("q5", "social"),
    )
    areas = (
        AreaConfig("emotional", "emotional", "Emotional", 2, standard_ranges("emotional", True)),
        AreaConfig("social", "social", "Social", 1, standard_ranges("social", True)),
    )
    sub_areas = (
        SubAreaConfig("awareness", "emotional", "awareness", "Awareness", 1, standard_ranges("awareness")),
        SubAreaConfig("regulation", "emotional", "regulation", "Regulation", 2, standard_ranges("regulation")),
        SubAreaConfig("connection", "social", "connection", "Connection", 1, standard_ranges("connection")),
    )
    overall = (
        OverallFeedbackContent(0, 50, "summary", "Overall low summary"),
        OverallFeedbackContent(50, 100, "summary", "Overall high summary"),
        OverallFeedbackContent(50, 100, "recommendations", "Overall high recommendations", 1),
    )
    return ScoringConfig(
        questions=questions,
        areas=areas,
        sub_areas=sub_areas,
        rules=tuple(rules),
        overall_feedback=overall,
    )


class InMemoryConfigRepository:
    """IScoringConfigRepository over a fixed ScoringConfig."""

    def __init__(self, config: ScoringConfig) -> None:
        self.config = config

    async def get_scoring_config(self) -> ScoringConfig:
        return self.config

    async def reorder_feedback_rules(self, area_id: str, ordered_rule_ids: Sequence[str]) -> None:
        existing = {r.id for r in self.config.rules if r.area_id == area_id}
        if len(ordered_rule_ids) != len(existing) or set(ordered_rule_ids) != existing:
            raise ValidationError(f"Reorder of area {area_id} must list every rule once.")
        priorities = {rule_id: index + 1 for index, rule_id in enumerate(ordered_rule_ids)}
        self.config = dataclasses.replace(
            self.config,
            rules=tuple(
                dataclasses.replace(r, priority=priorities.get(r.id, r.priority))
                for r in self.config.rules
            ),
        )


class InMemoryCodeRepository:
    """ICodeRepository backed by dictionaries."""

    def __init__(self) -> None:
        self.codes: dict[str, AssessmentCode] = {}
        self.token_hashes: dict[str, str] = {}
        self.cohorts: dict[str, Cohort] = {}
        self.touches: list[tuple[str, datetime, str | None]] = []

    def add(self, code: AssessmentCode, cohort: Cohort, token: str | None = None) -> None:
        self.codes[code.id] = code
        self.cohorts[cohort.id] = cohort
        if token is not None:
            self.token_hashes[hash_value(token)] = code.id

    async def get_by_code(self, code: str) -> AssessmentCode | None:
        return next((c for c in self.codes.values() if c.code == code), None)

    async def get_by_token_hash(self, token_hash: str) -> AssessmentCode | None:
        code_id = self.token_hashes.get(token_hash)
        return self.codes.get(code_id) if code_id else None

    async def get_by_id(self, code_id: str) -> AssessmentCode | None:
        return self.codes.get(code_id)

    async def get_cohort(self, cohort_id: str) -> Cohort | None:
        return self.cohorts.get(cohort_id)

    async def touch(self, code_id: str, accessed_at: datetime, status: str | None) -> None:
        self.touches.append((code_id, accessed_at, status))
        code = self.codes[code_id]
        self.codes[code_id] = dataclasses.replace(
            code,
            status=status or code.status,
            first_accessed_at=code.first_accessed_at or accessed_at,
            last_accessed_at=accessed_at,
        )

    async def create_codes(
        self,
        cohort_id: str,
        codes: Sequence[tuple[str, str]],
        expires_at: datetime | None,
    ) -> list[AssessmentCode]:
        created = []
        for short_code, token_hash in codes:
            code = AssessmentCode(
                id=f"code-{len(self.codes) + 1}",
                code=short_code,
                cohort_id=cohort_id,
                expires_at=expires_at,
            )
            self.codes[code.id] = code
            self.token_hashes[token_hash] = code.id
            created.append(code)
        return created


class InMemorySessionRepository:
    """ISessionRepository backed by dictionaries.

    ``conflicts`` makes the next N find-or-create calls raise ConflictError,
    simulating a concurrent start claiming the same attempt number.
    """

    def __init__(self, code_repository: InMemoryCodeRepository) -> None:
        self.code_repository = code_repository
        self.sessions: dict[str, AssessmentSession] = {}
        self.responses: dict[str, dict[str, int]] = {}
        self.conflicts = 0

    def add(self, session: AssessmentSession, responses: Mapping[str, int] | None = None) -> None:
        self.sessions[session.id] = session
        self.responses[session.id] = dict(responses or {})

    def _for_code(self, code_id: str) -> list[AssessmentSession]:
        return [s for s in self.sessions.values() if s.code_id == code_id]

    async def get_session(self, session_id: str) -> AssessmentSession | None:
        return self.sessions.get(session_id)

    async def get_latest_session(self, code_id: str) -> AssessmentSession | None:
        return max(self._for_code(code_id), key=lambda s: s.attempt_number, default=None)

    async def get_latest_completed_session(self, code_id: str) -> AssessmentSession | None:
        completed = [s for s in self._for_code(code_id) if s.is_complete]
        return max(completed, key=lambda s: s.attempt_number, default=None)

    async def find_or_create_open_session(
        self,
        code_id: str,
        user_agent: str | None,
        ip_address_hash: str | None,
    ) -> tuple[AssessmentSession, bool]:
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConflictError("attempt number taken")
        open_sessions = [s for s in self._for_code(code_id) if not s.is_complete]
        if open_sessions:
            return max(open_sessions, key=lambda s: s.attempt_number), False
        last = max((s.attempt_number for s in self._for_code(code_id)), default=0)
        session = AssessmentSession(
            id=f"session-{len(self.sessions) + 1}",
            code_id=code_id,
            attempt_number=last + 1,
        )
        self.add(session)
        return session, True

    async def get_responses(self, session_id: str) -> list[ResponseValue]:
        return [
            ResponseValue(question_id=qid, value=value)
            for qid, value in self.responses.get(session_id, {}).items()
        ]

    async def upsert_responses(self, session_id: str, responses: Mapping[str, int]) -> None:
        self.responses.setdefault(session_id, {}).update(responses)

    async def update_progress(self, session_id: str, current_area_index: int) -> None:
        self.sessions[session_id] = dataclasses.replace(
            self.sessions[session_id], current_area_index=current_area_index
        )

    async def complete_session(
        self,
        session_id: str,
        overall_score: float,
        area_scores: Mapping[str, float],
        completed_at: datetime,
    ) -> AssessmentSession:
        if session_id not in self.sessions:
            raise NotFoundError(session_id)
        if self.sessions[session_id].is_complete:
            return self.sessions[session_id]
        session = dataclasses.replace(
            self.sessions[session_id],
            is_complete=True,
            completed_at=completed_at,
            overall_score=overall_score,
            area_scores=dict(area_scores),
        )
        self.sessions[session_id] = session
        code = self.code_repository.codes[session.code_id]
        self.code_repository.codes[code.id] = dataclasses.replace(
            code, times_used=code.times_used + 1, status=CodeStatus.COMPLETED.value
        )
        return session


@pytest.fixture()
def settings() -> Settings:
    """Default settings."""
    return Settings()


@pytest.fixture()
def make_config():
    """Factory building the two-area configuration with the given rules."""
    return build_config


@pytest.fixture()
def scoring_config() -> ScoringConfig:
    """Two-area configuration without feedback rules."""
    return build_config()


@pytest.fixture()
def config_repo(scoring_config: ScoringConfig) -> InMemoryConfigRepository:
    return InMemoryConfigRepository(scoring_config)


@pytest.fixture()
def code_repo() -> InMemoryCodeRepository:
    return InMemoryCodeRepository()


@pytest.fixture()
def session_repo(code_repo: InMemoryCodeRepository) -> InMemorySessionRepository:
    return InMemorySessionRepository(code_repo)


@pytest.fixture()
def retake_cohort() -> Cohort:
    """Active cohort allowing unlimited retakes with no cooldown."""
    return Cohort(id="cohort-1", name="Spring Cohort", allow_retakes=True)


@pytest.fixture()
def fixture_code() -> AssessmentCode:
    return AssessmentCode(id="code-1", code="RES-ABCD-EFGH", cohort_id="cohort-1")


@pytest.fixture()
def conditional_rules() -> tuple[FeedbackRule, ...]:
    """Rules on the emotional area: a specific one first, then a wildcard."""
    return (
        FeedbackRule(
            id="rule-wildcard",
            area_id="emotional",
            priority=2,
            feedback_text="Awareness was scored",
            conditions=(FeedbackCondition("awareness"),),
        ),
        FeedbackRule(
            id="rule-strong",
            area_id="emotional",
            priority=1,
            feedback_text="Awareness is strong",
            conditions=(FeedbackCondition("awareness", frozenset({"strong"})),),
        ),
    )
