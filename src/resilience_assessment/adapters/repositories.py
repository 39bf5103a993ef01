"""SQLAlchemy repositories for the Resilience Assessment data store.

Implements the Protocols in ``core/interfaces.py`` with SQLAlchemy 2.0 async
ORM. Rows are translated into the frozen entities of ``core/entities.py``
before they leave this module. Repositories flush but never commit; the
caller owns the transaction.
"""

import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

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
from resilience_assessment.core.feedback_rules import renumber_priorities
from resilience_assessment.core.models import (
    AreaFeedbackConditionRow,
    AreaFeedbackRuleRow,
    AssessmentCodeRow,
    AssessmentSessionRow,
    CohortRow,
    FeedbackContentRow,
    OverallFeedbackContentRow,
    Question,
    QuestionSubArea,
    ResilienceArea,
    ResponseRow,
    ScoreRangeRow,
    SubArea,
    SubAreaScoreRangeRow,
)
from resilience_assessment.errors import ConflictError, NotFoundError, ValidationError
from resilience_assessment.observability import get_logger

logger = get_logger(__name__)


def _uuid(value: str) -> uuid.UUID | None:
    """Parse an id, returning None for strings that are not UUIDs."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _code_to_entity(row: AssessmentCodeRow) -> AssessmentCode:
    return AssessmentCode(
        id=str(row.id),
        code=row.code,
        cohort_id=str(row.cohort_id),
        times_used=row.times_used,
        status=row.status,
        expires_at=row.expires_at,
        first_accessed_at=row.first_accessed_at,
        last_accessed_at=row.last_accessed_at,
    )


def _session_to_entity(row: AssessmentSessionRow) -> AssessmentSession:
    return AssessmentSession(
        id=str(row.id),
        code_id=str(row.assessment_code_id),
        attempt_number=row.attempt_number,
        is_complete=row.is_complete,
        completed_at=row.completed_at,
        current_area_index=row.current_area_index,
        overall_score=float(row.overall_score) if row.overall_score is not None else None,
        area_scores=dict(row.area_scores or {}),
    )


class ScoringConfigRepository:
    """Loads the shared scoring configuration.

    Only active questions, areas, sub-areas, feedback blocks, and rules are
    returned. Range lists are ordered by ``min_score`` and rules by priority.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def _score_ranges(self) -> dict[uuid.UUID, list[ScoreRange]]:
        feedback_rows = (
            await self._session.execute(
                select(FeedbackContentRow)
                .where(FeedbackContentRow.is_active.is_(True))
                .order_by(FeedbackContentRow.display_order)
            )
        ).scalars().all()
        feedback_by_range: dict[uuid.UUID, list[FeedbackContentItem]] = {}
        for item in feedback_rows:
            feedback_by_range.setdefault(item.score_range_id, []).append(
                FeedbackContentItem(
                    content_type=item.content_type,
                    body=item.content_body,
                    display_order=item.display_order,
                )
            )

        range_rows = (
            await self._session.execute(select(ScoreRangeRow).order_by(ScoreRangeRow.min_score))
        ).scalars().all()
        ranges: dict[uuid.UUID, list[ScoreRange]] = {}
        for row in range_rows:
            ranges.setdefault(row.resilience_area_id, []).append(
                ScoreRange(
                    id=str(row.id),
                    min_score=float(row.min_score),
                    max_score=float(row.max_score),
                    level_name=row.level_name,
                    level_code=row.level_code,
                    color=row.color_hex,
                    feedback=tuple(feedback_by_range.get(row.id, [])),
                )
            )
        return ranges

    async def _sub_area_ranges(self) -> dict[uuid.UUID, list[ScoreRange]]:
        rows = (
            await self._session.execute(
                select(SubAreaScoreRangeRow).order_by(SubAreaScoreRangeRow.min_score)
            )
        ).scalars().all()
        ranges: dict[uuid.UUID, list[ScoreRange]] = {}
        for row in rows:
            ranges.setdefault(row.sub_area_id, []).append(
                ScoreRange(
                    id=str(row.id),
                    min_score=float(row.min_score),
                    max_score=float(row.max_score),
                    level_name=row.level_name,
                    level_code=row.level_code,
                    color=row.color_hex,
                )
            )
        return ranges

    async def _rules(self) -> list[FeedbackRule]:
        rule_rows = (
            await self._session.execute(
                select(AreaFeedbackRuleRow)
                .where(AreaFeedbackRuleRow.is_active.is_(True))
                .order_by(AreaFeedbackRuleRow.priority)
            )
        ).scalars().all()
        condition_rows = (
            await self._session.execute(select(AreaFeedbackConditionRow))
        ).scalars().all()

        conditions: dict[uuid.UUID, list[FeedbackCondition]] = {}
        for condition in condition_rows:
            conditions.setdefault(condition.rule_id, []).append(
                FeedbackCondition(
                    sub_area_id=str(condition.sub_area_id),
                    level_codes=frozenset(condition.level_codes or ()),
                )
            )

        return [
            FeedbackRule(
                id=str(row.id),
                area_id=str(row.resilience_area_id),
                priority=row.priority,
                feedback_text=row.feedback_content,
                conditions=tuple(conditions.get(row.id, [])),
                name=row.name,
                is_active=row.is_active,
            )
            for row in rule_rows
        ]

    async def get_scoring_config(self) -> ScoringConfig:
        """Load the active scoring configuration as one immutable bundle."""
        area_rows = (
            await self._session.execute(
                select(ResilienceArea)
                .where(ResilienceArea.is_active.is_(True))
                .order_by(ResilienceArea.display_order)
            )
        ).scalars().all()
        sub_area_rows = (
            await self._session.execute(
                select(SubArea)
                .where(SubArea.is_active.is_(True))
                .order_by(SubArea.display_order)
            )
        ).scalars().all()
        question_rows = (
            await self._session.execute(
                select(Question).where(Question.is_active.is_(True))
            )
        ).scalars().all()
        membership_rows = (await self._session.execute(select(QuestionSubArea))).scalars().all()

        active_sub_areas = {row.id for row in sub_area_rows}
        memberships: dict[uuid.UUID, set[str]] = {}
        for membership in membership_rows:
            if membership.sub_area_id in active_sub_areas:
                memberships.setdefault(membership.question_id, set()).add(
                    str(membership.sub_area_id)
                )

        area_ranges = await self._score_ranges()
        sub_area_ranges = await self._sub_area_ranges()
        overall_rows = (
            await self._session.execute(
                select(OverallFeedbackContentRow)
                .where(OverallFeedbackContentRow.is_active.is_(True))
                .order_by(OverallFeedbackContentRow.display_order)
            )
        ).scalars().all()

        return ScoringConfig(
            questions=tuple(
                QuestionConfig(
                    id=str(row.id),
                    area_id=str(row.resilience_area_id),
                    weight=float(row.weight),
                    is_reverse_scored=row.is_reverse_scored,
                    question_type=row.question_type,
                    sub_area_ids=frozenset(memberships.get(row.id, ())),
                )
                for row in question_rows
            ),
            areas=tuple(
                AreaConfig(
                    id=str(row.id),
                    slug=row.slug,
                    name=row.name,
                    display_order=row.display_order,
                    score_ranges=tuple(area_ranges.get(row.id, [])),
                )
                for row in area_rows
            ),
            sub_areas=tuple(
                SubAreaConfig(
                    id=str(row.id),
                    area_id=str(row.resilience_area_id),
                    slug=row.slug,
                    name=row.name,
                    display_order=row.display_order,
                    score_ranges=tuple(sub_area_ranges.get(row.id, [])),
                )
                for row in sub_area_rows
            ),
            rules=tuple(await self._rules()),
            overall_feedback=tuple(
                OverallFeedbackContent(
                    min_overall_score=float(row.min_overall_score),
                    max_overall_score=float(row.max_overall_score),
                    content_type=row.content_type,
                    body=row.content_body,
                    display_order=row.display_order,
                )
                for row in overall_rows
            ),
        )

    async def reorder_feedback_rules(
        self, area_id: str, ordered_rule_ids: Sequence[str]
    ) -> None:
        """Rewrite an area's rule priorities to ``1..n`` in the given order.

        Priorities are unique per area, so every rule is first parked on a
        negative placeholder and flushed before the final priorities are written.

        Raises:
            NotFoundError: If a rule id does not belong to the area.
            ValidationError: If the ids are not exactly the area's rules.
        """
        area_uuid = _uuid(area_id)
        rule_uuids = [_uuid(rule_id) for rule_id in ordered_rule_ids]
        existing = set(
            (
                await self._session.execute(
                    select(AreaFeedbackRuleRow.id).where(
                        AreaFeedbackRuleRow.resilience_area_id == area_uuid
                    )
                )
            ).scalars().all()
        )
        unknown = [rid for rid, parsed in zip(ordered_rule_ids, rule_uuids) if parsed not in existing]
        if unknown:
            raise NotFoundError(f"Feedback rules not found in area {area_id}: {unknown}")
        # A partial order would collide with the priorities of the omitted rules.
        if len(rule_uuids) != len(existing) or set(rule_uuids) != existing:
            raise ValidationError(
                f"Reorder of area {area_id} must list each of its {len(existing)} rules exactly once."
            )

        placeholders, final = renumber_priorities(ordered_rule_ids)
        for phase in (placeholders, final):
            for rule_id, priority in phase:
                await self._session.execute(
                    update(AreaFeedbackRuleRow)
                    .where(AreaFeedbackRuleRow.id == _uuid(rule_id))
                    .values(priority=priority)
                )
            await self._session.flush()

        logger.info("Feedback rules reordered", area_id=area_id, rule_count=len(final))


class AssessmentCodeRepository:
    """Repository for assessment codes and their cohorts."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def _one(self, *criteria: object) -> AssessmentCode | None:
        row = (
            await self._session.execute(select(AssessmentCodeRow).where(*criteria))
        ).scalar_one_or_none()
        return _code_to_entity(row) if row is not None else None

    async def get_by_code(self, code: str) -> AssessmentCode | None:
        return await self._one(AssessmentCodeRow.code == code)

    async def get_by_token_hash(self, token_hash: str) -> AssessmentCode | None:
        return await self._one(AssessmentCodeRow.token_hash == token_hash)

    async def get_by_id(self, code_id: str) -> AssessmentCode | None:
        parsed = _uuid(code_id)
        if parsed is None:
            return None
        return await self._one(AssessmentCodeRow.id == parsed)

    async def get_cohort(self, cohort_id: str) -> Cohort | None:
        parsed = _uuid(cohort_id)
        if parsed is None:
            return None
        row = await self._session.get(CohortRow, parsed)
        if row is None:
            return None
        return Cohort(
            id=str(row.id),
            name=row.name,
            is_active=row.is_active,
            allow_retakes=row.allow_retakes,
            max_retakes=row.max_retakes,
            retake_cooldown_days=row.retake_cooldown_days,
            access_start_date=row.access_start_date,
            access_end_date=row.access_end_date,
        )

    async def touch(self, code_id: str, accessed_at: datetime, status: str | None) -> None:
        """Stamp access times; first_accessed_at is only set once."""
        values: dict[str, object] = {
            "last_accessed_at": accessed_at,
            "first_accessed_at": func.coalesce(AssessmentCodeRow.first_accessed_at, accessed_at),
        }
        if status is not None:
            values["status"] = status
        await self._session.execute(
            update(AssessmentCodeRow)
            .where(AssessmentCodeRow.id == _uuid(code_id))
            .values(**values)
        )
        await self._session.flush()

    async def create_codes(
        self,
        cohort_id: str,
        codes: Sequence[tuple[str, str]],
        expires_at: datetime | None,
    ) -> list[AssessmentCode]:
        rows = [
            AssessmentCodeRow(
                code=short_code,
                token_hash=token_hash,
                cohort_id=_uuid(cohort_id),
                status=CodeStatus.UNUSED.value,
                times_used=0,
                expires_at=expires_at,
            )
            for short_code, token_hash in codes
        ]
        self._session.add_all(rows)
        await self._session.flush()
        return [_code_to_entity(row) for row in rows]


class AssessmentSessionRepository:
    """Repository for assessment sessions and their responses."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def get_session(self, session_id: str) -> AssessmentSession | None:
        parsed = _uuid(session_id)
        if parsed is None:
            return None
        row = await self._session.get(AssessmentSessionRow, parsed)
        return _session_to_entity(row) if row is not None else None

    async def _first(self, *criteria: object, order_by: object) -> AssessmentSession | None:
        row = (
            await self._session.execute(
                select(AssessmentSessionRow).where(*criteria).order_by(order_by).limit(1)
            )
        ).scalar_one_or_none()
        return _session_to_entity(row) if row is not None else None

    async def get_latest_session(self, code_id: str) -> AssessmentSession | None:
        return await self._first(
            AssessmentSessionRow.assessment_code_id == _uuid(code_id),
            order_by=AssessmentSessionRow.attempt_number.desc(),
        )

    async def get_latest_completed_session(self, code_id: str) -> AssessmentSession | None:
        return await self._first(
            AssessmentSessionRow.assessment_code_id == _uuid(code_id),
            AssessmentSessionRow.is_complete.is_(True),
            order_by=AssessmentSessionRow.attempt_number.desc(),
        )

    async def find_or_create_open_session(
        self,
        code_id: str,
        user_agent: str | None,
        ip_address_hash: str | None,
    ) -> tuple[AssessmentSession, bool]:
        """Return the open session or insert the next attempt inside one savepoint.

        The unique constraint on (assessment_code_id, attempt_number) rejects a
        concurrent insert of the same attempt; that surfaces as ConflictError so
        the caller can retry against the now-visible winner.
        """
        code_uuid = _uuid(code_id)
        try:
            async with self._session.begin_nested():
                open_row = (
                    await self._session.execute(
                        select(AssessmentSessionRow)
                        .where(
                            AssessmentSessionRow.assessment_code_id == code_uuid,
                            AssessmentSessionRow.is_complete.is_(False),
                        )
                        .order_by(AssessmentSessionRow.attempt_number.desc())
                        .limit(1)
                        .with_for_update()
                    )
                ).scalar_one_or_none()
                if open_row is not None:
                    return _session_to_entity(open_row), False

                last_attempt = (
                    await self._session.execute(
                        select(func.max(AssessmentSessionRow.attempt_number)).where(
                            AssessmentSessionRow.assessment_code_id == code_uuid
                        )
                    )
                ).scalar_one_or_none()

                row = AssessmentSessionRow(
                    assessment_code_id=code_uuid,
                    attempt_number=(last_attempt or 0) + 1,
                    is_complete=False,
                    current_area_index=0,
                    area_scores={},
                    user_agent=user_agent,
                    ip_address_hash=ip_address_hash,
                )
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f"Attempt number already taken for code {code_id}."
            ) from exc

        logger.debug(
            "Session created",
            code_id=code_id,
            session_id=str(row.id),
            attempt_number=row.attempt_number,
        )
        return _session_to_entity(row), True

    async def get_responses(self, session_id: str) -> list[ResponseValue]:
        rows = (
            await self._session.execute(
                select(ResponseRow.question_id, ResponseRow.response_value).where(
                    ResponseRow.assessment_session_id == _uuid(session_id)
                )
            )
        ).all()
        return [ResponseValue(question_id=str(qid), value=value) for qid, value in rows]

    async def upsert_responses(self, session_id: str, responses: Mapping[str, int]) -> None:
        if not responses:
            return
        statement = insert(ResponseRow).values(
            [
                {
                    "id": uuid.uuid4(),
                    "assessment_session_id": _uuid(session_id),
                    "question_id": _uuid(question_id),
                    "response_value": value,
                }
                for question_id, value in responses.items()
            ]
        )
        statement = statement.on_conflict_do_update(
            constraint="uq_responses_session_question",
            set_={
                "response_value": statement.excluded.response_value,
                "answered_at": func.now(),
            },
        )
        await self._session.execute(statement)
        await self._session.flush()

    async def update_progress(self, session_id: str, current_area_index: int) -> None:
        await self._session.execute(
            update(AssessmentSessionRow)
            .where(AssessmentSessionRow.id == _uuid(session_id))
            .values(current_area_index=current_area_index)
        )
        await self._session.flush()

    async def complete_session(
        self,
        session_id: str,
        overall_score: float,
        area_scores: Mapping[str, float],
        completed_at: datetime,
    ) -> AssessmentSession:
        """Store scores, close the session, and count the use against its code.

        The session row is locked first. A session that is already complete
        is returned unchanged and its code is not counted again.

        Raises:
            NotFoundError: If the session does not exist.
        """
        parsed = _uuid(session_id)
        row = (
            await self._session.get(AssessmentSessionRow, parsed, with_for_update=True)
            if parsed
            else None
        )
        if row is None:
            raise NotFoundError(f"Session {session_id} not found.")
        if row.is_complete:
            logger.debug("Session already completed", session_id=session_id)
            return _session_to_entity(row)

        row.is_complete = True
        row.completed_at = completed_at
        row.overall_score = overall_score
        row.area_scores = dict(area_scores)

        await self._session.execute(
            update(AssessmentCodeRow)
            .where(AssessmentCodeRow.id == row.assessment_code_id)
            .values(
                status=CodeStatus.COMPLETED.value,
                times_used=AssessmentCodeRow.times_used + 1,
            )
        )
        await self._session.flush()
        await self._session.refresh(row)

        logger.debug(
            "Session completed",
            session_id=session_id,
            overall_score=overall_score,
        )
        return _session_to_entity(row)
