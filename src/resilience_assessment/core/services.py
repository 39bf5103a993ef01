"""Service layer for the Resilience Assessment respondent workflow.

Implements the session lifecycle around the pure scoring engine and retake
state machine:

    1. validate_code()       : look up a code and return its retake verdict
    2. start_session()       : resume, view, or atomically start an attempt
    3. save_area_responses() : validate and upsert one area's answers
    4. complete_session()    : score, persist the compact score map, bump usage
    5. get_results()         : recompute results for the latest completed attempt

All data access goes through the repository Protocols in ``core/interfaces.py``.
No SQLAlchemy imports belong here.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from resilience_assessment.core.codes import (
    access_link,
    generate_short_code,
    generate_token,
    hash_value,
    is_token,
    normalize_code,
)
from resilience_assessment.core.entities import (
    AssessmentCode,
    AssessmentSession,
    CodeStatus,
    ScoringResult,
)
from resilience_assessment.core.interfaces import (
    ICodeRepository,
    IScoringConfigRepository,
    ISessionRepository,
)
from resilience_assessment.core.retake import RetakeValidation, evaluate_retake
from resilience_assessment.core.scoring import ResilienceScorer, area_score_map
from resilience_assessment.errors import (
    AccessDeniedError,
    ConflictError,
    InvalidResponseError,
    NotFoundError,
    RetakeNotAllowedError,
    SessionCompletedError,
    SessionNotFoundError,
    ValidationError,
)
from resilience_assessment.observability import get_logger
from resilience_assessment.settings import Settings

logger = get_logger(__name__)

_SCORER: ResilienceScorer = ResilienceScorer()

RETAKES_DISABLED_ERROR = "Retakes are not allowed for this assessment"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class SessionStart:
    """Outcome of start_session.

    Attributes:
        session: The resumed, newly created, or completed (view-only) session.
        is_new: Whether a session row was created by this call.
        validation: The retake verdict the decision was based on.
    """

    session: AssessmentSession
    is_new: bool
    validation: RetakeValidation

    @property
    def is_resuming(self) -> bool:
        return not self.is_new and not self.session.is_complete


@dataclass(frozen=True)
class AreaProgress:
    """Outcome of saving one area's responses."""

    next_area_id: str | None
    is_last_area: bool


@dataclass(frozen=True)
class CompletionOutcome:
    """Outcome of complete_session; ``result`` is None when already complete."""

    session: AssessmentSession
    result: ScoringResult | None
    already_complete: bool


@dataclass(frozen=True)
class SessionResults:
    """Recomputed results together with the completed session they belong to."""

    session: AssessmentSession
    result: ScoringResult


@dataclass(frozen=True)
class IssuedCode:
    """A freshly issued code; the plain token is only available here."""

    code: AssessmentCode
    token: str
    link: str


class AssessmentAccessService:
    """Validates access codes and starts or resumes assessment sessions.

    Validation is read-only. Only start_session writes, and session creation
    is delegated to the repository's atomic find-or-create with a bounded
    retry when a concurrent start claims the same attempt number.
    """

    def __init__(
        self,
        code_repository: ICodeRepository,
        session_repository: ISessionRepository,
        settings: Settings | None = None,
    ) -> None:
        """Initialise the service with repository dependencies.

        Args:
            code_repository: Repository for codes and cohorts.
            session_repository: Repository for sessions and responses.
            settings: Service settings; defaults are used when omitted.
        """
        self._code_repo = code_repository
        self._session_repo = session_repository
        self._settings = settings or Settings()

    async def _lookup(self, raw_input: str) -> AssessmentCode | None:
        if is_token(raw_input, self._settings.token_prefix):
            return await self._code_repo.get_by_token_hash(hash_value(raw_input))
        return await self._code_repo.get_by_code(normalize_code(raw_input))

    async def _evaluate(
        self, code: AssessmentCode | None, now: datetime
    ) -> RetakeValidation:
        cohort = await self._code_repo.get_cohort(code.cohort_id) if code else None
        latest = await self._session_repo.get_latest_session(code.id) if code else None
        return evaluate_retake(code, cohort, latest, now)

    async def validate_code(
        self,
        raw_input: str,
        now: datetime | None = None,
    ) -> RetakeValidation:
        """Look up a short code or URL token and return its retake verdict.

        Never writes; re-validating the same code is idempotent.

        Args:
            raw_input: Short code (any case, spaces allowed) or ``res_tk_`` token.
            now: Evaluation instant; defaults to the current UTC time.

        Returns:
            The RetakeValidation verdict.
        """
        code = await self._lookup(raw_input.strip())
        verdict = await self._evaluate(code, now or _utcnow())

        logger.info(
            "Assessment code validated",
            code_id=code.id if code else None,
            valid=verdict.valid,
            state=verdict.state.value,
            error=verdict.error,
        )
        return verdict

    async def start_session(
        self,
        code_id: str,
        force_new: bool = False,
        user_agent: str | None = None,
        ip_address: str | None = None,
        now: datetime | None = None,
    ) -> SessionStart:
        """Resume the open attempt, expose the completed one, or start a new one.

        Without ``force_new`` a completed session is returned for viewing and
        nothing is created. With ``force_new`` a new attempt is created only
        when the cohort's retake policy currently allows it.

        Args:
            code_id: The validated code's id.
            force_new: Start a retake when the latest attempt is complete.
            user_agent: Client user agent stored on a new session.
            ip_address: Client IP; only its SHA-256 hash is stored.
            now: Evaluation instant; defaults to the current UTC time.

        Returns:
            SessionStart describing the chosen session.

        Raises:
            AccessDeniedError: If the code fails an access gate.
            RetakeNotAllowedError: If ``force_new`` is refused by the retake policy.
            ConflictError: If session creation keeps conflicting after all retries.
        """
        now = now or _utcnow()
        code = await self._code_repo.get_by_id(code_id)
        verdict = await self._evaluate(code, now)
        if not verdict.valid:
            raise AccessDeniedError(verdict.error or "Invalid assessment code")

        completed = verdict.completed_session
        if completed is not None:
            if not force_new:
                await self._code_repo.touch(code_id, now, None)
                return SessionStart(session=completed, is_new=False, validation=verdict)
            if not verdict.can_retake:
                raise RetakeNotAllowedError(verdict.error or RETAKES_DISABLED_ERROR)

        session, created = await self._find_or_create(
            code_id,
            user_agent,
            hash_value(ip_address) if ip_address else None,
        )
        await self._code_repo.touch(code_id, now, CodeStatus.STARTED.value)

        logger.info(
            "Assessment session started" if created else "Assessment session resumed",
            code_id=code_id,
            session_id=session.id,
            attempt_number=session.attempt_number,
            state=verdict.state.value,
        )
        return SessionStart(session=session, is_new=created, validation=verdict)

    async def _find_or_create(
        self,
        code_id: str,
        user_agent: str | None,
        ip_address_hash: str | None,
    ) -> tuple[AssessmentSession, bool]:
        attempts = max(1, self._settings.session_create_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await self._session_repo.find_or_create_open_session(
                    code_id, user_agent, ip_address_hash
                )
            except ConflictError:
                logger.warning(
                    "Concurrent session start detected, retrying",
                    code_id=code_id,
                    attempt=attempt,
                    max_attempts=attempts,
                )
        raise ConflictError(
            f"Could not start a session for code {code_id} after {attempts} attempts."
        )

    async def issue_codes(
        self,
        cohort_id: str,
        count: int,
        expires_at: datetime | None = None,
    ) -> list[IssuedCode]:
        """Generate short codes and URL tokens for a cohort.

        Args:
            cohort_id: Cohort the codes are bound to.
            count: Number of codes to create.
            expires_at: Optional expiry applied to every code.

        Returns:
            The created codes with their plain tokens and direct links.

        Raises:
            ValidationError: If count is not positive.
            NotFoundError: If the cohort does not exist.
        """
        if count < 1:
            raise ValidationError(f"count must be positive, got {count!r}")
        if await self._code_repo.get_cohort(cohort_id) is None:
            raise NotFoundError(f"Cohort {cohort_id} not found.")

        tokens = [
            generate_token(self._settings.token_prefix, self._settings.token_bytes)
            for _ in range(count)
        ]
        pairs = [
            (generate_short_code(self._settings.code_prefix), hash_value(token))
            for token in tokens
        ]
        created = await self._code_repo.create_codes(cohort_id, pairs, expires_at)

        logger.info("Assessment codes issued", cohort_id=cohort_id, count=len(created))
        return [
            IssuedCode(
                code=code,
                token=token,
                link=access_link(self._settings.app_base_url, token),
            )
            for code, token in zip(created, tokens)
        ]


class ResponseService:
    """Stores respondents' answers area by area while a session is open."""

    def __init__(
        self,
        config_repository: IScoringConfigRepository,
        session_repository: ISessionRepository,
    ) -> None:
        self._config_repo = config_repository
        self._session_repo = session_repository

    async def get_saved_responses(self, session_id: str) -> dict[str, int]:
        """Return the answers saved so far, keyed by question id, for resuming."""
        responses = await self._session_repo.get_responses(session_id)
        return {r.question_id: r.value for r in responses}

    async def save_area_responses(
        self,
        session_id: str,
        area_id: str,
        responses: Mapping[str, int],
    ) -> AreaProgress:
        """Validate and upsert the answers for one area, then advance progress.

        Args:
            session_id: Open session to write to.
            area_id: Area the answers belong to.
            responses: Answer value per question id.

        Returns:
            AreaProgress naming the next area, if any.

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionCompletedError: If the session is already complete.
            NotFoundError: If the area is not an active area.
            InvalidResponseError: If a question is not an active question of the
                area or a value is outside its scale.
        """
        session = await self._session_repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")
        if session.is_complete:
            raise SessionCompletedError(
                f"Session {session_id} is complete; responses can no longer change."
            )

        config = await self._config_repo.get_scoring_config()
        areas = sorted(config.areas, key=lambda a: a.display_order)
        area_ids = [a.id for a in areas]
        if area_id not in area_ids:
            raise NotFoundError(f"Area {area_id} not found.")

        area_questions = {q.id: q for q in config.questions if q.area_id == area_id}
        for question_id, value in responses.items():
            question = area_questions.get(question_id)
            if question is None:
                raise InvalidResponseError(f"Invalid question ID: {question_id}")
            if (
                isinstance(value, bool)
                or not isinstance(value, int)
                or not 1 <= value <= question.scale_max
            ):
                raise InvalidResponseError(
                    f"Invalid response value for question {question_id}"
                )

        await self._session_repo.upsert_responses(session_id, responses)

        index = area_ids.index(area_id)
        is_last = index == len(area_ids) - 1
        await self._session_repo.update_progress(session_id, index if is_last else index + 1)

        logger.debug(
            "Area responses saved",
            session_id=session_id,
            area_id=area_id,
            response_count=len(responses),
            is_last_area=is_last,
        )
        return AreaProgress(
            next_area_id=None if is_last else area_ids[index + 1],
            is_last_area=is_last,
        )


class ScoringService:
    """Computes, persists, and serves scoring results for sessions.

    Results are recomputed from raw responses and the current configuration
    on every call; only the overall score and compact score map are stored.
    """

    def __init__(
        self,
        config_repository: IScoringConfigRepository,
        session_repository: ISessionRepository,
    ) -> None:
        self._config_repo = config_repository
        self._session_repo = session_repository

    async def calculate_scores(self, session_id: str) -> ScoringResult:
        """Score a session's stored responses against the current configuration."""
        responses = await self._session_repo.get_responses(session_id)
        config = await self._config_repo.get_scoring_config()
        return _SCORER.score_assessment(responses, config)

    async def complete_session(
        self,
        session_id: str,
        now: datetime | None = None,
    ) -> CompletionOutcome:
        """Score and close a session. Completing twice is a no-op.

        Args:
            session_id: Session to complete.
            now: Completion instant; defaults to the current UTC time.

        Returns:
            CompletionOutcome with the computed result, or ``already_complete``.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = await self._session_repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")
        if session.is_complete:
            return CompletionOutcome(session=session, result=None, already_complete=True)

        result = await self.calculate_scores(session_id)
        completed = await self._session_repo.complete_session(
            session_id,
            overall_score=result.overall_score,
            area_scores=area_score_map(result),
            completed_at=now or _utcnow(),
        )

        logger.info(
            "Assessment completed",
            session_id=session_id,
            code_id=completed.code_id,
            attempt_number=completed.attempt_number,
            overall_score=result.overall_score,
            overall_level=result.overall_level.code,
        )
        return CompletionOutcome(session=completed, result=result, already_complete=False)

    async def get_results(self, session_id: str) -> SessionResults:
        """Return results for a session, or for its code's latest completed attempt.

        Args:
            session_id: Session named by the caller's session token.

        Returns:
            SessionResults for the completed session that was scored.

        Raises:
            SessionNotFoundError: If the session does not exist.
            NotFoundError: If the code has no completed session yet.
        """
        session = await self._session_repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")

        if not session.is_complete:
            latest = await self._session_repo.get_latest_completed_session(session.code_id)
            if latest is None:
                raise NotFoundError(
                    "No completed assessment found. Please complete the assessment first."
                )
            session = latest

        result = await self.calculate_scores(session.id)
        return SessionResults(session=session, result=result)
