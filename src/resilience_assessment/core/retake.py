"""Retake eligibility decisions for assessment codes.

Given a code, its cohort's retake policy and access window, and the code's
most recent session, ``evaluate_retake`` decides whether a new attempt may
start, which session is resumed, or which completed session is exposed for
viewing. The decision is a pure function of its inputs; nothing here reads
or writes the data store.

Access gates are checked first and reject the code outright. Only then is
the latest session's state considered:

    no session            -> NO_PRIOR_SESSION           (start)
    open session          -> IN_PROGRESS                (resume)
    completed, no retakes -> COMPLETED_NO_RETAKE        (view only)
    completed, max hit    -> COMPLETED_MAX_REACHED      (view, error)
    completed, cooling    -> COMPLETED_COOLDOWN         (view, error)
    completed, eligible   -> COMPLETED_RETAKE_ELIGIBLE  (view or retake)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from resilience_assessment.core.entities import AssessmentCode, AssessmentSession, Cohort

INVALID_CODE_ERROR = "Invalid assessment code"
EXPIRED_CODE_ERROR = "This assessment code has expired"
COHORT_INACTIVE_ERROR = "This assessment is no longer available"
NOT_YET_AVAILABLE_ERROR = "This assessment is not yet available"
ACCESS_ENDED_ERROR = "This assessment access period has ended"
MAX_RETAKES_ERROR = "Maximum retake limit reached"


class RetakeState(str, Enum):
    """Outcome of evaluating a code against its session history."""

    INVALID = "invalid"
    EXPIRED = "expired"
    UNAVAILABLE = "unavailable"
    NOT_YET_AVAILABLE = "not_yet_available"
    ACCESS_ENDED = "access_ended"
    NO_PRIOR_SESSION = "no_prior_session"
    IN_PROGRESS = "in_progress"
    COMPLETED_NO_RETAKE = "completed_no_retake"
    COMPLETED_MAX_REACHED = "completed_max_reached"
    COMPLETED_COOLDOWN = "completed_cooldown"
    COMPLETED_RETAKE_ELIGIBLE = "completed_retake_eligible"


_NEW_ATTEMPT_STATES = frozenset(
    {RetakeState.NO_PRIOR_SESSION, RetakeState.COMPLETED_RETAKE_ELIGIBLE}
)


@dataclass(frozen=True)
class RetakeValidation:
    """Verdict for one code.

    ``valid`` is False only for the access gates. Retake restrictions are
    reported as ``valid=True`` with ``error`` set, because the caller still
    needs ``completed_session`` to show results.

    Attributes:
        valid: Whether the code grants any access at all.
        state: The state the code was found in.
        code: The code record, when one was found.
        cohort: The code's cohort, when one was found.
        error: User-facing reason for a rejection or restriction.
        completed_session: Latest session when it is complete.
        session: Latest session when it is still in progress.
    """

    valid: bool
    state: RetakeState
    code: AssessmentCode | None = None
    cohort: Cohort | None = None
    error: str | None = None
    completed_session: AssessmentSession | None = None
    session: AssessmentSession | None = None

    @property
    def can_start_new(self) -> bool:
        """Whether a brand-new attempt may be created for this code."""
        return self.state in _NEW_ATTEMPT_STATES

    @property
    def can_retake(self) -> bool:
        """Whether a completed session exists and a retake is currently allowed."""
        return self.state is RetakeState.COMPLETED_RETAKE_ELIGIBLE


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never mix naive and aware values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def cooldown_ends_at(completed_at: datetime, cooldown_days: int) -> datetime:
    """Return the instant a completed attempt's cooldown elapses."""
    return _as_utc(completed_at) + timedelta(days=cooldown_days)


def cooldown_error(ends_at: datetime) -> str:
    """User-facing message naming the date a retake becomes available."""
    return f"You can retake this assessment after {ends_at:%Y-%m-%d}"


def check_access(
    code: AssessmentCode,
    cohort: Cohort,
    now: datetime,
) -> RetakeValidation | None:
    """Apply the access gates that reject a code regardless of its sessions.

    Args:
        code: The looked-up code.
        cohort: The code's cohort.
        now: Evaluation instant.

    Returns:
        A ``valid=False`` verdict for the first failing gate, else None.
    """
    now = _as_utc(now)
    if code.expires_at is not None and _as_utc(code.expires_at) < now:
        return RetakeValidation(
            valid=False, state=RetakeState.EXPIRED, code=code, cohort=cohort,
            error=EXPIRED_CODE_ERROR,
        )
    if not cohort.is_active:
        return RetakeValidation(
            valid=False, state=RetakeState.UNAVAILABLE, code=code, cohort=cohort,
            error=COHORT_INACTIVE_ERROR,
        )
    if cohort.access_start_date is not None and _as_utc(cohort.access_start_date) > now:
        return RetakeValidation(
            valid=False, state=RetakeState.NOT_YET_AVAILABLE, code=code, cohort=cohort,
            error=NOT_YET_AVAILABLE_ERROR,
        )
    if cohort.access_end_date is not None and _as_utc(cohort.access_end_date) < now:
        return RetakeValidation(
            valid=False, state=RetakeState.ACCESS_ENDED, code=code, cohort=cohort,
            error=ACCESS_ENDED_ERROR,
        )
    return None


def evaluate_retake(
    code: AssessmentCode | None,
    cohort: Cohort | None,
    latest_session: AssessmentSession | None,
    now: datetime,
) -> RetakeValidation:
    """Decide what a code may do next.

    Args:
        code: The looked-up code, or None when the input matched nothing.
        cohort: The code's cohort, carrying the retake policy and access window.
        latest_session: The code's session with the highest attempt number.
        now: Evaluation instant; naive values are treated as UTC.

    Returns:
        The RetakeValidation verdict. Identical inputs always give identical verdicts.
    """
    if code is None or cohort is None:
        return RetakeValidation(valid=False, state=RetakeState.INVALID, error=INVALID_CODE_ERROR)

    rejected = check_access(code, cohort, now)
    if rejected is not None:
        return rejected

    if latest_session is None:
        return RetakeValidation(
            valid=True, state=RetakeState.NO_PRIOR_SESSION, code=code, cohort=cohort
        )

    if not latest_session.is_complete:
        return RetakeValidation(
            valid=True, state=RetakeState.IN_PROGRESS, code=code, cohort=cohort,
            session=latest_session,
        )

    if not cohort.allow_retakes:
        return RetakeValidation(
            valid=True, state=RetakeState.COMPLETED_NO_RETAKE, code=code, cohort=cohort,
            completed_session=latest_session,
        )

    if cohort.max_retakes > 0 and code.times_used >= cohort.max_retakes:
        return RetakeValidation(
            valid=True, state=RetakeState.COMPLETED_MAX_REACHED, code=code, cohort=cohort,
            completed_session=latest_session, error=MAX_RETAKES_ERROR,
        )

    if cohort.retake_cooldown_days > 0 and latest_session.completed_at is not None:
        ends_at = cooldown_ends_at(latest_session.completed_at, cohort.retake_cooldown_days)
        if _as_utc(now) < ends_at:
            return RetakeValidation(
                valid=True, state=RetakeState.COMPLETED_COOLDOWN, code=code, cohort=cohort,
                completed_session=latest_session, error=cooldown_error(ends_at),
            )

    return RetakeValidation(
        valid=True, state=RetakeState.COMPLETED_RETAKE_ELIGIBLE, code=code, cohort=cohort,
        completed_session=latest_session,
    )
