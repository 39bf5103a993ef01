"""Abstract interfaces (Protocol classes) for the Resilience Assessment service.

Services depend on these interfaces, not on concrete implementations, so the
scoring and retake logic can be exercised with in-memory fixture data.
Concrete SQLAlchemy implementations live in ``adapters/repositories.py``.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from resilience_assessment.core.entities import (
    AssessmentCode,
    AssessmentSession,
    Cohort,
    ResponseValue,
    ScoringConfig,
)


@runtime_checkable
class IScoringConfigRepository(Protocol):
    """Read access to the shared scoring configuration."""

    async def get_scoring_config(self) -> ScoringConfig:
        """Load active questions, areas, sub-areas, rules, and overall feedback."""
        ...

    async def reorder_feedback_rules(
        self, area_id: str, ordered_rule_ids: Sequence[str]
    ) -> None:
        """Rewrite rule priorities of one area to follow the given order."""
        ...


@runtime_checkable
class ICodeRepository(Protocol):
    """Repository interface for assessment codes and their cohorts."""

    async def get_by_code(self, code: str) -> AssessmentCode | None:
        """Look up a code by its normalised short code."""
        ...

    async def get_by_token_hash(self, token_hash: str) -> AssessmentCode | None:
        """Look up a code by the SHA-256 hash of its URL token."""
        ...

    async def get_by_id(self, code_id: str) -> AssessmentCode | None:
        """Look up a code by id."""
        ...

    async def get_cohort(self, cohort_id: str) -> Cohort | None:
        """Load a cohort with its retake policy and access window."""
        ...

    async def touch(
        self, code_id: str, accessed_at: datetime, status: str | None
    ) -> None:
        """Stamp first/last access time and optionally set the code status."""
        ...

    async def create_codes(
        self,
        cohort_id: str,
        codes: Sequence[tuple[str, str]],
        expires_at: datetime | None,
    ) -> list[AssessmentCode]:
        """Create codes from (short_code, token_hash) pairs in one transaction."""
        ...


@runtime_checkable
class ISessionRepository(Protocol):
    """Repository interface for assessment sessions and their responses."""

    async def get_session(self, session_id: str) -> AssessmentSession | None:
        """Retrieve a session by id."""
        ...

    async def get_latest_session(self, code_id: str) -> AssessmentSession | None:
        """Return the code's session with the highest attempt number."""
        ...

    async def get_latest_completed_session(
        self, code_id: str
    ) -> AssessmentSession | None:
        """Return the code's most recently completed session."""
        ...

    async def find_or_create_open_session(
        self,
        code_id: str,
        user_agent: str | None,
        ip_address_hash: str | None,
    ) -> tuple[AssessmentSession, bool]:
        """Atomically return the open session or create the next attempt.

        Returns:
            ``(session, created)``.

        Raises:
            ConflictError: If a concurrent writer claimed the same attempt number.
        """
        ...

    async def get_responses(self, session_id: str) -> list[ResponseValue]:
        """Return all stored responses of a session."""
        ...

    async def upsert_responses(
        self, session_id: str, responses: Mapping[str, int]
    ) -> None:
        """Insert or overwrite one response per question id."""
        ...

    async def update_progress(self, session_id: str, current_area_index: int) -> None:
        """Record the area index the respondent should continue from."""
        ...

    async def complete_session(
        self,
        session_id: str,
        overall_score: float,
        area_scores: Mapping[str, float],
        completed_at: datetime,
    ) -> AssessmentSession:
        """Persist scores, mark the session complete, and bump the code's usage."""
        ...
