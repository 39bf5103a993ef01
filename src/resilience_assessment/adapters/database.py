"""Async database engine, session scope, and service wiring.

Callers open one ``session_scope`` per request, build services bound to that
session with ``build_services``, and let the scope commit on success or roll
back on any exception.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from resilience_assessment.adapters.repositories import (
    AssessmentCodeRepository,
    AssessmentSessionRepository,
    ScoringConfigRepository,
)
from resilience_assessment.core.services import (
    AssessmentAccessService,
    ResponseService,
    ScoringService,
)
from resilience_assessment.observability import get_logger
from resilience_assessment.settings import Settings

logger = get_logger(__name__)


def create_session_factory(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and a session factory bound to it.

    Args:
        settings: Service settings; ``database_url`` and ``database_echo`` are used.

    Returns:
        An ``async_sessionmaker`` producing AsyncSession instances.
    """
    engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )
    logger.info("Database engine created", service_name=settings.service_name)
    return async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@dataclass(frozen=True)
class Services:
    """Services bound to one database session."""

    access: AssessmentAccessService
    responses: ResponseService
    scoring: ScoringService


def build_services(session: AsyncSession, settings: Settings) -> Services:
    """Wire the concrete repositories into the service layer for one session."""
    config_repo = ScoringConfigRepository(session)
    code_repo = AssessmentCodeRepository(session)
    session_repo = AssessmentSessionRepository(session)
    return Services(
        access=AssessmentAccessService(code_repo, session_repo, settings),
        responses=ResponseService(config_repo, session_repo),
        scoring=ScoringService(config_repo, session_repo),
    )
