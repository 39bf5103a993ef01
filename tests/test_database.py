"""Tests for session scoping and service wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from resilience_assessment.adapters.database import (
    build_services,
    create_session_factory,
    session_scope,
)
from resilience_assessment.core.services import (
    AssessmentAccessService,
    ResponseService,
    ScoringService,
)
from resilience_assessment.settings import Settings


@pytest.fixture()
def db_session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def factory(db_session: AsyncMock) -> MagicMock:
    """async_sessionmaker stand-in whose sessions are async context managers."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=db_session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


class TestSessionScope:
    """Commit-or-rollback transaction scope."""

    @pytest.mark.asyncio()
    async def test_commits_on_success(self, factory: MagicMock, db_session: AsyncMock) -> None:
        async with session_scope(factory) as session:
            assert session is db_session
        db_session.commit.assert_awaited_once()
        db_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_rolls_back_and_reraises(
        self, factory: MagicMock, db_session: AsyncMock
    ) -> None:
        with pytest.raises(RuntimeError):
            async with session_scope(factory):
                raise RuntimeError("boom")
        db_session.rollback.assert_awaited_once()
        db_session.commit.assert_not_awaited()


def test_build_services_wires_one_session(db_session: AsyncMock) -> None:
    services = build_services(db_session, Settings())
    assert isinstance(services.access, AssessmentAccessService)
    assert isinstance(services.responses, ResponseService)
    assert isinstance(services.scoring, ScoringService)


def test_session_factory_is_created_without_connecting() -> None:
    factory = create_session_factory(Settings())
    assert isinstance(factory, async_sessionmaker)
