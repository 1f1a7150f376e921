from __future__ import annotations

import pytest

from app.models.assessment import Choice
from app.services.assessment_service import (
    AssessmentService,
    InMemorySessionStore,
    SessionNotFoundError,
    StoredSession,
)
from app.services.assessment_session import AssessmentEngine, start_session
from app.services.identity import StaticIdentityProvider


@pytest.fixture
def session_store():
    return InMemorySessionStore(max_sessions=3)


@pytest.fixture
def service(result_repository, recommendation_repository, session_store):
    engine = AssessmentEngine(result_repository, recommendation_repository)
    return AssessmentService(
        engine,
        result_repository,
        StaticIdentityProvider(),
        session_store=session_store,
    )


async def test_unknown_sessions_leave_no_trace(service, session_store):
    for index in range(1000):
        with pytest.raises(SessionNotFoundError):
            await service.previous(f"unknown-{index}", None)
        with pytest.raises(SessionNotFoundError):
            await service.answer(f"unknown-{index}", None, Choice.A)
        with pytest.raises(SessionNotFoundError):
            await service.retake(f"unknown-{index}", None)

    assert len(session_store) == 0
    assert session_store.lock("unknown-0") is None


async def test_store_evicts_least_recently_used_session(session_store):
    for session_id in ("first", "second", "third"):
        await session_store.save(session_id, StoredSession(state=start_session()))
    await session_store.get("first")

    await session_store.save("fourth", StoredSession(state=start_session()))

    assert len(session_store) == 3
    assert await session_store.get("second") is None
    assert session_store.lock("second") is None
    assert session_store.lock("first") is not None


async def test_evicted_session_is_not_found(service, session_store):
    oldest, _ = await service.start(None)
    for _ in range(3):
        await service.start(None)

    assert len(session_store) == 3
    with pytest.raises(SessionNotFoundError):
        await service.answer(oldest, None, Choice.A)


async def test_started_session_accepts_answers(service):
    session_id, _ = await service.start(None)
    state = await service.answer(session_id, None, Choice.B)
    assert state.index == 1
    assert dict(state.answers) == {0: Choice.B}
