from __future__ import annotations

import asyncio
import logging
import os
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol, Sequence

from app.integrations.supabase import (
    AssessmentSettings,
    create_supabase_async_client,
    get_assessment_settings,
)
from app.models.assessment import (
    DIMENSIONS,
    AccessStatus,
    AssessmentReport,
    AssessmentResult,
    Career,
    CareerResponse,
    Choice,
    ProfileResponse,
    Question,
    ResultRecord,
    SkillCourse,
    SkillCourseResponse,
)
from app.repositories.access_repository import (
    AccessRepository,
    InMemoryAccessRepository,
    SupabaseAccessRepository,
)
from app.repositories.recommendation_repository import (
    InMemoryRecommendationRepository,
    SupabaseRecommendationRepository,
)
from app.repositories.result_repository import (
    InMemoryResultRepository,
    ResultPersister,
    SupabaseResultRepository,
)
from app.services.assessment_session import (
    AssessmentEngine,
    Complete,
    Scoring,
    SessionState,
    answer,
    previous,
    retake,
    start_session,
)
from app.services.identity import (
    IdentityProvider,
    StaticIdentityProvider,
    SupabaseIdentityProvider,
)
from app.services.personality_profiles import get_profile
from app.services.scoring import dominant_pole_label

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    pass


class AccessDeniedError(PermissionError):
    pass


@dataclass(frozen=True)
class StoredSession:
    state: SessionState
    user_id: str | None = None


class SessionStore(Protocol):
    async def get(self, session_id: str) -> StoredSession | None:
        raise NotImplementedError

    async def save(self, session_id: str, session: StoredSession) -> None:
        raise NotImplementedError

    def lock(self, session_id: str) -> asyncio.Lock | None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Bounded store; the least recently used session is evicted with its lock."""

    def __init__(self, max_sessions: int | None = None) -> None:
        if max_sessions is None:
            max_sessions = int(os.getenv("ASSESSMENT_MAX_SESSIONS", "10000") or 0)
        self._max_sessions = max(max_sessions, 1)
        self._sessions: OrderedDict[str, StoredSession] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, session_id: str) -> StoredSession | None:
        stored = self._sessions.get(session_id)
        if stored is not None:
            self._sessions.move_to_end(session_id)
        return stored

    async def save(self, session_id: str, session: StoredSession) -> None:
        self._sessions[session_id] = session
        self._sessions.move_to_end(session_id)
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        while len(self._sessions) > self._max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            self._locks.pop(evicted, None)
            logger.info("Evicted assessment session %s", evicted)

    def lock(self, session_id: str) -> asyncio.Lock | None:
        # Only sessions that exist have a lock.
        return self._locks.get(session_id)


def build_report(complete: Complete) -> AssessmentReport:
    result = complete.result
    if complete.is_retake:
        message = (
            f"Your personality type has been updated to {result.mbti_type}. "
            "Your personalized recommendations are displayed below."
        )
    else:
        message = (
            f"Your personality type is {result.mbti_type}. "
            "Check out your personalized recommendations below."
        )
    return AssessmentReport(
        mbti_type=result.mbti_type,
        scores=result.scores.as_dict(),
        dimensions={
            dimension: dominant_pole_label(result.scores, dimension)
            for dimension in DIMENSIONS
        },
        profile=ProfileResponse.from_domain(result.mbti_type, get_profile(result.mbti_type)),
        careers=[
            CareerResponse(
                title=career.title,
                description=career.description,
                industry=career.industry,
            )
            for career in complete.careers
        ],
        courses=[
            SkillCourseResponse(
                title=course.title,
                description=course.description,
                category=course.category,
            )
            for course in complete.courses
        ],
        warnings=list(complete.warnings),
        is_retake=complete.is_retake,
        message=message,
    )


class AssessmentService:
    def __init__(
        self,
        engine: AssessmentEngine,
        persister: ResultPersister,
        identity_provider: IdentityProvider,
        *,
        access_repository: AccessRepository | None = None,
        session_store: SessionStore | None = None,
        require_access: bool = False,
    ) -> None:
        self._engine = engine
        self._persister = persister
        self._identity_provider = identity_provider
        self._access_repository = access_repository
        self._session_store = session_store or InMemorySessionStore()
        self._require_access = require_access

    @property
    def questions(self) -> Sequence[Question]:
        return self._engine.questions

    @property
    def requires_access(self) -> bool:
        return self._require_access and self._access_repository is not None

    async def resolve_user(self, auth_token: str | None) -> str | None:
        return await self._identity_provider.resolve_user_id(auth_token)

    async def start(self, user_id: str | None, *, is_retake: bool = False) -> tuple[str, SessionState]:
        await self._ensure_access(user_id)
        session_id = uuid.uuid4().hex
        state = start_session(is_retake=is_retake)
        await self._session_store.save(session_id, StoredSession(state=state, user_id=user_id))
        logger.info(
            "Assessment session started session_id=%s user_id=%s retake=%s",
            session_id,
            user_id,
            is_retake,
        )
        return session_id, state

    async def get_state(self, session_id: str, user_id: str | None) -> SessionState:
        stored = await self._load(session_id, user_id)
        return stored.state

    async def answer(
        self, session_id: str, user_id: str | None, choice: Choice
    ) -> SessionState:
        async with self._session_lock(session_id):
            stored = await self._load(session_id, user_id)
            next_state = answer(stored.state, choice, self._engine.questions)
            if isinstance(next_state, Scoring):
                next_state = await self._engine.complete(next_state, stored.user_id)
            await self._session_store.save(
                session_id, StoredSession(state=next_state, user_id=stored.user_id)
            )
            return next_state

    async def previous(self, session_id: str, user_id: str | None) -> SessionState:
        async with self._session_lock(session_id):
            stored = await self._load(session_id, user_id)
            next_state = previous(stored.state)
            await self._session_store.save(
                session_id, StoredSession(state=next_state, user_id=stored.user_id)
            )
            return next_state

    async def retake(self, session_id: str, user_id: str | None) -> SessionState:
        async with self._session_lock(session_id):
            stored = await self._load(session_id, user_id)
            await self._ensure_access(stored.user_id)
            next_state = retake(stored.state)
            await self._session_store.save(
                session_id, StoredSession(state=next_state, user_id=stored.user_id)
            )
            logger.info("Assessment session %s restarted as retake", session_id)
            return next_state

    async def submit(
        self,
        user_id: str | None,
        choices: Sequence[Choice],
        *,
        is_retake: bool = False,
    ) -> Complete:
        await self._ensure_access(user_id)
        return await self._engine.submit_all(choices, user_id, is_retake=is_retake)

    async def latest_result(self, user_id: str) -> ResultRecord | None:
        return await self._persister.get_latest_result(user_id)

    async def access_status(self, user_id: str) -> AccessStatus:
        if self._access_repository is None:
            return AccessStatus()
        return await self._access_repository.get_access_status(user_id)

    async def _ensure_access(self, user_id: str | None) -> None:
        # Anonymous callers may take the quiz; their results are never stored.
        if not self._require_access or not user_id or self._access_repository is None:
            return
        status = await self._access_repository.get_access_status(user_id)
        if not status.has_access:
            logger.warning("User %s has no access to the MBTI assessment", user_id)
            raise AccessDeniedError(
                "You need to purchase the MBTI Personality Test to access this assessment."
            )

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._session_store.lock(session_id)
        if lock is None:
            raise SessionNotFoundError(f"Assessment session {session_id} not found.")
        return lock

    async def _load(self, session_id: str, user_id: str | None) -> StoredSession:
        stored = await self._session_store.get(session_id)
        if stored is None or (stored.user_id and stored.user_id != user_id):
            raise SessionNotFoundError(f"Assessment session {session_id} not found.")
        return stored


def _log_completion(result: AssessmentResult) -> None:
    logger.info("Completion callback type=%s scores=%s", result.mbti_type, result.scores.as_dict())


def build_supabase_assessment_service(
    settings: AssessmentSettings | None = None,
) -> AssessmentService:
    settings = settings or get_assessment_settings()
    client = create_supabase_async_client()
    persister = SupabaseResultRepository(client, table_name=settings.results_table)
    resolver = SupabaseRecommendationRepository(
        client,
        careers_table=settings.careers_table,
        courses_table=settings.courses_table,
    )
    access_repository = SupabaseAccessRepository(
        client,
        settings.mbti_course_id,
        profiles_table=settings.profiles_table,
    )
    engine = AssessmentEngine(
        persister,
        resolver,
        access_repository=access_repository,
        on_complete=_log_completion,
    )
    logger.info(
        "Using Supabase assessment backend (course_id=%s, require_access=%s).",
        settings.mbti_course_id,
        settings.require_access,
    )
    return AssessmentService(
        engine,
        persister,
        SupabaseIdentityProvider(client),
        access_repository=access_repository,
        require_access=settings.require_access,
    )


def build_in_memory_assessment_service() -> AssessmentService:
    persister = InMemoryResultRepository()
    resolver = InMemoryRecommendationRepository(
        careers=_DEFAULT_CAREERS,
        courses=_DEFAULT_COURSES,
    )
    access_repository = InMemoryAccessRepository(enrollments=("demo-ui-user",))
    engine = AssessmentEngine(
        persister,
        resolver,
        access_repository=access_repository,
        on_complete=_log_completion,
    )
    return AssessmentService(
        engine,
        persister,
        StaticIdentityProvider({"demo-token": "demo-ui-user"}),
        access_repository=access_repository,
        require_access=True,
    )


@lru_cache(maxsize=1)
def get_assessment_service() -> AssessmentService:
    # Cached so that sessions survive between requests.
    backend = os.getenv("ASSESSMENT_BACKEND", "supabase").lower()
    if backend == "memory":
        logger.info("Using in-memory assessment backend.")
        return build_in_memory_assessment_service()
    return build_supabase_assessment_service()


_DEFAULT_CAREERS: dict[str, Sequence[Career]] = {
    "INTJ": (
        Career(
            title="Software Architect",
            description="Designs the structure of large software systems and guides long-term technical strategy.",
            industry="Technology",
        ),
        Career(
            title="Management Consultant",
            description="Analyses organisations and plans strategic improvements.",
            industry="Consulting",
        ),
    ),
    "ENFP": (
        Career(
            title="Marketing Strategist",
            description="Builds creative campaigns and connects brands with people.",
            industry="Marketing",
        ),
    ),
}

_DEFAULT_COURSES: dict[str, Sequence[SkillCourse]] = {
    "INTJ": (
        SkillCourse(
            title="Systems Design Fundamentals",
            description="Plan scalable architectures and reason about trade-offs.",
            category="Technology",
        ),
    ),
    "ENFP": (
        SkillCourse(
            title="Storytelling for Brands",
            description="Turn ideas into engaging narratives.",
            category="Communication",
        ),
    ),
}
