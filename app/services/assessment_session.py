"""Quiz session state machine and the scoring routine that completes it.

A session moves ``InProgress -> Scoring -> Complete``. Every state is an
immutable value; ``answer``, ``previous`` and ``retake`` return the next state
instead of mutating the current one. ``Scoring`` is only ever handed to
``AssessmentEngine.complete``, which scores the answers, persists the result
and resolves recommendations before returning ``Complete``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping, Sequence, TypeVar, Union

from app.models.assessment import AssessmentResult, Career, Choice, Question, SkillCourse
from app.repositories.access_repository import AccessRepository
from app.repositories.recommendation_repository import (
    RecommendationLookupFailure,
    RecommendationResolver,
)
from app.repositories.result_repository import PersistenceFailure, ResultPersister
from app.services.question_bank import QUESTIONS
from app.services.scoring import answers_from_sequence, score_answers

logger = logging.getLogger(__name__)

T = TypeVar("T")

SAVE_FAILED_WARNING = "Failed to save your test results. Please try again."
UPDATE_FAILED_WARNING = "Failed to update your test results. Please try again."
PROFILE_FAILED_WARNING = "Could not mark the personality test as completed on your profile."
CAREERS_FAILED_WARNING = "Could not load career recommendations. Please refresh the page."
COURSES_FAILED_WARNING = "Could not load course recommendations. Please refresh the page."


class InvalidTransition(RuntimeError):
    pass


def _frozen_answers(answers: Mapping[int, Choice]) -> Mapping[int, Choice]:
    return MappingProxyType(dict(answers))


@dataclass(frozen=True)
class InProgress:
    index: int = 0
    answers: Mapping[int, Choice] = field(default_factory=lambda: _frozen_answers({}))
    is_retake: bool = False


@dataclass(frozen=True)
class Scoring:
    answers: Mapping[int, Choice]
    is_retake: bool = False


@dataclass(frozen=True)
class Complete:
    result: AssessmentResult
    careers: Sequence[Career] = ()
    courses: Sequence[SkillCourse] = ()
    warnings: Sequence[str] = ()
    is_retake: bool = False


SessionState = Union[InProgress, Scoring, Complete]


def start_session(is_retake: bool = False) -> InProgress:
    return InProgress(index=0, answers=_frozen_answers({}), is_retake=is_retake)


def answer(
    state: SessionState,
    choice: Choice | str,
    questions: Sequence[Question] = QUESTIONS,
) -> InProgress | Scoring:
    if not isinstance(state, InProgress):
        raise InvalidTransition(
            f"Cannot answer while the session is {type(state).__name__}."
        )
    recorded = Choice(choice)
    answers = dict(state.answers)
    answers[state.index] = recorded
    if state.index < len(questions) - 1:
        return InProgress(
            index=state.index + 1,
            answers=_frozen_answers(answers),
            is_retake=state.is_retake,
        )
    return Scoring(answers=_frozen_answers(answers), is_retake=state.is_retake)


def previous(state: SessionState) -> InProgress:
    if not isinstance(state, InProgress):
        raise InvalidTransition(
            f"Cannot go back while the session is {type(state).__name__}."
        )
    if state.index == 0:
        return state
    return InProgress(
        index=state.index - 1,
        answers=state.answers,
        is_retake=state.is_retake,
    )


def retake(state: SessionState | None = None) -> InProgress:
    return start_session(is_retake=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentEngine:
    def __init__(
        self,
        persister: ResultPersister,
        resolver: RecommendationResolver,
        *,
        access_repository: AccessRepository | None = None,
        questions: Sequence[Question] = QUESTIONS,
        clock: Callable[[], datetime] = _utcnow,
        on_complete: Callable[[AssessmentResult], None] | None = None,
        warning_sink: Callable[[str], None] | None = None,
    ) -> None:
        self._persister = persister
        self._resolver = resolver
        self._access_repository = access_repository
        self._questions = tuple(questions)
        self._clock = clock
        self._on_complete = on_complete
        self._warning_sink = warning_sink

    @property
    def questions(self) -> Sequence[Question]:
        return self._questions

    def set_warning_sink(self, sink: Callable[[str], None]) -> None:
        self._warning_sink = sink

    async def submit(
        self,
        state: SessionState,
        choice: Choice | str,
        user_id: str | None,
    ) -> InProgress | Complete:
        next_state = answer(state, choice, self._questions)
        if isinstance(next_state, Scoring):
            return await self.complete(next_state, user_id)
        return next_state

    async def submit_all(
        self,
        choices: Sequence[Choice | str],
        user_id: str | None,
        *,
        is_retake: bool = False,
    ) -> Complete:
        scoring = Scoring(
            answers=_frozen_answers(answers_from_sequence(choices)),
            is_retake=is_retake,
        )
        return await self.complete(scoring, user_id)

    async def complete(self, scoring: Scoring, user_id: str | None) -> Complete:
        # Raises IncompleteAssessment before anything is written.
        result = score_answers(scoring.answers, self._questions)
        completed_at = self._clock()

        persist_warnings, careers, courses = await asyncio.gather(
            self._persist(result, user_id, scoring.is_retake, completed_at),
            self._lookup(
                self._resolver.fetch_careers(result.mbti_type),
                CAREERS_FAILED_WARNING,
                "careers",
                result.mbti_type,
            ),
            self._lookup(
                self._resolver.fetch_skill_courses(result.mbti_type),
                COURSES_FAILED_WARNING,
                "courses",
                result.mbti_type,
            ),
        )
        career_items, career_warning = careers
        course_items, course_warning = courses
        warnings = [
            *persist_warnings,
            *(w for w in (career_warning, course_warning) if w),
        ]
        for message in warnings:
            self._emit_warning(message)

        complete = Complete(
            result=result,
            careers=tuple(career_items),
            courses=tuple(course_items),
            warnings=tuple(warnings),
            is_retake=scoring.is_retake,
        )
        logger.info(
            "Assessment complete type=%s user_id=%s retake=%s careers=%d courses=%d warnings=%d",
            result.mbti_type,
            user_id,
            scoring.is_retake,
            len(complete.careers),
            len(complete.courses),
            len(complete.warnings),
        )
        if self._on_complete is not None:
            self._on_complete(result)
        return complete

    async def _persist(
        self,
        result: AssessmentResult,
        user_id: str | None,
        is_retake: bool,
        completed_at: datetime,
    ) -> list[str]:
        if not user_id:
            logger.info("No identity at completion, skipping result persistence")
            return []

        if is_retake:
            operation = self._persister.update_existing_result
            failure_message = UPDATE_FAILED_WARNING
        else:
            operation = self._persister.save_new_result
            failure_message = SAVE_FAILED_WARNING
        try:
            await operation(user_id, result.mbti_type, result.scores, completed_at)
        except PersistenceFailure as exc:
            logger.warning("Persisting MBTI result failed for user %s: %s", user_id, exc)
            return [failure_message]

        if self._access_repository is None:
            return []
        try:
            await self._access_repository.mark_quiz_completed(user_id)
        except PersistenceFailure as exc:
            logger.warning("Profile completion flag failed for user %s: %s", user_id, exc)
            return [PROFILE_FAILED_WARNING]
        return []

    @staticmethod
    async def _lookup(
        call: Awaitable[Sequence[T]],
        failure_message: str,
        label: str,
        mbti_type: str,
    ) -> tuple[Sequence[T], str | None]:
        try:
            items = await call
        except RecommendationLookupFailure as exc:
            logger.warning("Fetching %s for %s failed: %s", label, mbti_type, exc)
            return (), failure_message
        logger.info("Fetched %d %s for %s", len(items), label, mbti_type)
        return items, None

    def _emit_warning(self, message: str) -> None:
        if self._warning_sink is not None:
            self._warning_sink(message)
