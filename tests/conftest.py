from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Iterator

import pytest

from app.models.assessment import DIMENSIONS, Choice
from app.repositories.access_repository import InMemoryAccessRepository
from app.repositories.recommendation_repository import InMemoryRecommendationRepository
from app.repositories.result_repository import InMemoryResultRepository
from app.services.question_bank import QUESTIONS


class FakeQuery:
    """Chainable stand-in for the postgrest async request builder."""

    def __init__(self, client: "FakeSupabaseClient", table: str) -> None:
        self._client = client
        self.table = table
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Callable[..., "FakeQuery"]:
        if name.startswith("_"):
            raise AttributeError(name)

        def record(*args: Any, **kwargs: Any) -> "FakeQuery":
            self.calls.append((name, args, kwargs))
            return self

        return record

    def method_names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    async def execute(self) -> Any:
        responses = self._client.responses.get(self.table) or []
        if not responses:
            return SimpleNamespace(data=[], error=None)
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSupabaseClient:
    def __init__(self) -> None:
        self.responses: dict[str, list[Any]] = {}
        self.queries: list[FakeQuery] = []

    def queue(self, table: str, *, data: Any = None, error: Any = None) -> None:
        self.responses.setdefault(table, []).append(
            SimpleNamespace(data=data if data is not None else [], error=error)
        )

    def queue_exception(self, table: str, exc: Exception) -> None:
        self.responses.setdefault(table, []).append(exc)

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def queries_for(self, table: str) -> list[FakeQuery]:
        return [query for query in self.queries if query.table == table]


@pytest.fixture
def fake_supabase() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def make_answers() -> Callable[..., dict[int, Choice]]:
    """Build a complete answer set with the given number of first-pole picks.

    ``make_answers(E=6, S=7, T=6, J=8)`` answers A (the first letter) on that
    many questions of each dimension and B on the rest.
    """

    def build(**first_pole_counts: int) -> dict[int, Choice]:
        per_dimension = {
            dimension: first_pole_counts.get(dimension[0], 12) for dimension in DIMENSIONS
        }
        seen = dict.fromkeys(DIMENSIONS, 0)
        answers: dict[int, Choice] = {}
        for index, question in enumerate(QUESTIONS):
            seen[question.dimension] += 1
            wants_first = seen[question.dimension] <= per_dimension[question.dimension]
            first_letter = question.dimension[0]
            if wants_first:
                answers[index] = Choice.A if question.a_value == first_letter else Choice.B
            else:
                answers[index] = Choice.B if question.a_value == first_letter else Choice.A
        return answers

    return build


@pytest.fixture
def result_repository() -> InMemoryResultRepository:
    return InMemoryResultRepository()


@pytest.fixture
def recommendation_repository() -> InMemoryRecommendationRepository:
    return InMemoryRecommendationRepository()


@pytest.fixture
def access_repository() -> InMemoryAccessRepository:
    return InMemoryAccessRepository(enrollments=("user-1",))


@pytest.fixture
def ticking_clock() -> Callable[[], datetime]:
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def ticks() -> Iterator[datetime]:
        current = start
        while True:
            yield current
            current += timedelta(minutes=5)

    iterator = ticks()
    return lambda: next(iterator)
