from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence, cast

from app.models.assessment import Career, SkillCourse

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from supabase.client import AsyncClient
else:
    AsyncClient = Any

RecommendationRow = dict[str, Any]


class RecommendationLookupFailure(RuntimeError):
    pass


class RecommendationResolver(Protocol):
    async def fetch_careers(self, mbti_type: str) -> Sequence[Career]:
        raise NotImplementedError

    async def fetch_skill_courses(self, mbti_type: str) -> Sequence[SkillCourse]:
        raise NotImplementedError


class SupabaseRecommendationRepository(RecommendationResolver):
    _CAREERS_TABLE = "career_recommendations"
    _COURSES_TABLE = "course_recommendations"

    def __init__(
        self,
        client: AsyncClient,
        *,
        careers_table: str | None = None,
        courses_table: str | None = None,
    ) -> None:
        self._client = client
        self._careers_table = careers_table or self._CAREERS_TABLE
        self._courses_table = courses_table or self._COURSES_TABLE

    async def fetch_careers(self, mbti_type: str) -> Sequence[Career]:
        rows = await self._fetch_rows(
            self._careers_table, "career_title, description, industry", mbti_type
        )
        return tuple(
            Career(
                title=row.get("career_title") or "",
                description=row.get("description") or "",
                industry=row.get("industry") or "",
            )
            for row in rows
        )

    async def fetch_skill_courses(self, mbti_type: str) -> Sequence[SkillCourse]:
        rows = await self._fetch_rows(
            self._courses_table, "skill_title, description, category", mbti_type
        )
        return tuple(
            SkillCourse(
                title=row.get("skill_title") or "",
                description=row.get("description") or "",
                category=row.get("category") or "",
            )
            for row in rows
        )

    async def _fetch_rows(
        self, table: str, columns: str, mbti_type: str
    ) -> Sequence[RecommendationRow]:
        try:
            response = (
                await self._client.table(table)
                .select(columns)
                .eq("mbti_type", mbti_type)
                .execute()
            )
        except Exception as exc:
            raise RecommendationLookupFailure(
                f"Supabase query on {table} failed for {mbti_type}: {exc}"
            ) from exc
        self._raise_on_error(response, table)
        raw_rows = getattr(response, "data", None) or []
        return cast(Sequence[RecommendationRow], raw_rows)

    @staticmethod
    def _raise_on_error(response: Any, table: str) -> None:
        error = getattr(response, "error", None)
        if error:
            raise RecommendationLookupFailure(
                f"Supabase query on {table} failed: {error}"
            )


class InMemoryRecommendationRepository(RecommendationResolver):
    def __init__(
        self,
        careers: Mapping[str, Sequence[Career]] | None = None,
        courses: Mapping[str, Sequence[SkillCourse]] | None = None,
    ) -> None:
        self._careers = {key: tuple(value) for key, value in (careers or {}).items()}
        self._courses = {key: tuple(value) for key, value in (courses or {}).items()}

    async def fetch_careers(self, mbti_type: str) -> Sequence[Career]:
        return self._careers.get(mbti_type, ())

    async def fetch_skill_courses(self, mbti_type: str) -> Sequence[SkillCourse]:
        return self._courses.get(mbti_type, ())
