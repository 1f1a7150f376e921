from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Final, cast

from supabase.client import AsyncClient
from supabase.lib.client_options import AsyncClientOptions

_CLIENT_INFO_HEADER: Final[dict[str, str]] = {
    "X-Client-Info": "mbti-assessment-service"
}

DEFAULT_MBTI_COURSE_ID: Final[str] = "a1b2c3d4-e5f6-7890-abcd-ef1234567890"

_FALSY_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class SupabaseSettings:
    url: str
    service_role_key: str

    @classmethod
    def from_env(cls) -> "SupabaseSettings":
        missing = []
        url = os.getenv("SUPABASE_URL")
        if not url:
            missing.append("SUPABASE_URL")

        service_role_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if not service_role_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")

        if missing:
            env_list = ", ".join(missing)
            raise RuntimeError(
                f"Missing required Supabase environment variables: {env_list}"
            )

        return cls(
            url=cast(str, url),
            service_role_key=cast(str, service_role_key),
        )


@dataclass(frozen=True)
class AssessmentSettings:
    mbti_course_id: str = DEFAULT_MBTI_COURSE_ID
    require_access: bool = True
    results_table: str = "mbti_results"
    careers_table: str = "career_recommendations"
    courses_table: str = "course_recommendations"
    profiles_table: str = "profiles"

    @classmethod
    def from_env(cls) -> "AssessmentSettings":
        require_access = os.getenv("MBTI_REQUIRE_ACCESS", "true").strip().lower()
        return cls(
            mbti_course_id=os.getenv("MBTI_COURSE_ID") or DEFAULT_MBTI_COURSE_ID,
            require_access=require_access not in _FALSY_VALUES,
            results_table=os.getenv("SUPABASE_MBTI_RESULTS_TABLE") or cls.results_table,
            careers_table=os.getenv("SUPABASE_CAREER_RECOMMENDATIONS_TABLE")
            or cls.careers_table,
            courses_table=os.getenv("SUPABASE_COURSE_RECOMMENDATIONS_TABLE")
            or cls.courses_table,
            profiles_table=os.getenv("SUPABASE_PROFILES_TABLE") or cls.profiles_table,
        )


@lru_cache(maxsize=1)
def get_supabase_settings() -> SupabaseSettings:
    return SupabaseSettings.from_env()


@lru_cache(maxsize=1)
def get_assessment_settings() -> AssessmentSettings:
    return AssessmentSettings.from_env()


@lru_cache(maxsize=1)
def create_supabase_async_client(
    settings: SupabaseSettings | None = None,
) -> AsyncClient:
    settings = settings or get_supabase_settings()
    options = AsyncClientOptions(
        headers=_CLIENT_INFO_HEADER,
        auto_refresh_token=False,
        persist_session=False,
    )
    return AsyncClient(
        supabase_url=settings.url,
        supabase_key=settings.service_role_key,
        options=options,
    )
