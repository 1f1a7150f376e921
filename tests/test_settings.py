import pytest

from app.integrations.supabase import (
    DEFAULT_MBTI_COURSE_ID,
    AssessmentSettings,
    SupabaseSettings,
)


def test_supabase_settings_require_credentials(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    with pytest.raises(RuntimeError, match="SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY"):
        SupabaseSettings.from_env()


def test_supabase_settings_from_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    settings = SupabaseSettings.from_env()
    assert settings.url == "https://example.supabase.co"
    assert settings.service_role_key == "service-key"


def test_assessment_settings_defaults(monkeypatch):
    for name in (
        "MBTI_COURSE_ID",
        "MBTI_REQUIRE_ACCESS",
        "SUPABASE_MBTI_RESULTS_TABLE",
        "SUPABASE_CAREER_RECOMMENDATIONS_TABLE",
        "SUPABASE_COURSE_RECOMMENDATIONS_TABLE",
        "SUPABASE_PROFILES_TABLE",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = AssessmentSettings.from_env()
    assert settings == AssessmentSettings()
    assert settings.mbti_course_id == DEFAULT_MBTI_COURSE_ID
    assert settings.require_access is True


@pytest.mark.parametrize("raw", ["0", "false", "No", " off "])
def test_access_requirement_can_be_disabled(monkeypatch, raw):
    monkeypatch.setenv("MBTI_REQUIRE_ACCESS", raw)
    assert AssessmentSettings.from_env().require_access is False


def test_table_overrides(monkeypatch):
    monkeypatch.setenv("SUPABASE_MBTI_RESULTS_TABLE", "quiz_results")
    monkeypatch.setenv("MBTI_COURSE_ID", "course-42")
    settings = AssessmentSettings.from_env()
    assert settings.results_table == "quiz_results"
    assert settings.mbti_course_id == "course-42"
