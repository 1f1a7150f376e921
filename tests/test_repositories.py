from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.models.assessment import ScoreTally
from app.repositories.access_repository import SupabaseAccessRepository
from app.repositories.recommendation_repository import (
    RecommendationLookupFailure,
    SupabaseRecommendationRepository,
)
from app.repositories.result_repository import (
    PersistenceFailure,
    SupabaseResultRepository,
)

COMPLETED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
TALLY = ScoreTally(E=7, I=5, S=3, N=9, T=6, F=6, J=10, P=2)


def _stored_row(**overrides):
    row = {
        "id": "row-1",
        "user_id": "user-1",
        "mbti_type": "ENFJ",
        "extraversion_score": 7,
        "sensing_score": 3,
        "thinking_score": 6,
        "judging_score": 10,
        "completed_at": "2024-05-01T12:00:00Z",
        "updated_at": None,
    }
    row.update(overrides)
    return row


async def test_save_new_result_inserts_first_pole_counts(fake_supabase):
    fake_supabase.queue("mbti_results", data=[_stored_row()])
    repository = SupabaseResultRepository(fake_supabase)

    record = await repository.save_new_result("user-1", "ENFJ", TALLY, COMPLETED_AT)

    (query,) = fake_supabase.queries_for("mbti_results")
    name, args, _ = query.calls[0]
    assert name == "insert"
    assert args[0] == {
        "user_id": "user-1",
        "mbti_type": "ENFJ",
        "extraversion_score": 7,
        "sensing_score": 3,
        "thinking_score": 6,
        "judging_score": 10,
        "completed_at": COMPLETED_AT.isoformat(),
    }
    assert record.id == "row-1"
    assert record.completed_at == COMPLETED_AT
    assert record.to_tally() == TALLY


async def test_update_existing_result_filters_by_user(fake_supabase):
    fake_supabase.queue(
        "mbti_results",
        data=[_stored_row(updated_at="2024-05-01T12:00:00+00:00")],
    )
    repository = SupabaseResultRepository(fake_supabase, table_name="mbti_results")

    record = await repository.update_existing_result("user-1", "ENFJ", TALLY, COMPLETED_AT)

    (query,) = fake_supabase.queries_for("mbti_results")
    assert query.method_names() == ["update", "eq"]
    payload = query.calls[0][1][0]
    assert "user_id" not in payload
    assert payload["updated_at"] == COMPLETED_AT.isoformat()
    assert query.calls[1][1] == ("user_id", "user-1")
    assert record.updated_at == COMPLETED_AT


async def test_update_without_matching_row_inserts(fake_supabase):
    fake_supabase.queue("mbti_results", data=[])
    fake_supabase.queue("mbti_results", data=[_stored_row()])
    repository = SupabaseResultRepository(fake_supabase)

    record = await repository.update_existing_result("user-1", "ENFJ", TALLY, COMPLETED_AT)

    update_query, insert_query = fake_supabase.queries_for("mbti_results")
    assert update_query.method_names()[0] == "update"
    assert insert_query.method_names() == ["insert"]
    assert record.mbti_type == "ENFJ"


async def test_latest_result_orders_by_completion(fake_supabase):
    fake_supabase.queue("mbti_results", data=[_stored_row(mbti_type="INTP")])
    repository = SupabaseResultRepository(fake_supabase)

    record = await repository.get_latest_result("user-1")

    (query,) = fake_supabase.queries_for("mbti_results")
    assert query.method_names() == ["select", "eq", "order", "limit"]
    assert query.calls[2] == ("order", ("completed_at",), {"desc": True})
    assert query.calls[3][1] == (1,)
    assert record.mbti_type == "INTP"


async def test_latest_result_missing_returns_none(fake_supabase):
    repository = SupabaseResultRepository(fake_supabase)
    assert await repository.get_latest_result("user-1") is None


async def test_result_error_response_raises(fake_supabase):
    fake_supabase.queue("mbti_results", error="permission denied")
    repository = SupabaseResultRepository(fake_supabase)
    with pytest.raises(PersistenceFailure, match="permission denied"):
        await repository.save_new_result("user-1", "ENFJ", TALLY, COMPLETED_AT)


async def test_result_transport_error_is_wrapped(fake_supabase):
    fake_supabase.queue_exception("mbti_results", ConnectionError("offline"))
    repository = SupabaseResultRepository(fake_supabase)
    with pytest.raises(PersistenceFailure) as exc_info:
        await repository.get_latest_result("user-1")
    assert isinstance(exc_info.value.__cause__, ConnectionError)


async def test_fetch_careers_maps_rows(fake_supabase):
    fake_supabase.queue(
        "career_recommendations",
        data=[
            {"career_title": "Architect", "description": "Designs systems", "industry": "Tech"},
            {"career_title": "Researcher", "description": None, "industry": None},
        ],
    )
    repository = SupabaseRecommendationRepository(fake_supabase)

    careers = await repository.fetch_careers("INTJ")

    (query,) = fake_supabase.queries_for("career_recommendations")
    assert query.calls[0] == ("select", ("career_title, description, industry",), {})
    assert query.calls[1] == ("eq", ("mbti_type", "INTJ"), {})
    assert [career.title for career in careers] == ["Architect", "Researcher"]
    assert careers[1].description == ""
    assert careers[0].industry == "Tech"


async def test_fetch_skill_courses_uses_configured_table(fake_supabase):
    fake_supabase.queue(
        "skills",
        data=[{"skill_title": "Negotiation", "description": "", "category": "Business"}],
    )
    repository = SupabaseRecommendationRepository(fake_supabase, courses_table="skills")

    courses = await repository.fetch_skill_courses("ENTJ")

    assert courses[0].title == "Negotiation"
    assert courses[0].category == "Business"


async def test_unknown_type_has_no_recommendations(fake_supabase):
    repository = SupabaseRecommendationRepository(fake_supabase)
    assert await repository.fetch_careers("ISFP") == ()


async def test_recommendation_errors_raise_lookup_failure(fake_supabase):
    fake_supabase.queue("career_recommendations", error="boom")
    fake_supabase.queue_exception("course_recommendations", TimeoutError("slow"))
    repository = SupabaseRecommendationRepository(fake_supabase)

    with pytest.raises(RecommendationLookupFailure):
        await repository.fetch_careers("INTJ")
    with pytest.raises(RecommendationLookupFailure):
        await repository.fetch_skill_courses("INTJ")


async def test_access_from_confirmed_order(fake_supabase):
    fake_supabase.queue("orders", data=[{"id": "order-1", "status": "confirmed"}])
    repository = SupabaseAccessRepository(fake_supabase, "course-1")

    status = await repository.get_access_status("user-1")

    assert status.has_confirmed_order is True
    assert status.has_enrollment is False
    assert status.has_access is True
    (orders,) = fake_supabase.queries_for("orders")
    assert ("eq", ("order_items.course_id", "course-1"), {}) in orders.calls
    (enrollments,) = fake_supabase.queries_for("enrollments")
    assert ("eq", ("student_id", "user-1"), {}) in enrollments.calls
    assert ("eq", ("status", "enrolled"), {}) in enrollments.calls


async def test_access_error_counts_as_no_access(fake_supabase):
    fake_supabase.queue("orders", error="denied")
    repository = SupabaseAccessRepository(fake_supabase, "course-1")

    status = await repository.get_access_status("user-1")

    assert status.has_access is False


async def test_mark_quiz_completed_updates_profile(fake_supabase):
    repository = SupabaseAccessRepository(fake_supabase, "course-1")

    await repository.mark_quiz_completed("user-1")

    (query,) = fake_supabase.queries_for("profiles")
    assert query.calls[0] == (
        "update",
        ({"mbti_quiz_completed": True, "show_mbti_reminder": False},),
        {},
    )
    assert query.calls[1] == ("eq", ("id", "user-1"), {})


async def test_mark_quiz_completed_error_raises(fake_supabase):
    fake_supabase.queue("profiles", error="row level security")
    repository = SupabaseAccessRepository(fake_supabase, "course-1")
    with pytest.raises(PersistenceFailure):
        await repository.mark_quiz_completed("user-1")


async def test_short_fractional_seconds_are_parsed(fake_supabase):
    fake_supabase.queue(
        "mbti_results",
        data=[_stored_row(completed_at="2024-05-01T12:00:00.12345+00:00")],
    )
    repository = SupabaseResultRepository(fake_supabase)

    record = await repository.save_new_result("user-1", "ENFJ", TALLY, COMPLETED_AT)

    assert record.completed_at == COMPLETED_AT.replace(microsecond=123450)


async def test_malformed_row_raises_persistence_failure(fake_supabase):
    fake_supabase.queue(
        "mbti_results",
        data=[_stored_row(completed_at="yesterday", extraversion_score="seven")],
    )
    repository = SupabaseResultRepository(fake_supabase)
    with pytest.raises(PersistenceFailure, match="Malformed MBTI result row"):
        await repository.get_latest_result("user-1")


async def test_unparseable_timestamp_raises_persistence_failure(fake_supabase):
    fake_supabase.queue("mbti_results", data=[_stored_row(completed_at=None)])
    repository = SupabaseResultRepository(fake_supabase)
    with pytest.raises(PersistenceFailure):
        await repository.get_latest_result("user-1")
