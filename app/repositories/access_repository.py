from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Protocol

from app.models.assessment import AccessStatus
from app.repositories.result_repository import PersistenceFailure

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from supabase.client import AsyncClient
else:
    AsyncClient = Any

logger = logging.getLogger(__name__)


class AccessRepository(Protocol):
    async def get_access_status(self, user_id: str) -> AccessStatus:
        raise NotImplementedError

    async def mark_quiz_completed(self, user_id: str) -> None:
        raise NotImplementedError


class SupabaseAccessRepository(AccessRepository):
    """Access to the paid MBTI test comes from a confirmed order or an enrollment."""

    def __init__(
        self,
        client: AsyncClient,
        course_id: str,
        *,
        profiles_table: str = "profiles",
    ) -> None:
        self._client = client
        self._course_id = course_id
        self._profiles_table = profiles_table

    async def get_access_status(self, user_id: str) -> AccessStatus:
        has_order = await self._has_rows(
            self._client.table("orders")
            .select("id, status, order_items!inner(course_id)")
            .eq("user_id", user_id)
            .eq("status", "confirmed")
            .eq("order_items.course_id", self._course_id),
            "orders",
            user_id,
        )
        has_enrollment = await self._has_rows(
            self._client.table("enrollments")
            .select("id, status")
            .eq("student_id", user_id)
            .eq("course_id", self._course_id)
            .eq("status", "enrolled"),
            "enrollments",
            user_id,
        )
        logger.info(
            "Access check user_id=%s confirmed_order=%s enrollment=%s",
            user_id,
            has_order,
            has_enrollment,
        )
        return AccessStatus(has_confirmed_order=has_order, has_enrollment=has_enrollment)

    async def mark_quiz_completed(self, user_id: str) -> None:
        try:
            response = await (
                self._client.table(self._profiles_table)
                .update({"mbti_quiz_completed": True, "show_mbti_reminder": False})
                .eq("id", user_id)
                .execute()
            )
        except Exception as exc:
            raise PersistenceFailure(
                f"Profile update failed for user {user_id}: {exc}"
            ) from exc
        error = getattr(response, "error", None)
        if error:
            raise PersistenceFailure(f"Supabase profile update failed: {error}")

    @staticmethod
    async def _has_rows(query: Any, source: str, user_id: str) -> bool:
        try:
            response = await query.execute()
        except Exception as exc:  # pragma: no cover - network layer guard
            logger.warning(
                "Failed to check %s for user %s: %s", source, user_id, exc)
            return False

        error = getattr(response, "error", None)
        if error:
            logger.warning(
                "Supabase %s query returned error for user %s: %s",
                source,
                user_id,
                error,
            )
            return False
        return bool(response.data)


class InMemoryAccessRepository(AccessRepository):
    def __init__(
        self,
        confirmed_orders: Iterable[str] = (),
        enrollments: Iterable[str] = (),
    ) -> None:
        self._confirmed_orders = set(confirmed_orders)
        self._enrollments = set(enrollments)
        self.completed_users: set[str] = set()

    async def get_access_status(self, user_id: str) -> AccessStatus:
        return AccessStatus(
            has_confirmed_order=user_id in self._confirmed_orders,
            has_enrollment=user_id in self._enrollments,
        )

    async def mark_quiz_completed(self, user_id: str) -> None:
        self.completed_users.add(user_id)
