from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, cast

from pydantic import TypeAdapter, ValidationError

from app.models.assessment import ResultRecord, ScoreTally

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from supabase.client import AsyncClient
else:
    AsyncClient = Any

ResultRow = dict[str, Any]

logger = logging.getLogger(__name__)

_TIMESTAMP_ADAPTER = TypeAdapter(datetime)


class PersistenceFailure(RuntimeError):
    pass


class ResultPersister(Protocol):
    async def save_new_result(
        self,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> ResultRecord:
        raise NotImplementedError

    async def update_existing_result(
        self,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> ResultRecord:
        raise NotImplementedError

    async def get_latest_result(self, user_id: str) -> ResultRecord | None:
        raise NotImplementedError


class SupabaseResultRepository(ResultPersister):
    _DEFAULT_TABLE = "mbti_results"

    def __init__(self, client: AsyncClient, table_name: str | None = None) -> None:
        self._client = client
        self._table = table_name or self._DEFAULT_TABLE

    async def save_new_result(
        self,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> ResultRecord:
        record = ResultRecord.from_result(user_id, mbti_type, tally, completed_at)
        response = await self._execute(
            self._client.table(self._table).insert(record.to_row()),
            action="insert",
            user_id=user_id,
        )
        rows = cast(list[ResultRow], getattr(response, "data", None) or [])
        logger.info("MBTI result saved user_id=%s type=%s", user_id, mbti_type)
        return self._map_record(rows[0]) if rows else record

    async def update_existing_result(
        self,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> ResultRecord:
        record = ResultRecord.from_result(user_id, mbti_type, tally, completed_at)
        payload = record.to_row()
        payload.pop("user_id")
        payload["updated_at"] = completed_at.isoformat()
        response = await self._execute(
            self._client.table(self._table).update(payload).eq("user_id", user_id),
            action="update",
            user_id=user_id,
        )
        rows = cast(list[ResultRow], getattr(response, "data", None) or [])
        if not rows:
            # Nothing matched the user; keep the retake instead of dropping it.
            logger.warning(
                "No MBTI result to update for user_id=%s, inserting instead", user_id
            )
            return await self.save_new_result(user_id, mbti_type, tally, completed_at)
        logger.info("MBTI result updated user_id=%s type=%s", user_id, mbti_type)
        return self._map_record(rows[0])

    async def get_latest_result(self, user_id: str) -> ResultRecord | None:
        response = await self._execute(
            self._client.table(self._table)
            .select("*")
            .eq("user_id", user_id)
            .order("completed_at", desc=True)
            .limit(1),
            action="select",
            user_id=user_id,
        )
        rows = cast(list[ResultRow], getattr(response, "data", None) or [])
        if not rows:
            return None
        return self._map_record(rows[0])

    async def _execute(self, query: Any, *, action: str, user_id: str) -> Any:
        try:
            response = await query.execute()
        except Exception as exc:
            raise PersistenceFailure(
                f"MBTI result {action} failed for user {user_id}: {exc}"
            ) from exc
        error = getattr(response, "error", None)
        if error:
            raise PersistenceFailure(
                f"MBTI result {action} returned error for user {user_id}: {error}"
            )
        return response

    @staticmethod
    def _map_record(row: ResultRow) -> ResultRecord:
        try:
            return _build_record(row)
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceFailure(f"Malformed MBTI result row: {exc}") from exc


def _build_record(row: ResultRow) -> ResultRecord:
    return ResultRecord(
        id=row.get("id"),
        user_id=str(row.get("user_id", "")),
        mbti_type=row.get("mbti_type", ""),
        extraversion_score=int(row.get("extraversion_score") or 0),
        sensing_score=int(row.get("sensing_score") or 0),
        thinking_score=int(row.get("thinking_score") or 0),
        judging_score=int(row.get("judging_score") or 0),
        completed_at=_parse_timestamp(row.get("completed_at")),
        updated_at=(
            _parse_timestamp(row["updated_at"]) if row.get("updated_at") else None
        ),
    )


class InMemoryResultRepository(ResultPersister):
    """Keeps one record per user, mirroring an update-in-place table."""

    def __init__(self) -> None:
        self._records: dict[str, ResultRecord] = {}
        self.insert_count = 0
        self.update_count = 0

    async def save_new_result(
        self,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> ResultRecord:
        record = ResultRecord.from_result(user_id, mbti_type, tally, completed_at)
        self._records[user_id] = record
        self.insert_count += 1
        return record

    async def update_existing_result(
        self,
        user_id: str,
        mbti_type: str,
        tally: ScoreTally,
        completed_at: datetime,
    ) -> ResultRecord:
        record = replace(
            ResultRecord.from_result(user_id, mbti_type, tally, completed_at),
            updated_at=completed_at,
        )
        self._records[user_id] = record
        self.update_count += 1
        return record

    async def get_latest_result(self, user_id: str) -> ResultRecord | None:
        return self._records.get(user_id)

    def all_records(self) -> list[ResultRecord]:
        return list(self._records.values())


def _parse_timestamp(value: Any) -> datetime:
    try:
        return _TIMESTAMP_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise PersistenceFailure(
            f"Invalid timestamp in MBTI result row: {value!r}"
        ) from exc
