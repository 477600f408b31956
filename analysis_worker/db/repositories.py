"""SQLite-backed call store and settings store."""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional

import aiosqlite

from analysis_worker.exceptions import StoreError
from analysis_worker.models import AnalysisStatus, CallRow, CandidatePage, ScoreResult

_CALL_COLUMNS = (
    "id",
    "transcription",
    "duration",
    "duration_formatted",
    "status_voip",
    "ai_status",
    "enterprise",
    "person",
    "agent_id",
    "sdr",
    "call_type",
    "pipeline",
    "cadence",
)

# Columns a caller may filter candidates on (equality only).
_FILTERABLE_COLUMNS = frozenset(
    {"status_voip", "ai_status", "enterprise", "sdr", "agent_id", "call_type", "pipeline", "cadence"}
)


def _where_clause(filters: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    if not filters:
        return "", []
    unknown = sorted(set(filters) - _FILTERABLE_COLUMNS)
    if unknown:
        raise StoreError(f"Unsupported candidate filter(s): {', '.join(unknown)}")
    clauses = []
    params: list[Any] = []
    for column in sorted(filters):
        value = filters[column]
        if value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(value)
    return " WHERE " + " AND ".join(clauses), params


class SqliteCallStore:
    """Implements both CallStore and SettingsStore over one aiosqlite connection."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def list_candidates(
        self,
        filters: Mapping[str, Any] | None,
        limit: int,
        offset: int,
    ) -> CandidatePage:
        where, params = _where_clause(filters)
        columns = ", ".join(_CALL_COLUMNS)
        try:
            cursor = await self.db.execute(f"SELECT COUNT(*) FROM calls{where}", params)
            count_row = await cursor.fetchone()
            cursor = await self.db.execute(
                f"SELECT {columns} FROM calls{where} ORDER BY created_at, id LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to list candidates: {exc}") from exc
        return CandidatePage(
            rows=[dict(zip(_CALL_COLUMNS, tuple(row))) for row in rows],
            total_count=int(count_row[0]) if count_row else 0,
        )

    async def list_analyzed_ids(self) -> list[dict[str, Any]]:
        # Calls marked completed count as analyzed even when the scoring
        # service stored its result elsewhere.
        try:
            cursor = await self.db.execute(
                """
                SELECT call_id, MAX(final_grade) FROM call_analysis GROUP BY call_id
                UNION ALL
                SELECT id, NULL FROM calls
                WHERE ai_status = ? AND id NOT IN (SELECT call_id FROM call_analysis)
                """,
                (AnalysisStatus.COMPLETED.value,),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to list analyzed calls: {exc}") from exc
        return [{"call_id": str(row[0]), "final_grade": row[1]} for row in rows]

    async def update_status(self, call_id: str, status: AnalysisStatus) -> None:
        try:
            await self.db.execute(
                "UPDATE calls SET ai_status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (AnalysisStatus(status).value, call_id),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to update status for {call_id}: {exc}") from exc

    async def insert_calls(self, rows: Iterable[CallRow]) -> int:
        """Upsert call rows; returns how many were written."""
        placeholders = ", ".join("?" for _ in _CALL_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _CALL_COLUMNS if c != "id")
        values = [
            tuple(row.model_dump()[column] for column in _CALL_COLUMNS) for row in rows
        ]
        try:
            await self.db.executemany(
                f"""
                INSERT INTO calls ({", ".join(_CALL_COLUMNS)}) VALUES ({placeholders})
                ON CONFLICT(id) DO UPDATE SET {updates}, updated_at = CURRENT_TIMESTAMP
                """,
                values,
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to insert calls: {exc}") from exc
        return len(values)

    async def save_analysis(self, call_id: str, result: ScoreResult) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO call_analysis (call_id, final_grade, scorecard_used, payload)
                VALUES (?, ?, ?, ?)
                """,
                (
                    call_id,
                    result.final_grade,
                    result.scorecard_used,
                    json.dumps(result.model_dump(), default=str),
                ),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to save analysis for {call_id}: {exc}") from exc

    async def get_setting(self, key: str) -> Optional[str]:
        try:
            cursor = await self.db.execute("SELECT value FROM app_settings WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to read setting {key}: {exc}") from exc
        return None if row is None else row[0]

    async def put_setting(self, key: str, value: str) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO app_settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to write setting {key}: {exc}") from exc
