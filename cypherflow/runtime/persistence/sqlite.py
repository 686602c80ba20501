"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from ...contracts import utcnow
from .models import RuntimeStatus, StepRecord, WorkflowInstance
from .repository import WorkflowRepository

_TERMINAL_STATUSES = tuple(s.value for s in RuntimeStatus if s.is_terminal)
_NOT_TERMINAL = f"status NOT IN ({', '.join('?' for _ in _TERMINAL_STATUSES)})"

_INSTANCE_COLUMNS = (
    "instance_id, workflow_name, status, input, checkpoint, output, "
    "created_at, updated_at"
)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                instance_id TEXT PRIMARY KEY,
                workflow_name TEXT NOT NULL,
                status TEXT NOT NULL,
                input TEXT NOT NULL,
                checkpoint TEXT NOT NULL,
                output TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                instance_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                started_at TEXT,
                completed_at TEXT,
                status TEXT,
                output TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _start_step(self, instance_id: str, step_name: str) -> None:
        open_step = self._fetchone(
            "SELECT id FROM step_history WHERE instance_id = ? AND step_name = ? AND completed_at IS NULL",
            instance_id,
            step_name,
        )
        if open_step:
            return
        self._execute(
            "INSERT INTO step_history (instance_id, step_name, started_at) VALUES (?, ?, ?)",
            instance_id,
            step_name,
            utcnow().isoformat(),
        )

    @staticmethod
    def _to_instance(row: sqlite3.Row, steps: list[StepRecord]) -> WorkflowInstance:
        return WorkflowInstance(
            instance_id=row["instance_id"],
            workflow_name=row["workflow_name"],
            status=RuntimeStatus(row["status"]),
            input=json.loads(row["input"]),
            checkpoint=json.loads(row["checkpoint"]),
            output=json.loads(row["output"]) if row["output"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            steps=steps,
        )

    # ------------------------------------------------------------------
    # Repository API
    async def create_instance(
        self,
        instance_id: str,
        workflow_name: str,
        input: dict,
        checkpoint: dict,
    ) -> None:
        now = utcnow().isoformat()
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflow_instances ({_INSTANCE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            instance_id,
            workflow_name,
            RuntimeStatus.PENDING.value,
            json.dumps(input),
            json.dumps(checkpoint),
            None,
            now,
            now,
        )

    async def save_checkpoint(self, instance_id: str, checkpoint: dict) -> bool:
        updated = await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_instances SET checkpoint = ?, updated_at = ? "
            f"WHERE instance_id = ? AND {_NOT_TERMINAL}",
            json.dumps(checkpoint),
            utcnow().isoformat(),
            instance_id,
            *_TERMINAL_STATUSES,
        )
        return updated == 1

    async def set_status(
        self,
        instance_id: str,
        status: RuntimeStatus,
        output: dict | None = None,
    ) -> bool:
        # compare-and-set: a terminal status is never overwritten
        if output is None:
            updated = await asyncio.to_thread(
                self._execute,
                "UPDATE workflow_instances SET status = ?, updated_at = ? "
                f"WHERE instance_id = ? AND {_NOT_TERMINAL}",
                status.value,
                utcnow().isoformat(),
                instance_id,
                *_TERMINAL_STATUSES,
            )
        else:
            updated = await asyncio.to_thread(
                self._execute,
                "UPDATE workflow_instances SET status = ?, output = ?, updated_at = ? "
                f"WHERE instance_id = ? AND {_NOT_TERMINAL}",
                status.value,
                json.dumps(output),
                utcnow().isoformat(),
                instance_id,
                *_TERMINAL_STATUSES,
            )
        return updated == 1

    async def mark_step_started(self, instance_id: str, step_name: str) -> None:
        await asyncio.to_thread(self._start_step, instance_id, step_name)

    async def mark_step_completed(
        self,
        instance_id: str,
        step_name: str,
        status: str,
        output: dict | None = None,
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE step_history
            SET completed_at = ?, status = ?, output = ?
            WHERE instance_id = ? AND step_name = ? AND completed_at IS NULL
            """,
            utcnow().isoformat(),
            status,
            json.dumps(output or {}),
            instance_id,
            step_name,
        )

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances WHERE instance_id = ?",
            instance_id,
        )
        if not row:
            return None
        steps_rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, instance_id, step_name, started_at, completed_at, status, output FROM step_history WHERE instance_id = ? ORDER BY id",
            instance_id,
        )
        steps = [
            StepRecord(
                id=r["id"],
                instance_id=r["instance_id"],
                step_name=r["step_name"],
                started_at=_parse_ts(r["started_at"]),
                completed_at=_parse_ts(r["completed_at"]),
                status=r["status"],
                output=json.loads(r["output"]) if r["output"] else None,
            )
            for r in steps_rows
        ]
        return self._to_instance(row, steps)

    async def list_instances(self) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_INSTANCE_COLUMNS} FROM workflow_instances ORDER BY created_at",
        )
        return [self._to_instance(row, []) for row in rows]

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)
