# storage/task_registry.py
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from tenflow.storage.db import get_connection, init_schema
from tenflow.storage.models import new_id
from tenflow.workflow.models import Phase, Task

logger = logging.getLogger(__name__)

# Campos que el protocolo puede modificar vía update()
_UPDATABLE_FIELDS = {"workflow_phase", "mirror_status"}

_LOG_THINKING = "thinking"
_LOG_OUTPUT   = "output"


class TaskRegistry:
    """
    Registro de tareas de IA activas.
    Las tareas se crean sin fase (ausente); solo update_task_status la cambia.
    El registro nunca borra tareas: eso es responsabilidad del planificador.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        init_schema(self._conn)

    def create_task(
        self,
        task_type:   str,
        book_id:     str | None = None,
        target_id:   str | None = None,
        target_type: str | None = None,
        task_id:     str | None = None,
    ) -> str:
        task_id    = task_id or new_id()
        created_at = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO tasks (id, type, workflow_phase, book_id, target_id, target_type, created_at)
                VALUES (?, ?, NULL, ?, ?, ?, ?)
                """,
                (task_id, task_type, book_id, target_id, target_type, created_at),
            )
        return task_id

    def find(self, task_id: str) -> Task | None:
        row = self._conn.execute(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        return self._row_to_task(row) if row else None

    def active_tasks(self) -> list[Task]:
        rows = self._conn.execute(
            "SELECT * FROM tasks ORDER BY created_at ASC, rowid ASC"
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    async def update(self, task_id: str, fields: dict) -> None:
        """
        Actualiza campos de la tarea en una sola transacción.
        Lanza LookupError si la tarea no existe y ValueError con campos desconocidos.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Campos no actualizables: {', '.join(sorted(unknown))}")

        columns = sorted(fields)
        values  = [_to_db(fields[c]) for c in columns]
        assignments = ", ".join(f"{c} = ?" for c in columns)

        with self._conn:
            cursor = self._conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ?",
                (*values, task_id),
            )
        if cursor.rowcount == 0:
            raise LookupError(f"La tarea no existe: {task_id}")

    # ------------------------------------------------------------------
    # Log de razonamiento y salida (append-only)
    # ------------------------------------------------------------------

    async def append_thinking(self, task_id: str, text: str) -> None:
        self._append_log(task_id, _LOG_THINKING, text)

    async def append_output(self, task_id: str, text: str) -> None:
        self._append_log(task_id, _LOG_OUTPUT, text)

    def get_thinking(self, task_id: str) -> str:
        return self._read_log(task_id, _LOG_THINKING)

    def get_output(self, task_id: str) -> str:
        return self._read_log(task_id, _LOG_OUTPUT)

    def _append_log(self, task_id: str, kind: str, text: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO task_log (task_id, kind, content, created_at) VALUES (?, ?, ?, ?)",
                (task_id, kind, text, datetime.now(timezone.utc).isoformat()),
            )

    def _read_log(self, task_id: str, kind: str) -> str:
        rows = self._conn.execute(
            "SELECT content FROM task_log WHERE task_id = ? AND kind = ? ORDER BY id ASC",
            (task_id, kind),
        ).fetchall()
        return "".join(r["content"] for r in rows)

    # ------------------------------------------------------------------
    # Mapeo de rows a dataclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        phase: Optional[Phase] = Phase(row["workflow_phase"]) if row["workflow_phase"] else None
        return Task(
            id=row["id"],
            type=row["type"],
            workflow_phase=phase,
            book_id=row["book_id"],
            target_id=row["target_id"],
            target_type=row["target_type"],
            mirror_status=row["mirror_status"],
        )

    def close(self) -> None:
        self._conn.close()


def _to_db(value):
    return value.value if isinstance(value, Phase) else value
