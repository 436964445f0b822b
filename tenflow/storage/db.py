# storage/db.py
import sqlite3
import os
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".tenflow" / "tenflow.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id          TEXT    PRIMARY KEY,
    title       TEXT    NOT NULL,
    created_at  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS volumes (
    id          TEXT    PRIMARY KEY,
    book_id     TEXT    NOT NULL,
    title       TEXT    NOT NULL,
    position    INTEGER NOT NULL,
    FOREIGN KEY (book_id) REFERENCES books(id)
);

CREATE TABLE IF NOT EXISTS chapters (
    id                   TEXT    PRIMARY KEY,
    volume_id            TEXT    NOT NULL,
    title_original       TEXT    NOT NULL,
    title_translation_id TEXT,
    title_translation    TEXT,
    title_ai_model_id    TEXT,
    position             INTEGER NOT NULL,
    FOREIGN KEY (volume_id) REFERENCES volumes(id)
);

CREATE TABLE IF NOT EXISTS paragraphs (
    id                      TEXT    PRIMARY KEY,
    chapter_id              TEXT    NOT NULL,
    position                INTEGER NOT NULL,
    text                    TEXT    NOT NULL,
    selected_translation_id TEXT,
    FOREIGN KEY (chapter_id) REFERENCES chapters(id)
);

CREATE TABLE IF NOT EXISTS translations (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    id           TEXT    NOT NULL UNIQUE,
    paragraph_id TEXT    NOT NULL,
    translation  TEXT    NOT NULL,
    ai_model_id  TEXT,
    created_at   TEXT    NOT NULL,
    FOREIGN KEY (paragraph_id) REFERENCES paragraphs(id)
);

CREATE TABLE IF NOT EXISTS tasks (
    id             TEXT    PRIMARY KEY,
    type           TEXT    NOT NULL,
    workflow_phase TEXT,
    book_id        TEXT,
    target_id      TEXT,
    target_type    TEXT,
    mirror_status  TEXT,
    created_at     TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS task_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id     TEXT    NOT NULL,
    kind        TEXT    NOT NULL,
    content     TEXT    NOT NULL,
    created_at  TEXT    NOT NULL,
    FOREIGN KEY (task_id) REFERENCES tasks(id)
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    Activa foreign keys: SQLite las tiene desactivadas por defecto.
    """
    path = db_path or os.environ.get("TENFLOW_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
