# storage/db.py
import os
import sqlite3
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".babelcore" / "babelcore.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id                TEXT    PRIMARY KEY,
    name              TEXT    NOT NULL,
    source_lang       TEXT    NOT NULL DEFAULT 'auto',
    target_langs      TEXT    NOT NULL DEFAULT '[]',
    file_type         TEXT    NOT NULL DEFAULT 'txt',
    extraction_method TEXT    NOT NULL DEFAULT 'ai',
    phase             TEXT    NOT NULL DEFAULT 'draft',
    content           TEXT    NOT NULL DEFAULT '',
    last_error        TEXT,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS project_files (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  TEXT    NOT NULL,
    position    INTEGER NOT NULL,
    name        TEXT    NOT NULL,
    size        INTEGER NOT NULL DEFAULT 0,
    content     TEXT    NOT NULL DEFAULT '',
    file_type   TEXT    NOT NULL DEFAULT 'txt',
    uploaded_at TEXT    NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE,
    UNIQUE (project_id, position)
);

CREATE TABLE IF NOT EXISTS chunks (
    project_id      TEXT    NOT NULL,
    sequence        INTEGER NOT NULL,
    target_lang     TEXT    NOT NULL,
    source_text     TEXT    NOT NULL,
    separator       TEXT    NOT NULL DEFAULT '',
    token_estimated INTEGER,
    translated_text TEXT,
    outcome         TEXT    NOT NULL DEFAULT 'pending',
    attempts        INTEGER NOT NULL DEFAULT 0,
    last_error      TEXT,
    model_used      TEXT,
    updated_at      TEXT,
    PRIMARY KEY (project_id, target_lang, sequence),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    check_same_thread=False: la usan los workers del pool; el Repository
    serializa el acceso con su propio lock.
    """
    path = db_path or os.environ.get("BABELCORE_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")   # SQLite las tiene desactivadas por defecto
    conn.execute("PRAGMA journal_mode = WAL")  # lecturas concurrentes desde otra CLI
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
