# storage/repository.py
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

from babelcore.storage.db import get_connection, init_schema
from babelcore.storage.models import (
    ChunkOutcome, ProjectPhase, ProjectStatus,
    StoredChunk, StoredFile, StoredProject,
)

logger = logging.getLogger(__name__)

# Campos del proyecto que update() acepta, con su serialización a columna
_PATCHABLE = {
    "name":              lambda v: v,
    "source_lang":       lambda v: v,
    "target_langs":      lambda v: json.dumps(list(v)),
    "file_type":         lambda v: v,
    "extraction_method": lambda v: v,
    "phase":             lambda v: v.value,
    "last_error":        lambda v: v,
}


class Repository:
    """
    Única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.

    Cada operación es una transacción de un solo proyecto. La conexión se
    comparte entre hilos: el lock serializa el acceso.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        self._lock = threading.RLock()
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create(self, project: StoredProject) -> str:
        """
        Inserta proyecto + archivos (+ chunks si ya los trae) y devuelve su id.
        Si el id ya existe lanza IntegrityError: el caller decide qué hacer.
        """
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO projects
                    (id, name, source_lang, target_langs, file_type, extraction_method,
                     phase, content, last_error, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (project.id, project.name, project.source_lang,
                 json.dumps(project.target_langs), project.file_type,
                 project.extraction_method, project.phase.value, project.content,
                 project.last_error, project.created_at, project.updated_at),
            )
            self._conn.executemany(
                """
                INSERT INTO project_files
                    (project_id, position, name, size, content, file_type, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (project.id, pos, f.name, f.size, f.content, f.file_type, f.uploaded_at)
                    for pos, f in enumerate(project.files)
                ],
            )
            self._insert_chunks(project.chunks)
        return project.id

    def get(self, project_id: str, include_files: bool = True) -> StoredProject | None:
        """
        Proyecto + chunks leídos en una sola transacción de lectura:
        nunca mezcla el estado de dos escrituras distintas.
        """
        with self._read_transaction():
            row = self._conn.execute(
                "SELECT * FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
            if not row:
                return None
            return self._load_project(row, include_files)

    def get_phase(self, project_id: str) -> ProjectPhase | None:
        """Solo la fase persistida, sin cargar chunks (el dispatcher la consulta a menudo)."""
        with self._lock:
            row = self._conn.execute(
                "SELECT phase FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        return ProjectPhase(row["phase"]) if row else None

    def list(
        self,
        status: ProjectStatus | None = None,
        phase:  ProjectPhase | None = None,
    ) -> list[StoredProject]:
        """Lista proyectos por fecha de creación. El filtro de status se evalúa derivado."""
        with self._read_transaction():
            if phase is None:
                rows = self._conn.execute(
                    "SELECT * FROM projects ORDER BY created_at ASC, id ASC"
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM projects WHERE phase = ? ORDER BY created_at ASC, id ASC",
                    (phase.value,),
                ).fetchall()
            projects = [self._load_project(r, include_files=False) for r in rows]

        if status is not None:
            projects = [p for p in projects if p.status is status]
        return projects

    def update(self, project_id: str, **patch) -> bool:
        """
        Actualiza campos del proyecto (y updated_at) en una transacción.
        Devuelve False si el proyecto no existe.
        """
        unknown = set(patch) - set(_PATCHABLE)
        if unknown:
            raise ValueError(f"Campos no actualizables: {sorted(unknown)}")

        columns = [f"{name} = ?" for name in patch] + ["updated_at = ?"]
        values = [_PATCHABLE[name](value) for name, value in patch.items()] + [_now()]

        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"UPDATE projects SET {', '.join(columns)} WHERE id = ?",
                (*values, project_id),
            )
        return cursor.rowcount == 1

    def delete(self, project_id: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def save_chunks(self, project_id: str, specs: list, target_langs: Iterable[str]) -> None:
        """
        Bulk insert de un chunk por (spec, idioma destino). Usa INSERT OR IGNORE
        para ser idempotente: relanzar el chunking no explota por la PK.
        """
        chunks = [
            StoredChunk(
                project_id      = project_id,
                sequence        = spec.index,
                target_lang     = lang,
                source_text     = spec.text,
                outcome         = ChunkOutcome.PENDING,
                separator       = spec.separator,
                token_estimated = spec.token_estimated,
            )
            for lang in target_langs
            for spec in specs
        ]
        with self._lock, self._conn:
            self._insert_chunks(chunks)
            self._touch(project_id)

    def get_chunks(
        self,
        project_id:  str,
        outcome:     ChunkOutcome | None = None,
        target_lang: str | None = None,
    ) -> list[StoredChunk]:
        """Chunks en orden de despacho: secuencia, luego idioma."""
        query = "SELECT * FROM chunks WHERE project_id = ?"
        params: list = [project_id]
        if outcome is not None:
            query += " AND outcome = ?"
            params.append(outcome.value)
        if target_lang is not None:
            query += " AND target_lang = ?"
            params.append(target_lang)
        query += " ORDER BY sequence ASC, target_lang ASC"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_chunk(r) for r in rows]

    def claim_chunk(self, project_id: str, sequence: int, target_lang: str) -> bool:
        """
        pending → in_flight de forma atómica. Devuelve False si otro ya lo
        reclamó o el chunk no está pendiente: nunca hay dos despachos del mismo par.
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE chunks SET outcome = ?, updated_at = ?
                WHERE project_id = ? AND sequence = ? AND target_lang = ? AND outcome = ?
                """,
                (ChunkOutcome.IN_FLIGHT.value, _now(),
                 project_id, sequence, target_lang, ChunkOutcome.PENDING.value),
            )
        return cursor.rowcount == 1

    def record_success(
        self,
        project_id:  str,
        sequence:    int,
        target_lang: str,
        translated:  str,
        model_used:  str | None,
        attempts:    int,
    ) -> bool:
        """
        Traducción + outcome + intentos en una sola transacción.
        Solo aplica sobre un chunk in_flight: registrar dos veces no cuenta doble.
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE chunks
                SET translated_text = ?, model_used = ?, outcome = ?,
                    attempts = attempts + ?, updated_at = ?
                WHERE project_id = ? AND sequence = ? AND target_lang = ? AND outcome = ?
                """,
                (translated, model_used, ChunkOutcome.SUCCESS.value, attempts, _now(),
                 project_id, sequence, target_lang, ChunkOutcome.IN_FLIGHT.value),
            )
            self._touch(project_id)
        return cursor.rowcount == 1

    def record_failure(
        self,
        project_id:  str,
        sequence:    int,
        target_lang: str,
        error:       str,
        attempts:    int,
    ) -> bool:
        """Marca el chunk como failed conservando el error para diagnóstico."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE chunks
                SET outcome = ?, last_error = ?, attempts = attempts + ?, updated_at = ?
                WHERE project_id = ? AND sequence = ? AND target_lang = ? AND outcome = ?
                """,
                (ChunkOutcome.FAILED.value, error, attempts, _now(),
                 project_id, sequence, target_lang, ChunkOutcome.IN_FLIGHT.value),
            )
            self._touch(project_id)
        return cursor.rowcount == 1

    def record_late_result(
        self,
        project_id:  str,
        sequence:    int,
        target_lang: str,
        attempts:    int,
        translated:  str | None = None,
        model_used:  str | None = None,
        error:       str | None = None,
    ) -> bool:
        """
        Resultado de un chunk que terminó después de cancelar el proyecto.
        Se guarda lo que trajo, pero el chunk vuelve a pending: no cuenta
        como completado más allá del punto de cancelación.
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE chunks
                SET outcome = ?,
                    translated_text = COALESCE(?, translated_text),
                    model_used = COALESCE(?, model_used),
                    last_error = COALESCE(?, last_error),
                    attempts = attempts + ?, updated_at = ?
                WHERE project_id = ? AND sequence = ? AND target_lang = ? AND outcome = ?
                """,
                (ChunkOutcome.PENDING.value, translated, model_used, error, attempts, _now(),
                 project_id, sequence, target_lang, ChunkOutcome.IN_FLIGHT.value),
            )
            self._touch(project_id)
        return cursor.rowcount == 1

    def reset_failed_chunks(self, project_id: str) -> int:
        """
        failed → pending con attempts a cero. last_error se conserva
        hasta que el nuevo intento lo reemplace.
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE chunks SET outcome = ?, attempts = 0, updated_at = ?
                WHERE project_id = ? AND outcome = ?
                """,
                (ChunkOutcome.PENDING.value, _now(), project_id, ChunkOutcome.FAILED.value),
            )
            self._touch(project_id)
        return cursor.rowcount

    def release_stale_chunks(self, project_id: str, keep: Iterable[tuple[int, str]] = ()) -> int:
        """
        Devuelve a pending los chunks in_flight que ningún worker vivo tiene
        (quedaron así por un proceso interrumpido). keep: pares (sequence, lang) vivos.
        """
        alive = set(keep)
        with self._lock, self._conn:
            rows = self._conn.execute(
                "SELECT sequence, target_lang FROM chunks WHERE project_id = ? AND outcome = ?",
                (project_id, ChunkOutcome.IN_FLIGHT.value),
            ).fetchall()
            stale = [
                (r["sequence"], r["target_lang"]) for r in rows
                if (r["sequence"], r["target_lang"]) not in alive
            ]
            self._conn.executemany(
                """
                UPDATE chunks SET outcome = ?, updated_at = ?
                WHERE project_id = ? AND sequence = ? AND target_lang = ? AND outcome = ?
                """,
                [
                    (ChunkOutcome.PENDING.value, _now(), project_id, seq, lang,
                     ChunkOutcome.IN_FLIGHT.value)
                    for seq, lang in stale
                ],
            )
        if stale:
            logger.info("Proyecto %s: %d chunks in_flight huérfanos vuelven a pending", project_id, len(stale))
        return len(stale)

    # ------------------------------------------------------------------
    # Helpers internos
    # ------------------------------------------------------------------

    @contextmanager
    def _read_transaction(self):
        with self._lock:
            if not self._conn.in_transaction:
                self._conn.execute("BEGIN")
            try:
                yield
            finally:
                self._conn.commit()

    def _insert_chunks(self, chunks: list[StoredChunk]) -> None:
        self._conn.executemany(
            """
            INSERT OR IGNORE INTO chunks
                (project_id, sequence, target_lang, source_text, separator, token_estimated,
                 translated_text, outcome, attempts, last_error, model_used, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (c.project_id, c.sequence, c.target_lang, c.source_text, c.separator,
                 c.token_estimated, c.translated_text, c.outcome.value, c.attempts,
                 c.last_error, c.model_used, c.updated_at or _now())
                for c in chunks
            ],
        )

    def _touch(self, project_id: str) -> None:
        self._conn.execute(
            "UPDATE projects SET updated_at = ? WHERE id = ?", (_now(), project_id)
        )

    def _load_project(self, row: sqlite3.Row, include_files: bool) -> StoredProject:
        project = self._row_to_project(row)
        chunk_rows = self._conn.execute(
            "SELECT * FROM chunks WHERE project_id = ? ORDER BY sequence ASC, target_lang ASC",
            (project.id,),
        ).fetchall()
        project.chunks = [self._row_to_chunk(r) for r in chunk_rows]

        if include_files:
            file_rows = self._conn.execute(
                "SELECT * FROM project_files WHERE project_id = ? ORDER BY position ASC",
                (project.id,),
            ).fetchall()
            project.files = [self._row_to_file(r) for r in file_rows]
        return project

    # ------------------------------------------------------------------
    # Mapeo de rows a dataclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> StoredProject:
        return StoredProject(
            id=row["id"],
            name=row["name"],
            source_lang=row["source_lang"],
            target_langs=json.loads(row["target_langs"] or "[]"),
            file_type=row["file_type"],
            phase=ProjectPhase(row["phase"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            content=row["content"],
            extraction_method=row["extraction_method"],
            last_error=row["last_error"],
        )

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> StoredChunk:
        return StoredChunk(
            project_id=row["project_id"],
            sequence=row["sequence"],
            target_lang=row["target_lang"],
            source_text=row["source_text"],
            outcome=ChunkOutcome(row["outcome"]),
            separator=row["separator"],
            token_estimated=row["token_estimated"],
            translated_text=row["translated_text"],
            attempts=row["attempts"],
            last_error=row["last_error"],
            model_used=row["model_used"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_file(row: sqlite3.Row) -> StoredFile:
        return StoredFile(
            name=row["name"],
            size=row["size"],
            content=row["content"],
            file_type=row["file_type"],
            uploaded_at=row["uploaded_at"],
        )

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
