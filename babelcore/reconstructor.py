# babelcore/reconstructor.py
import logging
import re
from pathlib import Path

from babelcore.storage.repository import Repository
from babelcore.storage.models import ChunkOutcome, StoredChunk

logger = logging.getLogger(__name__)

_REVIEW_MARKER = "[⚠ PENDIENTE DE REVISIÓN]\n"
_OUTPUT_DIR    = Path.home() / ".babelcore" / "output"


class Reconstructor:
    """
    Responsabilidad única: tomar los chunks almacenados de un proyecto
    para un idioma y reconstruir el documento traducido.

    No sabe nada de modelos ni de scheduling.
    """

    def __init__(self, repo: Repository, output_dir: Path | None = None):
        self._repo       = repo
        self._output_dir = Path(output_dir) if output_dir else _OUTPUT_DIR

    def render(self, project_id: str, target_lang: str) -> str:
        """
        Une los chunks en orden de secuencia respetando el whitespace original.
        Un chunk sin traducción aparece en el idioma fuente; si falló, con la
        marca de revisión delante.
        """
        chunks = self._repo.get_chunks(project_id, target_lang=target_lang)
        return "".join(self._resolve_chunk_text(c) + c.separator for c in chunks)

    def build(self, project_id: str, target_lang: str, output_path: Path | None = None) -> Path:
        project = self._repo.get(project_id, include_files=False)
        if project is None:
            raise ValueError(f"Proyecto {project_id} no encontrado")
        if target_lang not in project.target_langs:
            raise ValueError(
                f"'{target_lang}' no es un idioma destino del proyecto "
                f"({', '.join(project.target_langs)})"
            )

        if output_path is None:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self._output_dir / f"{_slug(project.name)}_{target_lang}.txt"
        else:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)

        output_path.write_text(self.render(project_id, target_lang), encoding="utf-8")
        logger.info("Output escrito en: %s", output_path)
        return output_path

    @staticmethod
    def _resolve_chunk_text(chunk: StoredChunk) -> str:
        if chunk.outcome is ChunkOutcome.SUCCESS and chunk.translated_text is not None:
            return chunk.translated_text

        if chunk.outcome is ChunkOutcome.FAILED:
            return f"{_REVIEW_MARKER}{chunk.source_text}"

        # pending / in_flight: todavía no hay traducción
        return chunk.source_text


def _slug(name: str) -> str:
    slug = re.sub(r"[^\w\-]+", "_", name.strip()).strip("_")
    return slug or "project"
