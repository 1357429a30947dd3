import os
import time
from pathlib import Path

from babelcore.processor.models import RawDocument, SourceFile

# Formatos de texto que el core acepta ya decodificados
_SUPPORTED_EXTENSIONS = {".txt", ".md", ".srt", ".vtt"}

_FILE_SEPARATOR = "\n\n"


class UnsupportedFormatError(Exception):
    """Se lanza cuando la extensión del archivo no es un formato de texto soportado."""
    pass


def read_source_file(file_path: str) -> SourceFile:
    """
    Lee un archivo de texto intentando UTF-8 primero, latin-1 como fallback.

    Raises:
        FileNotFoundError: si el archivo no existe.
        UnsupportedFormatError: si la extensión no está soportada.
    """
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"Archivo no encontrado: {file_path}")

    path = Path(file_path)
    ext = path.suffix.lower()
    if ext not in _SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Formato '{ext}' no soportado. "
            f"Formatos disponibles: {', '.join(sorted(_SUPPORTED_EXTENSIONS))}"
        )

    raw = path.read_bytes()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")

    return SourceFile(
        name      = path.name,
        content   = content,
        size      = len(raw),
        file_type = ext.lstrip("."),
    )


def build_document(files: list[SourceFile], name: str | None = None) -> RawDocument:
    """
    Combina uno o varios archivos en el documento de un proyecto.

    - Contenido: los archivos unidos por una línea en blanco, en orden.
    - Nombre: el del archivo sin extensión si es uno solo,
      "Multi-File Project_<timestamp>" si son varios.
    - Tipo: el del primer archivo.
    """
    if not files:
        raise ValueError("Un proyecto necesita al menos un archivo")

    if name is None:
        if len(files) == 1:
            name = files[0].name.split(".")[0] or files[0].name
        else:
            name = f"Multi-File Project_{int(time.time() * 1000)}"

    return RawDocument(
        name      = name,
        content   = _FILE_SEPARATOR.join(f.content for f in files),
        file_type = files[0].file_type or "txt",
        files     = list(files),
    )
