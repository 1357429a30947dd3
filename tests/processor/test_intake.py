import re

import pytest

from babelcore.processor.intake import UnsupportedFormatError, build_document, read_source_file
from babelcore.processor.models import SourceFile


# ------------------------------------------------------------------
# read_source_file
# ------------------------------------------------------------------

class TestReadSourceFile:

    def test_lee_utf8(self, tmp_path):
        f = tmp_path / "capitulo.md"
        f.write_text("# Título\n\nTexto con ñ.", encoding="utf-8")

        source = read_source_file(str(f))

        assert source.name == "capitulo.md"
        assert source.content == "# Título\n\nTexto con ñ."
        assert source.file_type == "md"
        assert source.size == len("# Título\n\nTexto con ñ.".encode("utf-8"))

    def test_fallback_a_latin1(self, tmp_path):
        f = tmp_path / "viejo.txt"
        f.write_bytes("canción".encode("latin-1"))

        source = read_source_file(str(f))

        assert source.content == "canción"

    def test_archivo_inexistente_lanza_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_source_file(str(tmp_path / "no_existe.txt"))

    def test_formato_no_soportado(self, tmp_path):
        f = tmp_path / "libro.pdf"
        f.write_bytes(b"%PDF-1.4")

        with pytest.raises(UnsupportedFormatError, match="pdf"):
            read_source_file(str(f))


# ------------------------------------------------------------------
# build_document
# ------------------------------------------------------------------

class TestBuildDocument:

    def test_un_archivo_usa_su_nombre_sin_extension(self):
        doc = build_document([SourceFile(name="novela.txt", content="Hola.")])

        assert doc.name == "novela"
        assert doc.content == "Hola."
        assert doc.file_type == "txt"

    def test_varios_archivos_se_unen_con_linea_en_blanco(self):
        files = [
            SourceFile(name="a.srt", content="uno"),
            SourceFile(name="b.txt", content="dos"),
        ]

        doc = build_document(files)

        assert doc.content == "uno\n\ndos"
        assert doc.file_type == "srt"
        assert re.fullmatch(r"Multi-File Project_\d+", doc.name)
        assert doc.files == files

    def test_nombre_explicito_tiene_prioridad(self):
        doc = build_document([SourceFile(name="a.txt", content="x")], name="Mi proyecto")

        assert doc.name == "Mi proyecto"

    def test_sin_archivos_lanza_value_error(self):
        with pytest.raises(ValueError):
            build_document([])

    def test_source_file_deduce_tamano_y_tipo(self):
        source = SourceFile(name="SUBS.VTT", content="ñ")

        assert source.size == 2
        assert source.file_type == "vtt"

    def test_source_file_sin_extension_es_txt(self):
        assert SourceFile(name="LEEME", content="x").file_type == "txt"
