# tests/test_cli.py
import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from babelcore.cli import main
from babelcore.executor import RetryPolicy, TranslationExecutor
from babelcore.orchestrator import Orchestrator
from babelcore.pool import WorkerPool
from babelcore.processor.chunker import Chunker
from babelcore.reconstructor import Reconstructor
from babelcore.router.models import ModelResponse
from babelcore.storage.models import ProjectStatus
from babelcore.storage.repository import Repository


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

class EchoCapability:
    def translate(self, text, source_lang, target_lang, file_type="txt"):
        return ModelResponse(f"<{target_lang}>{text}", 0.9, "", "echo")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def repo():
    r = Repository(db_path=":memory:")
    yield r
    r.close()


@pytest.fixture
def out_dir(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def orchestrator(repo, out_dir):
    o = Orchestrator(
        repo          = repo,
        chunker       = Chunker(),
        executor      = TranslationExecutor(EchoCapability(), RetryPolicy(timeout_seconds=0),
                                            sleep=lambda _: None),
        pool          = WorkerPool(concurrency=2),
        reconstructor = Reconstructor(repo, output_dir=out_dir),
    )
    yield o
    o.shutdown()


@pytest.fixture
def factory(orchestrator):
    """build_orchestrator parcheado: todas las invocaciones comparten el mismo orchestrator."""
    with patch("babelcore.cli.build_orchestrator", return_value=orchestrator) as mock_factory:
        yield mock_factory


@pytest.fixture
def book_file(tmp_path):
    f = tmp_path / "libro.txt"
    f.write_text("The first sentence.\n\nThe second paragraph is here.", encoding="utf-8")
    return f


def run_create(runner, book, *extra, to=("es",)):
    args = ["create", "--file", str(book)]
    for lang in to:
        args.extend(["--to", lang])
    return runner.invoke(main, args + list(extra))


def created(orchestrator):
    projects = orchestrator.list_projects()
    assert len(projects) == 1
    return projects[0]


# ------------------------------------------------------------------
# Validaciones de entrada
# ------------------------------------------------------------------

class TestValidaciones:

    def test_archivo_inexistente(self, runner, tmp_path, factory):
        result = run_create(runner, tmp_path / "no_existe.txt")

        assert result.exit_code == 1
        assert "no encontrado" in result.output.lower()
        factory.assert_not_called()

    def test_formato_no_soportado(self, runner, tmp_path, factory):
        f = tmp_path / "libro.docx"
        f.write_text("contenido")

        result = run_create(runner, f)

        assert result.exit_code == 1
        assert "no soportado" in result.output.lower()

    def test_lang_vacio_rechazado(self, runner, book_file, factory):
        result = run_create(runner, book_file, to=("",))

        assert result.exit_code == 1
        assert "vacío" in result.output.lower()

    def test_lang_con_caracteres_invalidos(self, runner, book_file, factory):
        result = run_create(runner, book_file, "--from", "e$n")

        assert result.exit_code == 1
        assert "inválidos" in result.output

    def test_origen_igual_a_destino(self, runner, book_file, factory):
        result = run_create(runner, book_file, "--from", "ES", to=("es",))

        assert result.exit_code == 1
        assert "destino" in result.output

    def test_factory_sin_modelos_aborta(self, runner, book_file):
        with patch("babelcore.cli.build_orchestrator",
                   side_effect=RuntimeError("Ningún modelo configurado")):
            result = runner.invoke(main, ["run", "--file", str(book_file), "--to", "es"])

        assert result.exit_code == 1
        assert "Ningún modelo configurado" in result.output


# ------------------------------------------------------------------
# create / run
# ------------------------------------------------------------------

class TestCreateRun:

    def test_create_imprime_el_id_y_deja_el_proyecto_ready(self, runner, book_file, factory, orchestrator):
        result = run_create(runner, book_file, "--from", "EN", to=("ES", "fr"))

        assert result.exit_code == 0, result.output
        project = created(orchestrator)
        assert project.id in result.output
        assert project.status is ProjectStatus.READY
        assert project.name == "libro"
        assert project.source_lang == "en"
        assert project.target_langs == ["es", "fr"]
        assert factory.call_args.kwargs["require_models"] is False

    def test_create_con_contenido_corrupto_sale_con_error(self, runner, tmp_path, factory, orchestrator):
        f = tmp_path / "binario.txt"
        f.write_bytes(b"texto\x00con NUL")

        result = run_create(runner, f)

        assert result.exit_code == 1
        assert "No se pudo dividir" in result.output
        assert created(orchestrator).status is ProjectStatus.ERROR

    def test_run_traduce_y_exporta(self, runner, book_file, factory, orchestrator, out_dir):
        result = runner.invoke(main, ["run", "--file", str(book_file), "--to", "es", "--from", "en"])

        assert result.exit_code == 0, result.output
        assert "completado" in result.output.lower()
        output = out_dir / "libro_es.txt"
        assert output.exists()
        assert output.read_text(encoding="utf-8") == (
            "<es>The first sentence.\n\nThe second paragraph is here."
        )
        assert created(orchestrator).status is ProjectStatus.COMPLETED


# ------------------------------------------------------------------
# Control de proyectos existentes
# ------------------------------------------------------------------

class TestControl:

    @pytest.fixture
    def project_id(self, orchestrator):
        return orchestrator.create_project(content="Hola. Adiós.", target_langs=["en"], name="saludo").id

    def test_start_completa_el_proyecto(self, runner, factory, orchestrator, project_id):
        result = runner.invoke(main, ["start", project_id])

        assert result.exit_code == 0, result.output
        assert orchestrator.snapshot(project_id).status is ProjectStatus.COMPLETED
        assert "Traducidos" in result.output

    def test_start_inexistente(self, runner, factory):
        result = runner.invoke(main, ["start", "nope"])

        assert result.exit_code == 1
        assert "no encontrado" in result.output

    def test_pause_en_ready_es_transicion_invalida(self, runner, factory, project_id):
        result = runner.invoke(main, ["pause", project_id])

        assert result.exit_code == 1
        assert "No se puede aplicar 'pause'" in result.output

    def test_cancel(self, runner, factory, orchestrator, project_id):
        result = runner.invoke(main, ["cancel", project_id])

        assert result.exit_code == 0
        assert "cancelled" in result.output
        assert orchestrator.snapshot(project_id).status is ProjectStatus.CANCELLED

    def test_retry_fuera_de_partial(self, runner, factory, project_id):
        result = runner.invoke(main, ["retry", project_id])

        assert result.exit_code == 1
        assert "retry_failed" in result.output

    def test_delete_pide_confirmacion(self, runner, factory, orchestrator, project_id):
        result = runner.invoke(main, ["delete", project_id], input="n\n")

        assert "Sin cambios" in result.output
        assert orchestrator.list_projects()

    def test_delete_con_yes(self, runner, factory, orchestrator, project_id):
        result = runner.invoke(main, ["delete", project_id, "--yes"])

        assert result.exit_code == 0
        assert orchestrator.list_projects() == []

    def test_status_json(self, runner, factory, project_id):
        result = runner.invoke(main, ["status", project_id, "--json"])

        data = json.loads(result.output)
        assert data["project_id"] == project_id
        assert data["status"] == "ready"
        assert data["total_chunks"] == 1
        assert data["progress"] == 0

    def test_status_legible(self, runner, factory, project_id):
        result = runner.invoke(main, ["status", project_id])

        assert "saludo" in result.output
        assert "0/1" in result.output

    def test_list_filtra_por_estado(self, runner, factory, orchestrator, project_id):
        other = orchestrator.create_project(content="Otro.", target_langs=["en"], name="otro").id
        orchestrator.cancel(other)

        result = runner.invoke(main, ["list", "--status", "ready"])

        assert project_id in result.output
        assert other not in result.output

    def test_list_vacio(self, runner, factory):
        result = runner.invoke(main, ["list"])

        assert "No hay proyectos" in result.output

    def test_watch_termina_en_ready(self, runner, factory, project_id):
        result = runner.invoke(main, ["watch", project_id, "--interval", "0"])

        assert result.exit_code == 0
        assert "0/1" in result.output

    def test_export_idioma_invalido(self, runner, factory, project_id):
        result = runner.invoke(main, ["export", project_id, "--lang", "de"])

        assert result.exit_code == 1
        assert "'de'" in result.output

    def test_export_a_ruta(self, runner, factory, project_id, tmp_path):
        target = tmp_path / "saludo.txt"

        result = runner.invoke(main, ["export", project_id, "--lang", "en", "--out", str(target)])

        assert result.exit_code == 0
        assert target.read_text(encoding="utf-8") == "Hola. Adiós."


# ------------------------------------------------------------------
# batch
# ------------------------------------------------------------------

class TestBatch:

    def test_un_fallo_sale_con_codigo_1_sin_frenar_al_resto(self, runner, factory, orchestrator):
        ok = [orchestrator.create_project(content=f"Texto {i}.", target_langs=["en"]).id for i in range(2)]
        done = orchestrator.create_project(content="Fin.", target_langs=["en"]).id
        orchestrator.cancel(done)

        result = runner.invoke(main, ["batch", "start", *ok, done])

        assert result.exit_code == 1
        assert "InvalidTransition" in result.output
        assert "1 de 3" in result.output
        for pid in ok:
            assert orchestrator.snapshot(pid).status is ProjectStatus.COMPLETED

    def test_accion_desconocida(self, runner, factory):
        result = runner.invoke(main, ["batch", "archive", "p1"])

        assert result.exit_code == 2
