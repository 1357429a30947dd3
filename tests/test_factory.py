import pytest
from unittest.mock import patch

from babelcore.factory import build_orchestrator
from babelcore.router.errors import CapabilityError
from babelcore.settings import OrchestratorConfig, load_orchestrator_config


def write_config(tmp_path, body: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return str(path)


class FakeAdapter:
    def __init__(self, config):
        self.config = config
        self.name = config.name

    def translate(self, text, source_lang, target_lang, file_type="txt"):
        raise NotImplementedError


# ------------------------------------------------------------------
# settings
# ------------------------------------------------------------------

class TestOrchestratorConfig:

    def test_sin_archivo_usa_defaults(self, tmp_path):
        config = load_orchestrator_config(str(tmp_path / "no_existe.yaml"))

        assert config == OrchestratorConfig()

    def test_lee_la_seccion_e_ignora_claves_desconocidas(self, tmp_path):
        path = write_config(tmp_path, (
            "orchestrator:\n"
            "  concurrency: 8\n"
            "  max_attempts: 5\n"
            "  unit_size: 300\n"
            "  color: azul\n"
        ))

        config = load_orchestrator_config(path)

        assert config.concurrency == 8
        assert config.max_attempts == 5
        assert config.unit_size == 300
        assert config.timeout_seconds == 30.0

    def test_seccion_vacia(self, tmp_path):
        path = write_config(tmp_path, "orchestrator:\nmodels: []\n")

        assert load_orchestrator_config(path) == OrchestratorConfig()

    @pytest.mark.parametrize("field, value", [
        ("concurrency", 0),
        ("max_attempts", 0),
        ("batch_parallel", 0),
        ("timeout_seconds", -1),
        ("unit_size", 0),
    ])
    def test_valores_invalidos(self, field, value):
        with pytest.raises(ValueError):
            OrchestratorConfig(**{field: value})


# ------------------------------------------------------------------
# build_orchestrator
# ------------------------------------------------------------------

class TestBuildOrchestrator:

    def test_sin_modelos_para_comandos_de_control(self, tmp_path):
        orchestrator = build_orchestrator(
            db_path        = ":memory:",
            config_path    = str(tmp_path / "no_existe.yaml"),
            chunk_size     = "small",
            require_models = False,
        )
        try:
            project = orchestrator.create_project(content="Hola.", target_langs=["en"])
            assert orchestrator._chunker.policy.target_unit_size == 400
            assert orchestrator._pool.concurrency == 4

            orchestrator.start(project.id)
            assert orchestrator.wait(project.id, timeout=5)
            chunk = orchestrator.get_project(project.id).chunks[0]
        finally:
            orchestrator.shutdown()

        # la capacidad vacía falla sin reintentar
        assert chunk.attempts == 1
        assert chunk.last_error.startswith("CapabilityError")

    def test_unit_size_del_config_manda_sobre_el_preset(self, tmp_path):
        path = write_config(tmp_path, "orchestrator:\n  unit_size: 50\n  concurrency: 2\n")

        orchestrator = build_orchestrator(db_path=":memory:", config_path=path,
                                          chunk_size="large", require_models=False)
        try:
            assert orchestrator._chunker.policy.target_unit_size == 50
            assert orchestrator._pool.concurrency == 2
        finally:
            orchestrator.shutdown()

    def test_sin_api_keys_falla_al_exigir_modelos(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        path = write_config(tmp_path, (
            "models:\n"
            "  - name: claude\n"
            "    priority: 1\n"
            "    api_key: ${ANTHROPIC_API_KEY}\n"
        ))

        with patch("babelcore.factory._adapter_classes", return_value={"claude": FakeAdapter}):
            with pytest.raises(RuntimeError, match="Ningún modelo"):
                build_orchestrator(db_path=":memory:", config_path=path)

    def test_omite_modelos_desconocidos(self, tmp_path):
        path = write_config(tmp_path, (
            "models:\n"
            "  - name: misterioso\n"
            "    api_key: xxx\n"
            "  - name: claude\n"
            "    api_key: sk-test\n"
        ))

        with patch("babelcore.factory._adapter_classes", return_value={"claude": FakeAdapter}), \
             patch("babelcore.factory.Router") as mock_router:
            orchestrator = build_orchestrator(db_path=":memory:", config_path=path)
            orchestrator.shutdown()

        models = mock_router.call_args.args[0]
        assert [m.name for m in models] == ["claude"]
        assert models[0].config.api_key == "sk-test"

    def test_config_obligatoria_para_traducir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            build_orchestrator(db_path=":memory:", config_path=str(tmp_path / "no_existe.yaml"))


def test_capacidad_sin_configurar_no_es_transitoria():
    from babelcore.factory import _UnconfiguredCapability

    with pytest.raises(CapabilityError) as exc:
        _UnconfiguredCapability().translate("hola", "es", "en")

    assert not exc.value.transient
