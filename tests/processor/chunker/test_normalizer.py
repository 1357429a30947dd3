import pytest

from babelcore.processor.chunker.detector import BoundaryDetector
from babelcore.processor.chunker.models import BoundaryType, ChunkPolicy, TextSegment
from babelcore.processor.chunker.normalizer import ChunkNormalizer
from babelcore.processor.chunker.token_estimator import WhitespaceTokenEstimator

# ---------------------------------------------------------------------------
# Fixtures y helpers
# ---------------------------------------------------------------------------


def _normalizer(policy: ChunkPolicy) -> ChunkNormalizer:
    estimator = WhitespaceTokenEstimator()
    return ChunkNormalizer(policy, estimator, BoundaryDetector(policy, estimator))


def _run(text: str, **policy_kwargs):
    policy = ChunkPolicy(**policy_kwargs)
    estimator = WhitespaceTokenEstimator()
    detector = BoundaryDetector(policy, estimator)
    return ChunkNormalizer(policy, estimator, detector).normalize(detector.detect(text))


def _make_segment(text: str, separator: str = " ") -> TextSegment:
    return TextSegment(
        text=text,
        separator=separator,
        boundary_type=BoundaryType.SENTENCE,
        token_estimated=len(text.split()),
    )


# ---------------------------------------------------------------------------
# Empaquetado
# ---------------------------------------------------------------------------


def test_lista_vacia_devuelve_lista_vacia():
    assert _normalizer(ChunkPolicy()).normalize([]) == []


def test_empaqueta_oraciones_hasta_el_presupuesto():
    specs = _run("Uno dos. Tres cuatro. Cinco seis siete.", target_unit_size=5)

    assert [s.text for s in specs] == ["Uno dos. Tres cuatro.", "Cinco seis siete."]
    assert [s.token_estimated for s in specs] == [4, 3]


def test_indices_contiguos_desde_cero():
    specs = _run("A. B. C. D. E.", target_unit_size=2)

    assert [s.index for s in specs] == list(range(len(specs)))


def test_separator_del_paquete_es_el_del_ultimo_segmento():
    normalizer = _normalizer(ChunkPolicy(target_unit_size=10))

    specs = normalizer.normalize([_make_segment("Hola.", " "), _make_segment("Adiós.", "\n\n")])

    assert len(specs) == 1
    assert specs[0].text == "Hola. Adiós."
    assert specs[0].separator == "\n\n"


# ---------------------------------------------------------------------------
# Corte duro y tolerancia
# ---------------------------------------------------------------------------


def test_sin_fronteras_corta_por_ventanas_de_palabras():
    specs = _run("a b c d e f g", target_unit_size=3)

    assert [s.text for s in specs] == ["a b c", "d e f", "g"]
    assert [s.separator for s in specs] == [" ", " ", ""]


def test_dentro_del_slack_no_corta():
    text = " ".join(f"w{i}" for i in range(12))    # 12 palabras, límite 10 * 1.2

    specs = _run(text, target_unit_size=10, slack=0.2)

    assert len(specs) == 1
    assert specs[0].text == text


def test_fuera_del_slack_corta_al_presupuesto():
    text = " ".join(f"w{i}" for i in range(13))

    specs = _run(text, target_unit_size=10, slack=0.2)

    assert [s.token_estimated for s in specs] == [10, 3]


def test_parrafo_grande_baja_a_oraciones_antes_de_cortar():
    text = "uno dos tres. cuatro cinco seis."

    specs = _run(text, target_unit_size=3, slack=0.0, prefer="paragraph")

    assert [s.text for s in specs] == ["uno dos tres.", "cuatro cinco seis."]


@pytest.mark.parametrize("size", [1, 2, 5, 50])
def test_el_corte_duro_conserva_todos_los_caracteres(size):
    text = "palabra  con\tespacios\nraros y sin punto final " * 5
    text = text.strip()

    specs = _run(text, target_unit_size=size)

    assert "".join(s.text + s.separator for s in specs) == text
