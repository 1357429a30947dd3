import pytest

from babelcore.processor.chunker.detector import BoundaryDetector
from babelcore.processor.chunker.models import BoundaryType, ChunkPolicy
from babelcore.processor.chunker.token_estimator import WhitespaceTokenEstimator

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def estimator():
    return WhitespaceTokenEstimator()


@pytest.fixture
def detector(estimator):
    return BoundaryDetector(ChunkPolicy(), estimator)


def _rebuild(segments) -> str:
    return "".join(s.text + s.separator for s in segments)


# ---------------------------------------------------------------------------
# Párrafos y oraciones
# ---------------------------------------------------------------------------


def test_separa_oraciones_dentro_de_un_parrafo(detector):
    segments = detector.detect("Primera frase. Segunda frase. Tercera.")

    assert [s.text for s in segments] == ["Primera frase.", "Segunda frase.", "Tercera."]
    assert [s.separator for s in segments] == [" ", " ", ""]


def test_ultima_oracion_del_parrafo_cierra_con_tipo_paragraph(detector):
    segments = detector.detect("Uno. Dos.\n\nTres.")

    assert [s.boundary_type for s in segments] == [
        BoundaryType.SENTENCE, BoundaryType.PARAGRAPH, BoundaryType.PARAGRAPH,
    ]
    assert segments[1].separator == "\n\n"


def test_prefer_paragraph_no_baja_a_oraciones(estimator):
    detector = BoundaryDetector(ChunkPolicy(prefer="paragraph"), estimator)

    segments = detector.detect("Uno. Dos.\n\nTres. Cuatro.")

    assert [s.text for s in segments] == ["Uno. Dos.", "Tres. Cuatro."]


def test_puntuacion_cjk_no_exige_espacio(detector):
    segments = detector.detect("今日は晴れです。明日は雨です。")

    assert [s.text for s in segments] == ["今日は晴れです。", "明日は雨です。"]


def test_comillas_de_cierre_quedan_con_su_oracion(detector):
    segments = detector.detect('Dijo "hola." Luego se fue.')

    assert segments[0].text == 'Dijo "hola."'
    assert segments[1].text == "Luego se fue."


def test_token_estimated_cuenta_palabras(detector):
    segments = detector.detect("una dos tres. cuatro cinco.")

    assert [s.token_estimated for s in segments] == [3, 2]


# ---------------------------------------------------------------------------
# Preservación del texto
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("text", [
    "Hola mundo.\n\nSegundo párrafo con  dos espacios.\n\n\n   Tercero.\n",
    "Sin puntuación final y con tabs\t\tmuy raros",
    "¿Pregunta? ¡Exclamación! Fin…  Otra.\r\n\r\nÚltimo.",
])
def test_concatenar_segmentos_reproduce_el_texto(detector, text):
    segments = detector.detect(text)

    assert _rebuild(segments) == text.lstrip()


def test_whitespace_inicial_no_forma_parte_de_ningun_segmento(detector):
    segments = detector.detect("\n\n   Texto.")

    assert segments[0].text == "Texto."


# ---------------------------------------------------------------------------
# Subtítulos
# ---------------------------------------------------------------------------


def test_srt_no_divide_cues_por_oraciones(estimator):
    detector = BoundaryDetector(ChunkPolicy(file_type="srt"), estimator)
    text = (
        "1\n00:00:01,000 --> 00:00:02,000\nHola. ¿Qué tal?\n\n"
        "2\n00:00:03,000 --> 00:00:04,000\nBien. Gracias.\n"
    )

    segments = detector.detect(text)

    assert len(segments) == 2
    assert segments[0].text.endswith("¿Qué tal?")
    assert _rebuild(segments) == text


def test_split_sentences_en_srt_devuelve_el_mismo_segmento(estimator):
    detector = BoundaryDetector(ChunkPolicy(file_type="vtt"), estimator)
    segment = detector.detect("Una. Dos.")[0]

    assert detector.split_sentences(segment) == [segment]
