# processor/language.py
import re
from collections import Counter
from typing import Optional

# Scripts con un idioma dominante claro. Orden: el primero con mayoría gana.
# Kana va antes que Han para no confundir japonés con chino.
_SCRIPT_RANGES: list[tuple[str, re.Pattern]] = [
    ("ja", re.compile(r'[\u3040-\u30ff]')),
    ("ko", re.compile(r'[\uac00-\ud7af\u1100-\u11ff]')),
    ("zh", re.compile(r'[\u4e00-\u9fff]')),
    ("ru", re.compile(r'[\u0400-\u04ff]')),
    ("ar", re.compile(r'[\u0600-\u06ff]')),
    ("he", re.compile(r'[\u0590-\u05ff]')),
    ("el", re.compile(r'[\u0370-\u03ff]')),
    ("th", re.compile(r'[\u0e00-\u0e7f]')),
    ("hi", re.compile(r'[\u0900-\u097f]')),
]

# Palabras funcionales frecuentes y poco ambiguas entre idiomas latinos
_STOPWORDS: dict[str, set[str]] = {
    "en": {"the", "and", "of", "to", "is", "that", "with", "for", "this", "was", "are", "it"},
    "es": {"el", "los", "las", "del", "que", "y", "una", "por", "con", "para", "es", "como"},
    "fr": {"le", "les", "des", "et", "est", "une", "dans", "pour", "pas", "qui", "sur", "du"},
    "de": {"der", "die", "das", "und", "ist", "nicht", "ein", "eine", "mit", "sich", "auf", "den"},
    "pt": {"os", "as", "do", "da", "que", "não", "uma", "com", "para", "em", "dos", "é"},
    "it": {"il", "gli", "della", "che", "non", "una", "per", "con", "sono", "di", "nel", "è"},
}

_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)

# Muestra suficiente para decidir sin recorrer documentos enormes
_SAMPLE_CHARS = 20_000
_MIN_EVIDENCE = 3


def detect_language(text: str) -> Optional[str]:
    """
    Resuelve el idioma origen de un texto (para proyectos con source "auto").

    Estrategia:
    1. Script no latino dominante → idioma del script.
    2. Texto latino → idioma con más palabras funcionales.

    Devuelve None si no hay evidencia suficiente; el caller decide el fallback.
    """
    sample = text[:_SAMPLE_CHARS]
    letters = [c for c in sample if c.isalpha()]
    if not letters:
        return None

    for code, pattern in _SCRIPT_RANGES:
        hits = len(pattern.findall(sample))
        if hits and hits / len(letters) >= 0.3:
            return code

    words = Counter(w.lower() for w in _WORD_RE.findall(sample))
    scores = {
        code: sum(words[w] for w in stopwords)
        for code, stopwords in _STOPWORDS.items()
    }
    best = max(scores, key=lambda code: (scores[code], code == "en"))
    if scores[best] < _MIN_EVIDENCE:
        return None
    return best
