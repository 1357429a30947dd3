import re
from .models import TextSegment, BoundaryType, ChunkPolicy
from .token_estimator import TokenEstimator


class BoundaryDetector:
    """
    Responsabilidad única: tomar texto plano y devolver la lista ordenada de
    TextSegments respetando la jerarquía semántica (párrafo > oración).
    No sabe nada de presupuestos: eso es del normalizer.
    """
    def __init__(self, policy: ChunkPolicy, estimator: TokenEstimator):
        self._policy = policy
        self._estimator = estimator
        self._paragraph_re = re.compile(policy.paragraph_pattern)
        self._sentence_re = re.compile("|".join(f"(?:{p})" for p in policy.sentence_patterns))

    def detect(self, text: str) -> list[TextSegment]:
        """
        Detecta todos los límites y devuelve los segmentos en orden.
        El whitespace inicial del documento no forma parte de ningún segmento.
        """
        body = text.lstrip()
        segments: list[TextSegment] = []

        for paragraph, para_sep in _split_keeping_separators(body, self._paragraph_re):
            if self._policy.prefer == "sentence" and self._policy.splits_sentences:
                sentences = _split_keeping_separators(paragraph + para_sep, self._sentence_re)
                for i, (sentence, sent_sep) in enumerate(sentences):
                    last = i == len(sentences) - 1
                    segments.append(self._make_segment(
                        sentence, sent_sep,
                        BoundaryType.PARAGRAPH if last else BoundaryType.SENTENCE,
                    ))
            else:
                segments.append(self._make_segment(paragraph, para_sep, BoundaryType.PARAGRAPH))

        return segments

    def split_sentences(self, segment: TextSegment) -> list[TextSegment]:
        """Baja un párrafo demasiado grande al nivel de oraciones."""
        if not self._policy.splits_sentences:
            return [segment]
        pieces = _split_keeping_separators(segment.text + segment.separator, self._sentence_re)
        if len(pieces) <= 1:
            return [segment]
        result = []
        for i, (sentence, sep) in enumerate(pieces):
            last = i == len(pieces) - 1
            result.append(self._make_segment(
                sentence, sep, segment.boundary_type if last else BoundaryType.SENTENCE,
            ))
        return result

    def _make_segment(self, text: str, separator: str, boundary: BoundaryType) -> TextSegment:
        return TextSegment(
            text=text,
            separator=separator,
            boundary_type=boundary,
            token_estimated=self._estimator.estimate(text),
        )


def _split_keeping_separators(text: str, pattern: re.Pattern) -> list[tuple[str, str]]:
    """
    Divide text por pattern devolviendo pares (fragmento, separador).
    El separador del último fragmento es el whitespace final del texto.
    "".join(f + s for f, s in resultado) == text, salvo fragmentos vacíos.
    """
    parts: list[tuple[str, str]] = []
    pos = 0
    for match in pattern.finditer(text):
        if match.end() == match.start() and match.start() in (pos, len(text)):
            continue
        piece = text[pos:match.start()]
        if not piece:
            # separador pegado al anterior (ej: dos matches consecutivos)
            if parts:
                prev_text, prev_sep = parts[-1]
                parts[-1] = (prev_text, prev_sep + match.group(0))
            pos = match.end()
            continue
        parts.append((piece, match.group(0)))
        pos = match.end()

    tail = text[pos:]
    stripped = tail.rstrip()
    if stripped:
        parts.append((stripped, tail[len(stripped):]))
    elif tail and parts:
        prev_text, prev_sep = parts[-1]
        parts[-1] = (prev_text, prev_sep + tail)
    return parts
