# chunker/normalizer.py
import re

from .detector import BoundaryDetector
from .models import TextSegment, BoundaryType, ChunkPolicy
from .token_estimator import TokenEstimator
from ..models import ChunkSpec

_WORD_RE = re.compile(r'\S+\s*')


class ChunkNormalizer:
    """
    Pasada 2: toma segmentos semánticos y los ajusta al presupuesto de tokens.
    Devuelve la lista final de ChunkSpecs listos para el pipeline.
    """

    def __init__(self, policy: ChunkPolicy, estimator: TokenEstimator, detector: BoundaryDetector):
        self._policy = policy
        self._estimator = estimator
        self._detector = detector

    def normalize(self, segments: list[TextSegment]) -> list[ChunkSpec]:
        if not segments:
            return []

        # Primero resolver segmentos grandes (pueden generar varios)
        expanded = self._expand_large_segments(segments)

        # Luego empaquetar segmentos pequeños hasta el presupuesto
        packed = self._pack_segments(expanded)

        return self._to_specs(packed)

    # ------------------------------------------------------------------
    # Expansión de segmentos grandes
    # ------------------------------------------------------------------

    def _expand_large_segments(self, segments: list[TextSegment]) -> list[TextSegment]:
        """
        Un segmento que supera el límite duro baja a oraciones.
        Si una oración sola sigue siendo demasiado grande, corte duro por palabras.
        """
        limit = self._policy.hard_limit
        result: list[TextSegment] = []
        for seg in segments:
            if seg.token_estimated <= limit:
                result.append(seg)
                continue
            for sentence in self._detector.split_sentences(seg):
                if sentence.token_estimated <= limit:
                    result.append(sentence)
                else:
                    result.extend(self._hard_split(sentence))
        return result

    def _hard_split(self, segment: TextSegment) -> list[TextSegment]:
        """Ventanas de target_unit_size palabras. El whitespace interno se conserva."""
        budget = self._policy.target_unit_size
        words = _WORD_RE.findall(segment.text)
        result: list[TextSegment] = []

        for start in range(0, len(words), budget):
            window = "".join(words[start:start + budget])
            text = window.rstrip()
            separator = window[len(text):]
            is_last = start + budget >= len(words)
            if is_last:
                separator += segment.separator
            result.append(TextSegment(
                text=text,
                separator=separator,
                boundary_type=segment.boundary_type if is_last else BoundaryType.HARD,
                token_estimated=self._estimator.estimate(text),
            ))
        return result

    # ------------------------------------------------------------------
    # Empaquetado
    # ------------------------------------------------------------------

    def _pack_segments(self, segments: list[TextSegment]) -> list[TextSegment]:
        """
        Acumula segmentos consecutivos mientras quepan en target_unit_size.
        Un segmento que solo ya llena el presupuesto forma su propio chunk.
        """
        budget = self._policy.target_unit_size
        result: list[TextSegment] = []
        current: list[TextSegment] = []
        current_tokens = 0

        for seg in segments:
            if current and current_tokens + seg.token_estimated > budget:
                result.append(self._join(current))
                current = []
                current_tokens = 0
            current.append(seg)
            current_tokens += seg.token_estimated

        if current:
            result.append(self._join(current))
        return result

    def _join(self, parts: list[TextSegment]) -> TextSegment:
        if len(parts) == 1:
            return parts[0]
        text = "".join(p.text + p.separator for p in parts[:-1]) + parts[-1].text
        return TextSegment(
            text=text,
            separator=parts[-1].separator,
            boundary_type=parts[-1].boundary_type,
            token_estimated=sum(p.token_estimated for p in parts),
        )

    # ------------------------------------------------------------------
    # Conversión final
    # ------------------------------------------------------------------

    @staticmethod
    def _to_specs(segments: list[TextSegment]) -> list[ChunkSpec]:
        return [
            ChunkSpec(
                index=i,
                text=seg.text,
                separator=seg.separator,
                token_estimated=seg.token_estimated,
            )
            for i, seg in enumerate(segments)
        ]
