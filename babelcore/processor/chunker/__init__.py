from babelcore.processor.chunker.chunker import Chunker, ChunkingError
from babelcore.processor.chunker.models import ChunkPolicy

__all__ = ["Chunker", "ChunkingError", "ChunkPolicy"]
