"""
Sentence embeddings using sentence-transformers.

The model is loaded lazily on first use. If it cannot be loaded, the embedder
reports itself unavailable and ``embed`` returns None so retrieval can carry on
with keyword scoring only.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import List, Optional, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")


def clean_text(text: str) -> str:
    return " ".join(text.split())


class SentenceEmbedder:
    """Text -> normalised float32 vector."""

    def __init__(self, model_name: Optional[str] = None, batch_size: int = 64):
        self.model_name = model_name or EMBEDDING_MODEL
        self.batch_size = batch_size
        self._model: Optional[SentenceTransformer] = None
        self._load_failed = False
        self._lock = threading.Lock()

    @property
    def model_tag(self) -> str:
        return self.model_name

    def _get_model(self) -> Optional[SentenceTransformer]:
        if self._model is not None or self._load_failed:
            return self._model
        with self._lock:
            if self._model is None and not self._load_failed:
                try:
                    self._model = SentenceTransformer(self.model_name)
                except Exception as e:
                    logger.warning("Embedding model %s unavailable: %s", self.model_name, e)
                    self._load_failed = True
        return self._model

    @property
    def is_available(self) -> bool:
        return self._get_model() is not None

    @property
    def dimensions(self) -> Optional[int]:
        model = self._get_model()
        if model is None:
            return None
        return model.get_sentence_embedding_dimension()

    def embed(self, text: str) -> Optional[np.ndarray]:
        """Embed one text; None when the text is blank or the model is unavailable."""
        cleaned = clean_text(text)
        if not cleaned:
            return None
        model = self._get_model()
        if model is None:
            return None
        vec = model.encode(
            [cleaned],
            convert_to_numpy=True,
            normalize_embeddings=True,
        )[0]
        return np.asarray(vec, dtype=np.float32)

    def embed_batch(self, texts: Sequence[str]) -> List[Optional[np.ndarray]]:
        """Embed many texts; blank entries map to None."""
        model = self._get_model()
        if model is None:
            return [None] * len(texts)
        cleaned = [clean_text(t) for t in texts]
        idxs = [i for i, t in enumerate(cleaned) if t]
        out: List[Optional[np.ndarray]] = [None] * len(texts)
        if not idxs:
            return out
        emb = model.encode(
            [cleaned[i] for i in idxs],
            batch_size=self.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        for i, vec in zip(idxs, emb):
            out[i] = np.asarray(vec, dtype=np.float32)
        return out
