from __future__ import annotations

import threading
from typing import List

import numpy as np

from .schema import Hit, IndexedChunk
from .store import VectorStoreClient


class MemoryVectorStore(VectorStoreClient):
    """In-process store; brute-force cosine similarity with numpy."""

    def __init__(self):
        self._chunks: List[IndexedChunk] = []
        self._lock = threading.Lock()

    @property
    def chunks(self) -> List[IndexedChunk]:
        with self._lock:
            return list(self._chunks)

    def upsert(self, chunk: IndexedChunk) -> None:
        with self._lock:
            self._chunks.append(chunk.model_copy(deep=True))

    def count(self) -> int:
        with self._lock:
            return len(self._chunks)

    def _query(self, embedding: List[float], top_k: int) -> List[Hit]:
        dim = len(embedding)
        with self._lock:
            rows = [c for c in self._chunks if c.embedding and len(c.embedding) == dim]
        if not rows:
            return []

        M = np.asarray([c.embedding for c in rows], dtype="float32")  # [N, D]
        q = np.asarray(embedding, dtype="float32")
        norms = np.linalg.norm(M, axis=1) * float(np.linalg.norm(q))
        norms[norms == 0] = 1.0
        sims = (M @ q) / norms

        if top_k >= sims.shape[0]:
            top_idx = np.argsort(-sims, kind="stable")
        else:
            part = np.argpartition(-sims, top_k)[:top_k]
            top_idx = part[np.argsort(-sims[part], kind="stable")]

        return [
            Hit(id=rows[i].id, text=rows[i].text, path=rows[i].path, score=float(sims[i]))
            for i in top_idx.tolist()
        ]
