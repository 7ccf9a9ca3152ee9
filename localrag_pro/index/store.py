from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .schema import Hit, IndexedChunk


class VectorStoreError(RuntimeError):
    """A single upsert/query against the vector store failed."""


class VectorStoreClient(ABC):
    """
    Append-only chunk store with nearest-neighbour lookup.

    Re-upserting the same path adds a new chunk; nothing is replaced.
    """

    @abstractmethod
    def upsert(self, chunk: IndexedChunk) -> None:
        ...

    def query(self, embedding: Optional[Sequence[float]], top_k: int) -> List[Hit]:
        """Return up to `top_k` hits, most similar first. No embedding => no hits."""
        if not embedding or top_k <= 0:
            return []
        return self._query([float(x) for x in embedding], int(top_k))

    @abstractmethod
    def _query(self, embedding: List[float], top_k: int) -> List[Hit]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...
