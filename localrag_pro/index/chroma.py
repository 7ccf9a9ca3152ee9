from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List

import chromadb
from chromadb.config import Settings

from .schema import Hit, IndexedChunk
from .store import VectorStoreClient, VectorStoreError

logger = logging.getLogger(__name__)

TEXT_ONLY_FILE = "text_only.jsonl"


class ChromaVectorStore(VectorStoreClient):
    """
    Persistent Chroma collection fed with caller-supplied embeddings.

    Chroma needs a vector for every record, so text-only chunks are appended
    to a JSONL sidecar next to the collection instead.
    """

    def __init__(self, persist_dir: str, collection: str = "docs"):
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        self.collection_name = collection
        settings = Settings(anonymized_telemetry=False, allow_reset=True)
        self.client = chromadb.PersistentClient(path=str(self.persist_dir), settings=settings)
        self.collection = self._open()
        self._sidecar = self.persist_dir / TEXT_ONLY_FILE
        self._lock = threading.Lock()

    def _open(self):
        return self.client.get_or_create_collection(
            name=self.collection_name,
            embedding_function=None,
            metadata={"hnsw:space": "cosine"},
        )

    def reset(self):
        try:
            self.client.delete_collection(self.collection_name)
        except Exception as e:
            logger.debug("delete_collection(%s): %s", self.collection_name, e)
        self.collection = self._open()
        self._sidecar.unlink(missing_ok=True)

    def upsert(self, chunk: IndexedChunk) -> None:
        if not chunk.embedding:
            try:
                with self._lock:
                    with open(self._sidecar, "a", encoding="utf-8") as f:
                        f.write(json.dumps(chunk.to_payload(), ensure_ascii=False) + "\n")
            except OSError as e:
                raise VectorStoreError(f"text-only write failed for {chunk.path}: {e}") from e
            return
        try:
            # ids are fresh uuids, so this never overwrites
            self.collection.upsert(
                ids=[chunk.id],
                embeddings=[chunk.embedding],
                documents=[chunk.text],
                metadatas=[{"path": chunk.path}],
            )
        except Exception as e:
            raise VectorStoreError(f"chroma upsert failed for {chunk.path}: {e}") from e

    def _text_only_count(self) -> int:
        if not self._sidecar.exists():
            return 0
        with open(self._sidecar, "r", encoding="utf-8") as f:
            return sum(1 for ln in f if ln.strip())

    def count(self) -> int:
        return self.collection.count() + self._text_only_count()

    def _query(self, embedding: List[float], top_k: int) -> List[Hit]:
        try:
            n = self.collection.count()
            if n == 0:
                return []
            res = self.collection.query(
                query_embeddings=[embedding],
                n_results=min(top_k, n),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise VectorStoreError(f"chroma query failed: {e}") from e

        ids = (res.get("ids") or [[]])[0]
        docs = (res.get("documents") or [[]])[0]
        metas = (res.get("metadatas") or [[]])[0]
        dists = (res.get("distances") or [[]])[0]

        hits = []
        for cid, doc, meta, dist in zip(ids, docs, metas, dists):
            # cosine space => score = 1 - distance
            hits.append(
                Hit(
                    id=cid,
                    text=doc or "",
                    path=(meta or {}).get("path", ""),
                    score=1.0 - float(dist) if dist is not None else 0.0,
                )
            )
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits
