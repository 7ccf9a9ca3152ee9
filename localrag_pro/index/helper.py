from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..utils.proc import ProcessFailed, run_process
from .schema import Hit, IndexedChunk
from .store import VectorStoreClient, VectorStoreError

logger = logging.getLogger(__name__)


def _to_hit(item: Dict[str, Any]) -> Optional[Hit]:
    if not isinstance(item, dict) or not isinstance(item.get("text"), str):
        return None
    score = item.get("score")
    if score is None and item.get("_distance") is not None:
        score = 1.0 - float(item["_distance"])
    try:
        score = float(score) if score is not None else 0.0
    except (TypeError, ValueError):
        score = 0.0
    cid = item.get("id")
    return Hit(
        id=str(cid) if cid is not None else None,
        text=item["text"],
        path=str(item.get("path") or ""),
        score=score,
    )


class HelperVectorStore(VectorStoreClient):
    """
    Vector store living behind a helper executable.

        <command> upsert   stdin: {"id", "path", "text", "embedding"}
        <command> query    stdin: {"embedding", "topK"}  stdout: {"results": [...]}
        <command> count    stdout: {"count": n}
    """

    def __init__(self, command: Sequence[str], timeout: float = 30.0, cwd: Optional[str] = None):
        if not command:
            raise ValueError("helper command is required")
        self.command = [str(c) for c in command]
        self.timeout = float(timeout)
        self.cwd = cwd

    def _call(self, op: str, payload: Optional[dict] = None) -> str:
        body = json.dumps(payload, ensure_ascii=False) if payload is not None else None
        try:
            res = run_process([*self.command, op], input_text=body, timeout=self.timeout, cwd=self.cwd)
        except ProcessFailed as e:
            raise VectorStoreError(f"helper {op}: {e}") from e
        if not res.ok:
            raise VectorStoreError(
                f"helper {op} exited {res.returncode}: {res.stderr.strip()[:500]}"
            )
        return res.stdout

    def upsert(self, chunk: IndexedChunk) -> None:
        self._call("upsert", chunk.to_payload())

    def _query(self, embedding: List[float], top_k: int) -> List[Hit]:
        out = self._call("query", {"embedding": embedding, "topK": top_k})
        try:
            data = json.loads(out)
        except ValueError as e:
            raise VectorStoreError(f"helper query returned non-JSON output: {out[:200]!r}") from e
        items = data.get("results") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise VectorStoreError("helper query reply has no 'results' array")

        hits = [h for h in (_to_hit(it) for it in items) if h is not None]
        if len(hits) != len(items):
            logger.debug("dropped %d malformed helper results", len(items) - len(hits))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:top_k]

    def count(self) -> int:
        out = self._call("count")
        try:
            return int(json.loads(out).get("count", 0))
        except (ValueError, AttributeError, TypeError) as e:
            raise VectorStoreError(f"helper count returned {out[:200]!r}") from e
