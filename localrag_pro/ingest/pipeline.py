from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Iterator, Optional

from ..index.schema import Document, IndexedChunk, IngestItem, IngestSummary
from ..index.store import VectorStoreClient, VectorStoreError
from ..llm.base import InferenceClient, InferenceError
from ..utils.log import Logger
from .extract import ExtractionFailed, TextExtractor
from .watch import ChangeWatcher

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_S = 0.03


class FolderNotFoundError(FileNotFoundError):
    def __init__(self, folder: str):
        super().__init__(f"Folder not found: {folder}")
        self.folder = folder


def walk_files(root: Path) -> Iterator[Path]:
    # rglob does not descend into symlinked directories, so cycles can't occur
    for p in sorted(root.rglob("*")):
        if p.is_file():
            yield p


class IngestionPipeline:
    """
    folder -> documents -> embeddings -> vector store, one document at a time.

    A document's extract/embed/upsert sequence finishes before the next one
    starts, and a chunk is only ever upserted with the embedding computed for
    its own text.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        inference: InferenceClient,
        store: VectorStoreClient,
        watcher: Optional[ChangeWatcher] = None,
        throttle: float = DEFAULT_THROTTLE_S,
        event_log: Optional[Logger] = None,
    ):
        self.extractor = extractor
        self.inference = inference
        self.store = store
        self.watcher = watcher
        self.throttle = max(0.0, float(throttle))
        self.event_log = event_log

    async def ingest(self, folder: str | Path) -> IngestSummary:
        root = Path(folder)
        if not root.is_dir():
            raise FolderNotFoundError(str(folder))
        root = root.resolve()

        t0 = time.perf_counter()
        summary = IngestSummary(folder=str(root))
        for path in walk_files(root):
            item = await self._ingest_file(path)
            summary.items.append(item)
            self._record(item)

        summary.watching = self._register(root)
        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        logger.info(
            "Ingest of %s done in %d ms: %d indexed, %d skipped, %d failed",
            root,
            elapsed_ms,
            summary.indexed,
            summary.skipped,
            summary.failed,
            extra={"folder": str(root), "elapsed_ms": elapsed_ms},
        )
        return summary

    async def _ingest_file(self, path: Path) -> IngestItem:
        p = str(path)
        if not self.extractor.supports(path):
            return IngestItem(path=p, status="skipped", reason="unsupported")

        placeholder = False
        try:
            text = await asyncio.to_thread(self.extractor.extract, path)
        except ExtractionFailed as e:
            if e.placeholder is None:
                logger.warning("Skipping %s: %s", p, e.reason, extra={"path": p, "status": "failed"})
                return IngestItem(path=p, status="failed", reason=e.reason)
            logger.warning(
                "No text from %s (%s); indexing placeholder",
                p,
                e.reason,
                extra={"path": p, "reason": "placeholder"},
            )
            text = e.placeholder
            placeholder = True

        doc = Document(path=p, raw_text=text)
        if not doc.raw_text.strip():
            return IngestItem(path=p, status="skipped", reason="empty")

        if self.throttle:
            await asyncio.sleep(self.throttle)

        try:
            embedding = await asyncio.to_thread(self.inference.embed, doc.raw_text)
        except InferenceError as e:
            logger.warning("Embedding failed for %s: %s", p, e, extra={"path": p, "status": "failed"})
            return IngestItem(path=p, status="failed", reason=f"embed: {e}")

        chunk = IndexedChunk(path=doc.path, text=doc.raw_text, embedding=embedding)
        try:
            await asyncio.to_thread(self.store.upsert, chunk)
        except VectorStoreError as e:
            logger.warning("Upsert failed for %s: %s", p, e, extra={"path": p, "status": "failed"})
            return IngestItem(path=p, status="failed", reason=f"upsert: {e}")

        return IngestItem(
            path=p,
            status="indexed",
            reason="placeholder" if placeholder else None,
            chunk_id=chunk.id,
            embedded=embedding is not None,
        )

    def _register(self, root: Path) -> bool:
        if self.watcher is None:
            return False
        try:
            self.watcher.register(root)
            return True
        except Exception as e:
            logger.error("Could not watch %s: %s", root, e)
            return False

    def _record(self, item: IngestItem) -> None:
        if self.event_log is not None:
            self.event_log.write({"event": "ingest_item", **item.model_dump()})
