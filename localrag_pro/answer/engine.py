from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from ..index.schema import AnswerResult, ChatMessage, Hit
from ..index.store import VectorStoreClient, VectorStoreError
from ..llm.base import InferenceClient, InferenceError, generation_failed
from ..utils.log import Logger
from .prompt import build_prompt

logger = logging.getLogger(__name__)

TOP_K = 3
NO_ANSWER = "No answer."


class RetrievalEngine:
    """
    Embed the query -> top-K chunks -> prompt with context + history -> generate.

    Backend trouble degrades the result (no sources, or an explanatory answer
    string) instead of failing the query.
    """

    def __init__(
        self,
        inference: InferenceClient,
        store: VectorStoreClient,
        event_log: Optional[Logger] = None,
    ):
        self.inference = inference
        self.store = store
        self.event_log = event_log

    async def _retrieve(self, query: str, timers: dict) -> List[Hit]:
        t = time.perf_counter()
        try:
            embedding = await asyncio.to_thread(self.inference.embed, query)
        except InferenceError as e:
            logger.warning("Failed to embed query, answering without context: %s", e)
            embedding = None
        timers["embed_ms"] = int((time.perf_counter() - t) * 1000)
        if not embedding:
            return []

        t = time.perf_counter()
        try:
            hits = await asyncio.to_thread(self.store.query, embedding, TOP_K)
        except VectorStoreError as e:
            logger.warning("Vector store query failed, answering without context: %s", e)
            hits = []
        timers["query_ms"] = int((time.perf_counter() - t) * 1000)
        return hits[:TOP_K]

    async def answer(self, query: str, history: Sequence[ChatMessage] = ()) -> AnswerResult:
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        timers: dict = {}
        t0 = time.perf_counter()
        sources = await self._retrieve(query, timers)
        prompt = build_prompt(query, sources, history)

        t = time.perf_counter()
        try:
            text = await asyncio.to_thread(self.inference.generate, prompt)
        except InferenceError as e:
            logger.warning("Generation failed: %s", e)
            text = generation_failed(e)
        timers["generate_ms"] = int((time.perf_counter() - t) * 1000)
        timers["total_ms"] = int((time.perf_counter() - t0) * 1000)

        if not text or not text.strip():
            text = NO_ANSWER

        logger.info(
            "Answered in %d ms with %d sources",
            timers["total_ms"],
            len(sources),
            extra={"elapsed_ms": timers["total_ms"], "sources": [h.path for h in sources]},
        )

        if self.event_log is not None:
            self.event_log.write(
                {
                    "event": "query",
                    "question": query,
                    "history_len": len(history),
                    "sources": [h.path for h in sources],
                    "timers_ms": timers,
                }
            )
        return AnswerResult(answer=text, sources=sources)
