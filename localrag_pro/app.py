from __future__ import annotations

import logging
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import yaml

from .answer.engine import RetrievalEngine
from .index.factory import make_store
from .index.schema import AnswerResult, ChatMessage, IngestSummary
from .index.store import VectorStoreClient
from .ingest.extract import TextExtractor
from .ingest.pipeline import IngestionPipeline
from .ingest.watch import ChangeWatcher
from .llm.base import InferenceClient
from .llm.factory import make_inference
from .utils import output
from .utils.log import Logger

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "app": {
        "data_dir": ".localrag-data",
        "log_dir": "logs",
    },
    "inference": {
        "backend": "ollama",
        "endpoint": None,
        "embed_model": "nomic-embed-text",
        "chat_model": "llama3.2",
        "keep_alive": None,
        "offline": True,
        "timeout": 600,
        "command": {
            "embed": ["ollama", "embed", "nomic-embed-text", "--text"],
            "generate": ["ollama", "run", "llama3.2"],
        },
    },
    "ingest": {
        "throttle_ms": 30,
        "pdf_backend": "pdftotext",
        "pdf_timeout": 60,
        "watch": True,
    },
    "vector_store": {
        "backend": "chroma",
        "persist_dir": None,  # defaults to <data_dir>/chroma
        "collection": "docs",
        "helper_command": ["node", "src-tauri/lance_helper/index.js"],
        "timeout": 30,
    },
}


def _merge(base: dict, over: dict) -> dict:
    out = deepcopy(base)
    for k, v in (over or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str | Path | None = None) -> dict:
    """Read a YAML config over the built-in defaults. A missing file means defaults."""
    if path is None or not Path(path).exists():
        if path is not None:
            logger.debug("Config %s not found; using defaults", path)
        return deepcopy(DEFAULT_CONFIG)
    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return _merge(DEFAULT_CONFIG, loaded)


class LocalRAG:
    """Everything an entry point needs: indexing, chat, chat persistence."""

    def __init__(
        self,
        cfg: Optional[dict] = None,
        inference: Optional[InferenceClient] = None,
        store: Optional[VectorStoreClient] = None,
        watcher: Optional[ChangeWatcher] = None,
    ):
        self.cfg = _merge(DEFAULT_CONFIG, cfg or {})
        app_cfg = self.cfg["app"]
        self.data_dir = Path(app_cfg["data_dir"])
        self.data_dir.mkdir(parents=True, exist_ok=True)
        log_dir = Path(app_cfg["log_dir"])

        ing_cfg = self.cfg["ingest"]
        vs_cfg = dict(self.cfg["vector_store"])
        vs_cfg["persist_dir"] = vs_cfg.get("persist_dir") or str(self.data_dir / "chroma")

        self.inference = inference or make_inference(self.cfg["inference"])
        self.store = store or make_store(vs_cfg)
        if watcher is None and ing_cfg.get("watch", True):
            watcher = ChangeWatcher()
        self.watcher = watcher

        self.pipeline = IngestionPipeline(
            extractor=TextExtractor(
                pdf_backend=ing_cfg.get("pdf_backend", "pdftotext"),
                pdf_timeout=float(ing_cfg.get("pdf_timeout", 60)),
            ),
            inference=self.inference,
            store=self.store,
            watcher=self.watcher,
            throttle=float(ing_cfg.get("throttle_ms", 30)) / 1000.0,
            event_log=Logger(log_dir / "ingest.log.jsonl"),
        )
        self.engine = RetrievalEngine(
            inference=self.inference,
            store=self.store,
            event_log=Logger(log_dir / "queries.log.jsonl"),
        )

    async def index_folder(self, folder: str | Path) -> IngestSummary:
        return await self.pipeline.ingest(folder)

    async def chat_query(self, query: str, history: Sequence[ChatMessage] = ()) -> AnswerResult:
        return await self.engine.answer(query, list(history))

    def save_chat(self, messages: List[ChatMessage]) -> Path:
        return output.save_chat(messages, self.data_dir)

    def export_chat(self, messages: List[ChatMessage]) -> Dict[str, str]:
        return output.export_chat(messages, self.data_dir)

    def close(self) -> None:
        if self.watcher is not None:
            self.watcher.close()
